"""Shared constants and paths for WarpForge."""

from pathlib import Path

# Project paths
PROJECT_ROOT = Path(__file__).parent.parent.parent
ASSETS_DIR = PROJECT_ROOT / "assets"
CONFIG_DIR = ASSETS_DIR / "config"

# Deformation graph
KNN_NEIGHBOURS = 8          # nearest graph nodes per point / per node
NODE_RADIUS = 0.025         # Gaussian influence radius of a node (metres)
WEIGHT_SUM_TOLERANCE = 1e-9  # rounding slack on "blend weights sum to <= 1"
PARAMETER_BLOCK_SIZE = 8    # rotation quaternion (4) + translation quaternion (4)
ROTATION_SLOTS = slice(0, 4)
TRANSLATION_SLOTS = slice(4, 8)

# Robust penalties
TUKEY_CUTOFF = 0.01
HUBER_DELTA = 0.0001

# Camera defaults (Kinect-style VGA sensor)
DEFAULT_FX = 525.0
DEFAULT_FY = 525.0
DEFAULT_CX = 320.0
DEFAULT_CY = 240.0
FRAME_WIDTH = 640
FRAME_HEIGHT = 480

# Solver defaults
MAX_ITERATIONS = 50
SOLVER_TOLERANCE = 1e-8
FINITE_DIFF_STEP = 1e-6
