"""Optimisation settings shared by the warp field, the energy terms and the solver."""

from dataclasses import asdict, dataclass, fields
from typing import Any

from warpforge.constants import (
    HUBER_DELTA, KNN_NEIGHBOURS, MAX_ITERATIONS, NODE_RADIUS,
    SOLVER_TOLERANCE, TUKEY_CUTOFF,
)

JACOBIAN_STRATEGIES = ("forward", "central")


@dataclass
class OptimisationConfig:
    """Per-pass optimisation settings."""
    # Deformation graph
    neighbours: int = KNN_NEIGHBOURS     # K, checked against every term at assembly
    node_radius: float = NODE_RADIUS

    # Energy terms
    tukey_cutoff: float = TUKEY_CUTOFF
    huber_delta: float = HUBER_DELTA
    regularisation_weight: float = 1.0

    # Solver
    max_iterations: int = MAX_ITERATIONS
    tolerance: float = SOLVER_TOLERANCE
    workers: int = 1

    # Jacobian strategy per term type
    data_jacobian: str = "central"
    regularisation_jacobian: str = "forward"

    def __post_init__(self):
        if self.neighbours < 1:
            raise ValueError(f"neighbours must be >= 1, got {self.neighbours}")
        if self.tukey_cutoff <= 0 or self.huber_delta <= 0:
            raise ValueError("tukey_cutoff and huber_delta must be positive")
        if self.workers < 1:
            raise ValueError(f"workers must be >= 1, got {self.workers}")
        for name in ("data_jacobian", "regularisation_jacobian"):
            if getattr(self, name) not in JACOBIAN_STRATEGIES:
                raise ValueError(
                    f"{name} must be one of {JACOBIAN_STRATEGIES}, got {getattr(self, name)!r}"
                )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "OptimisationConfig":
        """Build from a parsed config dict, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
