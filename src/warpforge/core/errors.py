"""Exception types for problem construction.

Per-term evaluation failures (no-data points, nothing measured at the
projected pixel) are not exceptions: terms return None and are skipped.
"""


class WarpForgeError(Exception):
    """Base class for WarpForge errors."""


class ContractViolation(WarpForgeError, IndexError):
    """A programming error caught while assembling a problem.

    Out-of-range node handles, parameter blocks whose count or size does not
    match what a term declared, or a neighbour count that differs from the
    configured K.  Raised before any solver iteration runs.
    """
