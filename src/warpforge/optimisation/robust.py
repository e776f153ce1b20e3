"""Robust penalties applied to the energy term residuals."""

from warpforge.constants import HUBER_DELTA, TUKEY_CUTOFF


def tukey_penalty(x: float, c: float = TUKEY_CUTOFF) -> float:
    """Tukey biweight: x * (1 - (x/c)^2)^2 for |x| <= c, else 0.

    Residuals beyond the cutoff are treated as outliers and contribute
    nothing.  The value is odd in x and reaches 0 at |x| = c from both sides.
    """
    if abs(x) > c:
        return 0.0
    u = x / c
    return x * (1.0 - u * u) ** 2


def huber_loss(d: float, delta: float = HUBER_DELTA) -> float:
    """Huber loss: d^2/2 for d <= delta, delta*d - delta^2/2 above."""
    if d <= delta:
        return 0.5 * d * d
    return delta * d - 0.5 * delta * delta
