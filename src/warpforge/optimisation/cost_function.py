"""Residual and Jacobian capabilities that energy terms expose to the solver.

A term is a :class:`CostFunction`: it declares how many parameter blocks it
reads, their sizes and its residual dimension, and evaluates residuals from
the current block values.  Derivatives are a separate
:class:`JacobianStrategy` picked per term type when the problem is built.
"""

from abc import ABC, abstractmethod
from typing import Optional, Sequence

import numpy as np

from warpforge.constants import FINITE_DIFF_STEP
from warpforge.core.errors import ContractViolation


class CostFunction(ABC):
    """Residual capability: blocks in, residual vector (or None) out."""

    #: Short label used in logs and skip events.
    kind = "cost"

    def __init__(self, parameter_block_sizes: Sequence[int], num_residuals: int = 1):
        self.parameter_block_sizes = tuple(int(s) for s in parameter_block_sizes)
        self.num_residuals = int(num_residuals)

    def check_blocks(self, blocks: Sequence[np.ndarray]) -> None:
        """Raise ContractViolation unless *blocks* match the declared count and sizes."""
        sizes = self.parameter_block_sizes
        if len(blocks) != len(sizes):
            raise ContractViolation(
                f"{self.kind} term registered {len(sizes)} blocks, evaluated with {len(blocks)}"
            )
        for i, (block, size) in enumerate(zip(blocks, sizes)):
            if np.size(block) != size:
                raise ContractViolation(
                    f"{self.kind} term block {i} has {np.size(block)} slots, declared {size}"
                )

    @abstractmethod
    def evaluate(self, blocks: Sequence[np.ndarray]) -> Optional[np.ndarray]:
        """Residuals for the given block values, or None if evaluation fails.

        Must not write to *blocks*.
        """


class JacobianStrategy(ABC):
    """Jacobian capability for a cost function."""

    name = "jacobian"

    @abstractmethod
    def jacobians(
        self, cost: CostFunction, blocks: Sequence[np.ndarray],
    ) -> Optional[list[np.ndarray]]:
        """One (num_residuals, block_size) matrix per block, or None on failure."""


class ForwardDifference(JacobianStrategy):
    """One-sided finite differences, one extra evaluation per scalar."""

    name = "forward"

    def __init__(self, step: float = FINITE_DIFF_STEP):
        self.step = step

    def jacobians(self, cost, blocks):
        base = cost.evaluate(blocks)
        if base is None:
            return None
        work = [np.array(b, dtype=np.float64) for b in blocks]
        result = []
        for block in work:
            jac = np.zeros((cost.num_residuals, block.size), dtype=np.float64)
            for k in range(block.size):
                h = self.step * max(1.0, abs(block[k]))
                saved = block[k]
                block[k] = saved + h
                plus = cost.evaluate(work)
                block[k] = saved
                if plus is None:
                    return None
                jac[:, k] = (plus - base) / h
            result.append(jac)
        return result


class CentralDifference(JacobianStrategy):
    """Two-sided finite differences, two extra evaluations per scalar."""

    name = "central"

    def __init__(self, step: float = FINITE_DIFF_STEP):
        self.step = step

    def jacobians(self, cost, blocks):
        if cost.evaluate(blocks) is None:
            return None
        work = [np.array(b, dtype=np.float64) for b in blocks]
        result = []
        for block in work:
            jac = np.zeros((cost.num_residuals, block.size), dtype=np.float64)
            for k in range(block.size):
                h = self.step * max(1.0, abs(block[k]))
                saved = block[k]
                block[k] = saved + h
                plus = cost.evaluate(work)
                block[k] = saved - h
                minus = cost.evaluate(work)
                block[k] = saved
                if plus is None or minus is None:
                    return None
                jac[:, k] = (plus - minus) / (2.0 * h)
            result.append(jac)
        return result


_STRATEGIES = {
    ForwardDifference.name: ForwardDifference,
    CentralDifference.name: CentralDifference,
}


def make_jacobian_strategy(name: str) -> JacobianStrategy:
    try:
        return _STRATEGIES[name]()
    except KeyError:
        raise ValueError(f"Unknown Jacobian strategy {name!r}, expected one of {sorted(_STRATEGIES)}")
