"""Tests for the finite-difference Jacobian strategies."""

import numpy as np
import pytest

from warpforge.core.errors import ContractViolation
from warpforge.optimisation.cost_function import (
    CentralDifference, CostFunction, ForwardDifference, make_jacobian_strategy,
)


class Quadratic(CostFunction):
    """r = [a0 * b1, a1^2 + b0] over two blocks of size 2."""

    kind = "quadratic"

    def __init__(self):
        super().__init__([2, 2], num_residuals=2)

    def evaluate(self, blocks):
        a, b = blocks
        return np.array([a[0] * b[1], a[1] ** 2 + b[0]])


class FailsPastOne(CostFunction):
    kind = "fails"

    def __init__(self):
        super().__init__([1])

    def evaluate(self, blocks):
        x = blocks[0][0]
        return None if x > 1.0 else np.array([x])


BLOCKS = [np.array([2.0, 3.0]), np.array([5.0, 7.0])]
EXPECTED = [
    np.array([[7.0, 0.0], [0.0, 6.0]]),
    np.array([[0.0, 2.0], [1.0, 0.0]]),
]


@pytest.mark.parametrize("strategy", [ForwardDifference(), CentralDifference()])
def test_jacobian_matches_analytic(strategy):
    jacs = strategy.jacobians(Quadratic(), BLOCKS)
    assert len(jacs) == 2
    for got, want in zip(jacs, EXPECTED):
        np.testing.assert_allclose(got, want, atol=1e-4)


@pytest.mark.parametrize("strategy", [ForwardDifference(), CentralDifference()])
def test_blocks_are_not_modified(strategy):
    blocks = [b.copy() for b in BLOCKS]
    strategy.jacobians(Quadratic(), blocks)
    for got, want in zip(blocks, BLOCKS):
        np.testing.assert_array_equal(got, want)


@pytest.mark.parametrize("strategy", [ForwardDifference(), CentralDifference()])
def test_failed_evaluation_gives_no_jacobian(strategy):
    assert strategy.jacobians(FailsPastOne(), [np.array([2.0])]) is None


def test_failure_inside_stencil_gives_no_jacobian():
    # 1.0 evaluates, 1.0 + h does not
    assert ForwardDifference().jacobians(FailsPastOne(), [np.array([1.0])]) is None


def test_make_jacobian_strategy():
    assert isinstance(make_jacobian_strategy("forward"), ForwardDifference)
    assert isinstance(make_jacobian_strategy("central"), CentralDifference)
    with pytest.raises(ValueError):
        make_jacobian_strategy("automatic")


def test_check_blocks():
    cost = Quadratic()
    cost.check_blocks(BLOCKS)
    with pytest.raises(ContractViolation):
        cost.check_blocks(BLOCKS[:1])
    with pytest.raises(ContractViolation):
        cost.check_blocks([BLOCKS[0], np.zeros(3)])
