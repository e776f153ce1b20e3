"""Warp field optimisation: energy terms, parameter blocks and the solver adapter."""

from warpforge.optimisation.cost_function import (
    CentralDifference, CostFunction, ForwardDifference, JacobianStrategy,
)
from warpforge.optimisation.data_energy import DataEnergyTerm
from warpforge.optimisation.parameter_index import ParameterBlockIndex
from warpforge.optimisation.problem import ResidualEvaluation, SolveSummary, WarpProblem
from warpforge.optimisation.reg_energy import RegularisationEnergyTerm
from warpforge.optimisation.robust import huber_loss, tukey_penalty

__all__ = [
    "CentralDifference",
    "CostFunction",
    "DataEnergyTerm",
    "ForwardDifference",
    "JacobianStrategy",
    "ParameterBlockIndex",
    "RegularisationEnergyTerm",
    "ResidualEvaluation",
    "SolveSummary",
    "WarpProblem",
    "huber_loss",
    "tukey_penalty",
]
