"""Warp problem assembly and the least-squares solver adapter.

A :class:`WarpProblem` owns one :class:`ParameterBlockIndex` for the pass,
registers energy terms against node handles (validating every contract up
front), evaluates the residual vector with per-term failures skipped, and
hands the whole thing to ``scipy.optimize.least_squares``, which updates the
warp field arena in place.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence

import numpy as np
from scipy.optimize import least_squares
from scipy.sparse import csr_matrix, lil_matrix

from warpforge.camera.depth_frame import DepthFrame
from warpforge.camera.intrinsics import CameraIntrinsics
from warpforge.core.errors import ContractViolation, WarpForgeError
from warpforge.core.events import EventBus, EventType
from warpforge.core.math_utils import Mat4
from warpforge.core.state import OptimisationConfig
from warpforge.graph.warp_field import Correspondence, WarpField
from warpforge.optimisation.cost_function import (
    CostFunction, JacobianStrategy, make_jacobian_strategy,
)
from warpforge.optimisation.data_energy import DataEnergyTerm
from warpforge.optimisation.parameter_index import ParameterBlockIndex
from warpforge.optimisation.reg_energy import RegularisationEnergyTerm

logger = logging.getLogger(__name__)


@dataclass
class ResidualBlock:
    """A registered term: cost, the nodes it reads, and how to differentiate it."""
    cost: CostFunction
    node_handles: tuple[int, ...]
    jacobian: JacobianStrategy
    scale: float = 1.0
    row: int = 0  # first row in the fixed-size residual vector


@dataclass
class ResidualEvaluation:
    """Residuals of the terms that evaluated; failed terms are left out."""
    residuals: np.ndarray
    evaluated: int
    skipped: int
    term_indices: list[int] = field(default_factory=list)
    skipped_indices: list[int] = field(default_factory=list)

    @property
    def cost(self) -> float:
        return 0.5 * float(np.dot(self.residuals, self.residuals))


@dataclass
class SolveSummary:
    initial_cost: float
    final_cost: float
    evaluations: int
    evaluated_terms: int
    skipped_terms: int
    success: bool
    message: str = ""


class WarpProblem:
    """Energy terms over one warp field, ready for a least-squares solver."""

    def __init__(
        self,
        warp_field: WarpField,
        config: Optional[OptimisationConfig] = None,
        events: Optional[EventBus] = None,
    ):
        self.config = config or OptimisationConfig(neighbours=warp_field.neighbours)
        if self.config.neighbours != warp_field.neighbours:
            raise ContractViolation(
                f"config expects K={self.config.neighbours} neighbours, "
                f"warp field was built with K={warp_field.neighbours}"
            )
        self.warp_field = warp_field
        self.events = events or EventBus()
        self.index = ParameterBlockIndex(warp_field)
        self._blocks: list[ResidualBlock] = []
        self._rows = 0

    # ── Assembly ──

    def __len__(self) -> int:
        return len(self._blocks)

    @property
    def residual_blocks(self) -> list[ResidualBlock]:
        return list(self._blocks)

    @property
    def num_residuals(self) -> int:
        return self._rows

    def _default_jacobian(self, cost: CostFunction) -> JacobianStrategy:
        if cost.kind == DataEnergyTerm.kind:
            return make_jacobian_strategy(self.config.data_jacobian)
        if cost.kind == RegularisationEnergyTerm.kind:
            return make_jacobian_strategy(self.config.regularisation_jacobian)
        return make_jacobian_strategy("forward")

    def add_residual_block(
        self,
        cost: CostFunction,
        node_handles: Sequence[int],
        jacobian: Optional[JacobianStrategy] = None,
        scale: float = 1.0,
    ) -> int:
        """Register *cost* against *node_handles*; returns the term's index.

        Raises ContractViolation when the handles do not match what the cost
        declared, the neighbour count is not the configured K, or a handle is
        outside the graph.
        """
        handles = tuple(int(h) for h in node_handles)
        sizes = cost.parameter_block_sizes
        if len(handles) != len(sizes):
            raise ContractViolation(
                f"{cost.kind} term declares {len(sizes)} parameter blocks, "
                f"registered with {len(handles)} nodes"
            )
        if len(handles) != self.config.neighbours:
            raise ContractViolation(
                f"{cost.kind} term has {len(handles)} neighbours, configured K={self.config.neighbours}"
            )
        for size in sizes:
            if size != self.index.block_size:
                raise ContractViolation(
                    f"{cost.kind} term declares a {size}-slot block, "
                    f"node blocks have {self.index.block_size} slots"
                )
        if cost.num_residuals < 1:
            raise ContractViolation(f"{cost.kind} term declares no residuals")
        # Resolves every handle now so a bad one fails before any iteration.
        self.index.addresses_for(handles)

        block = ResidualBlock(
            cost=cost,
            node_handles=handles,
            jacobian=jacobian or self._default_jacobian(cost),
            scale=scale,
            row=self._rows,
        )
        self._blocks.append(block)
        self._rows += cost.num_residuals
        return len(self._blocks) - 1

    def add_data_term(
        self,
        correspondence: Correspondence,
        frame: DepthFrame,
        intrinsics: CameraIntrinsics,
    ) -> DataEnergyTerm:
        term = DataEnergyTerm(correspondence, frame, intrinsics, self.config.tukey_cutoff)
        self.add_residual_block(term, correspondence.node_indices)
        return term

    def add_data_terms(
        self,
        correspondences: Iterable[Correspondence],
        frame: DepthFrame,
        intrinsics: CameraIntrinsics,
    ) -> int:
        count = 0
        for corr in correspondences:
            self.add_data_term(corr, frame, intrinsics)
            count += 1
        return count

    def add_regularisation_terms(self, inverse_pose: Optional[Mat4] = None) -> int:
        """One regularisation term per graph node, over its K nearest other nodes."""
        weight = np.sqrt(self.config.regularisation_weight)
        positions = self.warp_field.positions
        for handle in range(len(self.warp_field)):
            idx, w = self.warp_field.node_neighbourhood(handle)
            term = RegularisationEnergyTerm(
                positions, idx, w,
                inverse_pose=inverse_pose,
                huber_delta=self.config.huber_delta,
            )
            self.add_residual_block(term, idx, scale=weight)
        return len(self.warp_field)

    # ── Evaluation ──

    def _evaluate_block(self, block: ResidualBlock) -> Optional[np.ndarray]:
        r = block.cost.evaluate(self.index.blocks_for(block.node_handles))
        if r is None:
            return None
        return block.scale * np.asarray(r, dtype=np.float64)

    def _evaluate_all(self, workers: Optional[int] = None) -> list[Optional[np.ndarray]]:
        workers = workers or self.config.workers
        if workers > 1 and len(self._blocks) > 1:
            with ThreadPoolExecutor(max_workers=workers) as pool:
                return list(pool.map(self._evaluate_block, self._blocks))
        return [self._evaluate_block(b) for b in self._blocks]

    def evaluate(self, workers: Optional[int] = None) -> ResidualEvaluation:
        """Evaluate every term at the arena's current values.

        Terms whose evaluation fails contribute no residual; they are
        reported through ``skipped`` and TERM_SKIPPED events.
        """
        results = self._evaluate_all(workers)
        parts: list[np.ndarray] = []
        kept: list[int] = []
        skipped: list[int] = []
        for i, r in enumerate(results):
            if r is None:
                skipped.append(i)
                self._report_skip(i)
            else:
                parts.append(r)
                kept.append(i)
        residuals = np.concatenate(parts) if parts else np.zeros(0, dtype=np.float64)
        return ResidualEvaluation(
            residuals=residuals,
            evaluated=len(kept),
            skipped=len(skipped),
            term_indices=kept,
            skipped_indices=skipped,
        )

    def _report_skip(self, term_index: int) -> None:
        kind = self._blocks[term_index].cost.kind
        logger.debug("Skipping %s term %d: evaluation failed", kind, term_index)
        if self.events.has_subscribers(EventType.TERM_SKIPPED):
            self.events.publish(EventType.TERM_SKIPPED, term_index=term_index, kind=kind)

    def residual_vector(self, workers: Optional[int] = None) -> tuple[np.ndarray, int]:
        """Fixed-size residuals (failed terms read 0) and the number skipped."""
        out = np.zeros(self._rows, dtype=np.float64)
        skipped = 0
        for block, r in zip(self._blocks, self._evaluate_all(workers)):
            if r is None:
                skipped += 1
                continue
            out[block.row:block.row + block.cost.num_residuals] = r
        return out, skipped

    def jacobian(self) -> csr_matrix:
        """Sparse (num_residuals, N*8) Jacobian; rows of failed terms are zero."""
        jac = lil_matrix((self._rows, self.index.size), dtype=np.float64)
        for block in self._blocks:
            blocks = self.index.blocks_for(block.node_handles)
            parts = block.jacobian.jacobians(block.cost, blocks)
            if parts is None:
                continue
            rows = slice(block.row, block.row + block.cost.num_residuals)
            for handle, part in zip(block.node_handles, parts):
                cols = self.index.columns_for(handle)
                # a node listed twice in one term accumulates both derivatives
                jac[rows, cols] = jac[rows, cols].toarray() + block.scale * part
        return jac.tocsr()

    # ── Solving ──

    def solve(self, max_iterations: Optional[int] = None) -> SolveSummary:
        """Minimise the summed energy, updating the warp field arena in place."""
        if not self._blocks:
            raise WarpForgeError("Cannot solve a problem with no residual blocks")

        params = self.index.parameters
        max_nfev = max_iterations or self.config.max_iterations
        evaluations = 0

        self.events.publish(EventType.PASS_STARTED, terms=len(self._blocks), nodes=len(self.warp_field))
        initial = self.evaluate()
        logger.info(
            "Warp pass: %d terms (%d skipped), %d nodes, initial cost %.6g",
            len(self._blocks), initial.skipped, len(self.warp_field), initial.cost,
        )

        def fun(x):
            nonlocal evaluations
            np.copyto(params, x)
            r, skipped = self.residual_vector()
            evaluations += 1
            if self.events.has_subscribers(EventType.ITERATION_COMPLETE):
                self.events.publish(
                    EventType.ITERATION_COMPLETE,
                    iteration=evaluations,
                    cost=0.5 * float(np.dot(r, r)),
                    evaluated=len(self._blocks) - skipped,
                    skipped=skipped,
                )
            return r

        def jac(x):
            np.copyto(params, x)
            return self.jacobian()

        result = least_squares(
            fun, params.copy(), jac=jac, method="trf",
            max_nfev=max_nfev,
            xtol=self.config.tolerance, ftol=self.config.tolerance,
        )
        np.copyto(params, result.x)
        self.warp_field.normalise_rotations()

        final = self.evaluate()
        summary = SolveSummary(
            initial_cost=initial.cost,
            final_cost=final.cost,
            evaluations=evaluations,
            evaluated_terms=final.evaluated,
            skipped_terms=final.skipped,
            success=bool(result.success),
            message=str(result.message),
        )
        logger.info(
            "Warp pass done: cost %.6g -> %.6g after %d evaluations (%s)",
            summary.initial_cost, summary.final_cost, evaluations, summary.message,
        )
        self.events.publish(EventType.PASS_COMPLETE, summary=summary)
        return summary
