"""Parameter Block Index: node handle -> slot offset in the warp field arena.

Built once per optimisation pass.  The index never copies node transforms;
every block it hands out is a numpy view into ``WarpField.parameters``, so
the solver's in-place updates are visible to every term sharing a node on
its next evaluation, and edits made through ``WarpField.node`` are visible
through the index.
"""

from typing import Sequence

import numpy as np
from numpy.typing import NDArray

from warpforge.constants import PARAMETER_BLOCK_SIZE
from warpforge.graph.warp_field import WarpField


class ParameterBlockIndex:
    """Stable handle -> offset table over the arena's flat parameter vector."""

    block_size = PARAMETER_BLOCK_SIZE

    def __init__(self, warp_field: WarpField):
        self._warp_field = warp_field
        arena = warp_field.parameters
        # reshape(-1) of a C-contiguous array is a view, never a copy
        if not arena.flags.c_contiguous:
            raise ValueError("warp field parameter arena must be C-contiguous")
        self._flat = arena.reshape(-1)
        self._offsets = np.arange(len(warp_field), dtype=np.int64) * self.block_size
        self._offsets.setflags(write=False)

    def __len__(self) -> int:
        return len(self._offsets)

    @property
    def parameters(self) -> NDArray[np.float64]:
        """Flat (N*8,) view of the arena, the vector the solver updates."""
        return self._flat

    @property
    def size(self) -> int:
        return self._flat.size

    def address(self, handle: int) -> int:
        """Slot offset of a node's block start."""
        return int(self._offsets[self._warp_field.check_handle(handle)])

    def addresses_for(self, node_indices: Sequence[int]) -> list[int]:
        """One block-start offset per node index, in order."""
        return [self.address(h) for h in node_indices]

    def block(self, handle: int) -> NDArray[np.float64]:
        """Length-8 view of a node's block; writes go straight to the arena."""
        start = self.address(handle)
        return self._flat[start:start + self.block_size]

    def blocks_for(self, node_indices: Sequence[int]) -> list[NDArray[np.float64]]:
        return [self.block(h) for h in node_indices]

    def columns_for(self, handle: int) -> slice:
        """Columns of a node's block in a (residuals, N*8) Jacobian."""
        start = self.address(handle)
        return slice(start, start + self.block_size)
