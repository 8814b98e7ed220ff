from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, Tuple

import numpy as np

from .util import as_vector


@dataclass(frozen=True, eq=False)
class ParameterBlock:
    """A group of scalar decision variables.

    ``values`` is owned by the block; callers update it through ``set_values``
    (the checker only ever reads ``size``). Identity, not value, decides
    whether two residual blocks share a parameter block.
    """

    values: np.ndarray
    constant: bool = False
    name: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "values", as_vector(self.values))
        if self.values.size == 0:
            raise ValueError("ParameterBlock must have at least one component.")

    @property
    def size(self) -> int:
        return int(self.values.shape[0])

    def set_values(self, values: Any) -> None:
        v = as_vector(values)
        if v.shape != self.values.shape:
            raise ValueError(
                f"ParameterBlock {self.label!r} expects {self.size} values; got {v.size}."
            )
        self.values[...] = v

    @property
    def label(self) -> str:
        return self.name if self.name is not None else f"size-{self.size} block"


@dataclass(frozen=True)
class ResidualBlock:
    """A cost function coupled to an ordered list of parameter blocks."""

    cost_function: Any  # CostFunction
    parameter_blocks: Tuple[ParameterBlock, ...] = field(default=())

    def __post_init__(self) -> None:
        blocks = tuple(self.parameter_blocks)
        for pb in blocks:
            if not isinstance(pb, ParameterBlock):
                raise TypeError(
                    f"parameter_blocks must contain ParameterBlock instances; got {type(pb).__name__}."
                )
        object.__setattr__(self, "parameter_blocks", blocks)

        declared = tuple(int(s) for s in self.cost_function.parameter_block_sizes)
        actual = tuple(pb.size for pb in blocks)
        if declared != actual:
            raise ValueError(
                f"Cost function expects parameter block sizes {declared}; got {actual}."
            )
        if int(self.cost_function.num_residuals) < 0:
            raise ValueError("num_residuals must be >= 0.")

    @property
    def num_residuals(self) -> int:
        return int(self.cost_function.num_residuals)

    @property
    def num_parameter_blocks(self) -> int:
        return len(self.parameter_blocks)

    @property
    def parameter_block_sizes(self) -> Tuple[int, ...]:
        return tuple(pb.size for pb in self.parameter_blocks)

    @property
    def jacobian_sizes(self) -> Tuple[int, ...]:
        """Entries per jacobian buffer, ``num_residuals * size`` per block."""
        n = self.num_residuals
        return tuple(n * s for s in self.parameter_block_sizes)

    def parameter_values(self) -> Tuple[np.ndarray, ...]:
        return tuple(pb.values for pb in self.parameter_blocks)

    @staticmethod
    def create(cost_function: Any, *parameter_blocks: ParameterBlock) -> "ResidualBlock":
        return ResidualBlock(cost_function=cost_function, parameter_blocks=tuple(parameter_blocks))

