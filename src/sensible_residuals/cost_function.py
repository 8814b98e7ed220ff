from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Protocol, Sequence, Tuple

import numpy as np

from .util import infer_block_names


class CostFunction(Protocol):
    """Cost function protocol: fill residuals (and optionally jacobians).

    ``jacobians`` is None when no derivatives are wanted, otherwise one slot
    per parameter block; a None slot means that block's jacobian is not
    requested. Each non-None slot is a flat row-major buffer of
    ``num_residuals * size`` entries. Return False to decline the
    evaluation.
    """

    num_residuals: int
    parameter_block_sizes: Tuple[int, ...]

    def evaluate(
        self,
        parameters: Sequence[np.ndarray],
        residuals: np.ndarray,
        jacobians: Optional[Sequence[Optional[np.ndarray]]],
    ) -> bool: ...


@dataclass(frozen=True)
class FunctionCostFunction:
    """Adapt plain Python callables to the CostFunction protocol.

    ``func(*blocks)`` returns the residual vector. ``jac(*blocks)``, when
    given, returns one ``(num_residuals, size)`` array per parameter block.
    A cost function without ``jac`` leaves requested jacobian slots
    untouched, which the validity check reports as not set.
    """

    func: Callable[..., Any]
    num_residuals: int
    parameter_block_sizes: Tuple[int, ...]
    jac: Optional[Callable[..., Any]] = None
    names: Tuple[str, ...] = field(default=())

    def __post_init__(self) -> None:
        if int(self.num_residuals) < 0:
            raise ValueError("num_residuals must be >= 0.")
        sizes = tuple(int(s) for s in self.parameter_block_sizes)
        if any(s <= 0 for s in sizes):
            raise ValueError(f"Parameter block sizes must be positive; got {sizes}.")
        object.__setattr__(self, "num_residuals", int(self.num_residuals))
        object.__setattr__(self, "parameter_block_sizes", sizes)
        if self.names and len(self.names) != len(sizes):
            raise ValueError(
                f"Got {len(self.names)} names for {len(sizes)} parameter blocks."
            )

    @staticmethod
    def from_function(
        func: Callable[..., Any],
        *,
        num_residuals: int,
        parameter_block_sizes: Sequence[int],
        jac: Optional[Callable[..., Any]] = None,
    ) -> "FunctionCostFunction":
        """Build from a function whose arguments are the parameter blocks."""
        names = infer_block_names(func)
        return FunctionCostFunction(
            func=func,
            num_residuals=num_residuals,
            parameter_block_sizes=tuple(parameter_block_sizes),
            jac=jac,
            names=names,
        )

    def evaluate(
        self,
        parameters: Sequence[np.ndarray],
        residuals: np.ndarray,
        jacobians: Optional[Sequence[Optional[np.ndarray]]],
    ) -> bool:
        r = self.func(*parameters)
        if r is None:
            return False
        r = np.asarray(r, dtype=float).reshape(-1)
        if r.shape[0] != self.num_residuals:
            raise ValueError(
                f"Cost function returned {r.shape[0]} residuals; expected {self.num_residuals}."
            )
        residuals[...] = r

        if jacobians is None or self.jac is None:
            return True

        blocks = self.jac(*parameters)
        for i, slot in enumerate(jacobians):
            if slot is None:
                continue
            J = blocks[i]
            if J is None:
                continue
            J = np.asarray(J, dtype=float)
            expected = (self.num_residuals, self.parameter_block_sizes[i])
            if J.shape != expected:
                J = J.reshape(expected)
            slot[...] = J.reshape(slot.shape)
        return True
