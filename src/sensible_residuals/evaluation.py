from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple
from warnings import warn

import numpy as np

from .blocks import ResidualBlock
from .checks import MAX_LISTED_RESIDUALS, error_report, is_valid, poison
from .util import prod

logger = logging.getLogger(__name__)


class InvalidEvaluationError(ValueError):
    """A cost function returned missing or non-finite values (strict mode)."""

    def __init__(self, message: str, report: str = "") -> None:
        super().__init__(message)
        self.report = report


class InvalidEvaluationWarning(UserWarning):
    """A cost function returned missing or non-finite values."""


@dataclass(frozen=True)
class EvaluationBuffers:
    """Caller-owned output storage for one residual block evaluation."""

    cost: Optional[np.ndarray]
    residuals: np.ndarray
    jacobians: Optional[List[Optional[np.ndarray]]]


@dataclass(frozen=True)
class EvaluationOutcome:
    """Result of one evaluation; ``report`` is empty when ``valid``."""

    valid: bool
    cost: float
    buffers: EvaluationBuffers
    report: str = ""
    declined: bool = False

    def jacobian(self, i: int) -> Optional[np.ndarray]:
        """Jacobian of parameter block ``i`` as a ``(num_residuals, size)`` view."""
        jacobians = self.buffers.jacobians
        if jacobians is None or jacobians[i] is None:
            return None
        J = jacobians[i]
        n = self.buffers.residuals.shape[0]
        return J.reshape(n, -1) if n else J


def allocate_evaluation_buffers(block: ResidualBlock, jacobians: bool = True) -> EvaluationBuffers:
    """Fresh buffers for ``block``.

    Constant parameter blocks get a None jacobian slot.
    """
    n = block.num_residuals
    jac: Optional[List[Optional[np.ndarray]]] = None
    if jacobians:
        jac = [
            None if pb.constant else np.empty(n * pb.size, dtype=float)
            for pb in block.parameter_blocks
        ]
    return EvaluationBuffers(
        cost=np.empty(1, dtype=float),
        residuals=np.empty(n, dtype=float),
        jacobians=jac,
    )


def _check_buffer(name: str, buf: np.ndarray, expected: int, shape2d: Optional[Tuple[int, int]] = None) -> None:
    if not isinstance(buf, np.ndarray):
        raise TypeError(f"{name} must be a numpy array; got {type(buf).__name__}.")
    if buf.dtype != np.float64:
        # Narrower floats cannot hold IMPOSSIBLE_VALUE; poisoning would write inf.
        raise TypeError(f"{name} must have dtype float64; got {buf.dtype}.")
    if buf.ndim == 2 and shape2d is not None:
        if tuple(buf.shape) != shape2d or not buf.flags.c_contiguous:
            raise ValueError(
                f"{name} must be a C-ordered array of shape {shape2d}; got {buf.shape}."
            )
        return
    if buf.ndim != 1 or prod(buf.shape) != expected:
        raise ValueError(f"{name} must have {expected} entries; got shape {buf.shape}.")


def check_evaluation_buffers(
    block: ResidualBlock,
    cost: Optional[np.ndarray],
    residuals: np.ndarray,
    jacobians: Optional[Sequence[Optional[np.ndarray]]],
) -> None:
    """Raise if any buffer's length does not match the block.

    Done once at the boundary; the scanning code trusts the lengths.
    """
    if cost is not None:
        _check_buffer("cost", cost, 1)
    _check_buffer("residuals", residuals, block.num_residuals)
    if jacobians is None:
        return
    if len(jacobians) != block.num_parameter_blocks:
        raise ValueError(
            f"Expected {block.num_parameter_blocks} jacobian slots; got {len(jacobians)}."
        )
    n = block.num_residuals
    for i, (jac, size) in enumerate(zip(jacobians, block.parameter_block_sizes)):
        if jac is not None:
            _check_buffer(f"jacobians[{i}]", jac, n * size, shape2d=(n, size))


def _warn_or_raise(strict: bool, message: str, report: str) -> None:
    """Warn or raise based on strict mode."""
    if strict:
        raise InvalidEvaluationError(message, report)
    warn(message + "\n\n" + report, InvalidEvaluationWarning, stacklevel=3)


def evaluate_residual_block(
    block: ResidualBlock,
    *,
    jacobians: bool = True,
    buffers: Optional[EvaluationBuffers] = None,
    parameters: Optional[Sequence[np.ndarray]] = None,
    strict: bool = False,
    max_listed_residuals: int = MAX_LISTED_RESIDUALS,
) -> EvaluationOutcome:
    """Poison, call the cost function, validate, and compute the cost.

    On success ``cost = 0.5 * |r|^2`` is written into the cost buffer. An
    invalid evaluation carries the error report; it is also emitted as an
    InvalidEvaluationWarning, or raised as InvalidEvaluationError when
    ``strict`` is set. A cost function that returns False is reported as
    declined without a report.
    """
    if buffers is None:
        buffers = allocate_evaluation_buffers(block, jacobians=jacobians)
    if parameters is None:
        parameters = block.parameter_values()
    if len(parameters) != block.num_parameter_blocks:
        raise ValueError(
            f"Expected {block.num_parameter_blocks} parameter arrays; got {len(parameters)}."
        )

    cost, residuals, jac = buffers.cost, buffers.residuals, buffers.jacobians
    check_evaluation_buffers(block, cost, residuals, jac)

    poison(block, cost, residuals, jac)
    ok = bool(block.cost_function.evaluate(parameters, residuals, jac))
    if not ok:
        logger.debug("Cost function declined to evaluate.")
        return EvaluationOutcome(valid=False, cost=math.nan, buffers=buffers, declined=True)

    if not is_valid(block, cost, residuals, jac):
        report = error_report(
            block, parameters, cost, residuals, jac, max_listed_residuals=max_listed_residuals
        )
        _warn_or_raise(strict, "Cost function returned invalid values.", report)
        return EvaluationOutcome(valid=False, cost=math.nan, buffers=buffers, report=report)

    value = 0.5 * float(np.dot(residuals, residuals))
    if cost is not None:
        cost[0] = value
    if not math.isfinite(value):
        # Finite residuals can still overflow the squared norm.
        message = f"Cost {value} is not finite although all residuals are."
        _warn_or_raise(strict, message, "")
        return EvaluationOutcome(valid=False, cost=value, buffers=buffers, report=message)

    return EvaluationOutcome(valid=True, cost=value, buffers=buffers)
