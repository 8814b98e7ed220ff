from __future__ import annotations

import logging
from typing import Any, Dict, List, Sequence, Tuple

import numpy as np
from scipy.optimize import least_squares

from ..blocks import ParameterBlock, ResidualBlock
from ..evaluation import InvalidEvaluationError, evaluate_residual_block
from .common import BackendResult

logger = logging.getLogger(__name__)


def free_parameter_blocks(residual_blocks: Sequence[ResidualBlock]) -> List[ParameterBlock]:
    """Unique non-constant parameter blocks, in order of first appearance."""
    seen: Dict[int, ParameterBlock] = {}
    for rb in residual_blocks:
        for pb in rb.parameter_blocks:
            if not pb.constant and id(pb) not in seen:
                seen[id(pb)] = pb
    return list(seen.values())


def _check_declined(outcome: Any) -> None:
    if outcome.declined:
        raise InvalidEvaluationError("Cost function declined to evaluate at the current parameters.")


class ScipyLeastSquaresBackend:
    name = "scipy.least_squares"

    def solve(
        self,
        *,
        residual_blocks: Sequence[ResidualBlock],
        options: dict[str, Any],
    ) -> BackendResult:
        """Minimize with scipy.optimize.least_squares.

        Every residual and jacobian evaluation goes through
        evaluate_residual_block in strict mode, so a cost function that
        leaves entries unset or returns non-finite values stops the solve;
        the error report is returned on the result. Any other exception
        raised during the solve also soft-fails, without a report.

        Backend options:
        - method: "trf" (default), "dogbox" or "lm"
        - jacobians: use the cost functions' jacobians (default True);
          False lets scipy difference the residuals itself
        - any other key is forwarded to scipy.optimize.least_squares
        """
        blocks = list(residual_blocks)
        if not blocks:
            raise ValueError("residual_blocks cannot be empty.")

        free = free_parameter_blocks(blocks)
        if not free:
            raise ValueError("All parameter blocks are constant; nothing to solve for.")

        offsets: Dict[int, int] = {}
        start = 0
        for pb in free:
            offsets[id(pb)] = start
            start += pb.size
        n_free = start

        row_starts: List[int] = []
        n_rows = 0
        for rb in blocks:
            row_starts.append(n_rows)
            n_rows += rb.num_residuals

        opts = dict(options)
        method = str(opts.pop("method", "trf"))
        use_jac = bool(opts.pop("jacobians", True))

        x0 = np.concatenate([pb.values for pb in free])
        saved = x0.copy()

        def _set_theta(theta: np.ndarray) -> None:
            for pb in free:
                o = offsets[id(pb)]
                pb.set_values(theta[o : o + pb.size])

        def fun(theta: np.ndarray) -> np.ndarray:
            _set_theta(np.asarray(theta, dtype=float))
            out = np.empty(n_rows, dtype=float)
            for rb, r0 in zip(blocks, row_starts):
                outcome = evaluate_residual_block(rb, jacobians=False, strict=True)
                _check_declined(outcome)
                out[r0 : r0 + rb.num_residuals] = outcome.buffers.residuals
            return out

        def jac(theta: np.ndarray) -> np.ndarray:
            _set_theta(np.asarray(theta, dtype=float))
            J = np.zeros((n_rows, n_free), dtype=float)
            for rb, r0 in zip(blocks, row_starts):
                outcome = evaluate_residual_block(rb, jacobians=True, strict=True)
                _check_declined(outcome)
                for i, pb in enumerate(rb.parameter_blocks):
                    Ji = outcome.jacobian(i)
                    if Ji is None or rb.num_residuals == 0:
                        continue
                    c0 = offsets[id(pb)]
                    J[r0 : r0 + rb.num_residuals, c0 : c0 + pb.size] += Ji
            return J

        stats: Dict[str, Any] = {"backend": self.name, "method": method}
        try:
            res = least_squares(
                fun,
                x0,
                jac=jac if use_jac else "2-point",
                method=method,
                **opts,
            )
        except Exception as e:
            # Soft fail: restore the starting point.
            logger.debug("least_squares failed: %s", e)
            _set_theta(saved)
            stats["error"] = str(e)
            return BackendResult(
                theta=saved,
                success=False,
                message=str(e),
                report=e.report if isinstance(e, InvalidEvaluationError) else None,
                stats=stats,
            )

        theta = np.asarray(res.x, dtype=float)
        _set_theta(theta)
        stats.update({"nfev": int(res.nfev), "status": int(res.status)})
        if getattr(res, "njev", None) is not None:
            stats["njev"] = int(res.njev)
        return BackendResult(
            theta=theta,
            cost=float(res.cost),
            success=bool(res.success),
            message=str(res.message),
            stats=stats,
        )


def block_slices(residual_blocks: Sequence[ResidualBlock]) -> List[Tuple[ParameterBlock, slice]]:
    """Where each free parameter block lives in BackendResult.theta."""
    out: List[Tuple[ParameterBlock, slice]] = []
    start = 0
    for pb in free_parameter_blocks(residual_blocks):
        out.append((pb, slice(start, start + pb.size)))
        start += pb.size
    return out
