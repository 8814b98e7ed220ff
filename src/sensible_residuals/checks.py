"""Poison, validate and describe the output of one residual block evaluation.

The four operations here wrap a user cost function call:

    poison(block, cost, residuals, jacobians)
    block.cost_function.evaluate(...)
    if not is_valid(block, cost, residuals, jacobians):
        text = error_report(block, parameters, cost, residuals, jacobians)

``dump`` renders any evaluation, valid or not. Buffers are caller-owned
numpy arrays; ``None`` means "not requested" everywhere. Jacobian buffers
are row-major, entry (r, c) at offset ``r * block_size + c``.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

import numpy as np

from .array_utils import (
    IMPOSSIBLE_VALUE,
    append_array_to_string,
    classify_value,
    find_invalid_value,
    format_value,
    invalidate_array,
    is_array_valid,
)
from .blocks import ResidualBlock

logger = logging.getLogger(__name__)

Jacobians = Optional[Sequence[Optional[np.ndarray]]]

# Below this many residuals the error report lists every residual; above it,
# only the invalid ones.
MAX_LISTED_RESIDUALS = 50

_DUMP_LEGEND = (
    "For each parameter block, the value of the parameters is printed in the first column\n"
    "and the value of the jacobian under the corresponding residual. If a parameter block\n"
    "was held constant, its jacobian is printed as 'Not Computed'. If an entry of the\n"
    "jacobian/residual array was requested but was not written by the cost function, it is\n"
    "printed as 'Uninitialized'. This is an error. Residual or jacobian values that are\n"
    "Inf or NaN are also an error.\n"
)

_REPORT_HEADER = (
    "A problem was found in the values returned by a user-supplied cost function.\n"
    "\n"
    "User-supplied cost functions must do the following:\n"
    "\n"
    "  (1) Fill in all residual values\n"
    "  (2) Fill in jacobian values for each non-constant parameter block for each residual\n"
    "  (3) Fill data in with finite (non-inf, non-NaN) values\n"
    "\n"
    "If you are seeing this error, the cost function is either producing non-finite\n"
    "values (infs or NaNs) or is not filling in all the values. Before the cost function\n"
    f"runs, every output array is pre-filled with a sentinel value ({IMPOSSIBLE_VALUE:g},\n"
    "IMPOSSIBLE_VALUE); an entry still holding it afterwards was never written.\n"
    "\n"
    "Which residual block is this? Only this block is visible here, not its position\n"
    "in the overall problem, so it cannot be named. Use its size information instead:\n"
    "\n"
)


def _jacobian_slot(jacobians: Jacobians, i: int) -> Optional[np.ndarray]:
    if jacobians is None:
        return None
    return jacobians[i]


def poison(
    block: ResidualBlock,
    cost: Optional[np.ndarray],
    residuals: Optional[np.ndarray],
    jacobians: Jacobians,
) -> None:
    """Fill every requested output buffer with IMPOSSIBLE_VALUE in place."""
    invalidate_array(cost)
    invalidate_array(residuals)
    for i in range(block.num_parameter_blocks):
        invalidate_array(_jacobian_slot(jacobians, i))


def is_valid(
    block: ResidualBlock,
    cost: Optional[np.ndarray],
    residuals: Optional[np.ndarray],
    jacobians: Jacobians,
) -> bool:
    """True iff all residuals and all requested jacobian entries are set and finite.

    ``cost`` is not scanned; the evaluator derives it from the residuals.
    """
    if not is_array_valid(residuals):
        logger.debug("Invalid residual at index %d.", find_invalid_value(residuals))
        return False

    for i in range(block.num_parameter_blocks):
        jac = _jacobian_slot(jacobians, i)
        if not is_array_valid(jac):
            logger.debug(
                "Invalid jacobian entry %d for parameter block %d.",
                find_invalid_value(jac),
                i,
            )
            return False
    return True


def dump(
    block: ResidualBlock,
    parameters: Optional[Sequence[np.ndarray]],
    cost: Optional[np.ndarray],
    residuals: Optional[np.ndarray],
    jacobians: Jacobians,
) -> str:
    """Render parameters, residuals and jacobians side by side.

    Advisory only; works on valid and invalid evaluations alike. When
    ``parameters`` is None the block's current parameter values are shown.
    """
    if parameters is None:
        parameters = block.parameter_values()

    num_parameter_blocks = block.num_parameter_blocks
    num_residuals = block.num_residuals

    lines: List[str] = [
        f"Residual Block size: {num_parameter_blocks} parameter blocks x {num_residuals} residuals",
        "",
        _DUMP_LEGEND,
    ]

    if cost is not None:
        lines.append("Cost:          " + format_value(np.asarray(cost).reshape(-1)[0]))

    cells: List[str] = []
    append_array_to_string(residuals, cells, size=num_residuals)
    lines.append("Residuals:     " + " ".join(cells))
    lines.append("")

    for i, size in enumerate(block.parameter_block_sizes):
        tag = " (constant)" if block.parameter_blocks[i].constant else ""
        lines.append(f"Parameter Block {i}, size: {size}{tag}")
        lines.append("")

        values = np.asarray(parameters[i], dtype=float).reshape(-1)
        jac = _jacobian_slot(jacobians, i)
        jac_flat = None if jac is None else np.asarray(jac, dtype=float).reshape(-1)
        for j in range(size):
            row = [format_value(values[j]), "|"]
            for k in range(num_residuals):
                row.append(format_value(None if jac_flat is None else jac_flat[k * size + j]))
            lines.append(" ".join(row))
        lines.append("")

    return "\n".join(lines) + "\n"


def _entry_line(label: str, value: float, classification: Optional[str]) -> str:
    return f"  {label} = {float(value):<15.4e}     {classification or 'OK'}"


def _append_entries(
    lines: List[str],
    labels: Sequence[str],
    values: np.ndarray,
    max_listed: int,
    indent: str = "",
) -> None:
    """List every entry when there are few, otherwise only the invalid ones."""
    show_all = values.size < max_listed
    hidden = 0
    for label, v in zip(labels, values):
        classification = classify_value(v)
        if classification is None and not show_all:
            hidden += 1
            continue
        lines.append(indent + _entry_line(label, v, classification))
    if hidden:
        lines.append(f"{indent}  ... {hidden} valid entries not shown")


def error_report(
    block: ResidualBlock,
    parameters: Optional[Sequence[np.ndarray]],
    cost: Optional[np.ndarray],
    residuals: Optional[np.ndarray],
    jacobians: Jacobians,
    *,
    max_listed_residuals: int = MAX_LISTED_RESIDUALS,
) -> str:
    """Explain which entries of an invalid evaluation are wrong and why.

    Precondition: ``is_valid`` returned False for these buffers. Calling it
    on a valid evaluation raises ValueError.
    """
    if is_valid(block, cost, residuals, jacobians):
        raise ValueError(
            "error_report() requires an invalid evaluation; is_valid() returned True."
        )

    num_parameter_blocks = block.num_parameter_blocks
    num_residuals = block.num_residuals
    sizes = block.parameter_block_sizes

    lines: List[str] = [_REPORT_HEADER.rstrip("\n"), ""]
    lines.append(
        f"  {num_parameter_blocks} parameter blocks; sizes: ("
        + ", ".join(str(s) for s in sizes)
        + ")"
    )
    lines.append(f"  {num_residuals} residuals")
    lines.append("")

    if not is_array_valid(residuals):
        r = np.asarray(residuals, dtype=float).reshape(-1)
        lines.append("Problem exists in: User-returned residual values (r[N])")
        lines.append("")
        _append_entries(
            lines,
            [f"r[{i:02d}]" for i in range(num_residuals)],
            r,
            max_listed_residuals,
        )
        lines.append("")

    bad_blocks = [
        i
        for i in range(num_parameter_blocks)
        if not is_array_valid(_jacobian_slot(jacobians, i))
    ]
    if bad_blocks:
        lines.append(
            "Problem exists in: User-returned jacobian values (d r[N] / d p[M][Q])"
        )
        lines.append("")
        for i in bad_blocks:
            size = sizes[i]
            jac = np.asarray(_jacobian_slot(jacobians, i), dtype=float).reshape(-1)
            lines.append(f"  Jacobian values for parameter block {i} (p[{i}][...]):")
            labels = [
                f"d r[{k // size:02d}] / d p[{i}][{k % size:02d}]"
                for k in range(jac.size)
            ]
            _append_entries(lines, labels, jac, max_listed_residuals, indent="  ")
            lines.append("")

    return "\n".join(lines) + "\n"
