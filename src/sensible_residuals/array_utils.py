from __future__ import annotations

import math
from typing import Any, List, Optional

import numpy as np

# Marker for "not yet written". Finite, so it never collides with the
# non-finite failure class, and far outside the range of sane residuals.
IMPOSSIBLE_VALUE: float = 1e302

NOT_FINITE = "not finite"
NOT_SET = "not set by cost function"

NOT_COMPUTED_MARKER = "Not Computed"
UNINITIALIZED_MARKER = "Uninitialized"


def _flat(values: Any) -> np.ndarray:
    """Read-only flat view (row-major) of a buffer."""
    return np.asarray(values, dtype=float).reshape(-1)


def invalidate_array(values: Optional[np.ndarray]) -> None:
    """Fill a caller-owned buffer with IMPOSSIBLE_VALUE in place."""
    if values is None:
        return
    values[...] = IMPOSSIBLE_VALUE


def classify_value(x: float) -> Optional[str]:
    """Return NOT_FINITE, NOT_SET, or None for a valid value.

    Non-finite is tested first; the sentinel is finite so the two classes
    never overlap.
    """
    x = float(x)
    if not math.isfinite(x):
        return NOT_FINITE
    if x == IMPOSSIBLE_VALUE:
        return NOT_SET
    return None


def find_invalid_value(values: Optional[np.ndarray]) -> int:
    """Index of the first invalid entry, or len(values) if there is none.

    A missing buffer counts as valid and returns 0.
    """
    if values is None:
        return 0
    flat = _flat(values)
    bad = ~np.isfinite(flat) | (flat == IMPOSSIBLE_VALUE)
    hits = np.flatnonzero(bad)
    return int(hits[0]) if hits.size else int(flat.size)


def is_array_valid(values: Optional[np.ndarray]) -> bool:
    if values is None:
        return True
    return find_invalid_value(values) == _flat(values).size


def format_value(x: Optional[float], width: int = 13) -> str:
    """Render one buffer cell for the text reports.

    Cells are ``width`` wide, enough for the longest marker. Finite values
    use %g; the sentinel, missing cells and non-finite values each get
    their own marker.
    """
    if x is None:
        return f"{NOT_COMPUTED_MARKER:>{width}s}"
    x = float(x)
    if math.isnan(x):
        return f"{'NaN':>{width}s}"
    if math.isinf(x):
        return f"{('Inf' if x > 0 else '-Inf'):>{width}s}"
    if x == IMPOSSIBLE_VALUE:
        return f"{UNINITIALIZED_MARKER:>{width}s}"
    return f"{x:>{width}g}"


def append_array_to_string(values: Optional[np.ndarray], out: List[str], size: int = 0) -> None:
    """Append one rendered cell per entry to ``out``.

    When ``values`` is None, ``size`` cells of NOT_COMPUTED_MARKER are written.
    """
    if values is None:
        out.extend(format_value(None) for _ in range(int(size)))
        return
    out.extend(format_value(v) for v in _flat(values))
