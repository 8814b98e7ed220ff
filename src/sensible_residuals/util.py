from __future__ import annotations

import inspect
from typing import Any, Callable, Tuple

import numpy as np


def infer_block_names(func: Callable[..., Any]) -> Tuple[str, ...]:
    """Infer parameter block names from a function signature.

    Every parameter without a default is one parameter block; parameters
    with defaults are bound data and are skipped. *args/**kwargs are not
    supported.
    """
    sig = inspect.signature(func)
    params = list(sig.parameters.values())

    if len(params) < 1:
        raise TypeError("Cost function must take at least one parameter block.")

    bad_kinds = {inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD}
    for p in params:
        if p.kind in bad_kinds:
            raise TypeError("*args/**kwargs are not supported in cost functions.")

    names = [p.name for p in params if p.default is inspect.Parameter.empty]
    if not names:
        raise TypeError("Cost function must take at least one parameter block.")
    if len(set(names)) != len(names):
        raise TypeError("Duplicate parameter names in function signature.")
    return tuple(names)


def prod(shape: Tuple[int, ...]) -> int:
    n = 1
    for s in shape:
        n *= int(s)
    return int(n)


def as_vector(values: Any) -> np.ndarray:
    """Copy ``values`` into a contiguous 1-D float array."""
    arr = np.array(values, dtype=float)
    if arr.ndim == 0:
        return arr.reshape(1)
    return arr.reshape(-1)
