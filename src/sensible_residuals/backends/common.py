from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol, Sequence

import numpy as np


@dataclass(frozen=True)
class BackendResult:
    """Normalized result returned by any backend."""

    theta: np.ndarray  # free parameters, concatenated in block order, shape (P,)
    cost: float = float("nan")
    success: bool = True
    message: str = ""
    report: Optional[str] = None  # error report of the evaluation that stopped the solve
    stats: Dict[str, Any] = field(default_factory=dict)


class Backend(Protocol):
    """Backend protocol: minimize the summed cost of a set of residual blocks."""

    name: str

    def solve(
        self,
        *,
        residual_blocks: Sequence[Any],
        options: dict[str, Any],
    ) -> BackendResult: ...
