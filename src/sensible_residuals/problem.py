from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional

from .backends import BackendResult, get_backend
from .blocks import ParameterBlock, ResidualBlock
from .evaluation import EvaluationOutcome, evaluate_residual_block


@dataclass
class Problem:
    """An ordered collection of residual blocks over shared parameter blocks."""

    residual_blocks: List[ResidualBlock] = field(default_factory=list)

    def add_residual_block(self, cost_function: Any, *parameter_blocks: ParameterBlock) -> ResidualBlock:
        rb = ResidualBlock.create(cost_function, *parameter_blocks)
        self.residual_blocks.append(rb)
        return rb

    @property
    def num_residuals(self) -> int:
        return sum(rb.num_residuals for rb in self.residual_blocks)

    def evaluate(self, *, jacobians: bool = False, strict: bool = False) -> List[EvaluationOutcome]:
        """Evaluate every residual block once at the current parameter values."""
        return [
            evaluate_residual_block(rb, jacobians=jacobians, strict=strict)
            for rb in self.residual_blocks
        ]

    def total_cost(self, *, strict: bool = False) -> float:
        """Sum of block costs; NaN if any block is invalid."""
        outcomes = self.evaluate(strict=strict)
        if not all(o.valid for o in outcomes):
            return float("nan")
        return float(sum(o.cost for o in outcomes))

    def solve(
        self,
        *,
        backend: str = "scipy.least_squares",
        backend_options: Optional[Mapping[str, Any]] = None,
    ) -> BackendResult:
        """Minimize the total cost in place; parameter blocks hold the result."""
        if not self.residual_blocks:
            raise ValueError("Problem has no residual blocks.")
        return get_backend(backend).solve(
            residual_blocks=self.residual_blocks,
            options=dict(backend_options or {}),
        )
