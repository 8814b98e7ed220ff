"""sensible_residuals public API."""
from .array_utils import IMPOSSIBLE_VALUE, NOT_FINITE, NOT_SET, classify_value
from .blocks import ParameterBlock, ResidualBlock
from .checks import dump, error_report, is_valid, poison
from .cost_function import CostFunction, FunctionCostFunction
from .evaluation import (
    EvaluationBuffers,
    EvaluationOutcome,
    InvalidEvaluationError,
    InvalidEvaluationWarning,
    allocate_evaluation_buffers,
    check_evaluation_buffers,
    evaluate_residual_block,
)
from .problem import Problem
from . import backends

__all__ = [
    "IMPOSSIBLE_VALUE",
    "NOT_FINITE",
    "NOT_SET",
    "classify_value",
    "ParameterBlock",
    "ResidualBlock",
    "poison",
    "is_valid",
    "dump",
    "error_report",
    "CostFunction",
    "FunctionCostFunction",
    "EvaluationBuffers",
    "EvaluationOutcome",
    "InvalidEvaluationError",
    "InvalidEvaluationWarning",
    "allocate_evaluation_buffers",
    "check_evaluation_buffers",
    "evaluate_residual_block",
    "Problem",
    "backends",
]
