import warnings

import numpy as np
from sensible_residuals import (
    FunctionCostFunction,
    InvalidEvaluationError,
    ParameterBlock,
    ResidualBlock,
    evaluate_residual_block,
)


def circle(center, radius, points=np.array([[1.0, 0.0], [0.0, 1.5], [-1.0, 0.2]])):
    # Distance of each point from the circle.
    return np.linalg.norm(points - center, axis=1) - radius[0]


cf = FunctionCostFunction.from_function(circle, num_residuals=3, parameter_block_sizes=(2, 1))
center = ParameterBlock([0.0, 0.0], name="center")
radius = ParameterBlock([1.0], name="radius", constant=True)
block = ResidualBlock.create(cf, center, radius)

# No jacobians requested: residuals only.
outcome = evaluate_residual_block(block, jacobians=False)
print("valid:", outcome.valid, "cost:", outcome.cost)

# Jacobians requested but cf has no jac: center's jacobian is left unset.
with warnings.catch_warnings(record=True) as caught:
    warnings.simplefilter("always")
    outcome = evaluate_residual_block(block)
print("valid:", outcome.valid, "warnings:", len(caught))
print(outcome.report)

# strict=True raises instead of warning.
try:
    evaluate_residual_block(block, strict=True)
except InvalidEvaluationError as e:
    print("raised:", e)
