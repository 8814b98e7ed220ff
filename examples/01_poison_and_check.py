import numpy as np
from sensible_residuals import (
    ParameterBlock,
    ResidualBlock,
    dump,
    error_report,
    is_valid,
    poison,
)


class Forgetful:
    """Cost function that never writes the last jacobian entry."""

    num_residuals = 2
    parameter_block_sizes = (2,)

    def evaluate(self, parameters, residuals, jacobians):
        residuals[:] = [0.5, -0.3]
        if jacobians is not None and jacobians[0] is not None:
            jacobians[0][:3] = [1.0, 2.0, 3.0]
        return True


p = ParameterBlock([1.0, 2.0], name="p")
block = ResidualBlock.create(Forgetful(), p)

cost = np.empty(1)
residuals = np.empty(block.num_residuals)
jacobians = [np.empty(n) for n in block.jacobian_sizes]

# The evaluator's side of the contract: poison, call, check.
poison(block, cost, residuals, jacobians)
block.cost_function.evaluate(block.parameter_values(), residuals, jacobians)

print(dump(block, None, cost, residuals, jacobians))
if not is_valid(block, cost, residuals, jacobians):
    print(error_report(block, None, cost, residuals, jacobians))
