import numpy as np
from sensible_residuals import FunctionCostFunction, ParameterBlock, Problem

rng = np.random.default_rng(0)
x = np.linspace(0.0, 2.0, 30)
y = 1.5 * np.sin(2.0 * x) + rng.normal(0.0, 0.05, size=x.size)

params = ParameterBlock([1.0, 1.8], name="amp_freq")
problem = Problem()
for xi, yi in zip(x, y):

    def residual(p, xi=xi, yi=yi):
        return np.array([p[0] * np.sin(p[1] * xi) - yi])

    def jac(p, xi=xi):
        return [np.array([[np.sin(p[1] * xi), p[0] * xi * np.cos(p[1] * xi)]])]

    cf = FunctionCostFunction.from_function(
        residual, num_residuals=1, parameter_block_sizes=(2,), jac=jac
    )
    problem.add_residual_block(cf, params)

res = problem.solve(backend_options={"method": "trf"})
print(res.success, res.message)
print("amplitude, frequency:", params.values)
print("cost:", res.cost, "stats:", res.stats)

# A cost function that produces NaN stops the solve with a report.
bad = ParameterBlock([0.5], name="bad")
broken = Problem()
broken.add_residual_block(
    FunctionCostFunction(
        func=lambda p: np.array([np.sqrt(p[0] - 1.0)]),
        jac=lambda p: [np.array([[0.5 / np.sqrt(p[0] - 1.0)]])],
        num_residuals=1,
        parameter_block_sizes=(1,),
    ),
    bad,
)
with np.errstate(invalid="ignore", divide="ignore"):
    res = broken.solve()
print(res.success, res.message)
print(res.report)
