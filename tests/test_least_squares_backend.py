import numpy as np
import pytest

from sensible_residuals import FunctionCostFunction, ParameterBlock, Problem
from sensible_residuals.backends import AVAILABLE_BACKENDS, block_slices, get_backend


def exponential_problem(with_jac=True, seed=0):
    """Fit y = a * exp(k * x) with one residual block per observation."""
    rng = np.random.default_rng(seed)
    x = np.linspace(0.0, 1.0, 25)
    y = 2.0 * np.exp(-1.3 * x) + rng.normal(0.0, 0.01, size=x.shape)

    theta = ParameterBlock([1.0, -0.5], name="theta")
    problem = Problem()
    for xi, yi in zip(x, y):
        def residual(theta, xi=xi, yi=yi):
            a, k = theta
            return np.array([a * np.exp(k * xi) - yi])

        def jac(theta, xi=xi):
            a, k = theta
            e = np.exp(k * xi)
            return [np.array([[e, a * xi * e]])]

        cf = FunctionCostFunction.from_function(
            residual,
            num_residuals=1,
            parameter_block_sizes=(2,),
            jac=jac if with_jac else None,
        )
        problem.add_residual_block(cf, theta)
    return problem, theta


def test_registry():
    assert "scipy.least_squares" in AVAILABLE_BACKENDS
    with pytest.raises(ValueError, match="Unknown backend"):
        get_backend("nope")


def test_solve_with_user_jacobians():
    problem, theta = exponential_problem()
    res = problem.solve()

    assert res.success
    assert res.report is None
    assert res.stats["backend"] == "scipy.least_squares"
    np.testing.assert_allclose(theta.values, [2.0, -1.3], atol=0.05)
    np.testing.assert_allclose(res.theta, theta.values)
    assert res.cost == pytest.approx(problem.total_cost(), rel=1e-6)


def test_solve_without_user_jacobians():
    problem, theta = exponential_problem(with_jac=False)
    res = problem.solve(backend_options={"jacobians": False})
    assert res.success
    np.testing.assert_allclose(theta.values, [2.0, -1.3], atol=0.05)


def test_missing_jacobians_stop_the_solve_with_report():
    problem, theta = exponential_problem(with_jac=False)
    start = theta.values.copy()

    res = problem.solve()

    assert not res.success
    assert "invalid values" in res.message
    assert "not set by cost function" in res.report
    np.testing.assert_array_equal(theta.values, start)


def test_constant_blocks_are_not_solved_for():
    shift = ParameterBlock([3.0], constant=True)
    p = ParameterBlock([0.0])
    cf = FunctionCostFunction(
        func=lambda p, s: np.array([p[0] - s[0]]),
        jac=lambda p, s: [np.array([[1.0]]), np.array([[-1.0]])],
        num_residuals=1,
        parameter_block_sizes=(1, 1),
    )
    problem = Problem()
    problem.add_residual_block(cf, p, shift)

    slices = block_slices(problem.residual_blocks)
    assert [pb for pb, _ in slices] == [p]

    res = problem.solve()
    assert res.success
    assert p.values[0] == pytest.approx(3.0, abs=1e-6)
    assert shift.values[0] == 3.0


def test_all_constant_raises():
    p = ParameterBlock([0.0], constant=True)
    cf = FunctionCostFunction(func=lambda p: p, num_residuals=1, parameter_block_sizes=(1,))
    problem = Problem()
    problem.add_residual_block(cf, p)
    with pytest.raises(ValueError, match="nothing to solve for"):
        problem.solve()


def test_empty_problem_raises():
    with pytest.raises(ValueError, match="no residual blocks"):
        Problem().solve()


def test_cost_function_exception_soft_fails():
    p = ParameterBlock([1.0])

    def residual(p):
        raise ZeroDivisionError("boom")

    problem = Problem()
    problem.add_residual_block(
        FunctionCostFunction.from_function(residual, num_residuals=1, parameter_block_sizes=(1,)), p
    )
    res = problem.solve(backend_options={"jacobians": False})

    assert not res.success
    assert res.message == "boom"
    assert res.report is None
    assert res.stats["error"] == "boom"
    assert p.values[0] == 1.0


def test_lm_with_too_few_residuals_soft_fails():
    p = ParameterBlock([1.0, 2.0])
    cf = FunctionCostFunction(
        func=lambda p: np.array([p[0] + p[1]]),
        jac=lambda p: [np.array([[1.0, 1.0]])],
        num_residuals=1,
        parameter_block_sizes=(2,),
    )
    problem = Problem()
    problem.add_residual_block(cf, p)

    res = problem.solve(backend_options={"method": "lm"})

    assert not res.success
    assert res.report is None
    np.testing.assert_array_equal(p.values, [1.0, 2.0])
