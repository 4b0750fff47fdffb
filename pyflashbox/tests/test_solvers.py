#!/usr/bin/env python3
"""
Validation tests for the Newton driver and Rachford-Rice solvers.
Run with: python3 -m pytest pyflashbox/tests/ -v
Or standalone: python3 pyflashbox/tests/test_solvers.py
"""

import sys
import os
import numpy as np

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))
from pyflashbox.solvers import newton_linesearch, fd_jacobian
from pyflashbox.exceptions import ConvergenceFailure, FlashError
from pyflashbox.flash._lib_rr import rr_solver, solve_rachford_rice, restricted_rr, multiphase_rr

# =============================================================================
# Newton with Armijo line search
# =============================================================================

def _circle(x):
    return np.array([x[0]**2 + x[1]**2 - 4.0, x[0] - x[1]])

def _circle_jac(x):
    return np.array([[2 * x[0], 2 * x[1]], [1.0, -1.0]])

def test_newton_analytic_jacobian():
    sol = newton_linesearch(_circle, [1.0, 2.0], jac=_circle_jac)
    assert sol.converged
    assert np.allclose(sol.x, [np.sqrt(2), np.sqrt(2)], atol=1e-9), f"x = {sol.x}"
    assert sol.norm <= 1e-10

def test_newton_finite_difference_jacobian():
    sol = newton_linesearch(_circle, [1.0, 2.0])
    assert np.allclose(sol.x, [np.sqrt(2), np.sqrt(2)], atol=1e-8), f"x = {sol.x}"
    assert sol.iterations > 0

def test_newton_already_converged():
    sol = newton_linesearch(_circle, [np.sqrt(2), np.sqrt(2)], tol=1e-8)
    assert sol.iterations == 0

def test_newton_line_search_rejects_non_finite():
    """Trial points outside the domain of the residual are rejected by the line search"""
    def f(x):
        return np.array([np.log(x[0]) - 1.0])
    sol = newton_linesearch(f, [10.0])
    assert abs(sol.x[0] - np.e) < 1e-8, f"x = {sol.x}"

def test_newton_no_root_raises():
    """A residual without a root raises ConvergenceFailure carrying the best iterate"""
    def f(x):
        return np.array([x[0]**2 + 1.0])
    try:
        newton_linesearch(f, [0.7], max_iter=50)
        assert False, "Should have raised ConvergenceFailure"
    except ConvergenceFailure as e:
        assert e.x is not None
        assert e.residual_norm >= 1.0
        assert isinstance(e, FlashError)

def test_newton_non_finite_start_raises():
    def f(x):
        return np.array([np.nan])
    try:
        newton_linesearch(f, [1.0])
        assert False, "Should have raised ConvergenceFailure"
    except ConvergenceFailure:
        pass

def test_fd_jacobian_linear():
    A = np.array([[1.0, 2.0], [3.0, -4.0]])
    J = fd_jacobian(lambda x: A @ x, np.array([0.3, -1.2]))
    assert np.allclose(J, A, atol=1e-6)

# =============================================================================
# Rachford-Rice
# =============================================================================

def test_rr_solver_symmetric_case():
    """z = [0.5, 0.5], K = [2, 0.5] splits at V = 0.5"""
    N_it, y, x, V, L = rr_solver(np.array([0.5, 0.5]), np.array([2.0, 0.5]))
    assert abs(V - 0.5) < 1e-12, f"V = {V}"
    assert abs(L - 0.5) < 1e-12
    assert np.allclose(x, [1 / 3, 2 / 3], atol=1e-12)
    assert np.allclose(y, [2 / 3, 1 / 3], atol=1e-12)

def test_solve_rachford_rice_mass_balance():
    z = np.array([0.3, 0.2, 0.4, 0.1])
    K = np.array([5.0, 1.5, 0.3, 0.05])
    V, x, y = solve_rachford_rice(z, K)
    assert 0 < V < 1
    assert np.allclose((1 - V) * x + V * y, z, atol=1e-12)
    assert np.allclose(y, K * x, rtol=1e-10)

def test_solve_rachford_rice_single_phase():
    z = np.array([0.5, 0.5])
    V, x, y = solve_rachford_rice(z, np.array([0.5, 0.2]))
    assert V == 0.0, "All K < 1 should give liquid"
    V, x, y = solve_rachford_rice(z, np.array([3.0, 2.0]))
    assert V == 1.0, "All K > 1 should give vapor"

def test_restricted_rr_noncondensable():
    z = np.array([0.4, 0.4, 0.2])
    K = np.array([3.0, 0.2, 1.0])
    vapor_only = np.array([False, False, True])
    liquid_only = np.zeros(3, dtype=bool)
    V, x, y = restricted_rr(z, K, vapor_only, liquid_only)
    assert 0 < V < 1
    assert x[2] == 0.0, "Non-condensable component must be absent from the liquid"
    assert np.allclose((1 - V) * x + V * y, z, atol=1e-10)
    assert abs(np.sum(x) - 1) < 1e-10 and abs(np.sum(y) - 1) < 1e-10

def test_restricted_rr_nonvolatile():
    z = np.array([0.4, 0.4, 0.2])
    K = np.array([3.0, 0.2, 1.0])
    V, x, y = restricted_rr(z, K, np.zeros(3, dtype=bool), np.array([False, False, True]))
    assert y[2] == 0.0, "Non-volatile component must be absent from the vapor"
    assert np.allclose((1 - V) * x + V * y, z, atol=1e-10)

def test_multiphase_rr_reduces_to_two_phase():
    z = np.array([0.5, 0.5])
    beta, x_ref, X = multiphase_rr(z, np.array([[2.0, 0.5]]), np.array([0.0]))
    assert abs(beta[0] - 0.5) < 1e-10, f"beta = {beta}"
    assert np.allclose(x_ref, [1 / 3, 2 / 3], atol=1e-10)
    assert np.allclose(X[0], [2 / 3, 1 / 3], atol=1e-10)

def test_multiphase_rr_vanishing_k_value():
    """A K-value far below machine epsilon still gives a positive trace amount"""
    z = np.array([0.5, 0.5])
    beta, x_ref, X = multiphase_rr(z, np.array([[2.0, 1e-20]]), np.array([0.1]))
    assert abs(beta[0]) < 1e-8, f"beta = {beta}"
    assert X[0][1] > 0.0, "Trace component rounded to zero"
    assert abs(X[0][1] / (1e-20 * x_ref[1]) - 1.0) < 1e-12, f"X = {X}"

def test_multiphase_rr_three_phase_mass_balance():
    z = np.array([0.3, 0.3, 0.4])
    K = np.array([[8.0, 0.5, 0.02], [0.05, 0.1, 3.0]])
    beta, x_ref, X = multiphase_rr(z, K, np.array([0.1, 0.1]))
    beta_ref = 1 - np.sum(beta)
    assert np.allclose(beta_ref * x_ref + beta @ X, z, atol=1e-10)
    assert np.allclose(np.sum(X, axis=1), np.sum(x_ref), atol=1e-10)


if __name__ == '__main__':
    import pytest
    sys.exit(pytest.main([__file__, '-v']))
