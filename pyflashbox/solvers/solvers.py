#!/usr/bin/python3
# -*- coding: utf-8 -*-

"""
    pyFlashBox - Multiphase isothermal flash calculations
              Copyright (C) 2022, Mark Burgoyne

    This program is free software: you can redistribute it and/or modify
    it under the terms of the GNU General Public License as published by
    the Free Software Foundation, either version 3 of the License, or
    (at your option) any later version.

    This program is distributed in the hope that it will be useful,
    but WITHOUT ANY WARRANTY; without even the implied warranty of
    MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
    GNU General Public License for more details.

    The GNU General Public License can be found in the LICENSE directory,
    and at  <https://www.gnu.org/licenses/>.

          Contact author at mark.w.burgoyne@gmail.com
"""

import logging
from dataclasses import dataclass

import numpy as np

from pyflashbox.constants import NEWTON_TOL, NEWTON_MAX_ITER, ARMIJO_RHO, ARMIJO_KAPPA, ARMIJO_JMAX
from pyflashbox.exceptions import ConvergenceFailure

logger = logging.getLogger(__name__)

# Errors a thermodynamic model may raise at a non-physical trial point
ORACLE_ERRORS = (ValueError, ZeroDivisionError, FloatingPointError, np.linalg.LinAlgError)


@dataclass
class NewtonResult:
    x: np.ndarray
    fx: np.ndarray
    norm: float
    iterations: int
    converged: bool


def fd_jacobian(f, x, fx=None):
    """ Forward finite difference Jacobian of f at x"""
    x = np.asarray(x, dtype=float)
    if fx is None:
        fx = np.asarray(f(x), dtype=float)
    J = np.empty((len(fx), len(x)))
    eps = np.sqrt(np.finfo(float).eps)
    for k in range(len(x)):
        h = eps * max(abs(x[k]), 1.0)
        xh = x.copy()
        xh[k] += h
        h = xh[k] - x[k]
        J[:, k] = (np.asarray(f(xh), dtype=float) - fx) / h
    return J


def _newton_step(J, fx):
    try:
        return np.linalg.solve(J, -fx)
    except np.linalg.LinAlgError:
        return np.linalg.lstsq(J, -fx, rcond=None)[0]


def _evaluate(f, x):
    with np.errstate(all='ignore'):
        try:
            fx = np.asarray(f(x), dtype=float)
        except ORACLE_ERRORS:
            return None
    if not np.all(np.isfinite(fx)):
        return None
    return fx


def newton_linesearch(f, x0, jac=None, tol=NEWTON_TOL, max_iter=NEWTON_MAX_ITER, rho=ARMIJO_RHO,
                      kappa=ARMIJO_KAPPA, j_max=ARMIJO_JMAX, logger=logger) -> NewtonResult:
    """ Damped Newton iteration with Armijo backtracking on the merit function ||F||²/2

        f: Residual function, f(x) -> array of len(x)
        x0: Initial iterate
        jac: Jacobian function, jac(x) -> square array. Forward differences when None
        tol: Convergence tolerance on the 2-norm of the residual
        max_iter: Maximum Newton iterations
        rho: Step reduction factor. Trial steps are rho**j for j = 0..j_max
        kappa: Armijo slope. A step is accepted when pot_j <= (1 - 2*kappa*rho**j)*pot
        j_max: Maximum line search reductions
        logger: Sink for per-iteration DEBUG events

        Returns a NewtonResult. Raises ConvergenceFailure when the iteration budget is exhausted,
        the line search finds no reducing step, or the residual cannot be evaluated at x0.
    """
    x = np.array(x0, dtype=float)
    try:
        with np.errstate(divide='raise', invalid='raise', over='raise'):
            fx = np.asarray(f(x), dtype=float)
    except ORACLE_ERRORS as e:
        raise ConvergenceFailure(f"Residual evaluation failed at initial point: {e}", x=x, iterations=0) from e
    if not np.all(np.isfinite(fx)):
        raise ConvergenceFailure("Residual is not finite at initial point", x=x, iterations=0)

    norm = np.linalg.norm(fx)
    logger.debug("newton iter=0 norm=%.3e", norm)
    if norm <= tol:
        return NewtonResult(x=x, fx=fx, norm=norm, iterations=0, converged=True)

    for it in range(1, max_iter + 1):
        try:
            with np.errstate(divide='raise', invalid='raise', over='raise'):
                J = jac(x) if jac is not None else fd_jacobian(f, x, fx)
        except ORACLE_ERRORS as e:
            raise ConvergenceFailure(f"Jacobian evaluation failed: {e}", x=x, residual_norm=norm, iterations=it) from e
        dx = _newton_step(np.asarray(J, dtype=float), fx)
        if not np.all(np.isfinite(dx)):
            raise ConvergenceFailure("Newton step is not finite", x=x, residual_norm=norm, iterations=it)

        # Armijo line search
        pot = np.sum(fx * fx) / 2.0
        accepted = False
        for j in range(j_max + 1):
            rho_j = rho**j
            x_j = x + rho_j * dx
            f_j = _evaluate(f, x_j)
            if f_j is None:
                continue
            pot_j = np.sum(f_j * f_j) / 2.0
            if pot_j <= (1.0 - 2.0 * kappa * rho_j) * pot:
                accepted = True
                break
        if not accepted:
            raise ConvergenceFailure(f"Line search found no reducing step at iteration {it}",
                                     x=x, residual_norm=norm, iterations=it)

        x, fx = x_j, f_j
        norm = np.linalg.norm(fx)
        logger.debug("newton iter=%d norm=%.3e step=%.3e", it, norm, rho_j)
        if norm <= tol:
            return NewtonResult(x=x, fx=fx, norm=norm, iterations=it, converged=True)

    raise ConvergenceFailure(f"Newton iteration did not converge in {max_iter} iterations (norm {norm:.3e})",
                             x=x, residual_norm=norm, iterations=max_iter)
