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

"""
Rachford-Rice phase split solvers

  - rr_solver: two-phase, Nielsen & Lia (2022) transformed variable Newton
  - restricted_rr: two-phase with components confined to one phase (infinite or zero K)
  - multiphase_rr: np-phase, convex formulation relative to a reference phase
"""

from typing import Tuple

import numpy as np
from scipy.optimize import brentq

from pyflashbox.constants import RR_TOL, RR_MAX_ITER
from pyflashbox.exceptions import ConvergenceFailure
from pyflashbox.solvers import newton_linesearch


# =============================================================================
# Rachford-Rice Solver - Nielsen & Lia (2022), Fluid Phase Equilibria
# =============================================================================
def rr_solver(
    zi: np.ndarray, ki: np.ndarray,
    tol: float = RR_TOL, max_iter: int = RR_MAX_ITER
) -> Tuple[int, np.ndarray, np.ndarray, float, float]:
    """
    Solve the Rachford-Rice equation using the method of Nielsen & Lia (2022),
    which handles catastrophic roundoff through a transformed variable approach.

    Reference:
        M. Nielsen & H. Lia, "Generalized Rachford-Rice Algorithm",
        Fluid Phase Equilibria (2022)

    Args:
        zi: Molar composition (will be normalized)
        ki: K-values for each component
        tol: Solution tolerance
        max_iter: Maximum iterations

    Returns:
        N_it: Number of iterations required
        yi: Vapor mole fraction compositions
        xi: Liquid mole fraction compositions
        V: Vapor molar fraction
        L: Liquid molar fraction
    """
    zi = zi / np.sum(zi)

    # Components with K=1 contribute nothing; perturb to avoid the singularity in ci = 1/(1-K)
    ki = np.where(np.abs(ki - 1.0) < 1e-12, 1.0 + 1e-12, ki)

    def rr(V: float) -> float:
        return np.dot(zi, (ki - 1) / (1 + V * (ki - 1)))

    near_vapor = rr(0.5) > 0

    ki_hat = 1.0 / ki if near_vapor else ki.copy()
    ci = 1.0 / (1.0 - ki_hat)                       # Eq 10

    phi_max = min(1.0 / (1.0 - np.min(ki_hat)), 0.5)  # Eq 11a
    phi_min = 1.0 / (1.0 - np.max(ki_hat))             # Eq 11b
    b_min = 1.0 / (phi_max - phi_min)                   # Eq 15
    b_max = np.inf

    b = 1.0 / (0.25 - phi_min)

    def h(b: float) -> float:                          # Eq 12b
        return np.sum(zi * b / (1.0 + b * (phi_min - ci)))

    def dh(b: float) -> float:                         # Eq 16b
        return np.sum(zi / (1.0 + b * (phi_min - ci))**2)

    N_it = 0
    h_b = np.inf

    while abs(h_b) > tol:
        N_it += 1
        h_b = h(b)
        dh_b = dh(b)

        if h_b > 0:
            b_max = b
        else:
            b_min = b

        b = b - h_b / dh_b

        if b < b_min or b > b_max:
            b = (b_min + b_max) / 2.0

        if N_it > max_iter:
            break

    ui = -zi * ci * b / (1.0 + b * (phi_min - ci))    # Eq 27b
    phi = (1.0 + b * phi_min) / b                      # Eq 14b

    if near_vapor:
        L = phi
        V = 1.0 - L
        yi = ui
        xi = ki_hat * ui                                # Eq 28
    else:
        V = phi
        L = 1.0 - V
        xi = ui
        yi = ki_hat * ui                                # Eq 28

    return N_it, yi, xi, V, L


def solve_rachford_rice(z: np.ndarray, K: np.ndarray) -> Tuple[float, np.ndarray, np.ndarray]:
    """
    Two-phase split for K-values K. Returns V (vapor fraction), x (liquid), y (vapor).
    Feeds outside the two-phase K window return V = 0 or 1 with the incipient phase from K.
    """
    z = np.asarray(z, dtype=float)
    K = np.asarray(K, dtype=float)
    z = z / np.sum(z)

    Km1 = K - 1.0

    if np.sum(z * Km1) <= 0:
        return 0.0, z.copy(), (K * z) / np.sum(K * z)
    if np.sum(z * Km1 / K) >= 0:
        return 1.0, (z / K) / np.sum(z / K), z.copy()

    N_it, yi, xi, V, L = rr_solver(z, K)
    return V, xi, yi


def restricted_rr(z: np.ndarray, K: np.ndarray, vapor_only: np.ndarray,
                  liquid_only: np.ndarray) -> Tuple[float, np.ndarray, np.ndarray]:
    """
    Two-phase split where some components are absent from one phase.

        z: Feed composition
        K: K-values (ignored at restricted positions)
        vapor_only: Boolean mask of non-condensable components (absent from the liquid, K = inf)
        liquid_only: Boolean mask of non-volatile components (absent from the vapor, K = 0)

    Returns V (vapor fraction), x (liquid), y (vapor)
    """
    z = np.asarray(z, dtype=float)
    z = z / np.sum(z)
    free = ~(vapor_only | liquid_only)
    Km1 = np.where(free, K - 1.0, 0.0)
    zv = np.sum(z[vapor_only])
    zl = np.sum(z[liquid_only])

    def rr(V):
        return np.sum(z[free] * Km1[free] / (1.0 + V * Km1[free])) + zv / V - zl / (1.0 - V)

    # Bounds keeping every phase composition non-negative
    lo, hi = 0.0, 1.0
    pos, neg = free & (Km1 > 0), free & (Km1 < 0)
    if np.any(pos):
        lo = max(lo, np.max(-1.0 / Km1[pos]))
    if np.any(neg):
        hi = min(hi, np.min(-1.0 / Km1[neg]))
    eps = 1e-14
    a, b = lo + eps, hi - eps
    f_a, f_b = rr(a), rr(b)
    if f_a <= 0 and zv == 0:
        V = 0.0
    elif f_b >= 0 and zl == 0:
        V = 1.0
    elif f_a * f_b > 0:
        raise ConvergenceFailure(f"Restricted Rachford-Rice has no root in ({lo}, {hi})")
    else:
        V = brentq(rr, a, b, xtol=RR_TOL, maxiter=RR_MAX_ITER * 5)

    x = np.zeros_like(z)
    y = np.zeros_like(z)
    x[free] = z[free] / (1.0 + V * Km1[free])
    y[free] = K[free] * x[free]
    if V > 0:
        y[vapor_only] = z[vapor_only] / V
    if V < 1:
        x[liquid_only] = z[liquid_only] / (1.0 - V)
    if V == 0:
        y = np.where(free, K * z, 0.0)
    if V == 1:
        x = np.where(free, z / np.where(free, K, 1.0), 0.0)
    return V, x / np.sum(x), y / np.sum(y)


def multiphase_rr(z: np.ndarray, K: np.ndarray, beta0: np.ndarray, logger=None):
    """
    Multiphase Rachford-Rice relative to a reference phase r.

        z: Feed composition
        K: (np-1) x nc K-values of each non-reference phase, K_ki = x_ki / x_ri
        beta0: Initial phase fractions of the np-1 non-reference phases

    Solves the stationarity conditions of the convex function -Σ_i z_i ln t_i, t_i = 1 + Σ_k β_k (K_ki - 1):

        g_k = -Σ_i z_i (K_ki - 1)/t_i = 0,   H_kl = Σ_i z_i (K_ki - 1)(K_li - 1)/t_i²

    Returns (beta, x_ref, X) with beta the np-1 fractions (unconstrained in sign), x_ref the reference
    phase composition and X the (np-1) x nc compositions of the other phases.
    """
    K = np.atleast_2d(K)
    Km1 = K - 1.0

    def t_of(beta):
        return 1.0 + beta @ Km1

    def grad(beta):
        t = t_of(beta)
        if np.any(t <= 0):
            return np.full(len(beta), np.nan)
        return -(Km1 @ (z / t))

    def hess(beta):
        t = t_of(beta)
        w = z / t**2
        return (Km1 * w) @ Km1.T

    kwargs = {} if logger is None else {'logger': logger}
    sol = newton_linesearch(grad, np.asarray(beta0, dtype=float), jac=hess, tol=RR_TOL * 1e3, **kwargs)
    beta = sol.x
    x_ref = z / t_of(beta)
    X = K * x_ref
    return beta, x_ref, X
