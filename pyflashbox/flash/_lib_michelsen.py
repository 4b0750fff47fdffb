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
Two-phase isothermal flash (Michelsen 1982): stability test, successive substitution on K-values
with the Nielsen & Lia Rachford-Rice solver, optional Newton polish of ln K.
"""

import numpy as np

from pyflashbox.constants import R_GAS, TRIVIAL_TOL
from pyflashbox.exceptions import ConvergenceFailure
from pyflashbox.solvers import newton_linesearch
from pyflashbox.validate import component_indices
from pyflashbox.flash._lib_rr import solve_rachford_rice, restricted_rr
from pyflashbox.flash._lib_stability import trial_phases, find_unstable, gibbs_change


def _restriction_masks(model, method):
    nc = len(model)
    vapor_only = np.zeros(nc, dtype=bool)
    liquid_only = np.zeros(nc, dtype=bool)
    if method.noncondensables:
        vapor_only[component_indices(model, method.noncondensables)] = True
    if method.nonvolatiles:
        liquid_only[component_indices(model, method.nonvolatiles)] = True
    return vapor_only, liquid_only


def _initial_k(model, p, T, z, method):
    if method.K0 is not None:
        return np.asarray(method.K0, dtype=float), 'K0'
    if method.x0 is not None and method.y0 is not None:
        x0 = np.asarray(method.x0, dtype=float)
        y0 = np.asarray(method.y0, dtype=float)
        return (y0 / np.sum(y0)) / (x0 / np.sum(x0)), 'x0/y0'
    if method.v0 is not None:
        # Fugacity ratio of the feed at the two volumes
        v_l, v_v = method.v0[0], method.v0[1]
        mu_l = model.chemical_potential(v_l, T, z)
        mu_v = model.chemical_potential(v_v, T, z)
        return np.exp((mu_l - mu_v) / (R_GAS * T)), 'v0'
    return None, None


def _k_from_trial(model, p, T, z, w):
    v_z = model.volume(p, T, z)
    v_w = model.volume(p, T, w)
    return w / z if v_w > v_z else z / w


def _split(z, K, vapor_only, liquid_only, restricted):
    if restricted:
        return restricted_rr(z, K, vapor_only, liquid_only)
    return solve_rachford_rice(z, K)


def _ln_k(model, p, T, x, y):
    ln_phi_l = model.ln_fugacity_coefficient(p, T, x, phase='stable')
    ln_phi_v = model.ln_fugacity_coefficient(p, T, y, phase='stable')
    return ln_phi_l - ln_phi_v


def _successive_substitution(model, p, T, z, K, method, masks, log):
    vapor_only, liquid_only = masks
    restricted = bool(np.any(vapor_only) or np.any(liquid_only))
    free = ~(vapor_only | liquid_only)
    lnK = np.log(K)
    max_ss = method.ss_iters if method.second_order else method.max_iters
    it = 0
    err = np.inf
    for it in range(1, max_ss + 1):
        V, x, y = _split(z, np.exp(lnK), vapor_only, liquid_only, restricted)
        lnK_new = np.where(free, _ln_k(model, p, T, x, y), lnK)
        err = np.max(np.abs(lnK_new - lnK))
        lnK = lnK_new
        log.debug("michelsen ss iter=%d V=%.6g err=%.3e", it, V, err)
        if err < method.K_tol:
            break
        if np.max(np.abs(x - y)) < TRIVIAL_TOL:
            break

    if err >= method.K_tol and method.second_order and np.max(np.abs(lnK[free])) > TRIVIAL_TOL:
        # Newton on the fixed point ln K = ln φ_l(x(K)) - ln φ_v(y(K)) over the free components
        def residual(u):
            lnK_u = lnK.copy()
            lnK_u[free] = u
            _, x_u, y_u = _split(z, np.exp(lnK_u), vapor_only, liquid_only, restricted)
            return u - _ln_k(model, p, T, x_u, y_u)[free]

        sol = newton_linesearch(residual, lnK[free], tol=method.K_tol,
                                max_iter=max(method.max_iters - it, 1), logger=log)
        lnK[free] = sol.x
        it += sol.iterations
        err = sol.norm
    V, x, y = _split(z, np.exp(lnK), vapor_only, liquid_only, restricted)
    return V, x, y, lnK, it, err


def michelsen_flash(model, p, T, z, method, log):
    """ Two-phase flash of normalized feed z

        Returns (compositions, fractions, volumes, dG (J/mol feed), iterations, converged)
    """
    masks = _restriction_masks(model, method)
    K, source = _initial_k(model, p, T, z, method)
    if K is None:
        unstable = find_unstable(model, p, T, z, trial_phases(model, p, T, z), logger=log)
        if not unstable:
            log.debug("michelsen: feed is stable, single phase")
            return [z.copy()], np.array([1.0]), np.array([model.volume(p, T, z)]), 0.0, 0, True
        K = _k_from_trial(model, p, T, z, unstable[0][0])
        source = 'stability'
    log.debug("michelsen: initial K from %s", source)

    V, x, y, lnK, it, err = _successive_substitution(model, p, T, z, K, method, masks, log)
    converged = err < method.K_tol
    trivial = np.max(np.abs(x - y)) < TRIVIAL_TOL
    if trivial or V <= 0.0 or V >= 1.0:
        unstable = find_unstable(model, p, T, z, trial_phases(model, p, T, z), logger=log)
        if not unstable:
            return [z.copy()], np.array([1.0]), np.array([model.volume(p, T, z)]), 0.0, it, True
        if source == 'stability':
            raise ConvergenceFailure("Two-phase flash collapsed to one phase although the feed is unstable",
                                     x=lnK, residual_norm=err, iterations=it)
        K = _k_from_trial(model, p, T, z, unstable[0][0])
        V, x, y, lnK, it2, err = _successive_substitution(model, p, T, z, K, method, masks, log)
        it += it2
        converged = err < method.K_tol
        if np.max(np.abs(x - y)) < TRIVIAL_TOL or V <= 0.0 or V >= 1.0:
            raise ConvergenceFailure("Two-phase flash collapsed to one phase although the feed is unstable",
                                     x=lnK, residual_norm=err, iterations=it)
    if not converged:
        raise ConvergenceFailure(f"Two-phase flash did not converge in {it} iterations (err {err:.3e})",
                                 x=lnK, residual_norm=err, iterations=it,
                                 fractions=np.array([1.0 - V, V]))

    compositions = [x, y]
    fractions = np.array([1.0 - V, V])
    volumes = np.array([model.volume(p, T, x), model.volume(p, T, y)])
    dG = gibbs_change(model, p, T, z, compositions, fractions)
    return compositions, fractions, volumes, dG, it, converged
