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
Global Gibbs energy minimisation with differential evolution.

The phase amounts are parametrised by sequential split variables s_k in (0, 1): phase k takes the
fraction s_k of what the previous phases left of each component, and the last phase takes the rest.
The best population member is polished by the multiphase split refinement.
"""

import time

import numpy as np
from scipy.optimize import differential_evolution

from pyflashbox.constants import PHASE_BETA_MIN, TPD_TOL
from pyflashbox.shared_fns import safe_log
from pyflashbox.solvers import ORACLE_ERRORS
from pyflashbox.flash._lib_multiphase import multiphase_flash, merge_duplicates
from pyflashbox.flash._lib_stability import reduced_gibbs

LOG_LOWER = -10.0
PENALTY = 1e10


def split_amounts(s, z, numphases, logspace=False):
    """ Phase amount matrix (numphases x nc) from sequential split variables"""
    nc = len(z)
    s = np.reshape(10.0**np.asarray(s) if logspace else np.asarray(s), (numphases - 1, nc))
    remaining = z.copy()
    n = np.empty((numphases, nc))
    for k in range(numphases - 1):
        n[k] = s[k] * remaining
        remaining = remaining - n[k]
    n[-1] = remaining
    return n


def _objective(model, p, T, z, numphases, logspace):
    def g(s):
        n = split_amounts(s, z, numphases, logspace)
        total = 0.0
        try:
            for nk in n:
                nt = np.sum(nk)
                if nt <= 0.0:
                    continue
                x = nk / nt
                ln_phi = model.ln_fugacity_coefficient(p, T, x, phase='stable')
                total += np.dot(nk, safe_log(x) + ln_phi)
        except ORACLE_ERRORS:
            return PENALTY
        return total if np.isfinite(total) else PENALTY
    return g


def de_flash(model, p, T, z, method, polish_method, log):
    """ Differential evolution flash of normalized feed z

        polish_method: Multiphase configuration used to refine the best member

        Returns (compositions, fractions, volumes, dG (J/mol feed), iterations, converged)
    """
    numphases = method.numphases
    nc = len(z)
    nvar = (numphases - 1) * nc
    bounds = [(LOG_LOWER, 0.0)] * nvar if method.logspace else [(0.0, 1.0)] * nvar
    obj = _objective(model, p, T, z, numphases, method.logspace)
    popsize = max(2, int(np.ceil(method.population_size / nvar)))
    maxiter = max(1, method.max_steps // (popsize * nvar))

    start = time.monotonic()
    generation = [0]

    def callback(xk, convergence=None):
        generation[0] += 1
        if method.verbose:
            log.info("de generation=%d best=%.10g convergence=%s", generation[0], obj(xk), convergence)
        return time.monotonic() - start > method.time_limit

    res = differential_evolution(obj, bounds, maxiter=maxiter, popsize=popsize, seed=method.seed,
                                 callback=callback, polish=False)
    log.debug("de finished: nit=%d nfev=%d fun=%.10g message=%s", res.nit, res.nfev, res.fun, res.message)

    g_feed = reduced_gibbs(model, p, T, z)
    if res.fun - g_feed > TPD_TOL:
        # No split lowers the Gibbs energy
        return [z.copy()], np.array([1.0]), np.array([model.volume(p, T, z)]), 0.0, res.nit, True

    n = split_amounts(res.x, z, numphases, method.logspace)
    beta = np.sum(n, axis=1)
    keep = beta > PHASE_BETA_MIN
    if np.sum(keep) == 1:
        return [z.copy()], np.array([1.0]), np.array([model.volume(p, T, z)]), 0.0, res.nit, True
    X0, beta0 = merge_duplicates([nk / b for nk, b in zip(n[keep], beta[keep])], beta[keep], log)
    if len(X0) == 1:
        return [z.copy()], np.array([1.0]), np.array([model.volume(p, T, z)]), 0.0, res.nit, True
    X, fractions, volumes, dG, its, converged = multiphase_flash(
        model, p, T, z, polish_method, log, X0=X0, beta0=beta0, add_phases=False)
    return X, fractions, volumes, dG, res.nit + its, converged
