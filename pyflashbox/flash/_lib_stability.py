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
Tangent plane distance stability analysis (Michelsen 1982) and Gibbs energy bookkeeping.

For a reference state with d_i = ln x_i + ln φ_i(x), the modified tangent plane distance of a
trial amount vector W is

    tm(W) = 1 + Σ_i W_i (ln W_i + ln φ_i(w) - d_i - 1),   w = W/ΣW

and stationary points are found by successive substitution ln W_i = d_i - ln φ_i(w).
A stationary point with tm < 0 proves the reference state unstable.
"""

import numpy as np

from pyflashbox.constants import R_GAS, K_TOL, TPD_TOL, TRIVIAL_TOL
from pyflashbox.shared_fns import safe_log

TPD_MAX_ITER = 500


def ln_fugacity(model, p, T, x):
    """ ln x_i + ln φ_i at the stable root, with the molar volume of that root"""
    ln_phi, v = model.ln_fugacity_coefficient(p, T, x, phase='stable', return_volume=True)
    return safe_log(x) + ln_phi, v


def reduced_gibbs(model, p, T, x):
    """ Molar Gibbs energy g/RT of a phase relative to the pure ideal gases at p"""
    lnf, _ = ln_fugacity(model, p, T, x)
    return np.dot(x, lnf)


def gibbs_change(model, p, T, z, compositions, fractions):
    """ Gibbs energy of a phase split relative to the homogeneous feed, J per mole of feed"""
    g = sum(b * reduced_gibbs(model, p, T, x) for x, b in zip(compositions, fractions))
    return R_GAS * T * (g - reduced_gibbs(model, p, T, z))


def trial_phases(model, p, T, z, full_tpd=False):
    """ Initial trial amount vectors: Wilson vapor-like and liquid-like, plus near-pure phases when full_tpd"""
    K = model.wilson_k_values(p, T)
    trials = [z * K, z / K]
    if full_tpd:
        nc = len(z)
        for i in range(nc):
            w = np.full(nc, 1e-10)
            w[i] = 1.0
            trials.append(w / np.sum(w))
    return trials


def stationary_point(model, p, T, d, W0, max_iter=TPD_MAX_ITER, tol=K_TOL):
    """ Successive substitution for a tangent plane stationary point

        d: ln x_i + ln φ_i of the reference state
        W0: Initial trial amounts

        Returns (w, tm, iterations) with w the normalized trial composition
    """
    lnW = safe_log(W0)
    for it in range(1, max_iter + 1):
        w = np.exp(lnW - np.max(lnW))
        w = w / np.sum(w)
        ln_phi = model.ln_fugacity_coefficient(p, T, w, phase='stable')
        lnW_new = d - ln_phi
        err = np.max(np.abs(lnW_new - lnW))
        lnW = lnW_new
        if err < tol:
            break
    W = np.exp(lnW)
    w = W / np.sum(W)
    ln_phi = model.ln_fugacity_coefficient(p, T, w, phase='stable')
    tm = 1.0 + np.sum(W * (lnW + ln_phi - d - 1.0))
    return w, tm, it


def find_unstable(model, p, T, x_ref, trials, existing=(), logger=None):
    """ Negative tangent plane distance stationary points with respect to the phase x_ref

        trials: Initial trial amount vectors
        existing: Compositions already present in the phase set, discarded as trial solutions

        Returns list of (w, tm) sorted by ascending tm
    """
    d, _ = ln_fugacity(model, p, T, x_ref)
    found = []
    for W0 in trials:
        w, tm, it = stationary_point(model, p, T, d, W0)
        if logger is not None:
            logger.debug("tpd trial converged in %d iterations, tm=%.3e", it, tm)
        if not np.isfinite(tm) or tm >= TPD_TOL:
            continue
        if any(np.max(np.abs(w - x)) < TRIVIAL_TOL for x in list(existing) + [x_ref]):
            continue
        if any(np.max(np.abs(w - f)) < TRIVIAL_TOL for f, _ in found):
            continue
        found.append((w, tm))
    return sorted(found, key=lambda e: e[1])
