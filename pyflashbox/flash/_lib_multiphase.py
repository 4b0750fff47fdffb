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
Multiphase isothermal flash: repeated tangent plane stability analysis with phase addition,
and phase split refinement by successive substitution on K-values relative to a reference phase
(the phase of largest fraction) with the multiphase Rachford-Rice solver.
"""

import numpy as np

from pyflashbox.constants import PHASE_BETA_MIN, TRIVIAL_TOL
from pyflashbox.exceptions import ConvergenceFailure
from pyflashbox.flash._lib_rr import multiphase_rr
from pyflashbox.flash._lib_stability import trial_phases, find_unstable, gibbs_change


def merge_duplicates(X, beta, log):
    k = 0
    while k < len(X):
        l = k + 1
        while l < len(X):
            if np.max(np.abs(X[k] - X[l])) < TRIVIAL_TOL:
                total = beta[k] + beta[l]
                X[k] = (beta[k] * X[k] + beta[l] * X[l]) / total if total > 0 else X[k]
                beta[k] = total
                del X[l]
                beta = np.delete(beta, l)
                log.debug("multiphase: merged duplicate phases %d and %d", k, l)
            else:
                l += 1
        k += 1
    return X, beta


def _drop_phase(X, beta, k, log, reason):
    log.debug("multiphase: removing phase %d (%s), %d phases left", k, reason, len(X) - 1)
    del X[k]
    beta = np.delete(beta, k)
    return X, beta / np.sum(beta)


def refine_split(model, p, T, z, X, beta, method, log):
    """ Successive substitution on the phase split for a fixed candidate phase set

        X: List of phase compositions
        beta: Phase fractions

        Returns (X, beta, iterations). Vanishing phases are removed and duplicate phases merged.
    """
    X = [np.asarray(x, dtype=float) / np.sum(x) for x in X]
    beta = np.asarray(beta, dtype=float)
    beta = np.clip(beta, 0.0, None)
    beta = beta / np.sum(beta)
    lnK_prev = None
    err = np.inf
    for it in range(1, method.ss_iters + 1):
        if len(X) == 1:
            return [z.copy()], np.array([1.0]), it - 1
        r = int(np.argmax(beta))
        others = [k for k in range(len(X)) if k != r]
        ln_phi = [model.ln_fugacity_coefficient(p, T, x, phase='stable') for x in X]
        lnK = np.array([ln_phi[r] - ln_phi[k] for k in others])

        try:
            b, x_ref, Xo = multiphase_rr(z, np.exp(lnK), beta[others])
        except ConvergenceFailure as e:
            if e.x is None or np.shape(e.x) != (len(others),):
                raise
            # Unbounded split, some phase is vanishing
            if np.sum(e.x) >= 1.0:
                X, beta = _drop_phase(X, beta, r, log, "reference fraction below zero")
            else:
                X, beta = _drop_phase(X, beta, others[int(np.argmin(e.x))], log, "unbounded split")
            lnK_prev = None
            continue

        beta_r = 1.0 - np.sum(b)
        if beta_r < PHASE_BETA_MIN:
            X, beta = _drop_phase(X, beta, r, log, f"fraction {beta_r:.3e}")
            lnK_prev = None
            continue
        if np.min(b) < PHASE_BETA_MIN:
            X, beta = _drop_phase(X, beta, others[int(np.argmin(b))], log, f"fraction {np.min(b):.3e}")
            lnK_prev = None
            continue

        X[r] = x_ref / np.sum(x_ref)
        beta[r] = beta_r
        for j, k in enumerate(others):
            X[k] = Xo[j] / np.sum(Xo[j])
            beta[k] = b[j]

        if lnK_prev is not None and lnK_prev.shape == lnK.shape:
            err = np.max(np.abs(lnK - lnK_prev))
            log.debug("multiphase ss iter=%d phases=%d err=%.3e", it, len(X), err)
            if err < method.K_tol:
                n_before = len(X)
                X, beta = merge_duplicates(X, beta, log)
                if len(X) == n_before:
                    return X, beta, it
                lnK = None
        lnK_prev = lnK

    raise ConvergenceFailure(f"Multiphase split did not converge in {method.ss_iters} iterations (err {err:.3e})",
                             x=np.vstack(X), residual_norm=err, iterations=method.ss_iters,
                             fractions=beta.copy())


def multiphase_flash(model, p, T, z, method, log, X0=None, beta0=None, add_phases=True):
    """ Multiphase flash of normalized feed z

        X0, beta0: Optional initial phase compositions and fractions. Defaults to the homogeneous feed
        add_phases: Run stability analysis and add phases. When False only the given phase set is refined

        Returns (compositions, fractions, volumes, dG (J/mol feed), iterations, converged)
    """
    max_phases = min(method.max_phases, len(z))
    if X0 is None:
        X, beta = [z.copy()], np.array([1.0])
    else:
        X, beta = list(X0), np.asarray(beta0, dtype=float)

    iterations = 0
    stable = not add_phases
    for outer in range(method.phase_iters):
        if len(X) > 1:
            X, beta, its = refine_split(model, p, T, z, X, beta, method, log)
            iterations += its
        if not add_phases:
            break
        if len(X) >= max_phases:
            stable = True
            break
        r = int(np.argmax(beta))
        trials = trial_phases(model, p, T, X[r], full_tpd=method.full_tpd)
        unstable = find_unstable(model, p, T, X[r], trials, existing=X, logger=log)
        if not unstable:
            stable = True
            break
        w, tm = unstable[0]
        log.info("multiphase: adding phase %d (tm=%.3e)", len(X) + 1, tm)
        X.append(w)
        beta = np.append(beta, 0.0)

    if len(X) > 1 and np.any(beta == 0.0):
        # Phase added on the last outer iteration was never refined
        keep = beta > 0.0
        X = [x for x, k in zip(X, keep) if k]
        beta = beta[keep] / np.sum(beta[keep])
    if not stable:
        log.warning("multiphase: phase iteration budget (%d) exhausted before the phase set was stable",
                    method.phase_iters)

    volumes = np.array([model.volume(p, T, x) for x in X])
    dG = gibbs_change(model, p, T, z, X, beta) if len(X) > 1 else 0.0
    return X, beta, volumes, dG, iterations, stable
