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
Bubble and dew point pressures at fixed temperature.

The initial guess treats the pressure at which the virial equation Z = 1 + B/v reaches v = 2B,
P_B = -0.25·R·T/B, as a pseudo saturation pressure for each component. The rigorous solve then
drives equal chemical potentials and equal pressures between a liquid and a vapor phase:

    unknowns:  log10(v_l), log10(v_v), first n-1 mole fractions of the incipient phase
    residuals: (μ_l,i - μ_v,i)/(R·Tc_i)  for each component
               (p_l - p_v)/p_scale

with the damped Newton solver in pyflashbox.solvers.
"""

import logging

import numpy as np

from pyflashbox.constants import (R_GAS, TSCALE_MULT_CUBIC, TSCALE_MULT_GENERAL, K_SUPERCRITICAL,
                                  ZERO_AMOUNT_RTOL, TRIVIAL_TOL, V_LIQUID_LB_FACTOR, SAT_TOL)
from pyflashbox.exceptions import InitializationFailure, ConvergenceFailure, InvalidInputFailure
from pyflashbox.shared_fns import convert_to_numpy, normalize, fraction_vector
from pyflashbox.solvers import newton_linesearch

logger = logging.getLogger(__name__)


def _check_composition(model, x, T):
    x = convert_to_numpy(x)
    if len(x) != len(model):
        raise InvalidInputFailure(f"Composition has {len(x)} entries but model has {len(model)} components")
    if not np.all(np.isfinite(x)) or np.any(x < 0) or np.sum(x) <= 0:
        raise InvalidInputFailure("Composition must be finite, non-negative and have a positive sum")
    if not np.isfinite(T) or T <= 0:
        raise InvalidInputFailure("Temperature must be positive")
    return normalize(x)


def pseudo_saturation_pressures(model, T):
    """ Returns (P_B, B) per component, P_B = -0.25·R·T/B from the pure component second virial coefficients.
        P_B is NaN where B >= 0
    """
    nc = len(model)
    B = np.array([model.second_virial_coefficient(T, np.eye(nc)[i]) for i in range(nc)])
    P_B = np.full(nc, np.nan)
    neg = B < 0
    P_B[neg] = -0.25 * R_GAS * T / B[neg]
    return P_B, B


def supercritical_mask(model, T, x):
    """ Components treated as supercritical-like at temperature T (K): T above the multiplier times
        the characteristic temperature (1.0 for cubic models, 1.5 otherwise)
    """
    mult = TSCALE_MULT_CUBIC if model.is_cubic else TSCALE_MULT_GENERAL
    return T > mult * model.T_scales(x)


def _liquid_volume_guess(model, p, T, x):
    v = model.volume(p, T, x, phase='liquid')
    if v >= 0.5 * R_GAS * T / p:  # Only a vapor-like root exists
        v = V_LIQUID_LB_FACTOR * model.lb_volume(x)
    return v


def _vapor_volume_guess(model, p, T, y):
    v = model.volume(p, T, y, phase='vapor')
    v_ig = R_GAS * T / p
    v_virial = v_ig + model.second_virial_coefficient(T, y)
    if v < 0.5 * v_virial:  # Only a liquid-like root exists
        v = v_virial if v_virial > model.lb_volume(y) else v_ig
    return v


def bubble_pressure_estimate(model, T, x):
    """ Trial bubble pressure from the pseudo saturation pressures P_B of the eligible components

        Returns (P (Pa), y, excluded) with y the trial vapor composition and excluded the mask of
        supercritical-like components left out of P.
        Raises InitializationFailure if every component is supercritical-like or the trial pressure is not positive.
    """
    x = _check_composition(model, x, T)
    P_B, B = pseudo_saturation_pressures(model, T)
    excluded = supercritical_mask(model, T, x) | (B >= 0)
    if np.all(excluded):
        raise InitializationFailure(f"All components are supercritical-like at T = {T} K, no bubble pressure estimate")
    P = np.sum(x[~excluded] * P_B[~excluded])
    if not np.isfinite(P) or P <= 0:
        raise InitializationFailure(f"Non-positive trial bubble pressure {P} at T = {T} K")

    y = np.where(B < 0, x * np.nan_to_num(P_B) / P, x * K_SUPERCRITICAL)
    return P, y / np.sum(y), excluded


def dew_pressure_estimate(model, T, y):
    """ Trial dew pressure 1/Σ(y_i/P_B,i) over the eligible components

        Returns (P (Pa), x, excluded) with x the trial liquid composition.
        Raises InitializationFailure if every component is supercritical-like or the trial pressure is not positive.
    """
    y = _check_composition(model, y, T)
    P_B, B = pseudo_saturation_pressures(model, T)
    excluded = supercritical_mask(model, T, y) | (B >= 0)
    if np.all(excluded):
        raise InitializationFailure(f"All components are supercritical-like at T = {T} K, no dew pressure estimate")
    inv = np.sum(y[~excluded] / P_B[~excluded])
    P = 1.0 / inv if inv > 0 else np.nan
    if not np.isfinite(P) or P <= 0:
        raise InitializationFailure(f"Non-positive trial dew pressure {P} at T = {T} K")

    with np.errstate(invalid='ignore'):
        x = np.where(B < 0, y * P / P_B, y / K_SUPERCRITICAL)
    return P, x / np.sum(x), excluded


def x0_bubble_pressure(model, T, x):
    """ Initial guess for the bubble point of liquid composition x at temperature T (K)

        Returns array [v_liquid, v_vapor, y_1, ..., y_n] with volumes in m³/mol.
    """
    P, y, excluded = bubble_pressure_estimate(model, T, x)
    x = _check_composition(model, x, T)
    logger.debug("x0_bubble_pressure T=%.3f P=%.6g excluded=%s", T, P, np.flatnonzero(excluded).tolist())
    v_l = _liquid_volume_guess(model, P, T, x)
    v_v = _vapor_volume_guess(model, P, T, y)
    return np.concatenate(([v_l, v_v], y))


def x0_dew_pressure(model, T, y):
    """ Initial guess for the dew point of vapor composition y at temperature T (K)

        Returns array [v_liquid, v_vapor, x_1, ..., x_n] with volumes in m³/mol.
    """
    P, x, excluded = dew_pressure_estimate(model, T, y)
    y = _check_composition(model, y, T)
    logger.debug("x0_dew_pressure T=%.3f P=%.6g excluded=%s", T, P, np.flatnonzero(excluded).tolist())
    v_l = _liquid_volume_guess(model, P, T, x)
    v_v = _vapor_volume_guess(model, P, T, y)
    return np.concatenate(([v_l, v_v], x))


def _saturation_residual(model, T, z, liquid_fixed, ts, ps):
    def f(u):
        v_l, v_v = 10.0**u[0], 10.0**u[1]
        w = fraction_vector(u[2:])
        x, y = (z, w) if liquid_fixed else (w, z)
        mu_l = model.chemical_potential(v_l, T, x)
        mu_v = model.chemical_potential(v_v, T, y)
        F = np.empty(len(z) + 1)
        F[:-1] = (mu_l - mu_v) / (R_GAS * ts)
        F[-1] = (model.pressure(v_l, T, x) - model.pressure(v_v, T, y)) / ps
        return F
    return f


def _solve_saturation(model, T, z, v0, liquid_fixed, tol):
    kind = 'bubble' if liquid_fixed else 'dew'
    active = z > ZERO_AMOUNT_RTOL * np.sum(z)
    if not np.all(active):
        # Absent components are absent from both phases
        p, v_l, v_v, w = _solve_saturation(model.subset(active), T, z[active], None if v0 is None else
                                           np.concatenate((v0[:2], np.asarray(v0)[2:][active])), liquid_fixed, tol)
        w_full = np.zeros(len(z))
        w_full[active] = w
        return p, v_l, v_v, w_full

    if v0 is None:
        v0 = x0_bubble_pressure(model, T, z) if liquid_fixed else x0_dew_pressure(model, T, z)
    v0 = convert_to_numpy(v0)
    if len(v0) != len(z) + 2:
        raise InvalidInputFailure(f"v0 must hold two volumes and {len(z)} mole fractions")
    w0 = v0[2:] / np.sum(v0[2:])
    u0 = np.concatenate((np.log10(v0[:2]), w0[:-1]))

    ts = model.T_scales(z)
    ps = model.p_scale(z)
    f = _saturation_residual(model, T, z, liquid_fixed, ts, ps)
    sol = newton_linesearch(f, u0, tol=tol, logger=logger)

    v_l, v_v = 10.0**sol.x[0], 10.0**sol.x[1]
    w = fraction_vector(sol.x[2:])
    if abs(v_v - v_l) <= TRIVIAL_TOL * v_v:
        raise ConvergenceFailure(f"{kind} point converged to the trivial solution (v_l = v_v = {v_l:.6g})",
                                 x=sol.x, residual_norm=sol.norm, iterations=sol.iterations)
    if np.any(w < 0):
        raise ConvergenceFailure(f"{kind} point converged to negative mole fractions {w}",
                                 x=sol.x, residual_norm=sol.norm, iterations=sol.iterations)
    # Pressure from the phase of fixed composition, the residual only matches it to tolerance
    p = model.pressure(v_l, T, z) if liquid_fixed else model.pressure(v_v, T, z)
    logger.debug("%s point T=%.3f P=%.6g iterations=%d", kind, T, p, sol.iterations)
    return p, v_l, v_v, w


def bubble_pressure(model, T, x, v0=None, tol=SAT_TOL):
    """ Bubble point pressure of liquid composition x at temperature T

        model: Thermodynamic model
        T: Temperature (K)
        x: Liquid composition (amounts or mole fractions)
        v0: Optional initial guess [v_liquid, v_vapor, y_1..y_n]. Defaults to x0_bubble_pressure
        tol: Residual norm tolerance

        Returns (p_sat (Pa), v_liquid (m³/mol), v_vapor (m³/mol), y)
    """
    x = _check_composition(model, x, T)
    return _solve_saturation(model, T, x, v0, True, tol)


def dew_pressure(model, T, y, v0=None, tol=SAT_TOL):
    """ Dew point pressure of vapor composition y at temperature T

        model: Thermodynamic model
        T: Temperature (K)
        y: Vapor composition (amounts or mole fractions)
        v0: Optional initial guess [v_liquid, v_vapor, x_1..x_n]. Defaults to x0_dew_pressure
        tol: Residual norm tolerance

        Returns (p_sat (Pa), v_liquid (m³/mol), v_vapor (m³/mol), x)
    """
    y = _check_composition(model, y, T)
    return _solve_saturation(model, T, y, v0, False, tol)
