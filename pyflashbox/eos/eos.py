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
Peng-Robinson cubic EOS and the thermodynamic model interface consumed by the flash layer.

Mixing rules:
  - VDW: one-fluid quadratic, a_ij = sqrt(a_i a_j)(1 - k_ij), b = Σ x_i b_i
  - UMR: Universal Mixing Rule (Voutsas et al. 2004), b_ij = ((√b_i + √b_j)/2)², b = ΣΣ x_i x_j b_ij,
         a = b·RT·(Σ x_i a_i/(RT b_i) - (gE/RT)/0.53), gE from an activity model

Both rules are expressed through the mixture parameters (a, b) and their partial molar
derivatives (ā_i, b̄_i), so the root solver, fugacity and chemical potential expressions
are shared:

    ln φ_i = (b̄_i/b)(Z-1) - ln(Z-B) - A/(2√2·B)·(ā_i/a - b̄_i/b)·ln((Z+δ₁B)/(Z+δ₂B))

where ā_i = (1/n)·∂(n²a)/∂n_i and b̄_i = ∂(nb)/∂n_i.

References:
- Peng & Robinson, Ind. Eng. Chem. Fundam. 15 (1976) 59-64
- Michelsen & Mollerup, Thermodynamic Models: Fundamentals & Computational Aspects (2007)
- Voutsas, Magoulas & Tassios, Ind. Eng. Chem. Res. 43 (2004) 6238-6246
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List

import numpy as np

from pyflashbox.classes import mixing_rule, phase_root
from pyflashbox.constants import (R_GAS, OMEGA_A, OMEGA_B, PR_DELTA1, PR_DELTA2, SQRT2, UMR_A,
                                  CUBIC_TOL, CUBIC_MAX_ITER)
from pyflashbox.library import comp_library
from pyflashbox.shared_fns import convert_to_numpy
from pyflashbox.validate import validate_methods


# =============================================================================
# Binary Interaction Parameters (Literature Values)
# =============================================================================
# Sources: GPSA Engineering Data Book, Knapp et al., various EOS studies
# Unspecified pairs default to 0.0, unspecified water pairs to KIJ_WATER_DEFAULT
GAS_GAS_BIPS = {
    ('CH4', 'CO2'): 0.12,      ('CO2', 'C2H6'): 0.13,
    ('CO2', 'C3H8'): 0.135,    ('CO2', 'N2'): -0.02,
    ('CO2', 'H2S'): 0.097,     ('CO2', 'nC4H10'): 0.13,
    ('CO2', 'iC4H10'): 0.13,   ('CH4', 'C2H6'): 0.0026,
    ('CH4', 'C3H8'): 0.014,    ('CH4', 'N2'): 0.036,
    ('CH4', 'H2S'): 0.08,      ('CH4', 'nC4H10'): 0.02,
    ('CH4', 'iC4H10'): 0.02,   ('H2S', 'N2'): 0.17,
    ('C2H6', 'N2'): 0.04,      ('C3H8', 'N2'): 0.08,
    ('C2H6', 'H2S'): 0.085,    ('C3H8', 'H2S'): 0.08,
    ('C2H6', 'C3H8'): 0.001,   ('C2H6', 'nC4H10'): 0.01,
    ('C3H8', 'nC4H10'): 0.003, ('CH4', 'nC10H22'): 0.042,
    ('H2O', 'CO2'): 0.19,      ('H2O', 'H2S'): 0.19,
}
KIJ_WATER_DEFAULT = 0.5


def get_bip(comp_a: str, comp_b: str) -> float:
    """Get BIP from database. Returns 0.0 for unknown pairs, KIJ_WATER_DEFAULT for unknown water pairs."""
    if comp_a == comp_b:
        return 0.0
    for key in [(comp_a, comp_b), (comp_b, comp_a)]:
        if key in GAS_GAS_BIPS:
            return GAS_GAS_BIPS[key]
    if 'H2O' in (comp_a, comp_b):
        return KIJ_WATER_DEFAULT
    return 0.0


def bip_matrix(components: List[str]) -> np.ndarray:
    nc = len(components)
    kij = np.zeros((nc, nc))
    for i in range(nc):
        for j in range(i + 1, nc):
            kij[i, j] = kij[j, i] = get_bip(components[i], components[j])
    return kij


# =============================================================================
# Alpha Function
# =============================================================================
def alpha_standard_pr(Tr, omega):
    """
    Standard Peng-Robinson alpha function.

    Args:
        Tr: Reduced temperature T/Tc (scalar or array)
        omega: Acentric factor (scalar or array)

    Returns:
        Alpha parameter for PR EOS
    """
    m = 0.37464 + 1.54226 * omega - 0.26992 * omega**2
    return (1.0 + m * (1.0 - np.sqrt(np.maximum(Tr, 0.0))))**2


# =============================================================================
# Cubic Root Solver
# =============================================================================
@dataclass
class CubicSolution:
    """Cubic EOS roots with the phase of minimum Gibbs energy."""
    roots: List[float]
    Z_liquid: float
    Z_vapor: float
    two_roots: bool
    preferred_phase: str      # 'liquid' or 'vapor' (min Gibbs energy)


def _halley_cubic(c2: float, c1: float, c0: float, B: float) -> List[float]:
    """
    Solve Z^3 + c2*Z^2 + c1*Z + c0 = 0 using Halley iteration.

    Michelsen-style: start right of the inflection point (or local maximum), find the largest
    root via Halley, then synthetic division + quadratic for remaining roots.

    Returns sorted list of valid roots (Z > B), or an empty list if Halley did not converge.
    """
    def cubic(Z):
        return Z**3 + c2 * Z**2 + c1 * Z + c0

    def halley_step(Z):
        F = cubic(Z)
        Fp = 3.0 * Z**2 + 2.0 * c2 * Z + c1
        Fpp = 6.0 * Z + 2.0 * c2
        if abs(Fp) < 1e-30:
            return 0.0
        DZ = F / Fp
        denom = 1.0 - 0.5 * DZ * Fpp / Fp
        if abs(denom) > 1e-15:
            DZ = DZ / denom
        return DZ

    Z_inf = -c2 / 3.0
    Z = max(B + 1.0, Z_inf + 1.0)
    if cubic(Z_inf) <= 0:
        disc_Fp = c2**2 - 3.0 * c1
        if disc_Fp > 0:
            Z_local_max = (-c2 + np.sqrt(disc_Fp)) / 3.0
            if cubic(Z_local_max) > 0:
                # Three real roots, start above local max for largest
                Z = Z_local_max + 0.5

    converged = False
    for _ in range(CUBIC_MAX_ITER):
        DZ = halley_step(Z)
        Z -= DZ
        if abs(DZ) < CUBIC_TOL:
            converged = True
            break
    if not converged:
        return []

    # Synthetic division: (Z - Z1)(Z^2 + q1*Z + q0)
    Z1 = Z
    q1 = c2 + Z1
    q0 = c1 + Z1 * q1
    disc = q1**2 - 4.0 * q0
    roots = [Z1]
    if disc >= 0:
        sqrt_disc = np.sqrt(disc)
        for Zk in [(-q1 - sqrt_disc) / 2.0, (-q1 + sqrt_disc) / 2.0]:
            roots.append(Zk - halley_step(Zk))

    valid = [r for r in roots if r > B + 1e-10]
    return sorted(valid)


def _gibbs_residual(Z: float, A: float, B: float) -> float:
    """Dimensionless residual molar Gibbs energy g_res/RT of a PR root."""
    return (Z - 1.0 - np.log(Z - B)
            - A / (2.0 * SQRT2 * B) * np.log((Z + PR_DELTA1 * B) / (Z + PR_DELTA2 * B)))


def solve_cubic_eos(A: float, B: float, return_info: bool = False):
    """
    Solve PR cubic EOS for compressibility factor Z.

    Z^3 - (1-B)Z^2 + (A-3B^2-2B)Z - (AB-B^2-B^3) = 0

    Uses Halley-accelerated iteration (Michelsen-style) with np.roots fallback.

    Args:
        A: EOS parameter a*P/(R*T)^2
        B: EOS parameter b*P/(R*T)
        return_info: If True, return CubicSolution with Gibbs energy analysis

    Returns:
        List of valid Z roots (sorted ascending), or CubicSolution if return_info=True
    """
    c2 = -(1.0 - B)
    c1 = A - 3.0 * B**2 - 2.0 * B
    c0 = -(A * B - B**2 - B**3)

    valid = _halley_cubic(c2, c1, c0, B)
    if not valid:
        roots = np.roots([1.0, c2, c1, c0])
        valid = sorted(r.real for r in roots if abs(r.imag) < 1e-10 and r.real > B + 1e-10)
        if not valid:
            valid = [max(B + 0.01, 0.1)]

    if not return_info:
        return valid

    Zl = valid[0]
    Zv = valid[-1]
    two_roots = len(valid) >= 2 and abs(Zv - Zl) > 1e-10
    if two_roots:
        dG = _gibbs_residual(Zv, A, B) - _gibbs_residual(Zl, A, B)
        preferred = 'vapor' if dG < 0 else 'liquid'
    else:
        # Single root, classify by proximity to B (liquid-like) vs 1 (vapor-like)
        preferred = 'liquid' if Zl < 0.5 else 'vapor'

    return CubicSolution(roots=valid, Z_liquid=Zl, Z_vapor=Zv,
                         two_roots=two_roots, preferred_phase=preferred)


def ln_phi_cubic(Z: float, A: float, B: float, ai_over_a: np.ndarray, bi_over_b: np.ndarray) -> np.ndarray:
    """
    Log fugacity coefficients of all components for a PR root.

    Args:
        Z: Compressibility factor
        A: Mixture A parameter
        B: Mixture B parameter
        ai_over_a: ā_i/a for each component
        bi_over_b: b̄_i/b for each component
    """
    log_arg = (Z + PR_DELTA1 * B) / (Z + PR_DELTA2 * B)
    return (bi_over_b * (Z - 1.0) - np.log(Z - B)
            - A / (2.0 * SQRT2 * B) * (ai_over_a - bi_over_b) * np.log(log_arg))


# =============================================================================
# Model Interface
# =============================================================================
class ThermoModel(ABC):
    """
    Thermodynamic model oracle consumed by the flash layer.

    Compositions are ordered per-component vectors; index position is the component identity.
    Amount vectors are accepted wherever fractions are and are normalized internally.
    Models are never mutated by a flash, so one instance may be shared between concurrent calls.
    """
    is_cubic = False

    def __init__(self, components: List[str]):
        self.components = list(components)

    def __len__(self):
        return len(self.components)

    def __repr__(self):
        return f"{type(self).__name__}({self.components})"

    @abstractmethod
    def pressure(self, v: float, T: float, x) -> float:
        """Pressure (Pa) at molar volume v (m³/mol)"""

    @abstractmethod
    def chemical_potential(self, v: float, T: float, x) -> np.ndarray:
        """Chemical potentials (J/mol) at molar volume v, relative to a common ideal gas reference"""

    @abstractmethod
    def volume(self, p: float, T: float, x, phase='stable') -> float:
        """Molar volume (m³/mol) at pressure p. phase: 'liquid', 'vapor' or 'stable'"""

    @abstractmethod
    def ln_fugacity_coefficient(self, p: float, T: float, x, phase='stable', return_volume=False):
        """Log fugacity coefficients at pressure p, optionally with the molar volume of the root used"""

    @abstractmethod
    def second_virial_coefficient(self, T: float, x) -> float:
        """Second virial coefficient (m³/mol)"""

    @abstractmethod
    def T_scales(self, x) -> np.ndarray:
        """Characteristic temperature (K) of each component"""

    @abstractmethod
    def p_scale(self, x) -> float:
        """Characteristic pressure (Pa) of the mixture"""

    @abstractmethod
    def lb_volume(self, x) -> float:
        """Lower bound of the molar volume (m³/mol)"""

    @abstractmethod
    def wilson_k_values(self, p: float, T: float) -> np.ndarray:
        """Initial K-values (vapor/liquid)"""

    @abstractmethod
    def subset(self, idx):
        """Model restricted to the components selected by a boolean mask or index list"""


def _phase(phase):
    if isinstance(phase, phase_root):
        return phase
    return validate_methods(['phaseroot'], [phase])


def _subset_index(idx) -> np.ndarray:
    idx = np.asarray(idx)
    if idx.dtype == bool:
        return np.flatnonzero(idx)
    return idx.astype(int)


# =============================================================================
# Peng-Robinson EOS
# =============================================================================
class PR(ThermoModel):
    """
    Peng-Robinson (1976) equation of state.

        P = RT/(v-b) - a/(v² + 2bv - b²)

        components: List of component names. Critical properties default to the component library
        Tc: Critical temperatures (K). Optional
        Pc: Critical pressures (Pa). Optional
        omega: Acentric factors. Optional
        kij: Binary interaction matrix (VDW mixing only). Defaults to literature BIPs
        mixing: 'VDW' (default) or 'UMR'
        activity: Activity model supplying gE for UMR mixing. Defaults to a Wilson model with zero energies

    Example:
        model = PR(['C3H8', 'nC4H10'])
        v = model.volume(1e6, 300.0, [0.5, 0.5], phase='liquid')
    """
    is_cubic = True

    def __init__(self, components: List[str], Tc=None, Pc=None, omega=None, kij=None,
                 mixing='VDW', activity=None):
        super().__init__(components)
        if Tc is None or Pc is None or omega is None:
            lib_Tc, lib_Pc, lib_omega = comp_library.critical_arrays(self.components)
            Tc = lib_Tc if Tc is None else Tc
            Pc = lib_Pc if Pc is None else Pc
            omega = lib_omega if omega is None else omega
        self.Tc = convert_to_numpy(Tc)
        self.Pc = convert_to_numpy(Pc)
        self.omega = convert_to_numpy(omega)
        nc = len(self.components)
        if not (len(self.Tc) == len(self.Pc) == len(self.omega) == nc):
            raise ValueError("Tc, Pc and omega must have one entry per component")
        self.kij = bip_matrix(self.components) if kij is None else np.asarray(kij, dtype=float)
        if self.kij.shape != (nc, nc):
            raise ValueError(f"kij must be a {nc}x{nc} matrix")
        self.mixing = _mixing(mixing)
        if self.mixing == mixing_rule.UMR and activity is None:
            from pyflashbox.activity import Wilson
            activity = Wilson(self.components, Tc=self.Tc, Pc=self.Pc, omega=self.omega)
        self.activity = activity
        self.bi = OMEGA_B * R_GAS * self.Tc / self.Pc
        sqrt_b = np.sqrt(self.bi)
        self.bij = (np.add.outer(sqrt_b, sqrt_b) / 2.0)**2

    def subset(self, idx):
        idx = _subset_index(idx)
        activity = None if self.activity is None else self.activity.subset(idx)
        return PR([self.components[i] for i in idx], Tc=self.Tc[idx], Pc=self.Pc[idx],
                  omega=self.omega[idx], kij=self.kij[np.ix_(idx, idx)],
                  mixing=self.mixing, activity=activity)

    def _ai(self, T):
        alpha = alpha_standard_pr(T / self.Tc, self.omega)
        return OMEGA_A * (R_GAS * self.Tc)**2 * alpha / self.Pc

    def _b(self, x):
        if self.mixing == mixing_rule.VDW:
            return np.dot(x, self.bi)
        return x @ self.bij @ x

    def mixture_params(self, T, x):
        """
        Mixture a, b and partial molar derivatives ā_i, b̄_i

        Returns: a (Pa·m⁶/mol²), b (m³/mol), ā (array), b̄ (array)
        """
        x = convert_to_numpy(x)
        x = x / np.sum(x)
        ai = self._ai(T)
        b = self._b(x)
        if self.mixing == mixing_rule.VDW:
            sqrt_a = np.sqrt(ai)
            aij = np.outer(sqrt_a, sqrt_a) * (1.0 - self.kij)
            return x @ aij @ x, b, 2.0 * (aij @ x), self.bi.copy()
        RT = R_GAS * T
        b_bar = 2.0 * (self.bij @ x) - b
        ln_gamma = np.log(self.activity.activity_coefficient(T, x))
        D_bar = ai / (self.bi * RT) - ln_gamma / UMR_A
        D = np.dot(x, D_bar)  # Σx_i lnγ_i = gE/RT
        a = b * RT * D
        a_bar = RT * (b_bar * D + b * D_bar)
        return a, b, a_bar, b_bar

    def pressure(self, v, T, x):
        a, b, _, _ = self.mixture_params(T, x)
        return R_GAS * T / (v - b) - a / (v * v + 2.0 * b * v - b * b)

    def chemical_potential(self, v, T, x):
        """
        Chemical potentials (J/mol) at (v, T, x)

            μ_i/RT = ln(x_i·RT/(v-b)) + (b̄_i/b)(Z-1) - a/(2√2·bRT)·(ā_i/a - b̄_i/b)·ln((v+δ₁b)/(v+δ₂b))

        The ideal gas reference is common to every phase, so differences between phases are exact.
        """
        x = convert_to_numpy(x)
        x = x / np.sum(x)
        a, b, a_bar, b_bar = self.mixture_params(T, x)
        RT = R_GAS * T
        p = RT / (v - b) - a / (v * v + 2.0 * b * v - b * b)
        Z = p * v / RT
        with np.errstate(divide='ignore'):
            mu_ideal = np.log(x * RT / (v - b))
        mu_res = (b_bar / b * (Z - 1.0)
                  - a / (2.0 * SQRT2 * b * RT) * (a_bar / a - b_bar / b)
                  * np.log((v + PR_DELTA1 * b) / (v + PR_DELTA2 * b)))
        return RT * (mu_ideal + mu_res)

    def _AB(self, p, T, x):
        a, b, a_bar, b_bar = self.mixture_params(T, x)
        RT = R_GAS * T
        return a * p / RT**2, b * p / RT, a_bar / a, b_bar / b

    def _root(self, A, B, phase):
        sol = solve_cubic_eos(A, B, return_info=True)
        phase = _phase(phase)
        if phase == phase_root.LIQUID:
            return sol.Z_liquid
        if phase == phase_root.VAPOR:
            return sol.Z_vapor
        return sol.Z_liquid if sol.preferred_phase == 'liquid' else sol.Z_vapor

    def volume(self, p, T, x, phase='stable'):
        A, B, _, _ = self._AB(p, T, x)
        return self._root(A, B, phase) * R_GAS * T / p

    def ln_fugacity_coefficient(self, p, T, x, phase='stable', return_volume=False):
        A, B, ai_over_a, bi_over_b = self._AB(p, T, x)
        Z = self._root(A, B, phase)
        ln_phi = ln_phi_cubic(Z, A, B, ai_over_a, bi_over_b)
        if return_volume:
            return ln_phi, Z * R_GAS * T / p
        return ln_phi

    def second_virial_coefficient(self, T, x):
        # Low density limit of Z = v/(v-b) - a·v/(RT·(v²+2bv-b²))
        a, b, _, _ = self.mixture_params(T, x)
        return b - a / (R_GAS * T)

    def T_scales(self, x):
        return self.Tc.copy()

    def p_scale(self, x):
        x = convert_to_numpy(x)
        return np.dot(x, self.Pc) / np.sum(x)

    def lb_volume(self, x):
        x = convert_to_numpy(x)
        return self._b(x / np.sum(x))

    def wilson_k_values(self, p, T):
        """Wilson (1968) K-value correlation"""
        return (self.Pc / p) * np.exp(5.373 * (1.0 + self.omega) * (1.0 - self.Tc / T))


def _mixing(mixing):
    if isinstance(mixing, mixing_rule):
        return mixing
    return validate_methods(['mixingrule'], [mixing])
