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
Wilson (1964) activity coefficient model, used as the gE source of the UMR mixing rule.

    Λ_ij = V_j/V_i · exp(-g_ij/RT)
    ln γ_i = 1 - ln(Σ_j x_j Λ_ij) - Σ_j x_j Λ_ji / Σ_k x_k Λ_jk
    gE/RT = -Σ_i x_i ln(Σ_j x_j Λ_ij)

Liquid molar volumes from the Rackett equation with ZRA estimated from the acentric factor:
    V_i = (R·Tc_i/Pc_i)·ZRA_i^(1 + (1-Tr_i)^(2/7)),  ZRA = 0.29056 - 0.08775·ω, Tr_i = min(T/Tc_i, 1)
"""

import numpy as np

from pyflashbox.constants import R_GAS, RACKETT_A, RACKETT_B
from pyflashbox.library import comp_library
from pyflashbox.shared_fns import convert_to_numpy


class Wilson:
    """ Wilson activity model

        components: List of component names
        Tc, Pc, omega: Critical temperature (K), pressure (Pa) and acentric factor. Default from component library
        g: Interaction energy matrix g_ij (J/mol). Diagonal ignored. Defaults to zeros
    """
    def __init__(self, components, Tc=None, Pc=None, omega=None, g=None):
        self.components = list(components)
        if Tc is None or Pc is None or omega is None:
            lib_Tc, lib_Pc, lib_omega = comp_library.critical_arrays(self.components)
            Tc = lib_Tc if Tc is None else Tc
            Pc = lib_Pc if Pc is None else Pc
            omega = lib_omega if omega is None else omega
        self.Tc = convert_to_numpy(Tc)
        self.Pc = convert_to_numpy(Pc)
        self.omega = convert_to_numpy(omega)
        nc = len(self.components)
        self.g = np.zeros((nc, nc)) if g is None else np.asarray(g, dtype=float)
        if self.g.shape != (nc, nc):
            raise ValueError(f"g must be a {nc}x{nc} matrix")

    def __len__(self):
        return len(self.components)

    def subset(self, idx):
        idx = np.asarray(idx)
        if idx.dtype == bool:
            idx = np.flatnonzero(idx)
        return Wilson([self.components[i] for i in idx], Tc=self.Tc[idx], Pc=self.Pc[idx],
                      omega=self.omega[idx], g=self.g[np.ix_(idx, idx)])

    def liquid_volumes(self, T):
        """ Rackett saturated liquid molar volumes (m³/mol)"""
        ZRA = RACKETT_A + RACKETT_B * self.omega
        Tr = np.minimum(T / self.Tc, 1.0)
        return (R_GAS * self.Tc / self.Pc) * ZRA**(1.0 + (1.0 - Tr)**(2.0 / 7.0))

    def lambdas(self, T):
        V = self.liquid_volumes(T)
        g = self.g.copy()
        np.fill_diagonal(g, 0.0)
        return (V[np.newaxis, :] / V[:, np.newaxis]) * np.exp(-g / (R_GAS * T))

    def activity_coefficient(self, T, x):
        """ Activity coefficients γ_i at temperature T (K) and composition x"""
        x = convert_to_numpy(x)
        x = x / np.sum(x)
        lam = self.lambdas(T)
        S = lam @ x  # S_i = Σ_j x_j Λ_ij
        ln_gamma = 1.0 - np.log(S) - lam.T @ (x / S)
        return np.exp(ln_gamma)

    def excess_gibbs_free_energy(self, T, x):
        """ Molar excess Gibbs energy gE (J/mol)"""
        x = convert_to_numpy(x)
        x = x / np.sum(x)
        S = self.lambdas(T) @ x
        return -R_GAS * T * np.dot(x, np.log(S))
