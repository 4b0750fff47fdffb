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


# Constants
R_GAS = 8.314462  # Universal gas constant, J/(mol·K)
SQRT2 = 1.4142135623730951

# Peng-Robinson EOS constants
OMEGA_A = 0.45724
OMEGA_B = 0.07780
PR_DELTA1 = 1.0 + SQRT2  # δ₁
PR_DELTA2 = 1.0 - SQRT2  # δ₂
UMR_A = 0.53  # UMR excess Gibbs energy scaling (Voutsas et al. 2004)

# Rackett compressibility from acentric factor, ZRA = RACKETT_A + RACKETT_B * omega
RACKETT_A = 0.29056
RACKETT_B = -0.08775

# Index reduction. Components with n_i <= ZERO_AMOUNT_RTOL * sum(n) are dropped
# from the solve and returned with exactly zero amount in every phase.
ZERO_AMOUNT_RTOL = 1e-14

# Initial guess generator. A component is treated as supercritical-like when
# T > multiplier * T_scale_i
TSCALE_MULT_CUBIC = 1.0
TSCALE_MULT_GENERAL = 1.5
K_SUPERCRITICAL = 10.0  # Trial K-value for components with non-negative B

# Solver defaults
RR_TOL = 1e-15
RR_MAX_ITER = 100
CUBIC_TOL = 1e-10
CUBIC_MAX_ITER = 50
NEWTON_TOL = 1e-10
NEWTON_MAX_ITER = 100
ARMIJO_RHO = 0.5
ARMIJO_KAPPA = 1e-4
ARMIJO_JMAX = 30
K_TOL = 1e-10
TPD_TOL = -1e-8  # Tangent plane distance below which a trial phase is accepted
TRIVIAL_TOL = 1e-4  # Composition distance below which a trial phase is the feed
PHASE_BETA_MIN = 1e-12  # Phase fractions below this are removed

# Saturation initial volumes. Used when the volume root at the trial pressure is not of the requested kind
V_LIQUID_LB_FACTOR = 1.25  # Liquid volume guess as multiple of the co-volume lower bound
SAT_TOL = 1e-10  # Residual norm tolerance of the bubble and dew point systems
