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

__all__ = (
    'FlashError',
    'InitializationFailure',
    'ConvergenceFailure',
    'InvalidInputFailure',
    'DegenerateReductionFailure',
)

class FlashError(RuntimeError):
    """RuntimeError regarding an equilibrium calculation."""

class InitializationFailure(FlashError):
    """Initial guess generator could not produce a usable trial point."""

class ConvergenceFailure(FlashError):
    """Nonlinear solve exhausted its budget without meeting tolerance.

        x: Best iterate found
        residual_norm: 2-norm of the residual at the best iterate
        iterations: Number of iterations performed
        fractions: Phase fractions at the best iterate, for phase split failures
    """
    def __init__(self, msg, x=None, residual_norm=None, iterations=None, fractions=None):
        super().__init__(msg)
        self.x = x
        self.residual_norm = residual_norm
        self.iterations = iterations
        self.fractions = fractions

class InvalidInputFailure(FlashError, ValueError):
    """Input rejected before any solver work."""

class DegenerateReductionFailure(FlashError):
    """Index reduction left no active component."""
