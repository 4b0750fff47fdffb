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

import numpy as np

from pyflashbox.classes import class_dic
from pyflashbox.exceptions import InvalidInputFailure

def validate_methods(names, variables):
    for m, method in enumerate(names):
        if type(variables[m]) == str:
            try:
                variables[m] = class_dic[method][variables[m].upper()]
            except KeyError:
                options = ', '.join(e.name for e in class_dic[method])
                raise InvalidInputFailure(f"Unknown {method} '{variables[m]}'. Choose from {options}")
    if len(variables) == 1:
        return variables[0]
    else:
        return variables

def check_arraysize(model, n):
    """ Checks that a composition vector matches the model component count"""
    if len(n) != len(model):
        raise InvalidInputFailure(f"Composition has {len(n)} entries but model has {len(model)} components")

def check_flash_inputs(model, p, T, n) -> np.ndarray:
    """ Validates flash state inputs before any solver work, returning amounts as a float array
        model: Thermodynamic model
        p: Pressure (Pa)
        T: Temperature (K)
        n: Component amounts (mol), need not be normalized
    """
    n = np.asarray(n, dtype=float).ravel()
    check_arraysize(model, n)
    if not np.all(np.isfinite(n)):
        raise InvalidInputFailure("Component amounts must be finite")
    if np.any(n < 0):
        raise InvalidInputFailure("Component amounts must be non-negative")
    if np.sum(n) <= 0:
        raise InvalidInputFailure("Total amount must be positive")
    if not np.isfinite(T) or T <= 0:
        raise InvalidInputFailure("Temperature must be positive")
    if not np.isfinite(p) or p <= 0:
        raise InvalidInputFailure("Pressure must be positive")
    return n

def component_indices(model, comps) -> list:
    """ Maps component names or indices to positional indices in the model"""
    idx = []
    for c in comps:
        if isinstance(c, str):
            if c not in model.components:
                raise InvalidInputFailure(f"Unknown component: {c}. Model has {model.components}")
            idx.append(model.components.index(c))
        else:
            i = int(c)
            if i < 0 or i >= len(model):
                raise InvalidInputFailure(f"Component index {i} out of range for {len(model)} components")
            idx.append(i)
    return idx
