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

def convert_to_numpy(input_data):
    # Convert input data to a float numpy array ensuring it is always sizeable
    if isinstance(input_data, np.ndarray):
        return input_data.astype(float)
    else:
        # Ensuring even scalars become arrays with one element
        return np.atleast_1d(np.asarray(input_data, dtype=float))

def normalize(x):
    """ Returns x scaled to sum to one"""
    x = convert_to_numpy(x)
    return x / np.sum(x)

def fraction_vector(x_red):
    """ Completes a mole fraction vector from its first n-1 entries, the last inferred by summation to one"""
    x_red = convert_to_numpy(x_red)
    return np.append(x_red, 1.0 - np.sum(x_red))

def safe_log(x, floor=1e-300):
    # Logarithm of non-negative values with zeros floored (their contribution is multiplied by zero elsewhere)
    return np.log(np.maximum(x, floor))
