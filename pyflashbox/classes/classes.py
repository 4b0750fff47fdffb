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

from enum import Enum

class flash_method(Enum):  # TP flash strategy
    MICHELSEN = 0
    DE = 1
    MULTIPHASE = 2

class mixing_rule(Enum):  # Cubic EOS mixing rule
    VDW = 0
    UMR = 1

class phase_root(Enum):  # Volume root selection
    LIQUID = 0
    VAPOR = 1
    STABLE = 2

class_dic = {
    "flashmethod": flash_method,
    "mixingrule": mixing_rule,
    "phaseroot": phase_root,
}
