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

from dataclasses import dataclass, asdict

import pandas as pd


@dataclass
class ComponentProperties:
    """Critical properties and parameters for a component."""
    name: str
    Tc: float      # Critical temperature (K)
    Pc: float      # Critical pressure (Pa)
    omega: float   # Acentric factor
    Tb: float      # Normal boiling point (K)
    MW: float      # Molecular weight (g/mol)


# Tc, Pc, omega from Soreide & Whitson (1992) Table 5; Tb from NIST
COMPONENTS = {
    'H2O': ComponentProperties('Water', 647.3, 22.12e6, 0.3434, 373.15, 18.015),
    'H2': ComponentProperties('Hydrogen', 33.145, 1.2964e6, -0.219, 20.3, 2.016),
    'CO2': ComponentProperties('Carbon Dioxide', 304.2, 7.38e6, 0.2273, 194.7, 44.01),
    'H2S': ComponentProperties('Hydrogen Sulfide', 373.2, 8.94e6, 0.1081, 212.8, 34.082),
    'N2': ComponentProperties('Nitrogen', 126.1, 3.40e6, 0.0403, 77.36, 28.014),
    'CH4': ComponentProperties('Methane', 190.6, 4.60e6, 0.0108, 111.66, 16.043),
    'C2H6': ComponentProperties('Ethane', 305.4, 4.88e6, 0.0986, 184.6, 30.07),
    'C3H8': ComponentProperties('Propane', 369.8, 4.25e6, 0.1524, 231.1, 44.097),
    'iC4H10': ComponentProperties('i-Butane', 408.1, 3.65e6, 0.1770, 261.4, 58.123),
    'nC4H10': ComponentProperties('n-Butane', 425.2, 3.80e6, 0.1931, 272.7, 58.123),
    'iC5H12': ComponentProperties('i-Pentane', 460.4, 3.38e6, 0.2270, 301.0, 72.15),
    'nC5H12': ComponentProperties('n-Pentane', 469.6, 3.37e6, 0.2510, 309.2, 72.15),
    'nC6H14': ComponentProperties('n-Hexane', 507.4, 3.01e6, 0.2990, 341.9, 86.18),
    'nC7H16': ComponentProperties('n-Heptane', 540.3, 2.74e6, 0.3490, 371.6, 100.2),
    'nC8H18': ComponentProperties('n-Octane', 568.8, 2.49e6, 0.3980, 398.8, 114.2),
    'nC10H22': ComponentProperties('n-Decane', 617.7, 2.10e6, 0.4900, 447.3, 142.3),
}


class component_library:
    def __init__(self, components=COMPONENTS):
        self.df = pd.DataFrame([dict(Component=k, **asdict(v)) for k, v in components.items()])
        self.df = self.df.rename(columns={'name': 'Name'}).set_index('Component')
        self.components = self.df.index.tolist()
        self.property_list = self.df.columns.tolist()

    def prop(self, comp, prop):
        """ Returns a single property of a component
            comp: Component key (e.g. 'CH4'), case insensitive
            prop: Property name - Name, Tc, Pc, omega, Tb, MW, or 'ALL' for a list of all of them
        """
        row = self.df.loc[self._key(comp)]
        if prop.upper() == 'ALL':
            return row.tolist()
        props = {p.upper(): p for p in self.property_list}
        if prop.upper() not in props:
            raise ValueError(f"Property {prop} not in library. Choose from {self.property_list}")
        return row[props[prop.upper()]]

    def critical_arrays(self, comps):
        """ Returns (Tc, Pc, omega) numpy arrays for a list of component keys"""
        sub = self.df.loc[[self._key(c) for c in comps]]
        return sub['Tc'].to_numpy(dtype=float), sub['Pc'].to_numpy(dtype=float), sub['omega'].to_numpy(dtype=float)

    def _key(self, comp):
        keys = {c.upper(): c for c in self.components}
        if comp.upper() not in keys:
            raise ValueError(f"Component {comp} not in library. Choose from {self.components}")
        return keys[comp.upper()]

comp_library = component_library()
