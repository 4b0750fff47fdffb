"""
pyflashbox
===================================

-----------------------------------------------
Multiphase isothermal flash calculations
-----------------------------------------------

Equilibrium phase splits of multicomponent mixtures at fixed temperature and pressure:
the number of coexisting phases, each phase's composition, amount and molar volume, and the
Gibbs energy of the equilibrium state.

Includes;

- Isothermal (T, p) flash with two-phase (Michelsen), global (differential evolution) and multiphase strategies
- Automatic strategy selection and index reduction for components in negligible amount
- Tangent plane distance stability analysis
- Bubble and dew point pressures
- Peng-Robinson EOS with van der Waals or UMR mixing, Wilson activity model
- Critical properties of common light components

"""

submodules = [
    'activity',
    'classes',
    'constants',
    'eos',
    'exceptions',
    'flash',
    'library',
    'saturation',
    'shared_fns',
    'solvers',
    'validate'
]

__all__ = submodules

import importlib

def __dir__():
    return __all__


def __getattr__(name):
    if name in submodules:
        return importlib.import_module(f'pyflashbox.{name}')
    else:
        try:
            return globals()[name]
        except KeyError:
            raise AttributeError(
                f"Module 'pyflashbox' has no attribute '{name}'"
            )
