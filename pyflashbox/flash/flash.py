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
Isothermal (T, p) flash

Strategies (flash_method):
  - MICHELSEN:  two-phase stability test + successive substitution on K-values (fast, at most two phases)
  - DE:         global Gibbs energy minimisation by differential evolution over a fixed number of phases
  - MULTIPHASE: repeated stability analysis with phase addition, for an a priori unknown number of phases

Control flow of tp_flash2: input validation -> strategy selection -> index reduction ->
strategy solve on the active components -> result normalisation (ordering, fractions, expansion).

Example:
    model = PR(['CH4', 'C3H8', 'nC5H12'])
    x, n, G = tp_flash(model, 3e6, 300.0, [0.5, 0.3, 0.2])
"""

import logging
from dataclasses import dataclass, field, fields, replace
from typing import ClassVar, Optional

import numpy as np
import pandas as pd
from tabulate import tabulate

from pyflashbox.classes import flash_method
from pyflashbox.constants import ZERO_AMOUNT_RTOL, K_TOL
from pyflashbox.exceptions import FlashError, ConvergenceFailure, InvalidInputFailure, DegenerateReductionFailure
from pyflashbox.shared_fns import convert_to_numpy, normalize
from pyflashbox.solvers import ORACLE_ERRORS
from pyflashbox.validate import validate_methods, check_flash_inputs, component_indices
from pyflashbox.flash._lib_michelsen import michelsen_flash
from pyflashbox.flash._lib_multiphase import multiphase_flash
from pyflashbox.flash._lib_de import de_flash
from pyflashbox.flash._lib_stability import trial_phases, find_unstable

logger = logging.getLogger(__name__)


# =============================================================================
# Strategy configurations
# =============================================================================
@dataclass(frozen=True, eq=False)
class TPFlashMethod:
    """ Common options of every flash strategy

        reduction_rtol: Components with n_i <= reduction_rtol * sum(n) are removed before solving
        logger: Destination of diagnostic events. Defaults to the pyflashbox.flash logger
    """
    reduction_rtol: float = ZERO_AMOUNT_RTOL
    logger: Optional[logging.Logger] = field(default=None, repr=False, compare=False)

    method: ClassVar[flash_method]
    supports_reduction: ClassVar[bool] = True

    def log(self):
        return logger if self.logger is None else self.logger


@dataclass(frozen=True, eq=False)
class MichelsenTPFlash(TPFlashMethod):
    """ Two-phase flash

        K0: Initial K-values (vapor/liquid)
        x0, y0: Initial liquid and vapor compositions, used together
        v0: Initial liquid and vapor molar volumes (m³/mol)
        noncondensables: Components (names or indices) absent from the liquid
        nonvolatiles: Components (names or indices) absent from the vapor
        ss_iters: Successive substitution iterations before the Newton polish when second_order
        second_order: Polish ln K with Newton iterations
        K_tol: Convergence tolerance on ln K
        max_iters: Total iteration budget
    """
    K0: Optional[tuple] = None
    x0: Optional[tuple] = None
    y0: Optional[tuple] = None
    v0: Optional[tuple] = None
    noncondensables: Optional[tuple] = None
    nonvolatiles: Optional[tuple] = None
    ss_iters: int = 20
    second_order: bool = False
    K_tol: float = K_TOL
    max_iters: int = 1000

    method: ClassVar[flash_method] = flash_method.MICHELSEN


@dataclass(frozen=True, eq=False)
class DETPFlash(TPFlashMethod):
    """ Differential evolution flash

        numphases: Number of phases of the Gibbs energy minimisation
        population_size: Approximate number of population members
        time_limit: Wall clock budget (s)
        max_steps: Budget of objective evaluations
        verbose: Log the best objective of every generation at INFO level
        logspace: Search the split variables in log10 space
        seed: Random seed
        ss_iters, K_tol: Options of the multiphase polish of the best member
    """
    numphases: int = 2
    population_size: int = 50
    time_limit: float = np.inf
    max_steps: int = 10000
    verbose: bool = False
    logspace: bool = False
    seed: Optional[int] = None
    ss_iters: int = 1000
    K_tol: float = K_TOL

    method: ClassVar[flash_method] = flash_method.DE

    def __post_init__(self):
        if self.numphases < 1:
            raise InvalidInputFailure(f"numphases must be at least 1, got {self.numphases}")


@dataclass(frozen=True, eq=False)
class MultiPhaseTPFlash(TPFlashMethod):
    """ Multiphase flash

        n0: Initial phase amount matrix (phases x components)
        full_tpd: Add near-pure trial phases to the stability analysis
        max_phases: Maximum number of phases (never more than the number of active components)
        phase_iters: Budget of phase addition rounds
        ss_iters: Successive substitution budget of each phase split refinement
        K_tol: Convergence tolerance on ln K
    """
    n0: Optional[tuple] = None
    full_tpd: bool = False
    max_phases: int = 3
    phase_iters: int = 20
    ss_iters: int = 1000
    K_tol: float = K_TOL

    method: ClassVar[flash_method] = flash_method.MULTIPHASE

    def __post_init__(self):
        if self.max_phases < 1:
            raise InvalidInputFailure(f"max_phases must be at least 1, got {self.max_phases}")


METHODS = {
    flash_method.MICHELSEN: MichelsenTPFlash,
    flash_method.DE: DETPFlash,
    flash_method.MULTIPHASE: MultiPhaseTPFlash,
}

# Options that identify a strategy when no method is given
TWO_PHASE_FLAGS = ('v0', 'noncondensables', 'nonvolatiles', 'x0', 'y0', 'K0')
GLOBAL_FLAGS = ('numphases', 'max_steps', 'population_size', 'time_limit', 'verbose', 'logspace')
MULTIPHASE_FLAGS = ('n0', 'full_tpd', 'max_phases', 'phase_iters')


def _option_names(cls):
    return {f.name for f in fields(cls)}


ALL_OPTIONS = set().union(*[_option_names(cls) for cls in METHODS.values()])


def _build_method(cls, kwargs, strict):
    accepted = _option_names(cls)
    ignored = sorted(k for k in kwargs if k not in accepted)
    if ignored and strict:
        raise InvalidInputFailure(f"{cls.__name__} does not accept options {ignored}")
    config = cls(**{k: v for k, v in kwargs.items() if k in accepted})
    if ignored:
        config.log().warning("%s selected, ignoring options %s", cls.__name__, ignored)
    return config


def init_preferred_method(model, **kwargs):
    """ Selects a flash strategy from the component count and the options given

        Two-phase options (v0, noncondensables, nonvolatiles, x0, y0, K0) select Michelsen for a binary
        mixture, or for any mixture when no other strategy's options are present. Otherwise global options
        (numphases, max_steps, population_size, time_limit, verbose, logspace) select differential evolution,
        and multiphase options (n0, full_tpd, max_phases, phase_iters) the multiphase strategy.
        Without strategy options binary mixtures use Michelsen and larger mixtures the multiphase strategy.
        Options of a strategy that is not selected are ignored with a warning.

        Returns a configured TPFlashMethod
    """
    unknown = sorted(k for k in kwargs if k not in ALL_OPTIONS)
    if unknown:
        raise InvalidInputFailure(f"Unknown flash options {unknown}. Choose from {sorted(ALL_OPTIONS)}")
    nc = len(model)
    two_phase = any(k in kwargs for k in TWO_PHASE_FLAGS)
    global_ = any(k in kwargs for k in GLOBAL_FLAGS)
    multiphase = any(k in kwargs for k in MULTIPHASE_FLAGS)

    if two_phase and (nc == 2 or not (global_ or multiphase)):
        chosen = flash_method.MICHELSEN
    elif global_:
        chosen = flash_method.DE
    elif multiphase:
        chosen = flash_method.MULTIPHASE
    else:
        chosen = flash_method.MICHELSEN if nc == 2 else flash_method.MULTIPHASE
    config = _build_method(METHODS[chosen], kwargs, strict=False)
    config.log().info("flash strategy %s selected for %d components", chosen.name, nc)
    return config


def resolve_method(model, method=None, **kwargs):
    """ Flash configuration from a TPFlashMethod instance, flash_method enum, method name or None (automatic)"""
    if method is None:
        return init_preferred_method(model, **kwargs)
    if isinstance(method, TPFlashMethod):
        if not kwargs:
            return method
        unknown = sorted(k for k in kwargs if k not in _option_names(type(method)))
        if unknown:
            raise InvalidInputFailure(f"{type(method).__name__} does not accept options {unknown}")
        return replace(method, **kwargs)
    if isinstance(method, str):
        method = validate_methods(['flashmethod'], [method])
    if not isinstance(method, flash_method):
        raise InvalidInputFailure(f"Unknown flash method {method!r}")
    return _build_method(METHODS[method], kwargs, strict=True)


def supports_reduction(method) -> bool:
    """ True if the strategy can be solved on the active component subset"""
    return isinstance(method, TPFlashMethod) and method.supports_reduction


def numphases(method) -> int:
    """ Number of phases sought by a strategy"""
    if isinstance(method, MichelsenTPFlash):
        return 2
    if isinstance(method, DETPFlash):
        return method.numphases
    if isinstance(method, MultiPhaseTPFlash):
        return method.max_phases
    raise InvalidInputFailure(f"Unknown flash method {method!r}")


# =============================================================================
# Results
# =============================================================================
@dataclass(frozen=True)
class FlashData:
    """ Equilibrium metadata

        p: Pressure (Pa)
        T: Temperature (K)
        dG: Gibbs energy of the equilibrium state relative to the homogeneous feed (J)
        iterations: Solver iterations
        converged: True when the strategy met its own termination criterion
    """
    p: float
    T: float
    dG: float = 0.0
    iterations: int = 0
    converged: bool = True


@dataclass(frozen=True, eq=False)
class FlashResult:
    """ Phase compositions (phases x components mole fractions), phase amounts, molar volumes (m³/mol)"""
    compositions: np.ndarray
    fractions: np.ndarray
    volumes: np.ndarray
    data: FlashData
    components: Optional[tuple] = None

    @property
    def numphases(self):
        return len(self.fractions)

    @property
    def amounts(self):
        """ Phase x component mole amounts"""
        return self.fractions[:, np.newaxis] * self.compositions

    def is_sorted(self):
        return bool(np.all(np.diff(self.volumes) >= 0))

    def sorted(self):
        """ Copy with phases ordered by ascending molar volume"""
        order = np.argsort(self.volumes, kind='stable')
        return replace(self, compositions=self.compositions[order], fractions=self.fractions[order],
                       volumes=self.volumes[order])

    def to_dataframe(self):
        names = self.components if self.components is not None else [f"C{i + 1}" for i in range(self.compositions.shape[1])]
        df = pd.DataFrame()
        df["Phase"] = np.arange(1, self.numphases + 1)
        df["Amount (mol)"] = self.fractions
        df["Volume (m3/mol)"] = self.volumes
        for i, name in enumerate(names):
            df[f"x {name}"] = self.compositions[:, i]
        return df.set_index("Phase")

    def summary(self):
        header = (f"p = {self.data.p:.6g} Pa, T = {self.data.T:.6g} K, dG = {self.data.dG:.6g} J, "
                  f"{self.numphases} phase(s), {self.data.iterations} iterations")
        return header + "\n" + tabulate(self.to_dataframe(), headers="keys", floatfmt=".6g")

    def __str__(self):
        return self.summary()


# =============================================================================
# Index reduction
# =============================================================================
def _reduce_method(method, model, idx):
    if isinstance(method, MichelsenTPFlash):
        new_pos = np.cumsum(idx) - 1

        def remap(comps):
            if comps is None:
                return None
            kept = tuple(int(new_pos[i]) for i in component_indices(model, comps) if idx[i])
            return kept or None

        def cut(vec):
            return None if vec is None else tuple(np.asarray(vec, dtype=float)[idx])

        return replace(method, K0=cut(method.K0), x0=cut(method.x0), y0=cut(method.y0),
                       noncondensables=remap(method.noncondensables), nonvolatiles=remap(method.nonvolatiles))
    if isinstance(method, MultiPhaseTPFlash) and method.n0 is not None:
        return replace(method, n0=np.asarray(method.n0, dtype=float)[:, idx])
    return method


def index_reduction(model, n, method=None, rtol=None):
    """ Restricts a flash problem to the components present in non-negligible amount

        model: Thermodynamic model
        n: Component amounts
        method: Flash configuration, reduced alongside (component options sliced and re-indexed)
        rtol: Relative amount threshold. Defaults to method.reduction_rtol or ZERO_AMOUNT_RTOL

        Returns (model_r, n_r, method_r, idx) with idx the boolean active-component mask
    """
    n = convert_to_numpy(n)
    if rtol is None:
        rtol = method.reduction_rtol if isinstance(method, TPFlashMethod) else ZERO_AMOUNT_RTOL
    total = np.sum(n)
    idx = n > rtol * total if total > 0 else np.zeros(len(n), dtype=bool)
    if not np.any(idx):
        raise DegenerateReductionFailure("Index reduction left no active component")
    if np.all(idx):
        return model, n, method, idx
    return model.subset(idx), n[idx], _reduce_method(method, model, idx), idx


def index_expansion(result, idx):
    """ Scatters phase compositions of a reduced result back to full component width, zero where inactive"""
    idx = np.asarray(idx, dtype=bool)
    if np.all(idx):
        return result
    compositions = np.zeros((result.numphases, len(idx)))
    compositions[:, idx] = result.compositions
    return replace(result, compositions=compositions)


# =============================================================================
# Flash
# =============================================================================
def _single_phase(model, p, T, n):
    x = normalize(n)
    return FlashResult(compositions=x[np.newaxis, :], fractions=np.array([1.0]),
                       volumes=np.array([model.volume(p, T, n, phase='stable')]), data=FlashData(p=p, T=T))


def _polish_method(method):
    return MultiPhaseTPFlash(max_phases=method.numphases, phase_iters=1, ss_iters=method.ss_iters,
                             K_tol=method.K_tol, logger=method.logger)


def _tp_flash_impl(model, p, T, z, method):
    log = method.log()
    if isinstance(method, MichelsenTPFlash):
        out = michelsen_flash(model, p, T, z, method, log)
    elif isinstance(method, DETPFlash):
        out = de_flash(model, p, T, z, method, _polish_method(method), log)
    else:
        X0 = beta0 = None
        if method.n0 is not None:
            n0 = np.atleast_2d(np.asarray(method.n0, dtype=float))
            if n0.shape[1] != len(z):
                raise InvalidInputFailure(f"n0 must have {len(z)} columns")
            totals = np.sum(n0, axis=1)
            keep = totals > 0
            if np.any(keep):
                X0 = list(n0[keep] / totals[keep, np.newaxis])
                beta0 = totals[keep] / np.sum(totals[keep])
        out = multiphase_flash(model, p, T, z, method, log, X0=X0, beta0=beta0)
    compositions, fractions, volumes, dG, iterations, converged = out
    return FlashResult(compositions=np.vstack(compositions), fractions=np.asarray(fractions, dtype=float),
                       volumes=np.asarray(volumes, dtype=float),
                       data=FlashData(p=p, T=T, dG=dG, iterations=iterations, converged=converged))


def tp_flash2(model, p, T, n, method=None, **kwargs) -> FlashResult:
    """ Isothermal flash returning the full FlashResult

        model: Thermodynamic model (ThermoModel)
        p: Pressure (Pa)
        T: Temperature (K)
        n: Component amounts (mol), need not be normalized
        method: TPFlashMethod instance, flash_method, method name ('michelsen', 'de', 'multiphase') or None
        kwargs: Strategy options, see MichelsenTPFlash, DETPFlash and MultiPhaseTPFlash

        Phases are ordered by ascending molar volume, fractions are mole amounts summing to sum(n),
        and data.dG is the Gibbs energy change of the split in J (zero for one phase).
    """
    n = check_flash_inputs(model, p, T, n)
    method = resolve_method(model, method, **kwargs)
    log = method.log()
    if isinstance(method, MichelsenTPFlash):
        for comps in (method.noncondensables, method.nonvolatiles):
            if comps:
                component_indices(model, comps)
        for name in ('K0', 'x0', 'y0'):
            vec = getattr(method, name)
            if vec is not None and len(vec) != len(model):
                raise InvalidInputFailure(f"{name} has {len(vec)} entries but model has {len(model)} components")
        if method.v0 is not None and len(method.v0) != 2:
            raise InvalidInputFailure("v0 must hold a liquid and a vapor molar volume")
    elif isinstance(method, MultiPhaseTPFlash) and method.n0 is not None:
        n0 = np.atleast_2d(np.asarray(method.n0, dtype=float))
        if n0.ndim != 2 or n0.shape[1] != len(model) or np.any(n0 < 0) or np.sum(n0) <= 0:
            raise InvalidInputFailure(f"n0 must be a non-negative phases x {len(model)} amount matrix")

    if supports_reduction(method):
        model_r, n_r, method_r, idx = index_reduction(model, n, method)
    else:
        model_r, n_r, method_r, idx = model, n, method, np.ones(len(n), dtype=bool)
    log.debug("tp_flash2 %s: %d of %d components active", type(method_r).__name__, int(np.sum(idx)), len(n))

    if len(model_r) == 1 or numphases(method_r) == 1:
        result = _single_phase(model_r, p, T, n_r)
    else:
        z = n_r / np.sum(n_r)
        try:
            result = _tp_flash_impl(model_r, p, T, z, method_r)
        except FlashError:
            raise
        except ORACLE_ERRORS as e:
            raise ConvergenceFailure(f"Thermodynamic model failed during flash: {e}") from e

    # Result normalisation
    if not result.is_sorted():
        result = result.sorted()
    total = np.sum(n)
    fractions = result.fractions / np.sum(result.fractions) * total
    result = replace(result, fractions=fractions, data=replace(result.data, dG=result.data.dG * total))
    result = index_expansion(result, idx)
    result = replace(result, components=tuple(model.components))
    log.debug("tp_flash2 done: %d phase(s), dG=%.6g J, iterations=%d", result.numphases, result.data.dG,
              result.data.iterations)
    return result


def tp_flash(model, p, T, n, method=None, **kwargs):
    """ Isothermal flash

        model: Thermodynamic model (ThermoModel)
        p: Pressure (Pa)
        T: Temperature (K)
        n: Component amounts (mol), need not be normalized
        method: TPFlashMethod instance, flash_method, method name or None for automatic selection
        kwargs: Strategy options

        Returns (x, n, G):
            x: Phase x component mole fraction matrix, phases by ascending molar volume
            n: Phase x component mole amount matrix
            G: Gibbs energy of the equilibrium state relative to the homogeneous feed (J)
    """
    result = tp_flash2(model, p, T, n, method, **kwargs)
    return result.compositions.copy(), result.amounts, result.data.dG


def tpd(model, p, T, z, full_tpd=False, logger=logger):
    """ Tangent plane distance stability analysis of composition z

        Returns (compositions, tm) of the trial phases with negative tangent plane distance, most negative first.
        Empty lists mean z is stable at (p, T).
    """
    z = check_flash_inputs(model, p, T, z)
    z = z / np.sum(z)
    found = find_unstable(model, p, T, z, trial_phases(model, p, T, z, full_tpd=full_tpd), logger=logger)
    return [w for w, _ in found], [tm for _, tm in found]
