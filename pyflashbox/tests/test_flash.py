#!/usr/bin/env python3
"""
Validation tests for the isothermal flash strategies.
Run with: python3 -m pytest pyflashbox/tests/ -v
Or standalone: python3 pyflashbox/tests/test_flash.py
"""

import sys
import os
import logging
import numpy as np

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))
from pyflashbox.eos import PR
from pyflashbox.flash import tp_flash, tp_flash2, tpd, MichelsenTPFlash, MultiPhaseTPFlash, DETPFlash, FlashResult
from pyflashbox.exceptions import InvalidInputFailure, ConvergenceFailure

T = 300.0

class _ListHandler(logging.Handler):
    def __init__(self):
        super().__init__(level=logging.DEBUG)
        self.records = []

    def emit(self, record):
        self.records.append(record)


def _check_invariants(model, p, T, n, res, fugacity_tol=1e-6):
    """Mass balance, normalization, phase ordering and equal fugacities of a flash result"""
    n = np.asarray(n, dtype=float)
    assert np.allclose(np.sum(res.amounts, axis=0), n, rtol=1e-8, atol=1e-12), \
        f"Mass balance: {np.sum(res.amounts, axis=0)} vs {n}"
    assert abs(np.sum(res.fractions) - np.sum(n)) < 1e-10 * np.sum(n)
    assert np.allclose(np.sum(res.compositions, axis=1), 1.0, atol=1e-10)
    assert np.all(res.compositions >= 0)
    assert res.is_sorted(), f"Phases not ordered by volume: {res.volumes}"
    if res.numphases > 1:
        assert res.data.dG < 0, f"Split should lower the Gibbs energy, dG = {res.data.dG}"
        ln_f = [np.log(x) + model.ln_fugacity_coefficient(p, T, x, phase='stable') for x in res.compositions]
        for k in range(1, res.numphases):
            assert np.allclose(ln_f[0], ln_f[k], atol=fugacity_tol), f"Phase 0 vs {k}: {ln_f[0]} vs {ln_f[k]}"

# =============================================================================
# Two-phase flash
# =============================================================================

def test_michelsen_binary_two_phase():
    model = PR(['C3H8', 'nC4H10'])
    n = [0.5, 0.5]
    res = tp_flash2(model, 5e5, T, n)
    assert isinstance(res, FlashResult)
    assert res.numphases == 2, f"Expected two phases, got {res.numphases}"
    assert res.data.converged
    _check_invariants(model, 5e5, T, n, res)
    assert res.compositions[0][1] > res.compositions[1][1], "Liquid should be enriched in n-butane"
    assert res.components == ('C3H8', 'nC4H10')

def test_michelsen_single_phase_vapor():
    model = PR(['C3H8', 'nC4H10'])
    res = tp_flash2(model, 1e5, T, [0.5, 0.5])
    assert res.numphases == 1
    assert res.data.dG == 0.0
    assert np.allclose(res.compositions[0], [0.5, 0.5])

def test_michelsen_second_order_and_k0():
    model = PR(['C3H8', 'nC4H10'])
    ref = tp_flash2(model, 5e5, T, [0.5, 0.5])
    res = tp_flash2(model, 5e5, T, [0.5, 0.5], method=MichelsenTPFlash(second_order=True, ss_iters=3))
    assert np.allclose(res.compositions, ref.compositions, atol=1e-7)
    res = tp_flash2(model, 5e5, T, [0.5, 0.5], K0=(2.0, 0.5))
    assert np.allclose(res.compositions, ref.compositions, atol=1e-7)
    assert np.allclose(res.fractions, ref.fractions, atol=1e-7)

def test_tp_flash_tuple():
    model = PR(['C3H8', 'nC4H10'])
    x, n, G = tp_flash(model, 5e5, T, [0.5, 0.5])
    assert x.shape == (2, 2) and n.shape == (2, 2)
    assert np.allclose(np.sum(n, axis=0), [0.5, 0.5])
    assert G < 0

def test_flash_unnormalized_amounts():
    """Amounts and Gibbs energy scale with the total, compositions do not"""
    model = PR(['C3H8', 'nC4H10'])
    r1 = tp_flash2(model, 5e5, T, [0.5, 0.5])
    r4 = tp_flash2(model, 5e5, T, [2.0, 2.0])
    assert np.allclose(r4.compositions, r1.compositions, atol=1e-9)
    assert np.allclose(r4.fractions, 4 * r1.fractions, rtol=1e-8)
    assert abs(r4.data.dG - 4 * r1.data.dG) < 1e-6 * abs(r4.data.dG)
    _check_invariants(model, 5e5, T, [2.0, 2.0], r4)

def test_flash_degenerate_single_component():
    model = PR(['C3H8', 'nC4H10'])
    res = tp_flash2(model, 5e5, T, [0.0, 1.0])
    assert res.numphases == 1
    assert np.array_equal(res.compositions, [[0.0, 1.0]])
    assert res.fractions[0] == 1.0

def test_michelsen_noncondensable():
    """Methane declared noncondensable is absent from the liquid"""
    model = PR(['CH4', 'nC10H22'])
    p = 5e6
    res = tp_flash2(model, p, 350.0, [0.5, 0.5], noncondensables=['CH4'])
    assert res.numphases == 2
    assert res.compositions[0][0] == 0.0, f"Liquid methane {res.compositions[0][0]}"
    assert res.compositions[1][1] > 0.0
    assert np.allclose(np.sum(res.amounts, axis=0), [0.5, 0.5])

def test_michelsen_nonvolatile():
    """Decane declared nonvolatile is absent from the vapor"""
    model = PR(['CH4', 'nC10H22'])
    res = tp_flash2(model, 5e6, 350.0, [0.5, 0.5], nonvolatiles=['nC10H22'])
    assert res.numphases == 2
    assert res.compositions[1][1] == 0.0, f"Vapor decane {res.compositions[1][1]}"
    assert res.compositions[0][0] > 0.0, "Methane should dissolve in the liquid"
    assert np.allclose(np.sum(res.amounts, axis=0), [0.5, 0.5])

# =============================================================================
# Multiphase and global strategies
# =============================================================================

def test_multiphase_matches_michelsen():
    model = PR(['CH4', 'C3H8', 'nC5H12'])
    n = [0.5, 0.3, 0.2]
    p = 3e6
    res = tp_flash2(model, p, T, n)
    assert res.numphases == 2, f"Expected two phases, got {res.numphases}"
    _check_invariants(model, p, T, n, res)
    ref = tp_flash2(model, p, T, n, method='michelsen')
    assert np.allclose(res.compositions, ref.compositions, atol=1e-6)
    assert np.allclose(res.fractions, ref.fractions, atol=1e-6)
    assert abs(res.data.dG - ref.data.dG) < 1e-6 * abs(ref.data.dG)

def test_multiphase_water_hydrocarbon():
    model = PR(['H2O', 'C3H8', 'nC8H18'])
    n = [0.3, 0.3, 0.4]
    p = 5e5
    res = tp_flash2(model, p, T, n, full_tpd=True)
    assert res.numphases >= 2, f"Expected an aqueous phase, got {res.numphases} phase(s)"
    assert res.data.converged
    _check_invariants(model, p, T, n, res, fugacity_tol=1e-5)
    # Densest phase is the aqueous one
    assert res.compositions[0][0] > 0.9, f"Aqueous phase composition {res.compositions[0]}"

def test_multiphase_trace_component_fugacity():
    """Octane in the aqueous phase is tiny but present, with the fugacity of the oil phase"""
    model = PR(['H2O', 'C3H8', 'nC8H18'])
    p = 5e5
    res = tp_flash2(model, p, T, [0.3, 0.3, 0.4], full_tpd=True)
    assert np.all(res.compositions > 0), f"Zero mole fraction in {res.compositions}"
    x_aq = res.compositions[0]
    assert x_aq[2] < 1e-10, f"Aqueous octane {x_aq[2]}"
    ln_f = [np.log(x[2]) + model.ln_fugacity_coefficient(p, T, x, phase='stable')[2] for x in res.compositions]
    for k in range(1, res.numphases):
        assert abs(ln_f[k] - ln_f[0]) < 1e-5, f"ln f octane: {ln_f}"

def test_multiphase_initial_amounts():
    model = PR(['CH4', 'C3H8', 'nC5H12'])
    n = [0.5, 0.3, 0.2]
    ref = tp_flash2(model, 3e6, T, n, method='michelsen')
    n0 = ref.amounts[::-1]
    res = tp_flash2(model, 3e6, T, n, method=MultiPhaseTPFlash(n0=n0))
    assert np.allclose(res.compositions, ref.compositions, atol=1e-6)

def test_de_matches_michelsen():
    model = PR(['C3H8', 'nC4H10'])
    ref = tp_flash2(model, 5e5, T, [0.5, 0.5], method='michelsen')
    res = tp_flash2(model, 5e5, T, [0.5, 0.5], method='de', seed=1, max_steps=4000)
    assert res.numphases == 2
    assert np.allclose(res.compositions, ref.compositions, atol=1e-6)
    assert np.allclose(res.fractions, ref.fractions, atol=1e-6)

def test_de_single_phase():
    model = PR(['C3H8', 'nC4H10'])
    res = tp_flash2(model, 2e6, T, [0.5, 0.5], method='de', seed=3, max_steps=2000)
    assert res.numphases == 1
    assert np.allclose(res.compositions[0], [0.5, 0.5])

def test_de_time_limit():
    """A zero time limit stops the search after the first generation"""
    log = logging.getLogger('pyflashbox.tests.de_time_limit')
    log.setLevel(logging.DEBUG)
    log.propagate = False
    handler = _ListHandler()
    log.handlers = [handler]
    n = [0.5, 0.5]
    method = DETPFlash(time_limit=0.0, verbose=True, seed=1, max_steps=10**6, logger=log)
    res = tp_flash2(PR(['C3H8', 'nC4H10']), 5e5, T, n, method=method)
    generations = [r for r in handler.records if r.getMessage().startswith('de generation')]
    assert len(generations) == 1, f"Expected one generation, got {len(generations)}"
    assert np.allclose(np.sum(res.amounts, axis=0), n)

def test_de_one_phase_requested():
    model = PR(['C3H8', 'nC4H10'])
    res = tp_flash2(model, 5e5, T, [0.5, 0.5], numphases=1)
    assert res.numphases == 1

# =============================================================================
# Failures
# =============================================================================

class _FailingPR(PR):
    """Peng-Robinson model that rejects every fugacity evaluation"""
    def ln_fugacity_coefficient(self, p, T, x, phase='stable', return_volume=False):
        raise ValueError("non-physical state")

def test_michelsen_iteration_budget():
    try:
        tp_flash2(PR(['C3H8', 'nC4H10']), 5e5, T, [0.5, 0.5], method='michelsen', max_iters=2)
        assert False, "Should have raised ConvergenceFailure"
    except ConvergenceFailure as e:
        assert e.x is not None, "Best ln K missing"
        assert len(e.x) == 2
        assert np.all(np.isfinite(e.x))
        assert e.residual_norm is not None and e.residual_norm > 0
        assert e.iterations >= 2

def test_multiphase_iteration_budget():
    try:
        tp_flash2(PR(['CH4', 'C3H8', 'nC5H12']), 3e6, T, [0.5, 0.3, 0.2], method='multiphase', ss_iters=2)
        assert False, "Should have raised ConvergenceFailure"
    except ConvergenceFailure as e:
        assert e.x is not None, "Best phase set missing"
        assert e.x.shape[1] == 3 and e.x.shape[0] >= 2, f"Phase set shape {e.x.shape}"
        assert np.allclose(np.sum(e.x, axis=1), 1.0)
        assert e.fractions is not None and abs(np.sum(e.fractions) - 1.0) < 1e-10
        assert e.residual_norm is not None and e.iterations == 2

def test_model_error_wrapped():
    try:
        tp_flash2(_FailingPR(['C3H8', 'nC4H10']), 5e5, T, [0.5, 0.5])
        assert False, "Should have raised ConvergenceFailure"
    except ConvergenceFailure as e:
        assert isinstance(e.__cause__, ValueError), f"Cause {e.__cause__!r}"

# =============================================================================
# Reporting
# =============================================================================

def test_result_dataframe_and_summary():
    model = PR(['C3H8', 'nC4H10'])
    res = tp_flash2(model, 5e5, T, [0.5, 0.5])
    df = res.to_dataframe()
    assert df.index.name == 'Phase'
    assert list(df.columns) == ['Amount (mol)', 'Volume (m3/mol)', 'x C3H8', 'x nC4H10']
    assert len(df) == 2
    text = res.summary()
    assert 'x nC4H10' in text and '2 phase(s)' in text
    assert str(res) == text

# =============================================================================
# Stability analysis
# =============================================================================

def test_tpd_unstable_feed():
    model = PR(['C3H8', 'nC4H10'])
    w, tm = tpd(model, 5e5, T, [0.5, 0.5])
    assert len(w) >= 1
    assert all(t < 0 for t in tm)
    assert tm == sorted(tm), "Trial phases should be ordered by tangent plane distance"
    assert abs(np.sum(w[0]) - 1.0) < 1e-10

def test_tpd_stable_feed():
    model = PR(['C3H8', 'nC4H10'])
    w, tm = tpd(model, 2e6, T, [0.5, 0.5])
    assert w == [] and tm == []

# =============================================================================
# Input validation
# =============================================================================

def test_flash_bad_inputs():
    model = PR(['C3H8', 'nC4H10'])
    bad = [
        (5e5, T, [0.5, 0.3, 0.2]),
        (5e5, T, [-0.5, 1.5]),
        (5e5, T, [0.0, 0.0]),
        (5e5, T, [np.nan, 1.0]),
        (0.0, T, [0.5, 0.5]),
        (5e5, -1.0, [0.5, 0.5]),
        (5e5, np.nan, [0.5, 0.5]),
    ]
    for p, t, n in bad:
        try:
            tp_flash2(model, p, t, n)
            assert False, f"Should have raised InvalidInputFailure for p={p}, T={t}, n={n}"
        except InvalidInputFailure:
            pass

def test_flash_bad_options():
    model = PR(['C3H8', 'nC4H10'])
    for kwargs in ({'K0': (2.0, 0.5, 1.0)}, {'v0': (1e-4,)}, {'noncondensables': ['CO2']}, {'bogus': 1}):
        try:
            tp_flash2(model, 5e5, T, [0.5, 0.5], **kwargs)
            assert False, f"Should have raised InvalidInputFailure for {kwargs}"
        except InvalidInputFailure:
            pass


if __name__ == '__main__':
    import pytest
    sys.exit(pytest.main([__file__, '-v']))
