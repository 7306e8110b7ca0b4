import pytest

from valuelens.assumptions import (
    DEFAULT_ASSUMPTIONS, build_assumptions, data_maturity_multiplier, scenario_multiplier, thaw,
)


def test_override_merges_into_defaults():
    a = build_assumptions({'multipliers': {'loadedHourlyRate': 200}})
    assert a['multipliers']['loadedHourlyRate'] == 200
    assert a['multipliers']['benefitsLoading'] == 1.35
    assert DEFAULT_ASSUMPTIONS['multipliers']['loadedHourlyRate'] == 150


def test_assumptions_are_read_only():
    with pytest.raises(TypeError):
        DEFAULT_ASSUMPTIONS['multipliers']['loadedHourlyRate'] = 1


def test_unknown_override_key_is_ignored():
    a = build_assumptions({'multipliers': {'notAThing': 3}, 'bogus': {}})
    assert 'notAThing' not in a['multipliers']
    assert 'bogus' not in a


def test_role_rate_overrides_accept_any_role_id():
    a = build_assumptions({'roleRates': {'ROLE_PRO_ACCOUNTANT': 120}})
    assert a['roleRates']['ROLE_PRO_ACCOUNTANT'] == 120


def test_override_on_top_of_a_base_keeps_the_base():
    base = build_assumptions({'policy': {'perUseCaseCapPct': 0.10}})
    a = build_assumptions({'multipliers': {'loadedHourlyRate': 90}}, base=base)
    assert a['policy']['perUseCaseCapPct'] == 0.10
    assert a['multipliers']['loadedHourlyRate'] == 90


def test_thaw_gives_plain_containers():
    t = thaw(DEFAULT_ASSUMPTIONS)
    assert isinstance(t['projection'], dict)
    assert t['projection']['implementationSplit'] == [0.60, 0.30, 0.10]


def test_scenario_multipliers():
    assert scenario_multiplier(None, 'conservative') == 0.60
    assert scenario_multiplier(None, 'moderate') == 1.00
    assert scenario_multiplier(None, 'aggressive') == 1.30
    with pytest.raises(ValueError):
        scenario_multiplier(None, 'optimistic')


def test_data_maturity_levels_clamp():
    assert data_maturity_multiplier(3) == 0.85
    assert data_maturity_multiplier(0) == 0.60
    assert data_maturity_multiplier(9) == 1.00
