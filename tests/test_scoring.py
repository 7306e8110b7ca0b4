import pytest

from valuelens.assumptions import build_assumptions
from valuelens.scoring import (
    PRIORITY_TIERS, normalize_values, priority_score, priority_tier, readiness_score, recommended_phase,
    rescale_legacy, ttv_score,
)


def test_readiness_bounds():
    assert readiness_score(10, 10, 10, 10)['value'] == 10
    assert readiness_score(1, 1, 1, 1)['value'] == 1


def test_readiness_weighted_sum():
    r = readiness_score(8, 7, 6, 7)
    assert r['value'] == pytest.approx(7.1)
    assert r['trace']['intermediates']['ocWeighted'] == pytest.approx(2.4)


def test_readiness_clamps_components():
    r = readiness_score(15, 0, 5, 5)
    assert r['trace']['inputs']['organizationalCapacity'] == 10
    assert r['trace']['inputs']['dataAvailabilityQuality'] == 1
    assert r['value'] == pytest.approx(5.3)


def test_readiness_weights_are_configurable():
    a = build_assumptions({'readinessWeights': {'organizationalCapacity': 1.0, 'dataAvailabilityQuality': 0,
                                                'technicalInfrastructure': 0, 'governance': 0}})
    assert readiness_score(9, 1, 1, 1, a)['value'] == 9


@pytest.mark.parametrize('raw,expected', [(1, 1), (3, 6), (4, 8), (5, 10), (7, 7), (0, 1), ('x', 5)])
def test_rescale_legacy(raw, expected):
    assert rescale_legacy(raw) == expected


def test_normalize_values():
    assert normalize_values([10, 20, 30]) == [1.0, 5.5, 10.0]
    assert normalize_values([5, 5]) == [5.5, 5.5]
    assert normalize_values([]) == []


def test_priority_score():
    assert priority_score(7.1, 1.0)['value'] == pytest.approx(4.05)
    assert priority_score(20, -3)['trace']['inputs'] == {'readinessScore': 10, 'normalizedValue': 1}


@pytest.mark.parametrize('priority,value,readiness,tier', [
    (8.0, 9, 7, 'champions'),
    (5.0, 3, 7, 'quick_win'),
    (5.0, 8, 3, 'strategic'),
    (4.0, 3, 4, 'foundation'),
    (6.0, 6, 6, 'foundation'),
])
def test_priority_tier(priority, value, readiness, tier):
    assert priority_tier(priority, value, readiness) == PRIORITY_TIERS[tier]


@pytest.mark.parametrize('priority,readiness,phase', [
    (8.0, 6.0, 'Q1'),
    (8.0, 5.5, 'Q2'),
    (6.5, 4.0, 'Q3'),
    (4.0, 9.0, 'Q4'),
])
def test_recommended_phase(priority, readiness, phase):
    assert recommended_phase(priority, readiness) == phase


def test_ttv_score():
    assert ttv_score(3) == 0.75
    assert ttv_score(12) == 0
    assert ttv_score(24) == 0
    assert ttv_score(0) == 1
