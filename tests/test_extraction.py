import json

import pytest

from valuelens.extraction import (
    cashflow_from_formula, cost_from_formula, extract_inputs, extract_numbers, is_no_value,
    mark_unvalidated, parse_literal, parse_number, revenue_from_formula, risk_from_formula,
)


@pytest.mark.parametrize('text,expected', [
    ('$1.2M', 1_200_000),
    ('450K', 450_000),
    ('1,200', 1_200),
    ('$2B', 2_000_000_000),
    ('abc', 0),
    (None, 0),
    (12, 12),
])
def test_parse_number(text, expected):
    assert parse_number(text) == pytest.approx(expected)


def test_parse_literal():
    assert parse_literal('12%') == pytest.approx(0.12)
    assert parse_literal('$50/hr') == 50
    assert parse_literal('28,000 hours') == 28_000
    assert parse_literal('none') is None


@pytest.mark.parametrize('text', ['No direct revenue impact', 'N/A', '$0', '', None,
                                  'No quantifiable risk reduction'])
def test_no_value_markers(text):
    assert is_no_value(text)


def test_numbers_only_left_of_equals():
    nums = extract_numbers('28,000 hours × $50/hr × 1.35 × 0.90 × 0.75 = $1.2M')
    assert nums == pytest.approx([28_000, 50, 1.35, 0.9, 0.75])
    assert extract_numbers('5% × $10M') == pytest.approx([0.05, 10_000_000])


def test_unvalidated_suffix_is_not_doubled():
    once = mark_unvalidated('big savings')
    assert once == 'big savings (could not validate)'
    assert mark_unvalidated(once) == once


# ── Free-text heuristics ──

def test_cost_formula_explicit_hours_and_rate():
    x = cost_from_formula('28,000 hours × $50/hr × 1.35 × 0.90 × 0.75 = $1.2M')
    assert x['hoursSaved'] == 28_000
    assert x['loadedHourlyRate'] == 50
    assert x['benefitsLoading'] == 1.35
    assert x['costRealizationMultiplier'] == 0.9
    assert x['dataMaturityMultiplier'] == 0.75


def test_cost_formula_by_magnitude():
    x = cost_from_formula('12000 × 85 × 0.8 × 0.9')
    assert x['hoursSaved'] == 12_000
    assert x['loadedHourlyRate'] == 85
    assert x['costRealizationMultiplier'] == 0.8
    assert x['dataMaturityMultiplier'] == 0.9


def test_cost_formula_leading_fraction_reduces_hours():
    x = cost_from_formula('10,000 hours × $100/hr × 0.5 × 0.9 × 0.8')
    assert x['hoursSaved'] == 5_000
    assert x['costRealizationMultiplier'] == 0.9
    assert x['dataMaturityMultiplier'] == 0.8


def test_revenue_formula():
    x = revenue_from_formula('5% × $100M × 0.95 × 0.75 = $3.6M')
    assert x['upliftPct'] == pytest.approx(0.05)
    assert x['baselineRevenueAtRisk'] == 100_000_000
    assert x['revenueRealizationMultiplier'] == 0.95
    assert x['dataMaturityMultiplier'] == 0.75


def test_cashflow_formula():
    x = cashflow_from_formula('$365M × (15 / 365) × 0.08 = $1.2M')
    assert x['annualRevenue'] == 365_000_000
    assert x['daysImprovement'] == 15
    assert x['costOfCapital'] == 0.08
    assert x['cashFlowRealizationMultiplier'] == 0.85


def test_risk_formula_is_reduction_over_exposure():
    x = risk_from_formula('20% × $10M exposure × 0.80 × 0.75')
    assert x['probBefore'] == 1.0
    assert x['impactBefore'] == 10_000_000
    assert x['probAfter'] == pytest.approx(0.8)
    assert x['impactAfter'] == 10_000_000
    assert x['riskRealizationMultiplier'] == 0.8


# ── Structured labels ──

def test_labels_take_precedence_over_formula():
    labels = {'components': [{'label': 'Hours Saved', 'value': '12,000 hours'},
                             {'label': 'Hourly Rate', 'value': '$80/hr'}]}
    inputs, source = extract_inputs('cost', 'garbage text', labels)
    assert source == 'labels'
    assert inputs['hoursSaved'] == 12_000
    assert inputs['loadedHourlyRate'] == 80
    assert inputs['benefitsLoading'] == 1.35


def test_labels_as_json_string():
    labels = json.dumps({'components': [{'label': 'Revenue Uplift', 'value': '12'},
                                        {'label': 'Revenue at Risk', 'value': '$50M'}]})
    inputs, source = extract_inputs('revenue', None, labels)
    assert source == 'labels'
    assert inputs['upliftPct'] == pytest.approx(0.12)
    assert inputs['baselineRevenueAtRisk'] == 50_000_000


def test_bad_labels_fall_back_to_formula():
    inputs, source = extract_inputs('cost', '20,000 hours × $50/hr × 0.90 × 0.75', '{not json')
    assert source == 'formula'
    assert inputs['hoursSaved'] == 20_000


def test_declared_no_value():
    assert extract_inputs('revenue', 'No direct revenue impact') == (None, 'none')
    assert extract_inputs('risk', None) == (None, 'none')


def test_unreadable_formula():
    assert extract_inputs('cost', 'significant savings = $2M') == (None, 'unparsed')
