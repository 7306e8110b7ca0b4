import copy

import pytest

from valuelens.assumptions import build_assumptions
from valuelens.extraction import extract_inputs
from valuelens.formulas import calculate_revenue_benefit
from valuelens.postprocess import company_context, probability_of_success, render_formula, run_postprocess
from valuelens.schema import step_data


def _by_id(doc, n):
    return {r['ID']: r for r in step_data(doc, n)}


@pytest.fixture
def result(sample_document):
    return run_postprocess(sample_document)


# ── Helpers ──

def test_company_context_accepts_list_or_dict():
    assert company_context({'steps': [{'step': 0, 'data': [{'Annual Revenue': '$2B', 'Total Employees': '12,000'}]}]}) \
        == (2_000_000_000, 12_000)
    assert company_context({'steps': [{'step': 0, 'data': {'Annual Revenue ($)': 5_000_000}}]}) == (5_000_000, 0)
    assert company_context({'steps': []}) == (0, 0)


def test_probability_of_success():
    assert probability_of_success('80%', 0.75) == pytest.approx(0.8)
    assert probability_of_success(0.6, 0.75) == 0.6
    assert probability_of_success('likely', 0.75) == 0.75
    assert probability_of_success('150', 0.75) == 1.0


def test_rendered_formula_reads_back_to_the_same_inputs():
    r = calculate_revenue_benefit({'upliftPct': 0.05, 'baselineRevenueAtRisk': 100_000_000,
                                   'revenueRealizationMultiplier': 0.95, 'dataMaturityMultiplier': 0.75})
    text = render_formula('revenue', r)
    assert text == '5% × $100,000,000 × 0.95 × 0.75 = $3.6M → $3.5M'
    inputs, source = extract_inputs('revenue', text)
    assert source == 'formula'
    assert inputs['upliftPct'] == pytest.approx(0.05)
    assert inputs['baselineRevenueAtRisk'] == 100_000_000


# ── Pipeline ──

def test_input_document_is_not_mutated(sample_document):
    before = copy.deepcopy(sample_document)
    run_postprocess(sample_document)
    assert sample_document == before


def test_document_without_benefits_is_returned_unchanged():
    doc = {'steps': [{'step': 0, 'data': []}, {'step': 5, 'data': []}]}
    assert run_postprocess(doc) is doc
    assert run_postprocess('not a document') == 'not a document'


def test_friction_costs_use_canonical_role_rates(result):
    f = {r['Friction Point']: r for r in step_data(result, 3)}
    invoice = f['Manual invoice matching']
    assert invoice['Role'] == 'Accountant'
    assert invoice['Hourly Rate'] == 90
    assert invoice['Estimated Annual Cost ($)'] == '$2.5M'
    assert invoice['Cost Formula'] == '28,000 hours × $90/hr = $2.5M → $2.5M'
    inquiries = f['Repetitive customer inquiries']
    assert inquiries['Role'] == 'Customer Service Representative'
    assert inquiries['Annual Hours'] == 40_000
    assert inquiries['Estimated Annual Cost ($)'] == '$2M'
    assert inquiries['Severity'] == 'High'


def test_role_verification_entries(result):
    entries = {e['frictionPoint']: e for e in result['roleVerification']}
    assert entries['Manual invoice matching']['originalRate'] == 45
    assert entries['Manual invoice matching']['standardizedRate'] == 90


def test_taxonomy_is_normalized(result):
    uc = _by_id(result, 4)
    assert uc['UC-02']['AI Primitives'] == 'Conversational Interfaces'
    assert uc['UC-02']['Use Case'] == 'Customer inquiry assistant'


def test_absurd_hours_fall_back_to_friction_hours(result):
    uc1 = _by_id(result, 5)['UC-01']
    assert uc1['Cost Formula'].startswith('28,000 hours × $95/hr × 1.35 × 0.90 × 0.75')
    assert uc1['Cost Benefit ($)'] == '$2.4M'
    assert any(w.startswith('[SANITY CHECK] UC-01') for w in result['validationWarnings'])


def test_benefits_are_rederived(result):
    s5 = _by_id(result, 5)
    uc1, uc2 = s5['UC-01'], s5['UC-02']
    assert uc1['Revenue Formula'] == 'No direct revenue impact'
    assert uc1['Revenue Formula Labels'] is None
    assert uc1['Risk Formula'] == 'No quantifiable risk reduction'
    assert uc1['Cash Flow Benefit ($)'] == '$300K'
    assert uc1['Total Annual Value ($)'] == '$2.7M'
    assert uc1['Probability of Success'] == pytest.approx(0.8)
    assert uc2['Cost Benefit ($)'] == '$900K'
    assert uc2['Revenue Benefit ($)'] == '$3.5M'
    assert uc2['Risk Benefit ($)'] == '$1.1M'
    assert uc2['Total Annual Value ($)'] == '$5.5M'
    assert uc2['Probability of Success'] == 0.75
    assert uc2['Expected Value ($)'] == '$4.1M'


def test_formula_labels_are_attached(result):
    labels = _by_id(result, 5)['UC-02']['Risk Formula Labels']
    assert [c['label'] for c in labels['components']] == \
        ['Risk Reduction %', 'Risk Exposure', 'Realization Factor', 'Data Maturity']


def test_readiness_and_tokens(result):
    s6 = _by_id(result, 6)
    assert s6['UC-01']['Readiness Score'] == pytest.approx(7.1)
    assert s6['UC-01']['Time To Value'] == 3
    assert s6['UC-01']['Monthly Tokens'] == 25_000_000
    assert s6['UC-01']['Annual Token Cost'] == '$2K'
    # 1-5 legacy scores stretched onto 1-10
    assert s6['UC-02']['Organizational Capacity'] == 8
    assert s6['UC-02']['Data Availability & Quality'] == 6
    assert s6['UC-02']['Technical Infrastructure'] == 5
    assert s6['UC-02']['Readiness Score'] == pytest.approx(6.2)
    assert s6['UC-02']['Time To Value'] == 6


def test_priority_scoring_recovers_missing_use_cases(result):
    s7 = _by_id(result, 7)
    assert set(s7) == {'UC-01', 'UC-02'}
    assert s7['UC-01']['Value Score'] == 1
    assert s7['UC-01']['Priority Score'] == pytest.approx(4.05)
    assert s7['UC-01']['Priority Tier'] == 'Tier 2 - Quick Wins'
    assert s7['UC-01']['Recommended Phase'] == 'Q4'
    assert s7['UC-01']['Strategic Theme'] == 'Finance automation'
    assert s7['UC-02']['Value Score'] == 10
    assert s7['UC-02']['Priority Score'] == pytest.approx(8.1)
    assert s7['UC-02']['Priority Tier'] == 'Tier 1 - Champions'
    assert s7['UC-02']['Recommended Phase'] == 'Q1'
    assert s7['UC-02']['TTV Score'] == 0.5


def test_executive_dashboard(result):
    d = result['executiveDashboard']
    assert d['totalCostBenefit'] == 3_300_000
    assert d['totalRevenueBenefit'] == 3_500_000
    assert d['totalCashFlowBenefit'] == 300_000
    assert d['totalRiskBenefit'] == 1_100_000
    assert d['totalAnnualValue'] == 8_200_000
    assert d['totalMonthlyTokens'] == 31_500_000
    assert d['valuePerMillionTokens'] == 260_317
    top = d['topUseCases']
    assert [t['rank'] for t in top] == [1, 2]
    assert top[0]['useCase'] == 'Customer inquiry assistant'
    assert top[0]['annualValue'] == 5_500_000


def test_portfolio_outputs(result):
    assert result['benefitsCapped'] is False
    assert result['capScaleFactor'] == 1.0
    assert set(result['scenarioAnalysis']) == {'conservative', 'moderate', 'aggressive'}
    assert result['scenarioAnalysis']['moderate']['annualBenefit'] == '$8.2M'
    assert result['multiYearProjection']['npv'].startswith('$')
    recovery = {g['frictionPoint']: g['recoveries'] for g in result['frictionRecovery']}
    assert recovery['Manual invoice matching'][0]['recoveryAmount'] == 2_520_000
    assert recovery['Repetitive customer inquiries'][0]['recoveryPct'] == 1


def test_second_pass_is_stable(result):
    again = run_postprocess(result)
    for key in ('steps', 'executiveDashboard', 'scenarioAnalysis', 'multiYearProjection', 'benefitsCapped'):
        assert again[key] == result[key], key
    assert not any(w.startswith('[SANITY CHECK]') for w in again['validationWarnings'])


def test_caps_applied(overclaimed_document):
    out = run_postprocess(overclaimed_document)
    assert out['benefitsCapped'] is True
    assert out['capScaleFactor'] == pytest.approx(5 / 6)
    assert out['executiveDashboard']['totalAnnualValue'] == pytest.approx(5_000_000)
    assert sum(w.startswith('[PER-UC CAP]') for w in out['validationWarnings']) == 4
    assert any('exceed 50%' in w for w in out['validationWarnings'])
    for rec in step_data(out, 5):
        assert rec['Total Annual Value ($)'] == '$1.3M'
    # steps 6 and 7 are built from step 5 when the model skipped them
    assert len(step_data(out, 6)) == 4
    s7 = step_data(out, 7)
    assert {r['Priority Tier'] for r in s7} == {'Tier 3 - Strategic'}
    assert {r['Value Score'] for r in s7} == {5.5}


def test_unreadable_formula_is_recorded_as_zero():
    doc = {'steps': [{'step': 5, 'data': [{'ID': 'UC-01', 'Use Case': 'Vague',
                                           'Cost Formula': 'significant savings = $2M'}]}]}
    out = run_postprocess(doc)
    rec = step_data(out, 5)[0]
    assert rec['Cost Benefit ($)'] == '$0'
    assert rec['Cost Formula'] == 'significant savings = $2M (could not validate)'
    assert 'UC-01: could not validate cost formula, recorded as $0' in out['validationWarnings']
    again = step_data(run_postprocess(out), 5)[0]
    assert again['Cost Formula'] == rec['Cost Formula']


def test_malformed_content_does_not_raise():
    doc = {'steps': ['junk', {'step': 0, 'data': 'nope'},
                     {'step': 5, 'data': [{'ID': 'UC-01', 'Cost Formula': 12345, 'Risk Formula': ['x']}, 7]}]}
    out = run_postprocess(doc)
    assert out['executiveDashboard']['totalAnnualValue'] == 0


def test_assumption_overrides_flow_through(sample_document):
    a = build_assumptions({'multipliers': {'dataMaturityMultiplier': 1.0}})
    out = run_postprocess(sample_document, a)
    # formula factors win over defaults, so only the missing-factor paths move
    assert out['executiveDashboard']['totalAnnualValue'] == 8_200_000
    out = run_postprocess(sample_document, build_assumptions({'scenarioMultipliers': {'moderate': 0.5}}))
    assert out['executiveDashboard']['totalAnnualValue'] < 8_200_000


def _labelled_cost_document(maturity):
    labels = {'components': [{'label': 'Hours Saved', 'value': '10,000'},
                             {'label': 'Hourly Rate', 'value': '$100'},
                             {'label': 'Realization', 'value': '0.90'},
                             {'label': 'Data Maturity', 'value': maturity}]}
    return {'steps': [{'step': 5, 'data': [{'ID': 'UC-01', 'Use Case': 'Invoice matching',
                                            'Cost Formula': f'10,000 hours × $100/hr × 0.90 × {maturity}',
                                            'Cost Formula Labels': labels}]}]}


def test_label_multipliers_are_clamped():
    out = run_postprocess(_labelled_cost_document('75'))
    rec = step_data(out, 5)[0]
    assert rec['Cost Benefit ($)'] == '$1.2M'
    assert 'UC-01 cost: Data Maturity: 75 above maximum 1, clamped' in out['validationWarnings']


def test_overflowing_label_literal_falls_back_to_default():
    out = run_postprocess(_labelled_cost_document('9' * 400))
    assert step_data(out, 5)[0]['Cost Benefit ($)'] == '$900K'
