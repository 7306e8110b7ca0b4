import pytest

from valuelens.capping import cap_benefits, cap_portfolio, cap_use_case, cross_validate, row_total, totals
from valuelens.formulas import format_money


def _row(uc_id, cost=0, revenue=0, cashflow=0, risk=0, hours=0):
    return {'id': uc_id, 'name': f'Use case {uc_id}', 'costBenefit': cost, 'revenueBenefit': revenue,
            'cashFlowBenefit': cashflow, 'riskBenefit': risk, 'hoursSaved': hours}


def test_totals():
    t = totals([_row('A', cost=1, revenue=2), _row('B', cashflow=3, risk=4, hours=10)])
    assert t['total'] == 10
    assert t['hoursSaved'] == 10
    assert row_total(_row('A', cost=1, revenue=2)) == 3


def test_per_use_case_cap_scales_all_four_benefits():
    row = _row('UC-01', cost=2_000_000, revenue=1_000_000)
    capped, msg = cap_use_case(row, 10_000_000)
    assert row_total(capped) == pytest.approx(1_500_000)
    assert capped['costBenefit'] == pytest.approx(1_000_000)
    assert capped['revenueBenefit'] == pytest.approx(500_000)
    assert msg.startswith('[PER-UC CAP] UC-01')
    assert row['costBenefit'] == 2_000_000


def test_per_use_case_cap_not_applied():
    row = _row('UC-01', cost=1_000_000)
    assert cap_use_case(row, 10_000_000) == (row, None)
    assert cap_use_case(row, 0) == (row, None)


def test_portfolio_cap_single_scale_factor():
    rows = [_row('A', cost=4_000_000), _row('B', revenue=2_000_000)]
    result = cap_portfolio(rows, 10_000_000)
    assert result['benefitsCapped'] is True
    assert result['capScaleFactor'] == pytest.approx(5 / 6)
    assert totals(result['rows'])['total'] == pytest.approx(5_000_000)
    assert rows[0]['costBenefit'] == 4_000_000


def test_portfolio_cap_needs_revenue():
    result = cap_portfolio([_row('A', cost=4_000_000)], 0)
    assert result['benefitsCapped'] is False
    assert result['capScaleFactor'] == 1.0
    assert result['warnings'] == []


def test_cross_validate_flags_double_counting():
    rows = [_row('A', revenue=4_000_000, hours=300_000)]
    check = cross_validate(rows, 10_000_000, total_employees=500)
    assert len(check['warnings']) == 2
    assert 'revenue benefits' in check['warnings'][0]
    assert 'FTE equivalents' in check['warnings'][1]
    assert check['metrics']['benefitsCapped'] is False


def test_cap_benefits_per_use_case_then_portfolio():
    rows = [_row(f'UC-0{i}', cost=9_100_000) for i in range(1, 5)]
    result = cap_benefits(rows, 10_000_000)
    per_uc = [w for w in result['warnings'] if w.startswith('[PER-UC CAP]')]
    assert len(per_uc) == 4
    assert result['benefitsCapped'] is True
    assert result['capScaleFactor'] == pytest.approx(5 / 6)
    assert totals(result['rows'])['total'] == pytest.approx(5_000_000)


def test_per_use_case_cap_never_displays_above_the_cap():
    capped, _ = cap_use_case(_row('UC-01', cost=2_000_000), 9_999_999)
    assert row_total(capped) == pytest.approx(1_400_000)
    assert format_money(row_total(capped)) == '$1.4M'
