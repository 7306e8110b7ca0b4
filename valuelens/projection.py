"""
ValueLens: Multi-Year Projection

Year y benefit = annual benefit x adoption(y) where adoption follows the
scenario curve (Y1, Y2, Y3 onwards). Implementation cost is spread 60/30/10
over the first three years. NPV discounts net benefit at the projection rate;
payback is the first month cumulative net benefit turns non-negative.
"""
import logging
import math

from valuelens.assumptions import resolve, scenario_multiplier
from valuelens.formulas import format_money


def _adoption(curve, year):
    if year == 1:
        return curve['y1']
    if year == 2:
        return curve['y2']
    return curve['y3']


def _implementation(cost, split, year):
    return cost * split[year - 1] if year <= len(split) else 0


# ══════════════════════════════════════════════════════════════
#  IRR
# ══════════════════════════════════════════════════════════════

def estimate_irr(cashflows, guess=0.10, max_iter=100, tolerance=1e-4):
    """Newton-Raphson on NPV(rate) = 0. None when it fails to converge to a sane rate."""
    if not cashflows or all(cf == 0 for cf in cashflows):
        return None
    rate = guess
    for _ in range(max_iter):
        npv = sum(cf / (1 + rate) ** t for t, cf in enumerate(cashflows))
        if abs(npv) < tolerance:
            return rate if abs(rate) < 10 else None
        dnpv = sum(-t * cf / (1 + rate) ** (t + 1) for t, cf in enumerate(cashflows))
        if dnpv == 0:
            return None
        rate = max(-0.99, min(10.0, rate - npv / dnpv))
    return None


# ══════════════════════════════════════════════════════════════
#  PROJECTION
# ══════════════════════════════════════════════════════════════

def multi_year_projection(annual_benefit, implementation_cost=0, scenario=None, years=None,
                          discount_rate=None, assumptions=None):
    a = resolve(assumptions)
    proj = a['projection']
    scenario = scenario or proj['headlineScenario']
    years = int(years or proj['years'])
    rate = proj['discountRate'] if discount_rate is None else discount_rate
    if scenario not in a['adoptionCurves']:
        raise ValueError(f'Unknown scenario: {scenario}')
    curve = a['adoptionCurves'][scenario]
    split = proj['implementationSplit']

    yearly, cumulative, npv = [], 0, 0
    payback = None
    for y in range(1, years + 1):
        adoption = _adoption(curve, y)
        adjusted = annual_benefit * adoption
        impl = _implementation(implementation_cost, split, y)
        net = adjusted - impl
        prev = cumulative
        cumulative += net
        factor = 1 / (1 + rate) ** y
        pv = net * factor
        npv += pv
        if payback is None and cumulative >= 0:
            if prev < 0 and net > 0:
                payback = (y - 1) * 12 + math.ceil(-prev / net * 12)
            else:
                payback = (y - 1) * 12
        yearly.append({
            'year': y, 'adoptionRate': adoption, 'grossBenefit': annual_benefit,
            'adjustedBenefit': adjusted, 'implementationCost': impl, 'netBenefit': net,
            'cumulativeNetBenefit': cumulative, 'discountFactor': factor, 'presentValue': pv,
        })

    irr = estimate_irr([-implementation_cost] + [y['adjustedBenefit'] for y in yearly])
    result = {
        'scenario': scenario,
        'years': yearly,
        'npv': round(npv),
        'paybackMonths': years * 12 if payback is None else payback,
        'irr': irr,
        'totalBenefitOverPeriod': sum(y['adjustedBenefit'] for y in yearly),
    }
    logging.info(f"Projection ({scenario}, {years}y): NPV {format_money(result['npv'])}, "
                 f"payback {result['paybackMonths']}mo, IRR {format_irr(irr)}")
    return result


def format_irr(irr):
    return 'N/A' if irr is None else f'{irr * 100:.1f}%'


# ══════════════════════════════════════════════════════════════
#  SCENARIOS
# ══════════════════════════════════════════════════════════════

def three_scenario_summary(base_benefit, implementation_cost=0, assumptions=None):
    """Scenario-adjusted first-year benefit, NPV and payback for each scenario."""
    a = resolve(assumptions)
    summary = {}
    for sc in a['scenarioMultipliers']:
        annual = base_benefit * scenario_multiplier(a, sc)
        p = multi_year_projection(annual, implementation_cost, scenario=sc, assumptions=a)
        summary[sc] = {'totalBenefit': annual, 'npv': p['npv'], 'paybackMonths': p['paybackMonths']}

    c, m, g = (summary.get(k, {}).get('totalBenefit', 0) for k in ('conservative', 'moderate', 'aggressive'))
    summary['headline'] = (f'{format_money(c)} conservative first-year value '
                           f'({format_money(m)} moderate, {format_money(g)} aggressive)')
    return summary
