"""
ValueLens: Benefit Formulas
Four deterministic benefit calculators (cost, revenue, cash flow, risk), their
bound-enforcing safe wrappers, and the small money/token/friction formulas the
post-processor shares. Every calculator returns {value, trace}; value is
floored to the benefit precision and the trace keeps the pre-rounding output.
"""
import math

from valuelens.assumptions import resolve, scenario_multiplier


def clamp(v, lo, hi):
    return max(lo, min(hi, v))


def _num(v, default=0.0):
    try:
        f = float(v)
    except (TypeError, ValueError, OverflowError):
        return default
    return f if math.isfinite(f) else default


def _floor_to(v, precision):
    return math.floor(v / precision) * precision


def _plain(v):
    return str(int(v)) if float(v).is_integer() else str(v)


# ══════════════════════════════════════════════════════════════
#  INPUT VALIDATION
# ══════════════════════════════════════════════════════════════

def validate_inputs(inputs, bounds):
    """Clamp every input that has a bound. NaN, infinite or non-numeric becomes 0."""
    clamped, warnings = {}, []
    for key, raw in inputs.items():
        b = bounds.get(key)
        if b is None:
            continue
        try:
            val = float(raw)
        except (TypeError, ValueError, OverflowError):
            val = float('nan')
        if not math.isfinite(val):
            warnings.append(f"{b['label']}: must be a valid number")
            clamped[key] = 0
        elif val < b['min']:
            warnings.append(f"{b['label']}: {_plain(val)} below minimum {_plain(b['min'])}, clamped")
            clamped[key] = b['min']
        elif val > b['max']:
            warnings.append(f"{b['label']}: {_plain(val)} above maximum {_plain(b['max'])}, clamped")
            clamped[key] = b['max']
        else:
            clamped[key] = val
    return {'isValid': not warnings, 'warnings': warnings, 'clampedInputs': clamped}


# ══════════════════════════════════════════════════════════════
#  PURE CALCULATORS
# ══════════════════════════════════════════════════════════════

def calculate_cost_benefit(inputs, scenario=None, assumptions=None):
    a = resolve(assumptions)
    m = a['multipliers']
    scenario = scenario or a['defaults']['scenario']
    hours = _num(inputs.get('hoursSaved'))
    rate = _num(inputs.get('loadedHourlyRate'), m['loadedHourlyRate'])
    loading = _num(inputs.get('benefitsLoading'), m['benefitsLoading'])
    realization = _num(inputs.get('costRealizationMultiplier'), m['costRealizationMultiplier'])
    maturity = _num(inputs.get('dataMaturityMultiplier'), m['dataMaturityMultiplier'])
    smult = scenario_multiplier(a, scenario)

    base_cost = hours * rate
    loaded_cost = base_cost * loading
    raw = max(0.0, loaded_cost * realization * maturity * smult)
    return {
        'value': _floor_to(raw, a['rounding']['benefitPrecision']),
        'trace': {
            'formula': 'HoursSaved × LoadedRate × BenefitsLoading × Realization × DataMaturity × Scenario',
            'inputs': {'hoursSaved': hours, 'loadedHourlyRate': rate, 'benefitsLoading': loading,
                       'costRealizationMultiplier': realization, 'dataMaturityMultiplier': maturity,
                       'scenario': scenario, 'scenarioMultiplier': smult},
            'intermediates': {'baseCost': base_cost, 'loadedCost': loaded_cost, 'rawValue': raw},
            'output': raw,
        },
    }


def calculate_revenue_benefit(inputs, scenario=None, assumptions=None):
    a = resolve(assumptions)
    m = a['multipliers']
    scenario = scenario or a['defaults']['scenario']
    uplift = _num(inputs.get('upliftPct'))
    at_risk = _num(inputs.get('baselineRevenueAtRisk'))
    margin = _num(inputs.get('marginPct'), m['revenueMarginPct'])
    realization = _num(inputs.get('revenueRealizationMultiplier'), m['revenueRealizationMultiplier'])
    maturity = _num(inputs.get('dataMaturityMultiplier'), m['dataMaturityMultiplier'])
    smult = scenario_multiplier(a, scenario)

    capped_uplift = min(uplift, a['inputBounds']['upliftPct']['max'])
    revenue_gain = capped_uplift * at_risk * margin
    raw = max(0.0, revenue_gain * realization * maturity * smult)
    return {
        'value': _floor_to(raw, a['rounding']['benefitPrecision']),
        'trace': {
            'formula': 'MIN(Uplift%, 50%) × RevenueAtRisk × Margin × Realization × DataMaturity × Scenario',
            'inputs': {'upliftPct': uplift, 'baselineRevenueAtRisk': at_risk, 'marginPct': margin,
                       'revenueRealizationMultiplier': realization, 'dataMaturityMultiplier': maturity,
                       'scenario': scenario, 'scenarioMultiplier': smult},
            'intermediates': {'cappedUplift': capped_uplift, 'revenueGain': revenue_gain, 'rawValue': raw},
            'output': raw,
        },
    }


def calculate_cashflow_benefit(inputs, scenario=None, assumptions=None):
    """Financing-cost saving on working capital released by faster cash
    conversion: AnnualRevenue × Days/365 × CostOfCapital, then discounted."""
    a = resolve(assumptions)
    m = a['multipliers']
    scenario = scenario or a['defaults']['scenario']
    days = _num(inputs.get('daysImprovement'))
    revenue = _num(inputs.get('annualRevenue'))
    if not revenue and inputs.get('dailyRevenue') is not None:
        revenue = _num(inputs.get('dailyRevenue')) * 365
    coc = _num(inputs.get('costOfCapital'), m['defaultCostOfCapital'])
    realization = _num(inputs.get('cashFlowRealizationMultiplier'), m['cashFlowRealizationMultiplier'])
    maturity = _num(inputs.get('dataMaturityMultiplier'), m['dataMaturityMultiplier'])
    smult = scenario_multiplier(a, scenario)

    working_capital_freed = revenue * (days / 365)
    financing_saved = working_capital_freed * coc
    raw = max(0.0, financing_saved * realization * maturity * smult)
    return {
        'value': _floor_to(raw, a['rounding']['benefitPrecision']),
        'trace': {
            'formula': 'AnnualRevenue × (DaysImproved / 365) × CostOfCapital × Realization × DataMaturity × Scenario',
            'inputs': {'daysImprovement': days, 'annualRevenue': revenue, 'costOfCapital': coc,
                       'cashFlowRealizationMultiplier': realization, 'dataMaturityMultiplier': maturity,
                       'scenario': scenario, 'scenarioMultiplier': smult},
            'intermediates': {'workingCapitalFreed': working_capital_freed,
                              'annualFinancingSaved': financing_saved, 'rawValue': raw},
            'output': raw,
        },
    }


def calculate_risk_benefit(inputs, scenario=None, assumptions=None):
    a = resolve(assumptions)
    m = a['multipliers']
    scenario = scenario or a['defaults']['scenario']
    p_before = _num(inputs.get('probBefore'))
    i_before = _num(inputs.get('impactBefore'))
    p_after = _num(inputs.get('probAfter'))
    i_after = _num(inputs.get('impactAfter'))
    realization = _num(inputs.get('riskRealizationMultiplier'), m['riskRealizationMultiplier'])
    maturity = _num(inputs.get('dataMaturityMultiplier'), m['dataMaturityMultiplier'])
    smult = scenario_multiplier(a, scenario)

    risk_before = p_before * i_before
    risk_after = p_after * i_after
    reduction = risk_before - risk_after
    max_reduction = risk_before * a['policy']['riskReductionCapPct']
    capped = max(0.0, min(reduction, max_reduction))
    raw = capped * realization * maturity * smult
    return {
        'value': _floor_to(raw, a['rounding']['benefitPrecision']),
        'trace': {
            'formula': 'MIN(RiskBefore - RiskAfter, 50% × RiskBefore) × Realization × DataMaturity × Scenario',
            'inputs': {'probBefore': p_before, 'impactBefore': i_before, 'probAfter': p_after,
                       'impactAfter': i_after, 'riskRealizationMultiplier': realization,
                       'dataMaturityMultiplier': maturity, 'scenario': scenario, 'scenarioMultiplier': smult},
            'intermediates': {'riskBefore': risk_before, 'riskAfter': risk_after, 'riskReduction': reduction,
                              'maxReduction': max_reduction, 'cappedReduction': capped, 'rawValue': raw},
            'output': raw,
        },
    }


# ══════════════════════════════════════════════════════════════
#  SAFE WRAPPERS (clamp to INPUT_BOUNDS, then calculate)
# ══════════════════════════════════════════════════════════════

SAFE_BOUNDED_KEYS = {
    'cost': ('hoursSaved', 'loadedHourlyRate', 'benefitsLoading', 'costRealizationMultiplier',
             'dataMaturityMultiplier'),
    'revenue': ('upliftPct', 'baselineRevenueAtRisk', 'marginPct', 'revenueRealizationMultiplier',
                'dataMaturityMultiplier'),
    'cashflow': ('daysImprovement', 'annualRevenue', 'costOfCapital', 'cashFlowRealizationMultiplier',
                 'dataMaturityMultiplier'),
    'risk': ('probBefore', 'impactBefore', 'probAfter', 'impactAfter', 'riskRealizationMultiplier',
             'dataMaturityMultiplier'),
}

CALCULATORS = {
    'cost': calculate_cost_benefit,
    'revenue': calculate_revenue_benefit,
    'cashflow': calculate_cashflow_benefit,
    'risk': calculate_risk_benefit,
}


def _safe(kind, inputs, scenario, assumptions):
    a = resolve(assumptions)
    bounded = {k: inputs[k] for k in SAFE_BOUNDED_KEYS[kind] if k in inputs}
    validation = validate_inputs(bounded, a['inputBounds'])
    result = CALCULATORS[kind]({**inputs, **validation['clampedInputs']}, scenario, a)
    result['validationWarnings'] = validation['warnings']
    result['inputsClamped'] = not validation['isValid']
    return result


def calculate_cost_benefit_safe(inputs, scenario=None, assumptions=None):
    return _safe('cost', inputs, scenario, assumptions)


def calculate_revenue_benefit_safe(inputs, scenario=None, assumptions=None):
    return _safe('revenue', inputs, scenario, assumptions)


def calculate_cashflow_benefit_safe(inputs, scenario=None, assumptions=None):
    return _safe('cashflow', inputs, scenario, assumptions)


def calculate_risk_benefit_safe(inputs, scenario=None, assumptions=None):
    return _safe('risk', inputs, scenario, assumptions)


def calculate_total_annual_value(benefits, annual_revenue=0, assumptions=None):
    """Sum of the four benefits, capped at the portfolio share of revenue."""
    a = resolve(assumptions)
    cost, rev = _num(benefits.get('costBenefit')), _num(benefits.get('revenueBenefit'))
    cf, risk = _num(benefits.get('cashFlowBenefit')), _num(benefits.get('riskBenefit'))
    total = cost + rev + cf + risk
    cap = annual_revenue * a['policy']['benefitsCapPct'] if annual_revenue > 0 else None
    capped = cap is not None and total > cap
    return {
        'value': cap if capped else total,
        'isCapped': capped,
        'trace': {
            'formula': 'MIN(Cost + Revenue + CashFlow + Risk, BenefitsCap% × AnnualRevenue)',
            'inputs': {'costBenefit': cost, 'revenueBenefit': rev, 'cashFlowBenefit': cf, 'riskBenefit': risk,
                       'annualRevenue': annual_revenue},
            'intermediates': {'uncappedTotal': total, 'cap': cap},
            'output': cap if capped else total,
        },
    }


# ══════════════════════════════════════════════════════════════
#  TOKENS
# ══════════════════════════════════════════════════════════════

def calculate_token_cost(runs_per_month, input_tokens_per_run, output_tokens_per_run, assumptions=None):
    a = resolve(assumptions)
    m = a['multipliers']
    runs = _num(runs_per_month)
    monthly_in = runs * _num(input_tokens_per_run)
    monthly_out = runs * _num(output_tokens_per_run)
    in_cost = monthly_in / 1_000_000 * m['inputTokenPricePerM']
    out_cost = monthly_out / 1_000_000 * m['outputTokenPricePerM']
    annual = 12 * (in_cost + out_cost)
    return {
        'value': round(annual, a['rounding']['tokenDecimals']),
        'monthlyTokens': monthly_in + monthly_out,
        'trace': {
            'formula': '12 × ((MonthlyInputTokens/1M × InputPrice) + (MonthlyOutputTokens/1M × OutputPrice))',
            'inputs': {'runsPerMonth': runs, 'inputTokensPerRun': _num(input_tokens_per_run),
                       'outputTokensPerRun': _num(output_tokens_per_run),
                       'inputTokenPricePerM': m['inputTokenPricePerM'],
                       'outputTokenPricePerM': m['outputTokenPricePerM']},
            'intermediates': {'monthlyInputTokens': monthly_in, 'monthlyOutputTokens': monthly_out,
                              'monthlyInputCost': in_cost, 'monthlyOutputCost': out_cost},
            'output': annual,
        },
    }


def calculate_value_per_million_tokens(total_annual_value, total_monthly_tokens):
    millions = _num(total_monthly_tokens) / 1_000_000
    return round(total_annual_value / millions) if millions > 0 else 0


# ══════════════════════════════════════════════════════════════
#  FRICTION
# ══════════════════════════════════════════════════════════════

def calculate_friction_cost(loaded_hourly_rate, annual_hours=None, headcount=None,
                            friction_pct=None, assumptions=None):
    a = resolve(assumptions)
    hours_per_fte = a['policy']['hoursPerFTE']
    if annual_hours is not None and annual_hours > 0:
        hours, formula = annual_hours, 'AnnualHours × LoadedHourlyRate'
    elif headcount is not None and friction_pct is not None:
        hours, formula = headcount * hours_per_fte * friction_pct, 'Headcount × HoursPerFTE × Friction% × LoadedHourlyRate'
    elif headcount is not None:
        hours, formula = headcount * hours_per_fte, 'Headcount × HoursPerFTE × LoadedHourlyRate'
    else:
        return {'value': 0, 'trace': {'formula': 'Unable to calculate: missing hours or headcount',
                                      'inputs': {'annualHours': annual_hours or 0,
                                                 'loadedHourlyRate': loaded_hourly_rate},
                                      'intermediates': {}, 'output': 0}}

    hours = min(hours, a['inputBounds']['annualHours']['max'])
    raw = hours * loaded_hourly_rate
    return {
        'value': _floor_to(raw, a['rounding']['frictionPrecision']),
        'trace': {'formula': formula,
                  'inputs': {'annualHours': hours, 'loadedHourlyRate': loaded_hourly_rate,
                             'headcount': headcount or 0, 'hoursPerFTE': hours_per_fte,
                             'frictionPercentage': friction_pct or 0},
                  'intermediates': {'calculatedHours': hours, 'rawValue': raw},
                  'output': raw},
    }


def calculate_friction_severity(annual_cost, affects_revenue=False, affects_compliance=False,
                                affects_customer=False):
    if affects_revenue or affects_compliance or annual_cost >= 5_000_000:
        return 'Critical'
    if annual_cost >= 1_000_000 or affects_customer:
        return 'High'
    if annual_cost >= 250_000:
        return 'Medium'
    return 'Low'


def calculate_friction_recovery(friction_cost, use_case_benefit):
    if friction_cost <= 0:
        return {'recoveryAmount': 0, 'recoveryPct': 0, 'label': 'No friction link'}
    amount = min(use_case_benefit, friction_cost)
    pct = amount / friction_cost
    return {
        'recoveryAmount': amount,
        'recoveryPct': pct,
        'label': f"Recovers {format_money(amount)} ({pct * 100:.0f}%) of {format_money(friction_cost)} friction burden",
    }


# ══════════════════════════════════════════════════════════════
#  FORMATTING
# ══════════════════════════════════════════════════════════════

def _round_half_up(v):
    return int(math.floor(v + 0.5))


def format_money(value):
    """$1.2M / $450K / $45. Whole millions and billions drop the decimal."""
    rounded = _round_half_up(_num(value))
    if rounded < 0:
        return '-' + format_money(-rounded)
    if rounded >= 1_000_000_000:
        b = _round_half_up(rounded / 100_000_000) / 10
        return f'${int(b)}B' if b.is_integer() else f'${b:.1f}B'
    if rounded >= 1_000_000:
        m = _round_half_up(rounded / 100_000) / 10
        return f'${int(m)}M' if m.is_integer() else f'${m:.1f}M'
    if rounded >= 1_000:
        return f'${_round_half_up(rounded / 1_000)}K'
    return f'${rounded}'


def floor_money(value):
    """Floor to the precision format_money displays, so a cap never shows rounded up past itself."""
    v = _num(value)
    if v >= 1_000_000_000:
        return _floor_to(v, 100_000_000)
    if v >= 1_000_000:
        return _floor_to(v, 100_000)
    if v >= 1_000:
        return _floor_to(v, 1_000)
    return math.floor(v) if v > 0 else v


def format_hours(hours, include_label=True):
    suffix = ' hours' if include_label else ''
    rounded = _round_half_up(_num(hours))
    if rounded >= 1_000_000:
        m = _round_half_up(rounded / 1_000_000 * 10) / 10
        return f'{int(m):,}M{suffix}' if m.is_integer() else f'{m:.1f}M{suffix}'
    return f'{rounded:,}{suffix}'


# Formula-text renderers. They print inputs at full precision so that
# re-extracting a regenerated formula yields the same inputs.

def fmt_number(v):
    v = _num(v)
    if v.is_integer():
        return f'{int(v):,}'
    return f'{v:,.4f}'.rstrip('0').rstrip('.')


def fmt_factor(v):
    s = f'{_num(v):.4f}'.rstrip('0')
    head, _, tail = s.partition('.')
    return f'{head}.{tail.ljust(2, "0")}'


def fmt_pct(v):
    p = round(_num(v) * 100, 4)
    return f'{int(p)}%' if float(p).is_integer() else f'{p:g}%'
