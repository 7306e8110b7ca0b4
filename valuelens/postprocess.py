"""
ValueLens: Post-Processor
Deterministic correction pass over a model-generated 8-step assessment.

Flow (each stage feeds the next):
  schema migration -> taxonomy (steps 2/3/4) -> role rates -> friction costing (step 3)
  -> benefit re-derivation + hours cross-reference (step 5) -> per use case cap
  -> portfolio cap -> readiness + tokens (step 6) -> priority (step 7)
  -> scenarios, projection, dashboard

The input document is never mutated and nothing here raises on malformed
content: a value that cannot be derived is recorded as 0 with a warning.
"""
import logging

from valuelens.assumptions import resolve
from valuelens.capping import cap_portfolio, cap_use_case, row_total, totals
from valuelens.extraction import (
    NO_VALUE_TEXT, extract_inputs, mark_unvalidated, parse_literal, parse_number,
)
from valuelens.formulas import (
    calculate_cashflow_benefit_safe, calculate_cost_benefit_safe, calculate_risk_benefit_safe,
    calculate_revenue_benefit_safe, calculate_token_cost, calculate_value_per_million_tokens,
    fmt_factor, fmt_number, fmt_pct, format_money,
)
from valuelens.friction import (
    build_friction_lookup, friction_recovery, recalculate_frictions, total_friction_hours, validate_hours,
)
from valuelens.projection import format_irr, multi_year_projection, three_scenario_summary
from valuelens.roles import normalize_friction_roles
from valuelens.schema import (
    LEGACY_READINESS, get_step, is_legacy_readiness, migrate_document, set_step_data, step_data,
)
from valuelens.scoring import (
    clamp, normalize_values, priority_score, priority_tier, readiness_score, recommended_phase,
    rescale_legacy, ttv_score,
)
from valuelens.taxonomy import (
    annotate_formula, normalize_ai_primitive, normalize_function, normalize_sub_function,
    verify_function_consistency,
)

# kind, amount column, formula column, labels column, row key
BENEFIT_COLUMNS = [
    ('cost',     'Cost Benefit ($)',      'Cost Formula',      'Cost Formula Labels',      'costBenefit'),
    ('revenue',  'Revenue Benefit ($)',   'Revenue Formula',   'Revenue Formula Labels',   'revenueBenefit'),
    ('cashflow', 'Cash Flow Benefit ($)', 'Cash Flow Formula', 'Cash Flow Formula Labels', 'cashFlowBenefit'),
    ('risk',     'Risk Benefit ($)',      'Risk Formula',      'Risk Formula Labels',      'riskBenefit'),
]

SAFE_CALCULATORS = {
    'cost': calculate_cost_benefit_safe,
    'revenue': calculate_revenue_benefit_safe,
    'cashflow': calculate_cashflow_benefit_safe,
    'risk': calculate_risk_benefit_safe,
}

TOP_USE_CASES = 10


# ══════════════════════════════════════════════════════════════
#  HELPERS
# ══════════════════════════════════════════════════════════════

def company_context(document):
    """(annual revenue, total employees) from step 0; either may be 0."""
    s = get_step(document, 0)
    data = s.get('data') if s else None
    if isinstance(data, list):
        data = data[0] if data else None
    if not isinstance(data, dict):
        return 0.0, 0.0
    revenue = parse_number(data.get('Annual Revenue ($)') or data.get('Annual Revenue'))
    return revenue, parse_number(data.get('Total Employees'))


def render_formula(kind, result):
    """Formula text rebuilt from the inputs actually used, so it re-extracts to the same inputs."""
    i = result['trace']['inputs']
    rhs = f"= {format_money(result['trace']['output'])} → {format_money(result['value'])}"
    if kind == 'cost':
        lhs = (f"{fmt_number(i['hoursSaved'])} hours × ${fmt_number(i['loadedHourlyRate'])}/hr × "
               f"{fmt_factor(i['benefitsLoading'])} × {fmt_factor(i['costRealizationMultiplier'])} × "
               f"{fmt_factor(i['dataMaturityMultiplier'])}")
    elif kind == 'revenue':
        lhs = (f"{fmt_pct(i['upliftPct'])} × ${fmt_number(i['baselineRevenueAtRisk'])} × "
               f"{fmt_factor(i['revenueRealizationMultiplier'])} × {fmt_factor(i['dataMaturityMultiplier'])}")
    elif kind == 'cashflow':
        lhs = (f"{fmt_number(i['annualRevenue'])} × ({fmt_number(i['daysImprovement'])} / 365) × "
               f"{fmt_factor(i['costOfCapital'])} × {fmt_factor(i['cashFlowRealizationMultiplier'])} × "
               f"{fmt_factor(i['dataMaturityMultiplier'])}")
    else:
        lhs = (f"{fmt_pct(1 - i['probAfter'])} × ${fmt_number(i['impactBefore'])} × "
               f"{fmt_factor(i['riskRealizationMultiplier'])} × {fmt_factor(i['dataMaturityMultiplier'])}")
    return f'{lhs} {rhs}'


def probability_of_success(value, default):
    p = parse_literal(value)
    if p is None:
        return default
    if p > 1:
        p = p / 100
    return clamp(p, 0.0, 1.0)


def _normalize_taxonomy(records, primitives=False):
    out = []
    for rec in records:
        new = dict(rec)
        if isinstance(new.get('Function'), str):
            new['Function'] = normalize_function(new['Function'])
        if isinstance(new.get('Sub-Function'), str):
            new['Sub-Function'] = normalize_sub_function(new.get('Function') or '', new['Sub-Function'])
        if primitives and isinstance(new.get('AI Primitives'), str):
            new['AI Primitives'] = normalize_ai_primitive(new['AI Primitives'])
        out.append(new)
    return out


# ══════════════════════════════════════════════════════════════
#  STEP 5: BENEFITS
# ══════════════════════════════════════════════════════════════

def derive_benefits(record, target_friction, lookup, total_hours, assumptions):
    """Re-derive one use case's four benefits. Returns (new record, row, warnings)."""
    uc_id = record.get('ID')
    new = dict(record)
    row = {'id': uc_id, 'name': record.get('Use Case'), 'hoursSaved': 0}
    warnings = []

    for kind, _, formula_key, labels_key, row_key in BENEFIT_COLUMNS:
        row[row_key] = 0
        formula = record.get(formula_key)
        inputs, source = extract_inputs(kind, formula, record.get(labels_key), assumptions)
        if source == 'none':
            new[formula_key] = NO_VALUE_TEXT[kind]
            new[labels_key] = None
            continue
        if source == 'unparsed':
            new[formula_key] = mark_unvalidated(str(formula or ''))
            new[labels_key] = None
            warnings.append(f'{uc_id}: could not validate {kind} formula, recorded as $0')
            continue

        if kind == 'cost':
            hours, msg = validate_hours(inputs['hoursSaved'], uc_id, target_friction, lookup, total_hours,
                                        assumptions)
            inputs = {**inputs, 'hoursSaved': hours}
            if msg:
                warnings.append(msg)

        result = SAFE_CALCULATORS[kind](inputs, assumptions=assumptions)
        for w in result['validationWarnings']:
            msg = f'{uc_id} {kind}: {w}'
            logging.warning(msg)
            warnings.append(msg)

        text = render_formula(kind, result)
        new[formula_key] = text
        new[labels_key] = annotate_formula(text, kind)
        row[row_key] = result['value']
        if kind == 'cost':
            row['hoursSaved'] = result['trace']['inputs']['hoursSaved']

    return new, row, warnings


def write_benefits(record, row, default_probability):
    total = row_total(row)
    prob = probability_of_success(record.get('Probability of Success'), default_probability)
    new = dict(record)
    for _, amount_key, _, _, row_key in BENEFIT_COLUMNS:
        new[amount_key] = format_money(row[row_key])
    new['Total Annual Value ($)'] = format_money(total)
    new['Probability of Success'] = prob
    new['Expected Value ($)'] = format_money(total * prob)
    return new


# ══════════════════════════════════════════════════════════════
#  STEP 6: READINESS & TOKENS
# ══════════════════════════════════════════════════════════════

def _component(record, field, legacy, default):
    v = record.get(field)
    if v is None and field in LEGACY_READINESS:
        v = record.get(LEGACY_READINESS[field])
    if v is None:
        return default
    n = parse_number(v)
    return rescale_legacy(n) if legacy else clamp(round(n), 1, 10)


def build_readiness_record(record, assumptions):
    a = resolve(assumptions)
    default = a['defaults']['readinessComponent']
    legacy = is_legacy_readiness(record)
    oc = _component(record, 'Organizational Capacity', legacy, default)
    dq = _component(record, 'Data Availability & Quality', legacy, default)
    ti = _component(record, 'Technical Infrastructure', legacy, default)
    gov = _component(record, 'Governance', legacy, default)
    readiness = readiness_score(oc, dq, ti, gov, a)

    ttv = parse_number(record.get('Time To Value'))
    if ttv <= 0:
        ttv = a['defaults']['timeToValueMonths']
    tokens = calculate_token_cost(parse_number(record.get('Runs/Month')), parse_number(record.get('Input Tokens/Run')),
                                  parse_number(record.get('Output Tokens/Run')), a)
    out = {
        'ID': record.get('ID'),
        'Use Case': record.get('Use Case'),
        'Readiness Score': readiness['value'],
        'Organizational Capacity': oc,
        'Data Availability & Quality': dq,
        'Technical Infrastructure': ti,
        'Governance': gov,
        'Time To Value': ttv,
        'Monthly Tokens': tokens['monthlyTokens'],
        'Runs/Month': record.get('Runs/Month'),
        'Input Tokens/Run': record.get('Input Tokens/Run'),
        'Output Tokens/Run': record.get('Output Tokens/Run'),
        'Annual Token Cost': format_money(tokens['value']),
    }
    if record.get('Strategic Theme'):
        out['Strategic Theme'] = record['Strategic Theme']
    logging.info(f"Readiness: {out['ID']} OC={oc} DQ={dq} TI={ti} GOV={gov} -> {readiness['value']}"
                 f"{' (rescaled from 1-5)' if legacy else ''}")
    return out, tokens['monthlyTokens']


# ══════════════════════════════════════════════════════════════
#  STEP 7: PRIORITY
# ══════════════════════════════════════════════════════════════

def _stub(record):
    return {'ID': record.get('ID'), 'Use Case': record.get('Use Case'),
            'Strategic Theme': record.get('Strategic Theme')}


def build_priority_records(step7, benefit_totals, readiness_by_id, assumptions):
    """Scores over the step 7 record order; the min-max uses every record's total."""
    d = resolve(assumptions)['defaults']
    values = [benefit_totals.get(r.get('ID'), 0) for r in step7]
    normalized = normalize_values(values)
    out = []
    for rec, nv in zip(step7, normalized):
        s6 = readiness_by_id.get(rec.get('ID')) or {}
        rs = s6.get('Readiness Score', d['readinessComponent'])
        ttv = s6.get('Time To Value', d['timeToValueMonths'])
        ps = priority_score(rs, nv)['value']
        entry = {
            'ID': rec.get('ID'),
            'Use Case': rec.get('Use Case'),
            'Priority Tier': priority_tier(ps, nv, rs),
            'Recommended Phase': recommended_phase(ps, rs),
            'Priority Score': ps,
            'Readiness Score': rs,
            'Value Score': nv,
            'TTV Score': round(ttv_score(ttv), 2),
        }
        if rec.get('Strategic Theme'):
            entry['Strategic Theme'] = rec['Strategic Theme']
        out.append(entry)
        logging.info(f"Priority: {entry['ID']} readiness={rs} value={nv} -> {ps} "
                     f"{entry['Priority Tier']} ({entry['Recommended Phase']})")
    return out


# ══════════════════════════════════════════════════════════════
#  PIPELINE
# ══════════════════════════════════════════════════════════════

def run_postprocess(document, assumptions=None):
    """Corrected copy of the document plus audit fields. A document without
    step 5 use cases comes back unchanged."""
    a = resolve(assumptions)
    if not isinstance(document, dict) or not step_data(document, 5):
        logging.warning("Post-process: no step 5 benefit records, returning document unchanged")
        return document

    doc = migrate_document(document)
    revenue, employees = company_context(doc)
    logging.info(f"Post-process: revenue {format_money(revenue)}, employees {employees:,.0f}")

    # ── Taxonomy ──
    kpis = _normalize_taxonomy(step_data(doc, 2))
    if get_step(doc, 2):
        set_step_data(doc, 2, kpis)
    frictions = _normalize_taxonomy(step_data(doc, 3))

    # ── Friction costing (roles first: rates feed the cost) ──
    frictions, role_verification = normalize_friction_roles(frictions, a)
    frictions, friction_costs, friction_warnings = recalculate_frictions(frictions, a)
    if get_step(doc, 3):
        set_step_data(doc, 3, frictions)
    total_friction_cost = sum(friction_costs.values())

    use_cases = _normalize_taxonomy(step_data(doc, 4), primitives=True)
    if get_step(doc, 4):
        set_step_data(doc, 4, use_cases)
    verify_function_consistency(kpis, frictions, use_cases)

    lookup = build_friction_lookup(frictions)
    total_hours = total_friction_hours(lookup)
    targets = {uc.get('ID'): uc.get('Target Friction') for uc in use_cases}

    # ── Step 5: derive, then cap per use case ──
    step5, rows, uc_warnings = [], [], []
    for rec in step_data(doc, 5):
        new, row, warnings = derive_benefits(rec, targets.get(rec.get('ID')), lookup, total_hours, a)
        row, cap_msg = cap_use_case(row, revenue, a)
        if cap_msg:
            warnings.append(cap_msg)
        step5.append(new)
        rows.append(row)
        uc_warnings.extend(warnings)

    portfolio = cap_portfolio(rows, revenue, employees, a)
    rows = portfolio['rows']
    step5 = [write_benefits(rec, row, a['defaults']['probabilityOfSuccess']) for rec, row in zip(step5, rows)]
    set_step_data(doc, 5, step5)
    benefit_totals = {row['id']: row_total(row) for row in rows}
    t = totals(rows)

    recovery = friction_recovery(use_cases, friction_costs, benefit_totals)

    # ── Step 6 ──
    step6_in = step_data(doc, 6)
    known = {r.get('ID') for r in step6_in}
    missing6 = [_stub(r) for r in step5 if r.get('ID') not in known]
    if missing6:
        logging.info(f"Step 6 recovery: synthesized {len(missing6)} records from step 5")
    step6, total_tokens = [], 0
    for rec in step6_in + missing6:
        out, monthly = build_readiness_record(rec, a)
        step6.append(out)
        total_tokens += monthly
    set_step_data(doc, 6, step6)
    readiness_by_id = {r['ID']: r for r in step6}

    # ── Step 7 ──
    step7_in = step_data(doc, 7)
    known = {r.get('ID') for r in step7_in}
    missing7 = [_stub(r) for r in step5 if r.get('ID') not in known]
    if missing7:
        logging.info(f"Step 7 recovery: synthesized {len(missing7)} records from step 5")
    step7 = build_priority_records(step7_in + missing7, benefit_totals, readiness_by_id, a)
    set_step_data(doc, 7, step7)

    # ── Portfolio outputs ──
    impl_cost = total_friction_cost * a['projection']['implementationCostRatio']
    scenarios = three_scenario_summary(t['total'], impl_cost, a)
    projection = multi_year_projection(t['total'], impl_cost, assumptions=a)
    logging.info(f"Scenarios: {scenarios['headline']}")

    ranked = sorted(step7, key=lambda r: r['Priority Score'], reverse=True)[:TOP_USE_CASES]
    top = [{
        'rank': i + 1,
        'useCase': r.get('Use Case'),
        'priorityScore': r['Priority Score'],
        'monthlyTokens': (readiness_by_id.get(r['ID']) or {}).get('Monthly Tokens', 0),
        'annualValue': benefit_totals.get(r['ID'], 0),
    } for i, r in enumerate(ranked)]

    doc['validationWarnings'] = friction_warnings + uc_warnings + portfolio['warnings']
    doc['benefitsCapped'] = portfolio['benefitsCapped']
    doc['capScaleFactor'] = portfolio['capScaleFactor']
    doc['frictionRecovery'] = recovery
    doc['roleVerification'] = role_verification
    doc['scenarioAnalysis'] = {
        sc: {'annualBenefit': format_money(v['totalBenefit']), 'npv': format_money(v['npv']),
             'paybackMonths': v['paybackMonths']}
        for sc, v in scenarios.items() if sc != 'headline'
    }
    doc['multiYearProjection'] = {
        'npv': format_money(projection['npv']),
        'paybackMonths': projection['paybackMonths'],
        'irr': format_irr(projection['irr']),
        'totalBenefitOverPeriod': format_money(projection['totalBenefitOverPeriod']),
    }
    doc['executiveDashboard'] = {
        'totalRevenueBenefit': t['revenueBenefit'],
        'totalCostBenefit': t['costBenefit'],
        'totalCashFlowBenefit': t['cashFlowBenefit'],
        'totalRiskBenefit': t['riskBenefit'],
        'totalAnnualValue': t['total'],
        'totalMonthlyTokens': total_tokens,
        'valuePerMillionTokens': calculate_value_per_million_tokens(t['total'], total_tokens),
        'topUseCases': top,
    }
    logging.info(f"Dashboard: total {format_money(t['total'])} (cost {format_money(t['costBenefit'])}, "
                 f"revenue {format_money(t['revenueBenefit'])}, cash flow {format_money(t['cashFlowBenefit'])}, "
                 f"risk {format_money(t['riskBenefit'])}), {len(doc['validationWarnings'])} warnings")
    return doc
