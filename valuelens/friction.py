"""
ValueLens: Friction Costing & Cross-Reference

Step 3 friction points are re-costed as hours x role rate (role rates are
set by roles.normalize_friction_roles, which must run first). The resulting
hours become ground truth for the step 5 cost benefits: a use case claiming
more than the hours ceiling is pulled back to the hours of the friction
point it targets.
"""
import logging
import re

from valuelens.assumptions import resolve
from valuelens.extraction import mark_unvalidated, parse_literal, parse_number
from valuelens.formulas import (
    calculate_friction_cost, calculate_friction_recovery, calculate_friction_severity,
    fmt_number, format_hours, format_money,
)

_HOURS_RE = re.compile(r'([\d,]+(?:\.\d+)?)\s*(?:hours|hrs)', re.IGNORECASE)
_COST_RE = re.compile(r'\$([\d,]+(?:\.\d+)?)\s*(M|K)?', re.IGNORECASE)

REVENUE_WORDS = ('revenue', 'sales')
COMPLIANCE_WORDS = ('compliance', 'regulatory', 'legal')
CUSTOMER_WORDS = ('customer', 'client')


def _rate(v):
    if isinstance(v, (int, float)) and not isinstance(v, bool):
        return float(v)
    return parse_number(str(v or '').replace('/hr', '').replace('/hour', ''))


def hours_from_cost_text(text, default_rate):
    """Hours from '12,000 hours × $85/hr' or, failing that, a '$1.2M' total at the default rate."""
    if not text or 'no ' in text.lower() or text.strip() == '$0':
        return None
    hm = _HOURS_RE.search(text)
    if hm:
        return float(hm.group(1).replace(',', ''))
    cm = _COST_RE.search(text)
    if cm:
        total = float(cm.group(1).replace(',', ''))
        unit = (cm.group(2) or '').upper()
        total *= {'M': 1_000_000, 'K': 1_000}.get(unit, 1)
        return total / default_rate if default_rate else None
    return None


def impact_flags(driver_impact):
    text = (driver_impact or '').lower()
    return {
        'affects_revenue': any(w in text for w in REVENUE_WORDS),
        'affects_compliance': any(w in text for w in COMPLIANCE_WORDS),
        'affects_customer': any(w in text for w in CUSTOMER_WORDS),
    }


# ══════════════════════════════════════════════════════════════
#  STEP 3 RECALCULATION
# ══════════════════════════════════════════════════════════════

def recalculate_friction(record, assumptions=None):
    a = resolve(assumptions)
    default_rate = a['multipliers']['loadedHourlyRate']
    name = str(record.get('Friction Point') or '')
    warnings = []

    rate = _rate(record.get('Hourly Rate'))
    if not rate:
        rate = _rate(record.get('Loaded Hourly Rate'))
    if not rate:
        rate = default_rate
        msg = f'No role-specific rate for friction "{name[:40]}", using ${fmt_number(default_rate)}/hr'
        logging.warning(msg)
        warnings.append(msg)

    hours = parse_number(record.get('Annual Hours'))
    if not hours:
        hours = hours_from_cost_text(str(record.get('Estimated Annual Cost ($)') or ''), default_rate) or 0

    if hours > 0:
        result = calculate_friction_cost(rate, annual_hours=hours, assumptions=a)
    elif record.get('Headcount') is not None:
        pct = parse_literal(record.get('Friction %'))
        if pct is not None and pct > 1:
            pct = pct / 100
        result = calculate_friction_cost(rate, headcount=parse_number(record.get('Headcount')),
                                         friction_pct=pct,
                                         assumptions=a)
    else:
        cost_text = str(record.get('Estimated Annual Cost ($)') or '')
        msg = f'Could not cost friction "{name[:40]}": no hours or headcount in "{cost_text[:60]}"'
        logging.warning(msg)
        warnings.append(msg)
        return {'value': 0, 'formulaText': mark_unvalidated(cost_text), 'annualHours': 0,
                'loadedHourlyRate': rate, 'severity': 'Low', 'warnings': warnings}

    hours = result['trace']['inputs']['annualHours']
    severity = calculate_friction_severity(result['value'], **impact_flags(record.get('Primary Driver Impact')))
    formula = (f"{format_hours(hours)} × ${fmt_number(rate)}/hr = "
               f"{format_money(result['trace']['output'])} → {format_money(result['value'])}")
    return {'value': result['value'], 'formulaText': formula, 'annualHours': hours,
            'loadedHourlyRate': rate, 'severity': severity, 'warnings': warnings}


def recalculate_frictions(records, assumptions=None):
    """New step 3 records plus {friction point: cost} and the warnings raised."""
    out, costs, warnings = [], {}, []
    for rec in records:
        r = recalculate_friction(rec, assumptions)
        warnings.extend(r['warnings'])
        fp = str(rec.get('Friction Point') or '')
        costs[fp] = r['value']
        out.append({
            **rec,
            'Estimated Annual Cost ($)': format_money(r['value']),
            'Cost Formula': r['formulaText'],
            'Annual Hours': int(r['annualHours']) if float(r['annualHours']).is_integer() else r['annualHours'],
            'Hourly Rate': r['loadedHourlyRate'],
            'Severity': r['severity'],
        })
        logging.info(f"Friction: {fp[:30]} = {format_money(r['value'])} ({r['severity']}) "
                     f"[${fmt_number(r['loadedHourlyRate'])}/hr, {rec.get('Role') or 'unknown'}]")
    logging.info(f"Total friction cost: {format_money(sum(costs.values()))}")
    return out, costs, warnings


# ══════════════════════════════════════════════════════════════
#  CROSS-REFERENCE
# ══════════════════════════════════════════════════════════════

def _key(name):
    return str(name or '').strip().lower()


def build_friction_lookup(records):
    """{normalized friction point: {frictionPoint, actualHours, loadedHourlyRate}} for hours > 0."""
    lookup = {}
    for rec in records:
        fp = str(rec.get('Friction Point') or '')
        hours = parse_number(rec.get('Annual Hours'))
        if fp and hours > 0:
            lookup[_key(fp)] = {'frictionPoint': fp, 'actualHours': hours,
                                'loadedHourlyRate': _rate(rec.get('Hourly Rate'))}
    return lookup


def total_friction_hours(lookup):
    return sum(e['actualHours'] for e in lookup.values())


def validate_hours(hours, use_case_id, target_friction, lookup, total_hours, assumptions=None):
    """Returns (hours to use, warning or None)."""
    ceiling = resolve(assumptions)['inputBounds']['hoursSaved']['max']
    if hours <= ceiling:
        return hours, None

    match = lookup.get(_key(target_friction)) if target_friction else None
    if match:
        msg = (f"[SANITY CHECK] {use_case_id}: formula claimed {fmt_number(hours)} hours, but friction "
               f"data shows {fmt_number(match['actualHours'])} hours for \"{str(target_friction)[:50]}\". "
               f"Using friction hours.")
        logging.warning(msg)
        return match['actualHours'], msg

    limit = total_hours if total_hours > 0 else ceiling
    capped = min(hours, limit, ceiling)
    msg = (f"[SANITY CHECK] {use_case_id}: formula claimed {fmt_number(hours)} hours, capped to "
           f"{fmt_number(capped)} (friction total {fmt_number(total_hours)}, ceiling {fmt_number(ceiling)}).")
    logging.warning(msg)
    return capped, msg


# ══════════════════════════════════════════════════════════════
#  RECOVERY
# ══════════════════════════════════════════════════════════════

def friction_recovery(use_cases, friction_costs, benefit_totals):
    """Group use cases by the friction point they target.

    friction_costs: {friction point: cost}; benefit_totals: {use case id: total}.
    """
    costs = {_key(k): (k, v) for k, v in friction_costs.items()}
    grouped = {}
    for uc in use_cases:
        target = str(uc.get('Target Friction') or '')
        if not target or _key(target) not in costs:
            continue
        fp, cost = costs[_key(target)]
        uc_id = uc.get('ID')
        if not cost or uc_id not in benefit_totals:
            continue
        rec = calculate_friction_recovery(cost, benefit_totals[uc_id])
        grouped.setdefault(fp, []).append({
            'useCaseId': uc_id,
            'useCaseName': uc.get('Use Case') or uc.get('Use Case Name'),
            'recoveryAmount': rec['recoveryAmount'],
            'recoveryPct': rec['recoveryPct'],
            'label': rec['label'],
        })
        logging.info(f"Friction recovery: {uc_id} {rec['label']}")
    return [{'frictionPoint': fp, 'recoveries': recs} for fp, recs in grouped.items()]
