"""
ValueLens: Aggregation & Capping

Folds over immutable use-case benefit rows. Each row is a dict:
    {id, name, costBenefit, revenueBenefit, cashFlowBenefit, riskBenefit, hoursSaved}
Caps never mutate a row; they return new rows plus the warnings raised.
"""
import logging

from valuelens.assumptions import resolve
from valuelens.formulas import floor_money, format_money

BENEFIT_KEYS = ('costBenefit', 'revenueBenefit', 'cashFlowBenefit', 'riskBenefit')


def row_total(row):
    return sum(row[k] for k in BENEFIT_KEYS)


def scale_row(row, factor):
    return {**row, **{k: row[k] * factor for k in BENEFIT_KEYS}}


def totals(rows):
    t = {k: sum(r[k] for r in rows) for k in BENEFIT_KEYS}
    t['total'] = sum(t[k] for k in BENEFIT_KEYS)
    t['hoursSaved'] = sum(r.get('hoursSaved') or 0 for r in rows)
    return t


# ══════════════════════════════════════════════════════════════
#  PER USE CASE
# ══════════════════════════════════════════════════════════════

def cap_use_case(row, annual_revenue, assumptions=None):
    """Scale all four benefits so the row total stays within the per-use-case share of revenue."""
    pct = resolve(assumptions)['policy']['perUseCaseCapPct']
    if annual_revenue <= 0:
        return row, None
    cap = floor_money(annual_revenue * pct)
    total = row_total(row)
    if total <= cap:
        return row, None
    scale = cap / total
    msg = (f'[PER-UC CAP] {row["id"]} "{row.get("name") or ""}": Total {format_money(total)} exceeds '
           f'{pct * 100:.0f}% of revenue ({format_money(cap)}). Scaling by {scale:.3f}.')
    logging.warning(msg)
    return scale_row(row, scale), msg


# ══════════════════════════════════════════════════════════════
#  PORTFOLIO
# ══════════════════════════════════════════════════════════════

def cross_validate(rows, annual_revenue, total_employees=0, assumptions=None):
    """Double-counting checks over the whole portfolio plus the global scale factor."""
    policy = resolve(assumptions)['policy']
    t = totals(rows)
    warnings = []
    benefits_ratio = t['total'] / annual_revenue if annual_revenue > 0 else 0
    revenue_ratio = t['revenueBenefit'] / annual_revenue if annual_revenue > 0 else 0

    if annual_revenue > 0 and benefits_ratio > policy['benefitsCapPct']:
        warnings.append(f"Total benefits ({format_money(t['total'])}) exceed {policy['benefitsCapPct'] * 100:.0f}% "
                        f"of annual revenue ({format_money(annual_revenue)}). Benefits will be proportionally scaled.")
    if annual_revenue > 0 and revenue_ratio > policy['revenueConcentrationPct']:
        warnings.append(f"Total revenue benefits ({format_money(t['revenueBenefit'])}) exceed "
                        f"{policy['revenueConcentrationPct'] * 100:.0f}% of annual revenue. "
                        f"This may indicate double-counting across use cases.")

    fte = t['hoursSaved'] / policy['hoursPerFTE']
    fte_ratio = fte / total_employees if total_employees > 0 else 0
    if total_employees > 0 and fte_ratio > policy['fteHeadcountPct']:
        warnings.append(f"Total hours saved ({t['hoursSaved']:,.0f}) implies {fte:.0f} FTE equivalents, more than "
                        f"{policy['fteHeadcountPct'] * 100:.0f}% of {total_employees:,.0f} employees. "
                        f"Verify for double-counting.")

    cap = floor_money(annual_revenue * policy['benefitsCapPct']) if annual_revenue > 0 else None
    scale = cap / t['total'] if cap is not None and t['total'] > cap else 1.0
    for w in warnings:
        logging.warning(w)
    return {
        'warnings': warnings,
        'metrics': {
            'totalBenefitsVsRevenue': benefits_ratio,
            'totalRevenueBenefitVsRevenue': revenue_ratio,
            'totalFTESavingsVsHeadcount': fte_ratio,
            'benefitsCapped': scale < 1.0,
            'scaleFactor': scale,
        },
    }


def cap_portfolio(rows, annual_revenue, total_employees=0, assumptions=None):
    """One global scale factor when the portfolio exceeds its share of revenue."""
    capped, warnings = list(rows), []
    scale = 1.0
    if annual_revenue > 0:
        check = cross_validate(capped, annual_revenue, total_employees, assumptions)
        warnings.extend(check['warnings'])
        scale = check['metrics']['scaleFactor']
        if scale < 1.0:
            logging.info(f"Benefits capped: scale factor = {scale:.2f}")
            capped = [scale_row(r, scale) for r in capped]

    return {'rows': capped, 'warnings': warnings, 'benefitsCapped': scale < 1.0, 'capScaleFactor': scale}


def cap_benefits(rows, annual_revenue, total_employees=0, assumptions=None):
    """Per-use-case caps, then the portfolio cap."""
    capped, warnings = [], []
    for row in rows:
        new_row, msg = cap_use_case(row, annual_revenue, assumptions)
        capped.append(new_row)
        if msg:
            warnings.append(msg)
    result = cap_portfolio(capped, annual_revenue, total_employees, assumptions)
    return {**result, 'warnings': warnings + result['warnings']}
