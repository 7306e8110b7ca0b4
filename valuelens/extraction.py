"""
ValueLens: Formula Input Extractor

Turns the model's benefit formulas into calculator inputs. Structured labels
({"components": [{"label", "value"}]}) are read first; free-text formulas fall
back to magnitude heuristics. Only text LEFT of the first '=' is ever parsed,
the model's own arithmetic is discarded.
"""
import json
import logging
import math
import re

from valuelens.assumptions import resolve

NEGATION_MARKERS = ('no direct', 'no quantifiable', 'no additional', 'n/a', 'not applicable')

NO_VALUE_TEXT = {
    'cost': 'No direct cost reduction',
    'revenue': 'No direct revenue impact',
    'cashflow': 'No direct cash flow impact',
    'risk': 'No quantifiable risk reduction',
}

UNVALIDATED_SUFFIX = ' (could not validate)'

_NUMBER_RE = re.compile(r'[\d,]+\.?\d*[%MKB]?')
_LITERAL_RE = re.compile(r'(\d[\d,]*(?:\.\d+)?|\.\d+)\s*(%|[KMBkmb](?![A-Za-z]))?')
_LEADING_RE = re.compile(r'^-?(?:\d+\.?\d*|\.\d+)')
_HOURS_RE = re.compile(r'([\d,]+(?:\.\d+)?)\s*(?:hours|hrs)', re.IGNORECASE)
_RATE_RE = re.compile(r'\$([\d,]+(?:\.\d+)?)\s*/\s*(?:hr|hour)', re.IGNORECASE)

_SCALE = {'%': 0.01, 'K': 1e3, 'M': 1e6, 'B': 1e9}

# Ordered: the first key contained in a component label wins
LABEL_MAPS = {
    'cost': [
        ('hours', 'hoursSaved'),
        ('adoption', 'costRealizationMultiplier'),
        ('realization', 'costRealizationMultiplier'),
        ('hourly rate', 'loadedHourlyRate'),
        ('rate', 'loadedHourlyRate'),
        ('loading', 'benefitsLoading'),
        ('maturity', 'dataMaturityMultiplier'),
    ],
    'revenue': [
        ('uplift', 'upliftPct'),
        ('revenue at risk', 'baselineRevenueAtRisk'),
        ('pipeline', 'baselineRevenueAtRisk'),
        ('realization', 'revenueRealizationMultiplier'),
        ('maturity', 'dataMaturityMultiplier'),
    ],
    'cashflow': [
        ('annual revenue', 'annualRevenue'),
        ('revenue', 'annualRevenue'),
        ('days', 'daysImprovement'),
        ('capital', 'costOfCapital'),
        ('realization', 'cashFlowRealizationMultiplier'),
        ('maturity', 'dataMaturityMultiplier'),
    ],
    'risk': [
        ('reduction', 'riskReductionPct'),
        ('exposure', 'riskExposure'),
        ('realization', 'riskRealizationMultiplier'),
        ('maturity', 'dataMaturityMultiplier'),
    ],
}

# Keys that are rates; a bare "12" under one of these means 12%
_PERCENT_KEYS = ('upliftPct', 'riskReductionPct', 'costOfCapital')


# ══════════════════════════════════════════════════════════════
#  NUMBER PARSING
# ══════════════════════════════════════════════════════════════

def _finite(text):
    """float(text), or None when it overflows to infinity."""
    try:
        v = float(text)
    except OverflowError:
        return None
    return v if math.isfinite(v) else None


def _lenient_float(text):
    m = _LEADING_RE.match(text.strip())
    v = _finite(m.group(0)) if m else None
    return v if v is not None else 0.0


def parse_number(value):
    """'$1.2M' -> 1200000, '450K' -> 450000, '1,200' -> 1200. Unparseable -> 0."""
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        v = _finite(value)
        return v if v is not None else 0.0
    if not value:
        return 0.0
    cleaned = str(value).replace('$', '').replace(',', '').strip()
    if cleaned[-1:] in ('M', 'K', 'B'):
        v = _finite(_lenient_float(cleaned[:-1]) * _SCALE[cleaned[-1]])
        return v if v is not None else 0.0
    return _lenient_float(cleaned)


def parse_literal(value):
    """First numeric literal in a label value, honouring % / K / M / B."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return _finite(value)
    m = _LITERAL_RE.search(str(value or ''))
    if not m:
        return None
    num = _finite(m.group(1).replace(',', ''))
    if num is None:
        return None
    suffix = (m.group(2) or '').upper()
    return _finite(num * _SCALE[suffix]) if suffix else num


def is_no_value(text):
    if not text:
        return True
    low = str(text).lower().strip()
    return any(k in low for k in NEGATION_MARKERS) or low in ('$0', '0')


def extract_numbers(formula):
    """Positive literals left of the first '='."""
    if is_no_value(formula):
        return []
    lhs = str(formula).split('=')[0]
    out = []
    for tok in _NUMBER_RE.findall(lhs):
        suffix = tok[-1] if tok[-1] in _SCALE else ''
        digits = (tok[:-1] if suffix else tok).replace(',', '')
        if not digits or digits == '.':
            continue
        try:
            val = _finite(float(digits) * _SCALE.get(suffix, 1))
        except (ValueError, OverflowError):
            continue
        if val is not None and val > 0:
            out.append(val)
    return out


def mark_unvalidated(text):
    text = text or ''
    return text if text.endswith(UNVALIDATED_SUFFIX) else text + UNVALIDATED_SUFFIX


# ══════════════════════════════════════════════════════════════
#  STRUCTURED LABELS
# ══════════════════════════════════════════════════════════════

def _components(labels):
    if not labels:
        return None
    if isinstance(labels, str):
        try:
            labels = json.loads(labels)
        except ValueError:
            logging.info(f"Formula labels are not valid JSON, ignored: {labels[:60]}")
            return None
    if not isinstance(labels, dict) or not isinstance(labels.get('components'), list):
        return None
    return labels['components']


def read_labels(labels, label_map):
    comps = _components(labels)
    if not comps:
        return None
    result = {}
    for comp in comps:
        if not isinstance(comp, dict):
            continue
        val = parse_literal(comp.get('value'))
        if val is None:
            continue
        label = str(comp.get('label') or '').lower()
        for expected, key in label_map:
            if expected in label:
                if key in _PERCENT_KEYS and 1 < val <= 100:
                    val = val / 100
                result[key] = val
                break
    return result or None


def _risk_inputs(reduction, exposure, realization, maturity):
    return {
        'probBefore': 1.0, 'impactBefore': exposure,
        'probAfter': 1.0 - reduction, 'impactAfter': exposure,
        'riskRealizationMultiplier': realization, 'dataMaturityMultiplier': maturity,
    }


def inputs_from_labels(kind, labels, assumptions=None):
    m = resolve(assumptions)['multipliers']
    x = read_labels(labels, LABEL_MAPS[kind])
    if not x:
        return None
    if kind == 'cost':
        if not x.get('hoursSaved'):
            return None
        return {
            'hoursSaved': x['hoursSaved'],
            'loadedHourlyRate': x.get('loadedHourlyRate') or m['loadedHourlyRate'],
            'benefitsLoading': x.get('benefitsLoading') or m['benefitsLoading'],
            'costRealizationMultiplier': x.get('costRealizationMultiplier') or m['costRealizationMultiplier'],
            'dataMaturityMultiplier': x.get('dataMaturityMultiplier') or m['dataMaturityMultiplier'],
        }
    if kind == 'revenue':
        if not x.get('upliftPct') or not x.get('baselineRevenueAtRisk'):
            return None
        return {
            'upliftPct': x['upliftPct'],
            'baselineRevenueAtRisk': x['baselineRevenueAtRisk'],
            'marginPct': m['revenueMarginPct'],
            'revenueRealizationMultiplier': x.get('revenueRealizationMultiplier') or m['revenueRealizationMultiplier'],
            'dataMaturityMultiplier': x.get('dataMaturityMultiplier') or m['dataMaturityMultiplier'],
        }
    if kind == 'cashflow':
        if not x.get('annualRevenue') or not x.get('daysImprovement'):
            return None
        return {
            'annualRevenue': x['annualRevenue'],
            'daysImprovement': x['daysImprovement'],
            'costOfCapital': x.get('costOfCapital') or m['defaultCostOfCapital'],
            'cashFlowRealizationMultiplier': x.get('cashFlowRealizationMultiplier') or m['cashFlowRealizationMultiplier'],
            'dataMaturityMultiplier': x.get('dataMaturityMultiplier') or m['dataMaturityMultiplier'],
        }
    if not x.get('riskReductionPct') or not x.get('riskExposure'):
        return None
    return _risk_inputs(x['riskReductionPct'], x['riskExposure'],
                        x.get('riskRealizationMultiplier') or m['riskRealizationMultiplier'],
                        x.get('dataMaturityMultiplier') or m['dataMaturityMultiplier'])


# ══════════════════════════════════════════════════════════════
#  MAGNITUDE HEURISTICS (free-text formulas)
# ══════════════════════════════════════════════════════════════

def _decimals(nums):
    return [n for n in nums if 0 < n <= 1]


def cost_from_formula(formula, assumptions=None):
    """'28,000 hours × $50/hr × 1.35 × 0.90 × 0.75 = ...'

    Explicit 'N hours' / '$R/hr' win; otherwise >= 1000 is hours and [50, 500]
    is the rate. Decimals are right-aligned: the last is data maturity, the one
    before it realization; any earlier ones are savings fractions on hours.
    """
    m = resolve(assumptions)['multipliers']
    nums = extract_numbers(formula)
    if len(nums) < 2:
        return None
    lhs = str(formula).split('=')[0]
    hm, rm = _HOURS_RE.search(lhs), _RATE_RE.search(lhs)
    hours = _finite(hm.group(1).replace(',', '')) if hm else None
    rate = _finite(rm.group(1).replace(',', '')) if rm else None
    if hours is None:
        large = [n for n in nums if n >= 1000]
        hours = large[0] if large else None
    if not hours:
        return None
    if rate is None:
        mid = [n for n in nums if 50 <= n <= 500 and n != hours]
        rate = mid[-1] if mid else m['loadedHourlyRate']

    dec = _decimals(nums)
    realization, maturity = m['costRealizationMultiplier'], m['dataMaturityMultiplier']
    if len(dec) == 1:
        realization = dec[0]
    elif len(dec) >= 2:
        realization, maturity = dec[-2], dec[-1]
        for fraction in dec[:-2]:
            hours *= fraction
    return {
        'hoursSaved': hours, 'loadedHourlyRate': rate, 'benefitsLoading': m['benefitsLoading'],
        'costRealizationMultiplier': realization, 'dataMaturityMultiplier': maturity,
    }


def revenue_from_formula(formula, assumptions=None):
    m = resolve(assumptions)['multipliers']
    nums = extract_numbers(formula)
    if len(nums) < 2:
        return None
    dec = _decimals(nums)
    large = [n for n in nums if n >= 1_000_000]
    if not dec or not large:
        return None
    return {
        'upliftPct': dec[0],
        'baselineRevenueAtRisk': large[0],
        'marginPct': m['revenueMarginPct'],
        'revenueRealizationMultiplier': dec[1] if len(dec) > 1 else m['revenueRealizationMultiplier'],
        'dataMaturityMultiplier': dec[2] if len(dec) > 2 else m['dataMaturityMultiplier'],
    }


def cashflow_from_formula(formula, assumptions=None):
    m = resolve(assumptions)['multipliers']
    nums = extract_numbers(formula)
    if len(nums) < 2:
        return None
    dec = _decimals(nums)
    days = [n for n in nums if 1 <= n <= 365]
    large = [n for n in nums if n >= 1000]
    if not days or not large:
        return None
    return {
        'daysImprovement': days[0],
        'annualRevenue': large[0],
        'costOfCapital': dec[0] if dec else m['defaultCostOfCapital'],
        'cashFlowRealizationMultiplier': dec[1] if len(dec) > 1 else m['cashFlowRealizationMultiplier'],
        'dataMaturityMultiplier': dec[2] if len(dec) > 2 else m['dataMaturityMultiplier'],
    }


def risk_from_formula(formula, assumptions=None):
    """'25% × $40M exposure × 0.80 × 0.75': reduction r over exposure E."""
    m = resolve(assumptions)['multipliers']
    nums = extract_numbers(formula)
    if len(nums) < 2:
        return None
    dec = _decimals(nums)
    large = [n for n in nums if n >= 100_000]
    if not dec or not large:
        return None
    return _risk_inputs(dec[0], large[0],
                        dec[1] if len(dec) > 1 else m['riskRealizationMultiplier'],
                        dec[2] if len(dec) > 2 else m['dataMaturityMultiplier'])


FORMULA_PARSERS = {
    'cost': cost_from_formula,
    'revenue': revenue_from_formula,
    'cashflow': cashflow_from_formula,
    'risk': risk_from_formula,
}


def extract_inputs(kind, formula, labels=None, assumptions=None):
    """Returns (inputs, source) with source 'labels' | 'formula' | 'none' | 'unparsed'.

    'none' means the formula declares no benefit; 'unparsed' means the text
    could not be read and the benefit must be recorded as zero.
    """
    inputs = inputs_from_labels(kind, labels, assumptions)
    if inputs:
        return inputs, 'labels'
    if is_no_value(formula):
        return None, 'none'
    inputs = FORMULA_PARSERS[kind](formula, assumptions)
    if inputs:
        return inputs, 'formula'
    logging.warning(f"Could not parse {kind} formula, recording 0: {str(formula)[:80]}")
    return None, 'unparsed'
