"""
ValueLens: Assumptions & Policy Bounds
Every constant the post-processor relies on (input bounds, default multipliers,
scenario curves, rounding, caps, role-rate overrides) lives in ONE read-only
mapping. Engines receive it as an argument; overrides build a new mapping.
"""
import copy
import logging
from types import MappingProxyType

SCENARIOS = ('conservative', 'moderate', 'aggressive')

# ── Scenario multipliers (applied to every benefit) ──
SCENARIO_MULTIPLIERS = {
    'conservative': 0.60,
    'moderate':     1.00,
    'aggressive':   1.30,
}

# ── Adoption curves: share of full benefit realised in Y1 / Y2 / Y3+ ──
ADOPTION_CURVES = {
    'conservative': {'y1': 0.25, 'y2': 0.50, 'y3': 0.70},
    'moderate':     {'y1': 0.40, 'y2': 0.65, 'y3': 0.85},
    'aggressive':   {'y1': 0.55, 'y2': 0.80, 'y3': 0.95},
}

# ── Hard input bounds: values outside are clamped, never rejected ──
INPUT_BOUNDS = {
    'hoursSaved':            {'min': 0,    'max': 500_000,         'label': 'Hours Saved'},
    'loadedHourlyRate':      {'min': 25,   'max': 500,             'label': 'Loaded Hourly Rate'},
    'upliftPct':             {'min': 0,    'max': 0.50,            'label': 'Revenue Uplift %'},
    'baselineRevenueAtRisk': {'min': 0,    'max': 500_000_000_000, 'label': 'Baseline Revenue at Risk'},
    'daysImprovement':       {'min': 0,    'max': 365,             'label': 'Days Improvement'},
    'annualRevenue':         {'min': 0,    'max': 500_000_000_000, 'label': 'Annual Revenue'},
    'costOfCapital':         {'min': 0.01, 'max': 0.25,            'label': 'Cost of Capital'},
    'probBefore':            {'min': 0,    'max': 1,               'label': 'Probability Before'},
    'probAfter':             {'min': 0,    'max': 1,               'label': 'Probability After'},
    'impactBefore':          {'min': 0,    'max': 10_000_000_000,  'label': 'Impact Before'},
    'impactAfter':           {'min': 0,    'max': 10_000_000_000,  'label': 'Impact After'},
    'runsPerMonth':          {'min': 0,    'max': 10_000_000,      'label': 'Runs per Month'},
    'annualHours':           {'min': 0,    'max': 500_000,         'label': 'Annual Hours'},
    # multipliers, usually read from formula labels
    'benefitsLoading':               {'min': 1,    'max': 2,    'label': 'Benefits Loading'},
    'marginPct':                     {'min': 0,    'max': 1,    'label': 'Revenue Margin %'},
    'costRealizationMultiplier':     {'min': 0.01, 'max': 1,    'label': 'Cost Realization'},
    'revenueRealizationMultiplier':  {'min': 0.01, 'max': 1,    'label': 'Revenue Realization'},
    'cashFlowRealizationMultiplier': {'min': 0.01, 'max': 1,    'label': 'Cash Flow Realization'},
    'riskRealizationMultiplier':     {'min': 0.01, 'max': 1,    'label': 'Risk Realization'},
    'dataMaturityMultiplier':        {'min': 0.60, 'max': 1.00, 'label': 'Data Maturity'},
}

DEFAULT_MULTIPLIERS = {
    'loadedHourlyRate': 150,
    'benefitsLoading': 1.35,
    'dataMaturityMultiplier': 0.75,
    'revenueRealizationMultiplier': 0.95,
    'costRealizationMultiplier': 0.90,
    'cashFlowRealizationMultiplier': 0.85,
    'riskRealizationMultiplier': 0.80,
    'defaultCostOfCapital': 0.08,
    'revenueMarginPct': 1.0,
    'inputTokenPricePerM': 3.00,
    'outputTokenPricePerM': 15.00,
}

ROUNDING = {
    'benefitPrecision': 100_000,   # benefits floored to $100K
    'frictionPrecision': 10_000,   # friction costs floored to $10K
    'tokenDecimals': 2,
}

# ── Revenue-relative policy caps & cross-validation thresholds ──
POLICY = {
    'perUseCaseCapPct': 0.15,
    'benefitsCapPct': 0.50,
    'riskReductionCapPct': 0.50,
    'revenueConcentrationPct': 0.30,
    'fteHeadcountPct': 0.20,
    'hoursPerFTE': 2080,
}

DATA_MATURITY_LEVELS = {
    1: {'label': 'Ad-hoc',      'multiplier': 0.60},
    2: {'label': 'Repeatable',  'multiplier': 0.75},
    3: {'label': 'Defined',     'multiplier': 0.85},
    4: {'label': 'Managed',     'multiplier': 0.95},
    5: {'label': 'Optimizing',  'multiplier': 1.00},
}

READINESS_WEIGHTS = {
    'organizationalCapacity': 0.30,
    'dataAvailabilityQuality': 0.30,
    'technicalInfrastructure': 0.20,
    'governance': 0.20,
}

PROJECTION = {
    'discountRate': 0.10,
    'years': 5,
    'implementationSplit': (0.60, 0.30, 0.10),
    'implementationCostRatio': 0.50,   # implementation cost proxy = 50% of friction cost
    'headlineScenario': 'conservative',
}

DEFAULTS = {
    'scenario': 'moderate',
    'probabilityOfSuccess': 0.75,
    'timeToValueMonths': 6,
    'readinessComponent': 5,
    'roleId': 'ROLE_PRO_BIZ_ANALYST',
    'roleRate': 75,
}


def _default_tree():
    return {
        'scenarioMultipliers': SCENARIO_MULTIPLIERS,
        'adoptionCurves': ADOPTION_CURVES,
        'inputBounds': INPUT_BOUNDS,
        'multipliers': DEFAULT_MULTIPLIERS,
        'rounding': ROUNDING,
        'policy': POLICY,
        'dataMaturityLevels': DATA_MATURITY_LEVELS,
        'readinessWeights': READINESS_WEIGHTS,
        'projection': PROJECTION,
        'defaults': DEFAULTS,
        'roleRates': {},
    }


def freeze(obj):
    """Recursively wrap dicts in MappingProxyType and lists in tuples."""
    if isinstance(obj, (dict, MappingProxyType)):
        return MappingProxyType({k: freeze(v) for k, v in obj.items()})
    if isinstance(obj, (list, tuple)):
        return tuple(freeze(v) for v in obj)
    return obj


def thaw(obj):
    """Inverse of freeze; used when assumptions are serialised."""
    if isinstance(obj, (dict, MappingProxyType)):
        return {k: thaw(v) for k, v in obj.items()}
    if isinstance(obj, tuple):
        return [thaw(v) for v in obj]
    return obj


def _merge(base, overrides, path=''):
    for key, val in overrides.items():
        where = f'{path}.{key}' if path else str(key)
        if key not in base and path != 'roleRates':
            logging.warning(f"Assumption override '{where}' is not a known key, ignored")
            continue
        if isinstance(base.get(key), dict) and isinstance(val, dict):
            _merge(base[key], val, where)
        else:
            base[key] = val
    return base


def build_assumptions(overrides=None, base=None):
    """`base` (the defaults when omitted) deep-merged with `overrides` (nested camelCase dict), frozen."""
    tree = thaw(base) if base is not None else copy.deepcopy(_default_tree())
    if overrides:
        _merge(tree, thaw(overrides))
    return freeze(tree)


DEFAULT_ASSUMPTIONS = build_assumptions()


def default_assumptions():
    return DEFAULT_ASSUMPTIONS


def resolve(assumptions):
    return assumptions if assumptions is not None else DEFAULT_ASSUMPTIONS


def scenario_multiplier(assumptions, scenario):
    mults = resolve(assumptions)['scenarioMultipliers']
    if scenario not in mults:
        raise ValueError(f"Unknown scenario '{scenario}' (expected one of {', '.join(SCENARIOS)})")
    return mults[scenario]


def data_maturity_multiplier(level, assumptions=None):
    """Map a 1-5 maturity level to its multiplier; out-of-range levels are clamped."""
    lvl = max(1, min(5, int(round(level))))
    return resolve(assumptions)['dataMaturityLevels'][lvl]['multiplier']
