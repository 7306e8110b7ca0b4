"""
ValueLens: Scoring Engine

  Readiness  = 0.30 x OrgCapacity + 0.30 x DataQuality
             + 0.20 x TechInfra   + 0.20 x Governance        (1-10, 2dp)
  Value      = min-max of Total Annual Value onto 1-10       (all equal -> 5.5)
  Priority   = 0.5 x Readiness + 0.5 x Value                 (1-10, 2dp)

Tier and phase are read off Priority / Value / Readiness; the TTV score only
sizes bubbles on the value/readiness matrix.
"""
from valuelens.assumptions import resolve

# ══════════════════════════════════════════════════════════════
#  TIERS & PHASES
# ══════════════════════════════════════════════════════════════

PRIORITY_TIERS = {
    'champions':  'Tier 1 - Champions',
    'quick_win':  'Tier 2 - Quick Wins',
    'strategic':  'Tier 3 - Strategic',
    'foundation': 'Tier 4 - Foundation',
}

CHAMPION_PRIORITY = 7.5
MIDPOINT = 5.5

PHASE_RULES = [
    # (phase, min priority, min readiness)
    ('Q1', 7.5, 6.0),
    ('Q2', 6.0, 5.0),
    ('Q3', 4.5, None),
]


def clamp(v, lo, hi):
    return max(lo, min(hi, v))


# ══════════════════════════════════════════════════════════════
#  READINESS
# ══════════════════════════════════════════════════════════════

def rescale_legacy(v):
    """1-5 scores are stretched onto 1-10; anything above 5 is already 1-10."""
    if not isinstance(v, (int, float)) or isinstance(v, bool) or v != v:
        return 5
    if v <= 5:
        return clamp(round(1 + (v - 1) / 4 * 9), 1, 10)
    return clamp(round(v), 1, 10)


def readiness_score(org_capacity, data_quality, tech_infra, governance, assumptions=None):
    w = resolve(assumptions)['readinessWeights']
    oc, dq = clamp(org_capacity, 1, 10), clamp(data_quality, 1, 10)
    ti, gov = clamp(tech_infra, 1, 10), clamp(governance, 1, 10)
    weighted = {
        'ocWeighted': oc * w['organizationalCapacity'],
        'dqWeighted': dq * w['dataAvailabilityQuality'],
        'tiWeighted': ti * w['technicalInfrastructure'],
        'govWeighted': gov * w['governance'],
    }
    score = round(sum(weighted.values()), 2)
    return {
        'value': score,
        'trace': {
            'formula': (f"(OrgCapacity × {w['organizationalCapacity']}) + (DataQuality × {w['dataAvailabilityQuality']})"
                        f" + (TechInfra × {w['technicalInfrastructure']}) + (Governance × {w['governance']})"),
            'inputs': {'organizationalCapacity': oc, 'dataAvailabilityQuality': dq,
                       'technicalInfrastructure': ti, 'governance': gov},
            'intermediates': weighted,
            'output': score,
        },
    }


# ══════════════════════════════════════════════════════════════
#  VALUE NORMALIZATION & PRIORITY
# ══════════════════════════════════════════════════════════════

def normalize_values(values):
    """Min-max onto 1-10, 2dp. A single distinct value maps to 5.5."""
    if not values:
        return []
    lo, hi = min(values), max(values)
    if hi == lo:
        return [MIDPOINT for _ in values]
    return [round(1 + (v - lo) / (hi - lo) * 9, 2) for v in values]


def priority_score(readiness, normalized_value):
    rs, nv = clamp(readiness, 1, 10), clamp(normalized_value, 1, 10)
    score = round(rs * 0.5 + nv * 0.5, 2)
    return {'value': score,
            'trace': {'formula': '(Readiness × 0.5) + (NormalizedValue × 0.5)',
                      'inputs': {'readinessScore': rs, 'normalizedValue': nv},
                      'intermediates': {}, 'output': score}}


def priority_tier(priority, normalized_value, readiness):
    if priority >= CHAMPION_PRIORITY:
        return PRIORITY_TIERS['champions']
    if normalized_value < MIDPOINT and readiness >= MIDPOINT:
        return PRIORITY_TIERS['quick_win']
    if normalized_value >= MIDPOINT and readiness < MIDPOINT:
        return PRIORITY_TIERS['strategic']
    return PRIORITY_TIERS['foundation']


def recommended_phase(priority, readiness):
    for phase, min_priority, min_readiness in PHASE_RULES:
        if priority >= min_priority and (min_readiness is None or readiness >= min_readiness):
            return phase
    return 'Q4'


def ttv_score(ttv_months):
    """1 - min(TTV/12, 1): 3 months -> 0.75, 12+ months -> 0."""
    return max(0.0, 1 - min(ttv_months / 12, 1))
