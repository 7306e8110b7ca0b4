"""
ValueLens: Step Schema

An analysis document is {"steps": [{"step", "title", "content", "data"}]}.
Each step number has its own record shape; older model outputs used other
column names for the same fields. migrate_document promotes those once, at
ingestion, so the rest of the pipeline only sees canonical keys.
"""
import copy
import logging

STEP_TITLES = {
    0: 'Company Overview',
    1: 'Strategic Anchoring & Business Drivers',
    2: 'Business Function Inventory & KPI Baselines',
    3: 'Friction Point Mapping',
    4: 'AI Use Case Generation',
    5: 'Benefits Quantification by Driver',
    6: 'Readiness & Token Modeling',
    7: 'Priority Scoring & Roadmap',
}

# Canonical columns per step, in output order
STEP_FIELDS = {
    3: ['Function', 'Sub-Function', 'Friction Point', 'Annual Hours', 'Hourly Rate', 'Role', 'Role ID',
        'Estimated Annual Cost ($)', 'Cost Formula', 'Severity', 'Primary Driver Impact'],
    4: ['ID', 'Use Case', 'Target Friction', 'AI Primitives', 'Function', 'Sub-Function'],
    5: ['ID', 'Use Case', 'Cost Benefit ($)', 'Cost Formula', 'Revenue Benefit ($)', 'Revenue Formula',
        'Cash Flow Benefit ($)', 'Cash Flow Formula', 'Risk Benefit ($)', 'Risk Formula',
        'Total Annual Value ($)', 'Probability of Success', 'Expected Value ($)'],
    6: ['ID', 'Use Case', 'Readiness Score', 'Organizational Capacity', 'Data Availability & Quality',
        'Technical Infrastructure', 'Governance', 'Time To Value', 'Monthly Tokens', 'Runs/Month',
        'Input Tokens/Run', 'Output Tokens/Run', 'Annual Token Cost'],
    7: ['ID', 'Use Case', 'Priority Tier', 'Recommended Phase', 'Priority Score', 'Readiness Score',
        'Value Score', 'TTV Score', 'Strategic Theme'],
}

# legacy column -> canonical column
LEGACY_KEYS = {
    1: {'Primary Driver': 'Primary Driver Impact'},
    3: {'Estimated Annual Cost': 'Estimated Annual Cost ($)'},
    4: {'Use Case Name': 'Use Case'},
    5: {'Use Case Name': 'Use Case'},
    6: {'Use Case Name': 'Use Case',
        'Time-to-Value (months)': 'Time To Value',
        'Time-to-Value': 'Time To Value',
        'Time to Value': 'Time To Value',
        'TTV (months)': 'Time To Value',
        'TTV': 'Time To Value',
        'Annual Token Cost ($)': 'Annual Token Cost',
        'Data Readiness (1-5)': 'Data Readiness',
        'Change Mgmt (1-5)': 'Change Mgmt'},
    7: {'Use Case Name': 'Use Case'},
}

# Step 6 components that may still be on the old 1-5 scale: canonical -> legacy
LEGACY_READINESS = {
    'Organizational Capacity': 'Change Mgmt',
    'Data Availability & Quality': 'Data Readiness',
}

READINESS_FIELDS = ('Organizational Capacity', 'Data Availability & Quality',
                    'Technical Infrastructure', 'Governance')


# ══════════════════════════════════════════════════════════════
#  ACCESS
# ══════════════════════════════════════════════════════════════

def get_step(document, n):
    for s in (document or {}).get('steps') or []:
        if isinstance(s, dict) and s.get('step') == n:
            return s
    return None


def step_data(document, n):
    s = get_step(document, n)
    data = s.get('data') if s else None
    return [r for r in data if isinstance(r, dict)] if isinstance(data, list) else []


def set_step_data(document, n, data):
    """Replace a step's records, appending the step when it is missing."""
    s = get_step(document, n)
    if s is None:
        s = {'step': n, 'title': STEP_TITLES.get(n, f'Step {n}'), 'content': '', 'data': data}
        document.setdefault('steps', []).append(s)
    else:
        s['data'] = data
    return s


def is_legacy_readiness(record):
    """True when the record carries none of the 1-10 readiness columns."""
    return not any(record.get(f) is not None for f in READINESS_FIELDS)


# ══════════════════════════════════════════════════════════════
#  MIGRATION
# ══════════════════════════════════════════════════════════════

def migrate_record(n, record):
    renames = LEGACY_KEYS.get(n)
    if not renames:
        return dict(record)
    out = {}
    for k, v in record.items():
        target = renames.get(k)
        if target is None:
            out.setdefault(k, v)
        elif target not in record and target not in out:
            out[target] = v
    return out


def migrate_document(document):
    """Deep copy with every step's records promoted to canonical keys."""
    doc = copy.deepcopy(document)
    moved = 0
    for s in doc.get('steps') or []:
        if not isinstance(s, dict) or not isinstance(s.get('data'), list):
            continue
        n = s.get('step')
        new = [migrate_record(n, r) if isinstance(r, dict) else r for r in s['data']]
        moved += sum(1 for old, r in zip(s['data'], new) if isinstance(old, dict) and old.keys() != r.keys())
        s['data'] = new
    if moved:
        logging.info(f"Schema: promoted legacy columns in {moved} records")
    return doc
