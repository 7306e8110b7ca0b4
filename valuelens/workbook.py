"""
ValueLens: Assumptions Workbook
Analysts tune the post-processor from an Excel file instead of code.

Sheets:
  Assumptions   Parameter | Value | Section
  Input Bounds  Input | Min | Max | Label
  Role Rates    Role ID | Role | Rate
Anything missing falls back to the built-in defaults.
"""
import logging
import os

import openpyxl
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side

from valuelens.assumptions import SCENARIOS, build_assumptions, resolve
from valuelens.roles import ROLE_BY_ID, STANDARDIZED_ROLES

ASSUMPTIONS_SHEET = 'Assumptions'
BOUNDS_SHEET = 'Input Bounds'
ROLES_SHEET = 'Role Rates'

# ── Parameter label -> (section, key) ──
PARAM_MAP = {
    'Loaded Hourly Rate': ('multipliers', 'loadedHourlyRate'),
    'Benefits Loading': ('multipliers', 'benefitsLoading'),
    'Data Maturity Multiplier': ('multipliers', 'dataMaturityMultiplier'),
    'Revenue Realization': ('multipliers', 'revenueRealizationMultiplier'),
    'Cost Realization': ('multipliers', 'costRealizationMultiplier'),
    'Cash Flow Realization': ('multipliers', 'cashFlowRealizationMultiplier'),
    'Risk Realization': ('multipliers', 'riskRealizationMultiplier'),
    'Default Cost of Capital': ('multipliers', 'defaultCostOfCapital'),
    'Revenue Margin %': ('multipliers', 'revenueMarginPct'),
    'Input Token Price ($/M)': ('multipliers', 'inputTokenPricePerM'),
    'Output Token Price ($/M)': ('multipliers', 'outputTokenPricePerM'),
    'Scenario Multiplier (Conservative)': ('scenarioMultipliers', 'conservative'),
    'Scenario Multiplier (Moderate)': ('scenarioMultipliers', 'moderate'),
    'Scenario Multiplier (Aggressive)': ('scenarioMultipliers', 'aggressive'),
    'Per Use Case Cap %': ('policy', 'perUseCaseCapPct'),
    'Portfolio Cap %': ('policy', 'benefitsCapPct'),
    'Risk Reduction Cap %': ('policy', 'riskReductionCapPct'),
    'Revenue Concentration %': ('policy', 'revenueConcentrationPct'),
    'FTE Headcount %': ('policy', 'fteHeadcountPct'),
    'Hours per FTE': ('policy', 'hoursPerFTE'),
    'Benefit Precision ($)': ('rounding', 'benefitPrecision'),
    'Friction Precision ($)': ('rounding', 'frictionPrecision'),
    'Token Cost Decimals': ('rounding', 'tokenDecimals'),
    'Discount Rate': ('projection', 'discountRate'),
    'Projection Years': ('projection', 'years'),
    'Implementation Cost Ratio': ('projection', 'implementationCostRatio'),
    'Headline Scenario': ('projection', 'headlineScenario'),
    'Default Scenario': ('defaults', 'scenario'),
    'Default Probability of Success': ('defaults', 'probabilityOfSuccess'),
    'Default Time to Value (months)': ('defaults', 'timeToValueMonths'),
    'Default Readiness Component': ('defaults', 'readinessComponent'),
    'Weight: Organizational Capacity': ('readinessWeights', 'organizationalCapacity'),
    'Weight: Data Availability & Quality': ('readinessWeights', 'dataAvailabilityQuality'),
    'Weight: Technical Infrastructure': ('readinessWeights', 'technicalInfrastructure'),
    'Weight: Governance': ('readinessWeights', 'governance'),
}

for _sc in ('conservative', 'moderate', 'aggressive'):
    for _y in ('y1', 'y2', 'y3'):
        PARAM_MAP[f'Adoption {_sc.capitalize()} {_y.upper()}'] = ('adoptionCurves', _sc, _y)

INT_PARAMS = {'hoursPerFTE', 'benefitPrecision', 'frictionPrecision', 'tokenDecimals', 'years'}
TEXT_PARAMS = {'headlineScenario', 'scenario'}


def read_xlsx_sheet(filepath, sheet_name=None):
    wb = openpyxl.load_workbook(filepath, read_only=True, data_only=True)
    if sheet_name and sheet_name not in wb.sheetnames:
        wb.close()
        return []
    ws = wb[sheet_name] if sheet_name else wb.active
    rows = list(ws.iter_rows(values_only=True))
    wb.close()
    if len(rows) < 2:
        return []
    headers = [str(h).strip() if h else f'col_{i}' for i, h in enumerate(rows[0])]
    return [dict(zip(headers, row)) for row in rows[1:]]


def _number(val, label):
    if isinstance(val, (int, float)) and not isinstance(val, bool):
        return val
    try:
        return float(str(val).replace(',', '').replace('$', '').strip())
    except ValueError:
        logging.warning(f"Assumption '{label}': '{val}' is not a number, ignored")
        return None


def _set(tree, path, val):
    node = tree
    for k in path[:-1]:
        node = node.setdefault(k, {})
    node[path[-1]] = val


# ══════════════════════════════════════════════════════════════
#  LOAD
# ══════════════════════════════════════════════════════════════

def load_assumptions(path=None):
    """Assumptions from the workbook at `path`; defaults when there is none."""
    if not path:
        return build_assumptions()
    if not os.path.exists(path):
        logging.warning(f"Assumptions workbook not found at {path}, using defaults")
        return build_assumptions()

    overrides = {}
    for row in read_xlsx_sheet(path, ASSUMPTIONS_SHEET):
        label = str(row.get('Parameter') or '').strip()
        val = row.get('Value')
        if not label or val is None:
            continue
        if label not in PARAM_MAP:
            logging.warning(f"Unknown assumption parameter '{label}', ignored")
            continue
        target = PARAM_MAP[label]
        if target[-1] not in TEXT_PARAMS:
            val = _number(val, label)
            if val is None:
                continue
            if target[-1] in INT_PARAMS:
                val = int(val)
        else:
            val = str(val).strip().lower()
            if val not in SCENARIOS:
                logging.warning(f"Assumption '{label}': unknown scenario '{val}', ignored")
                continue
        _set(overrides, target, val)

    for row in read_xlsx_sheet(path, BOUNDS_SHEET):
        key = str(row.get('Input') or '').strip()
        if not key:
            continue
        bound = {}
        for col, field in (('Min', 'min'), ('Max', 'max')):
            if row.get(col) is not None:
                v = _number(row[col], f'{key} {col}')
                if v is not None:
                    bound[field] = v
        if row.get('Label'):
            bound['label'] = str(row['Label'])
        if bound:
            _set(overrides, ('inputBounds', key), bound)

    for row in read_xlsx_sheet(path, ROLES_SHEET):
        role_id = str(row.get('Role ID') or '').strip()
        if not role_id or row.get('Rate') is None:
            continue
        if role_id not in ROLE_BY_ID:
            logging.warning(f"Unknown role '{role_id}' in {ROLES_SHEET}, ignored")
            continue
        rate = _number(row['Rate'], role_id)
        if rate is not None and rate != ROLE_BY_ID[role_id]['rate']:
            _set(overrides, ('roleRates', role_id), rate)

    logging.info(f"Loaded assumptions from {path} ({len(overrides)} sections overridden)")
    return build_assumptions(overrides)


# ══════════════════════════════════════════════════════════════
#  WRITE (editable template)
# ══════════════════════════════════════════════════════════════

HEADER_FONT = Font(bold=True, color='FFFFFF', size=11)
HEADER_FILL = PatternFill(start_color='2E2E38', end_color='2E2E38', fill_type='solid')
THIN_BORDER = Border(left=Side(style='thin'), right=Side(style='thin'),
                     top=Side(style='thin'), bottom=Side(style='thin'))


def ws_write(ws, headers, rows):
    for c, h in enumerate(headers, 1):
        cell = ws.cell(row=1, column=c, value=h)
        cell.font = HEADER_FONT; cell.fill = HEADER_FILL
        cell.alignment = Alignment(horizontal='center'); cell.border = THIN_BORDER
    for r, row in enumerate(rows, 2):
        for c, val in enumerate(row, 1):
            cell = ws.cell(row=r, column=c, value=val); cell.border = THIN_BORDER
    for col in ws.columns:
        ml = max(len(str(cell.value or '')) for cell in col)
        ws.column_dimensions[col[0].column_letter].width = min(ml + 2, 40)


def _lookup(a, path):
    node = a
    for k in path:
        node = node[k]
    return node


def write_assumptions_workbook(assumptions, path):
    a = resolve(assumptions)
    wb = openpyxl.Workbook()

    ws = wb.active; ws.title = ASSUMPTIONS_SHEET
    ws_write(ws, ['Parameter', 'Value', 'Section'],
             [[label, _lookup(a, target), target[0]] for label, target in PARAM_MAP.items()])

    ws2 = wb.create_sheet(BOUNDS_SHEET)
    ws_write(ws2, ['Input', 'Min', 'Max', 'Label'],
             [[k, b['min'], b['max'], b['label']] for k, b in a['inputBounds'].items()])

    ws3 = wb.create_sheet(ROLES_SHEET)
    overrides = a['roleRates']
    ws_write(ws3, ['Role ID', 'Role', 'Rate'],
             [[r['roleId'], r['roleName'], overrides.get(r['roleId'], r['rate'])] for r in STANDARDIZED_ROLES])

    wb.save(path)
    logging.info(f"Wrote assumptions workbook to {path}")
    return path
