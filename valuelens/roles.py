"""
ValueLens: Standardized Role Table & Role Normalizer

26 canonical roles with fully-loaded hourly rates (wages, benefits, payroll
tax and overhead already included). Model-generated friction points name
roles freely; every one is mapped back onto this table before any friction
cost is computed, so downstream math always uses a canonical rate.

Match order: exact name -> exact alias -> substring containment ->
token overlap (>= 0.4) -> function fallback -> Business Analyst.
"""
import logging
import re

from valuelens.assumptions import freeze, resolve

CATEGORY_PREFERENCE = ('professional', 'specialized', 'operational', 'management')
MIN_OVERLAP_SCORE = 0.4
_TOKEN_SPLIT = re.compile(r'[\s&,\-/]+')


def _role(role_id, name, category, rate, functions, aliases, description, industries=None):
    return {
        'roleId': role_id, 'roleName': name, 'description': description,
        'functionMapping': functions, 'rate': rate,
        'isIndustrySpecific': industries is not None,
        'industryApplicability': industries or [],
        'category': category, 'aliases': aliases,
    }


_RETAIL = ['Retail', 'Grocery', 'Home Improvement', 'Specialty Retail']

# ══════════════════════════════════════════════════════════════
#  STANDARDIZED ROLES
# ══════════════════════════════════════════════════════════════

STANDARDIZED_ROLES = freeze([
    # ── Operational ($45-$60/hr loaded) ──
    _role('ROLE_OPS_ADMIN_COORD', 'Administrative Coordinator', 'operational', 55,
          ['Operations', 'Human Resources', 'Finance'],
          ['Admin Assistant', 'Administrative Assistant', 'Office Coordinator', 'Office Admin',
           'Clerical Staff', 'Secretary'],
          'Handles scheduling, data entry, filing, correspondence, and general office administration'),
    _role('ROLE_OPS_CUST_SVC_REP', 'Customer Service Representative', 'operational', 50,
          ['Customer Service', 'Operations'],
          ['Customer Support Rep', 'CSR', 'Call Center Agent', 'Contact Center Agent', 'Support Agent',
           'Service Agent'],
          'Handles inbound inquiries, complaints, order issues, and first-level customer support'),
    _role('ROLE_OPS_DATA_ENTRY', 'Data Entry Specialist', 'operational', 45,
          ['Operations', 'Finance', 'Information Technology'],
          ['Data Entry Clerk', 'Data Processing Clerk', 'Records Clerk', 'Data Input Specialist'],
          'Manual data input, form processing, record maintenance, and data cleanup tasks'),
    _role('ROLE_OPS_WAREHOUSE', 'Warehouse Associate', 'operational', 55,
          ['Supply Chain', 'Logistics', 'Operations'],
          ['Warehouse Worker', 'Distribution Associate', 'Fulfillment Associate', 'DC Associate',
           'Picker/Packer'],
          'Receiving, picking, packing, shipping, and inventory management in distribution facilities'),
    _role('ROLE_OPS_STORE_ASSOC', 'Store Associate', 'operational', 50,
          ['Operations', 'Customer Service', 'Sales'],
          ['Retail Associate', 'Sales Associate', 'Store Clerk', 'Retail Clerk', 'Floor Associate',
           'Store Staff'],
          'In-store customer assistance, shelf stocking, register operations, and store maintenance',
          industries=_RETAIL),
    _role('ROLE_OPS_HELP_DESK', 'Help Desk Technician', 'operational', 60,
          ['Information Technology', 'Operations'],
          ['IT Support', 'Service Desk Analyst', 'Help Desk Analyst', 'IT Support Specialist',
           'Tier 1 Support', 'Desktop Support'],
          'Tier 1 IT support, password resets, hardware/software troubleshooting, ticket management'),
    _role('ROLE_OPS_QA_INSPECTOR', 'Quality Inspector', 'operational', 60,
          ['Operations', 'Supply Chain'],
          ['QA Inspector', 'Quality Control', 'Quality Assurance Technician', 'Inspection Specialist',
           'Quality Checker'],
          'Product/process quality checks, compliance auditing, defect tracking, and inspection documentation'),
    _role('ROLE_OPS_INVENTORY', 'Inventory Clerk', 'operational', 50,
          ['Operations', 'Supply Chain', 'Merchandising'],
          ['Inventory Specialist', 'Stock Clerk', 'Inventory Associate', 'Inventory Controller',
           'Stockroom Clerk'],
          'Cycle counts, stock reconciliation, inventory audits, and shrinkage tracking'),

    # ── Professional ($65-$100/hr loaded) ──
    _role('ROLE_PRO_BIZ_ANALYST', 'Business Analyst', 'professional', 95,
          ['Operations', 'Finance', 'Information Technology', 'Product Management'],
          ['BA', 'Business Systems Analyst', 'Management Analyst', 'Process Analyst',
           'Business Intelligence Analyst'],
          'Requirements gathering, process analysis, data analysis, reporting, and stakeholder communication'),
    _role('ROLE_PRO_FIN_ANALYST', 'Financial Analyst', 'professional', 100,
          ['Finance'],
          ['Finance Analyst', 'FP&A Analyst', 'Budget Analyst', 'Financial Planning Analyst',
           'Corporate Finance Analyst'],
          'Budgeting, forecasting, variance analysis, financial modeling, and management reporting'),
    _role('ROLE_PRO_MKTG_SPEC', 'Marketing Specialist', 'professional', 85,
          ['Marketing', 'Digital Commerce'],
          ['Marketing Coordinator', 'Digital Marketing Specialist', 'Content Specialist', 'Marketing Analyst',
           'Campaign Manager'],
          'Campaign execution, content creation, social media management, email marketing, and analytics'),
    _role('ROLE_PRO_SALES_REP', 'Sales Representative', 'professional', 90,
          ['Sales'],
          ['Account Executive', 'Sales Associate', 'Sales Consultant', 'Business Development Rep', 'BDR',
           'SDR', 'Sales Agent'],
          'Lead qualification, demos, proposal creation, negotiation, and account management'),
    _role('ROLE_PRO_HR_SPEC', 'HR Specialist', 'professional', 80,
          ['Human Resources'],
          ['HR Coordinator', 'Recruiter', 'Talent Acquisition Specialist', 'HR Generalist',
           'People Operations'],
          'Recruiting, onboarding, benefits administration, employee relations, and compliance'),
    _role('ROLE_PRO_PROCUREMENT', 'Procurement Specialist', 'professional', 85,
          ['Supply Chain', 'Operations', 'Finance'],
          ['Buyer', 'Purchasing Agent', 'Sourcing Specialist', 'Procurement Analyst',
           'Supply Chain Coordinator'],
          'Vendor selection, purchase orders, contract negotiation, and supplier relationship management'),
    _role('ROLE_PRO_ACCOUNTANT', 'Accountant', 'professional', 90,
          ['Finance'],
          ['Staff Accountant', 'Senior Accountant', 'GL Accountant', 'AP/AR Specialist', 'Bookkeeper'],
          'Journal entries, reconciliations, month-end close, financial reporting, and audit support'),
    _role('ROLE_PRO_TECH_WRITER', 'Technical Writer', 'professional', 80,
          ['Information Technology', 'Operations', 'Product Management'],
          ['Documentation Specialist', 'Content Writer', 'Knowledge Manager', 'Technical Communicator'],
          'Documentation creation, process documentation, knowledge base articles, and training materials'),
    _role('ROLE_PRO_CUST_SVC_SPEC', 'Customer Support Specialist', 'professional', 65,
          ['Customer Service', 'Operations'],
          ['Customer Experience Specialist', 'Senior Customer Service', 'Escalation Specialist',
           'Customer Success Associate'],
          'Tier 2 escalation handling, complex issue resolution, product expertise, and customer advocacy'),

    # ── Specialized ($100-$125/hr loaded) ──
    _role('ROLE_SPEC_SOFTWARE_DEV', 'Software Developer', 'specialized', 125,
          ['Information Technology', 'Digital Commerce'],
          ['Software Engineer', 'Developer', 'Programmer', 'Full-Stack Developer', 'Application Developer'],
          'Application development, API integration, code review, and technical architecture'),
    _role('ROLE_SPEC_SC_ANALYST', 'Supply Chain Analyst', 'specialized', 100,
          ['Supply Chain', 'Logistics', 'Operations'],
          ['Demand Planner', 'Logistics Analyst', 'Supply Planning Analyst', 'Inventory Analyst',
           'S&OP Analyst'],
          'Demand forecasting, inventory optimization, logistics analysis, and S&OP planning'),
    _role('ROLE_SPEC_MERCH_ANALYST', 'Merchandising Analyst', 'specialized', 100,
          ['Merchandising', 'Product Management', 'Operations'],
          ['Category Analyst', 'Merchandise Planner', 'Assortment Planner', 'Retail Analyst',
           'Category Manager'],
          'Assortment planning, SKU rationalization, pricing analysis, and vendor performance',
          industries=_RETAIL[:3] + ['Fashion', 'Specialty Retail']),
    _role('ROLE_SPEC_COMPLIANCE', 'Compliance Officer', 'specialized', 110,
          ['Legal & Compliance', 'Finance'],
          ['Compliance Analyst', 'Regulatory Specialist', 'Risk & Compliance Officer', 'GRC Analyst',
           'Audit Specialist'],
          'Regulatory monitoring, policy enforcement, audit support, and risk assessment'),
    _role('ROLE_SPEC_PROJECT_MGR', 'Project Manager', 'specialized', 115,
          ['Operations', 'Information Technology', 'Product Management'],
          ['PM', 'Program Manager', 'Delivery Manager', 'Engagement Manager', 'Implementation Manager'],
          'Project planning, resource coordination, timeline management, risk mitigation, and stakeholder reporting'),
    _role('ROLE_SPEC_DATA_ANALYST', 'Data Analyst', 'specialized', 100,
          ['Information Technology', 'Operations', 'Finance', 'Marketing'],
          ['Data Scientist', 'Analytics Specialist', 'BI Analyst', 'Reporting Analyst', 'Insights Analyst'],
          'Data extraction, transformation, visualization, statistical analysis, and reporting'),

    # ── Management ($140-$175/hr loaded) ──
    _role('ROLE_MGT_OPS_MGR', 'Operations Manager', 'management', 140,
          ['Operations', 'Supply Chain', 'Customer Service'],
          ['General Manager', 'Department Manager', 'Ops Manager', 'Regional Manager', 'Store Manager',
           'Branch Manager'],
          'Department P&L ownership, team leadership, process governance, and cross-functional coordination'),
    _role('ROLE_MGT_DIRECTOR', 'Department Director', 'management', 175,
          ['Operations', 'Finance', 'Marketing', 'Sales', 'Human Resources', 'Information Technology'],
          ['Director', 'VP', 'Vice President', 'Senior Director', 'Head of Department', 'AVP'],
          'Strategic planning, budget ownership, organizational design, and executive reporting'),
    _role('ROLE_MGT_TECH_LEAD', 'Senior Technical Lead', 'management', 155,
          ['Information Technology', 'Digital Commerce'],
          ['Tech Lead', 'Principal Engineer', 'Staff Engineer', 'Solutions Architect', 'Technical Architect',
           'Engineering Manager'],
          'Architecture decisions, technical strategy, team mentoring, and system design review'),
])

ROLE_BY_ID = {r['roleId']: r for r in STANDARDIZED_ROLES}
ROLE_BY_NAME = {r['roleName'].lower(): r for r in STANDARDIZED_ROLES}
ROLE_BY_ALIAS = {}
for _r in STANDARDIZED_ROLES:
    for _a in _r['aliases']:
        ROLE_BY_ALIAS[_a.lower()] = _r


def get_role_by_id(role_id):
    return ROLE_BY_ID.get(role_id)


def role_rate(role_id, assumptions=None):
    """Override from assumptions['roleRates'], else the table rate, else the default."""
    a = resolve(assumptions)
    if role_id in a['roleRates']:
        return a['roleRates'][role_id]
    role = ROLE_BY_ID.get(role_id)
    return role['rate'] if role else a['defaults']['roleRate']


def get_role_by_function(function_name):
    """Preferred role for a business function (professional first)."""
    if not function_name:
        return None
    fn = function_name.strip().lower()
    matches = [r for r in STANDARDIZED_ROLES if any(f.lower() == fn for f in r['functionMapping'])]
    for cat in CATEGORY_PREFERENCE:
        for r in matches:
            if r['category'] == cat:
                return r
    return matches[0] if matches else None


# ══════════════════════════════════════════════════════════════
#  MATCHING
# ══════════════════════════════════════════════════════════════

def _tokens(text):
    return {w for w in _TOKEN_SPLIT.split(text.lower()) if len(w) > 2}


def _contains(label, candidate):
    # Short acronyms (BA, PM, VP, CSR) only match as a whole token
    if len(candidate) < 4:
        return candidate in _TOKEN_SPLIT.split(label) or label == candidate
    return candidate in label or label in candidate


def _overlap_score(input_words, candidate):
    words = _tokens(candidate)
    overlap = 0
    for w in input_words:
        for cw in words:
            if cw == w:
                overlap += 1
            elif cw in w or w in cw:
                overlap += 0.5
    return overlap / max(len(input_words), len(words), 1)


def _best_overlap(label):
    words = _tokens(label)
    best, best_score = None, 0
    for role in STANDARDIZED_ROLES:
        for candidate in (role['roleName'],) + tuple(role['aliases']):
            score = _overlap_score(words, candidate)
            if score > best_score:
                best, best_score = role, score
    return (best, best_score) if best_score >= MIN_OVERLAP_SCORE else (None, best_score)


def normalize_role(label, function_hint=None):
    """Return (role, confidence); never None."""
    text = (label or '').strip().lower()
    if text:
        if text in ROLE_BY_NAME:
            return ROLE_BY_NAME[text], 'exact'
        if text in ROLE_BY_ALIAS:
            return ROLE_BY_ALIAS[text], 'alias'
        for role in STANDARDIZED_ROLES:
            if _contains(text, role['roleName'].lower()):
                return role, 'fuzzy'
            if any(_contains(text, a.lower()) for a in role['aliases']):
                return role, 'fuzzy'
        role, _ = _best_overlap(text)
        if role:
            return role, 'fuzzy'

    role = get_role_by_function(function_hint)
    if role:
        return role, 'function-fallback'
    return ROLE_BY_ID['ROLE_PRO_BIZ_ANALYST'], 'default'


def _rate_value(v):
    if isinstance(v, (int, float)):
        return v
    try:
        return float(str(v or '0').replace('$', '').replace(',', '').replace('/hr', ''))
    except ValueError:
        return 0


def normalize_friction_roles(records, assumptions=None, function_field='Function', rate_field='Hourly Rate'):
    """New friction records with Role / Role ID / Hourly Rate set from the
    canonical table, plus one verification entry per record."""
    out, entries = [], []
    for rec in records:
        original = rec.get('Role') or rec.get('role')
        role, confidence = normalize_role(original, rec.get(function_field) or '')
        rate = role_rate(role['roleId'], assumptions)
        entries.append({
            'frictionPoint': rec.get('Friction Point') or rec.get('frictionPoint') or 'Unknown',
            'originalRole': original,
            'originalRate': _rate_value(rec.get(rate_field)),
            'matchedRole': role['roleName'],
            'matchedRoleId': role['roleId'],
            'standardizedRate': rate,
            'wasNormalized': confidence not in ('exact', 'alias'),
            'confidence': confidence,
        })
        out.append({**rec, 'Role': role['roleName'], 'Role ID': role['roleId'], rate_field: rate})
        logging.info(f"Role: {entries[-1]['frictionPoint'][:40]}: {original or 'none'} -> "
                     f"{role['roleName']} (${rate}/hr) [{confidence}]")
    return out, entries
