"""
ValueLens: Function Taxonomy & AI Primitives

Canonical business functions (with sub-functions) and AI primitives.
Free-text labels from steps 2, 3 and 4 are snapped onto these names by a
simple similarity score so the friction, KPI and use-case tables line up.
"""
import logging
import re

# ══════════════════════════════════════════════════════════════
#  BUSINESS FUNCTIONS
# ══════════════════════════════════════════════════════════════

FUNCTION_TAXONOMY = {
    'Sales': {
        'aliases': ['Pro Sales', 'Sales & Business Development', 'Revenue', 'Commercial', 'Business Development'],
        'subFunctions': {
            'Pipeline Management': ['Sales Pipeline', 'Deal Management', 'Opportunity Management'],
            'Account Management': ['Account Planning', 'Key Accounts', 'Client Management', 'Customer Retention'],
            'Quote Management': ['Quoting', 'Pricing', 'Proposal Management', 'CPQ', 'Bid Management'],
            'Sales Operations': ['Sales Ops', 'Revenue Operations', 'RevOps'],
            'Channel Sales': ['Partner Sales', 'Indirect Sales', 'Reseller Management'],
            'Sales Enablement': ['Sales Training', 'Sales Readiness', 'Sales Tools'],
        },
    },
    'Marketing': {
        'aliases': ['Marketing & Communications', 'Growth Marketing', 'Brand Marketing'],
        'subFunctions': {
            'Campaign Management': ['Campaign Ops', 'Campaign Planning', 'Campaign Execution', 'Email Campaigns'],
            'Content Creation': ['Content Marketing', 'Content Strategy', 'Copywriting', 'Creative'],
            'Demand Generation': ['Lead Generation', 'Demand Gen', 'Growth', 'Acquisition'],
            'Market Research': ['Marketing Analytics', 'Competitive Intelligence', 'Market Intelligence'],
            'Brand Management': ['Brand Strategy', 'Messaging & Positioning', 'Brand Identity'],
            'Digital Marketing': ['SEO', 'SEM', 'Social Media', 'Paid Media', 'Performance Marketing'],
        },
    },
    'Finance': {
        'aliases': ['Finance & Accounting', 'Financial Services', 'Corporate Finance'],
        'subFunctions': {
            'Accounts Payable': ['AP', 'Invoice Processing', 'Vendor Payments', 'Payables'],
            'Accounts Receivable': ['AR', 'Collections', 'Billing', 'Receivables'],
            'Financial Planning & Analysis': ['FP&A', 'Budgeting', 'Forecasting', 'Financial Modeling'],
            'Treasury': ['Cash Management', 'Treasury Operations', 'Working Capital'],
            'Tax': ['Tax Compliance', 'Tax Planning', 'Tax Reporting'],
            'Financial Reporting': ['Financial Close', 'Consolidation', 'Reporting & Consolidation', 'General Ledger'],
        },
    },
    'Operations': {
        'aliases': ['Business Operations', 'Operational Excellence', 'Store Operations', 'Field Operations',
                    'Branch Operations'],
        'subFunctions': {
            'Process Optimization': ['Process Design', 'Process Engineering', 'Process Improvement', 'Lean Operations'],
            'Quality Assurance': ['QA', 'Quality Control', 'Quality Management', 'Inspection'],
            'Inventory Management': ['Inventory Control', 'Stock Management', 'Warehouse Management'],
            'Customer Service': ['Customer Support', 'Client Services', 'Help Desk', 'Contact Center',
                                 'Customer Experience'],
            'Workforce Management': ['Scheduling', 'Labor Management', 'Staffing', 'Shift Management'],
            'Facilities Management': ['Property Management', 'Site Management', 'Maintenance'],
        },
    },
    'Human Resources': {
        'aliases': ['HR', 'People Operations', 'People & Culture', 'Talent Management', 'Human Capital'],
        'subFunctions': {
            'Talent Acquisition': ['Recruiting', 'Recruitment', 'Hiring', 'Staffing', 'Candidate Screening'],
            'Onboarding': ['New Hire Onboarding', 'Employee Onboarding', 'Orientation'],
            'Performance Management': ['Performance Reviews', 'Goal Setting', 'Employee Evaluation'],
            'Learning & Development': ['Training', 'L&D', 'Employee Development', 'Skills Development'],
            'Compensation & Benefits': ['Total Rewards', 'Payroll', 'Benefits Administration'],
            'Employee Relations': ['Labor Relations', 'Employee Engagement', 'Workplace Culture', 'HRBP'],
        },
    },
    'Information Technology': {
        'aliases': ['IT', 'Technology', 'Engineering', 'Tech Ops', 'IT Operations'],
        'subFunctions': {
            'Infrastructure': ['Infrastructure Management', 'Cloud Operations', 'Network Management',
                               'Platform Engineering'],
            'Application Support': ['App Support', 'Application Management', 'Software Maintenance'],
            'Security': ['Cybersecurity', 'Information Security', 'IT Security', 'Security Operations',
                         'Security & Compliance'],
            'Service Desk': ['Help Desk', 'IT Support', 'Technical Support', 'Tier 1 Support', 'End User Support'],
            'Data Management': ['Data Engineering', 'Database Administration', 'Data Architecture', 'Data Governance'],
            'Change Management': ['Release Management', 'Deployment', 'IT Change Management',
                                  'Configuration Management'],
        },
    },
    'Customer Service': {
        'aliases': ['Customer Support', 'Customer Experience', 'CX', 'Client Services', 'Contact Center'],
        'subFunctions': {
            'Ticket Management': ['Case Management', 'Issue Tracking', 'Service Requests', 'Incident Management'],
            'Knowledge Management': ['Knowledge Base', 'Self-Service', 'FAQ Management', 'Help Center'],
            'Escalation Handling': ['Tier 2/3 Support', 'Complex Issue Resolution', 'Specialist Routing'],
            'Customer Communication': ['Outreach', 'Customer Notifications', 'Proactive Communication'],
            'Service Quality': ['QA Monitoring', 'CSAT', 'NPS', 'Customer Satisfaction', 'Satisfaction Monitoring'],
            'Self-Service': ['Chatbot', 'Virtual Assistant', 'Automated Support', 'Digital Self-Service'],
        },
    },
    'Legal & Compliance': {
        'aliases': ['Legal', 'Compliance', 'Regulatory', 'Legal & Regulatory', 'Risk & Compliance', 'GRC'],
        'subFunctions': {
            'Contract Management': ['Contract Review', 'Contract Lifecycle', 'CLM', 'Contract Administration'],
            'Regulatory Filing': ['Regulatory Compliance', 'Filing', 'Regulatory Reporting', 'Compliance Reporting'],
            'Compliance Monitoring': ['Compliance Management', 'Audit Management', 'Policy Compliance',
                                      'Monitoring & Controls'],
            'Legal Research': ['Case Research', 'Legal Analysis', 'Precedent Research'],
            'Risk Assessment': ['Risk Management', 'Risk Analysis', 'Enterprise Risk', 'Risk Mitigation'],
            'Policy Management': ['Policy Development', 'Policy Administration', 'Governance'],
        },
    },
    'Supply Chain': {
        'aliases': ['Supply Chain Management', 'SCM', 'Procurement & Supply Chain', 'Sourcing'],
        'subFunctions': {
            'Demand Planning': ['Demand Forecasting', 'Demand Management', 'Sales & Operations Planning', 'S&OP'],
            'Procurement': ['Sourcing', 'Purchasing', 'Vendor Management', 'Supplier Selection'],
            'Logistics': ['Transportation', 'Shipping', 'Distribution', 'Freight Management'],
            'Inventory Optimization': ['Inventory Planning', 'Stock Optimization', 'Replenishment'],
            'Supplier Management': ['Supplier Collaboration', 'Vendor Relations', 'Supplier Performance'],
            'Route Optimization': ['Route Planning', 'Fleet Management', 'Delivery Optimization',
                                   'Last-Mile Delivery'],
        },
    },
    'Product Management': {
        'aliases': ['Product', 'Product Development', 'Product Engineering', 'R&D'],
        'subFunctions': {
            'Product Strategy': ['Product Planning', 'Roadmap Management', 'Product Vision'],
            'Requirements': ['Product Requirements', 'Feature Definition', 'User Stories', 'PRD'],
            'Assortment Planning': ['Category Management', 'Merchandising', 'Product Mix', 'SKU Management'],
            'Documentation': ['Technical Documentation', 'Product Documentation', 'Spec Management',
                              'Technical Specs'],
            'User Research': ['Customer Research', 'UX Research', 'Voice of Customer', 'Market Validation'],
            'Analytics': ['Product Analytics', 'Usage Analytics', 'Feature Analytics', 'Telemetry'],
        },
    },
    'Digital Commerce': {
        'aliases': ['E-Commerce', 'eCommerce', 'Online Sales', 'Digital Sales', 'Digital Retail'],
        'subFunctions': {
            'Search & Discovery': ['Product Search', 'Site Search', 'Browse & Search', 'Product Discovery'],
            'Checkout & Payments': ['Payment Processing', 'Cart Management', 'Order Processing'],
            'Personalization': ['Recommendations', 'Product Recommendations', 'Dynamic Content'],
            'Content Management': ['Product Content', 'Digital Content', 'CMS', 'Catalog Management'],
            'Customer Experience': ['UX', 'Digital Experience', 'Conversion Optimization', 'CRO'],
            'Order Fulfillment': ['Order Management', 'Fulfillment', 'Ship-from-Store', 'BOPIS'],
        },
    },
    # ── Industry-specific ──
    'Merchandising': {
        'aliases': ['Category Management', 'Assortment', 'Buying'],
        'isIndustrySpecific': True,
        'subFunctions': {
            'Assortment Planning': ['Category Planning', 'Product Selection', 'Range Planning'],
            'Pricing Strategy': ['Price Optimization', 'Promotional Pricing', 'Markdown Management'],
            'Visual Merchandising': ['Store Layout', 'Planogram', 'Display Management'],
            'Vendor Negotiation': ['Buying', 'Supplier Negotiation', 'Trade Terms'],
            'Trend Analysis': ['Market Trends', 'Consumer Trends', 'Fashion Forecasting'],
        },
    },
    'Logistics': {
        'aliases': ['Logistics & Distribution', 'Transportation', 'Shipping & Delivery'],
        'isIndustrySpecific': True,
        'subFunctions': {
            'Route Optimization': ['Route Planning', 'Fleet Routing', 'Dynamic Routing'],
            'Warehouse Operations': ['Distribution Center', 'DC Operations', 'Fulfillment Center'],
            'Fleet Management': ['Vehicle Management', 'Driver Management', 'Transportation Management'],
            'Last-Mile Delivery': ['Home Delivery', 'Final Mile', 'Customer Delivery'],
            'Returns Processing': ['Reverse Logistics', 'Return Management', 'RMA'],
        },
    },
}

FUNCTION_NAMES = list(FUNCTION_TAXONOMY)
SUB_FUNCTION_NAMES = {sf.lower(): sf for d in FUNCTION_TAXONOMY.values() for sf in d['subFunctions']}

# ══════════════════════════════════════════════════════════════
#  AI PRIMITIVES
# ══════════════════════════════════════════════════════════════

AI_PRIMITIVES = {
    'Research & Information Retrieval': ['Research', 'Information Retrieval', 'RAG', 'Knowledge Retrieval',
                                         'Search', 'Lookup'],
    'Content Creation': ['Content Generation', 'Generation', 'Text Generation', 'Document Generation', 'Writing'],
    'Data Analysis': ['Analytics', 'Data Processing', 'Analysis', 'Pattern Recognition', 'Prediction',
                      'Forecasting'],
    'Conversational Interfaces': ['Conversational AI', 'Chatbot', 'Virtual Assistant',
                                  'Natural Language Interface', 'Dialog'],
    'Workflow Automation': ['Process Automation', 'Automation', 'Orchestration', 'RPA', 'Task Automation',
                            'Routing'],
    'Coding Assistance': ['Code Generation', 'Development', 'Engineering', 'Software Development', 'Code Review'],
}

FUNCTION_THRESHOLD = 0.5
SUB_FUNCTION_THRESHOLD = 0.4
PRIMITIVE_THRESHOLD = 0.4

_WORD_SPLIT = re.compile(r'[\s&,\-/]+')


def similarity(a, b):
    """1.0 exact, 0.8 containment, else word overlap / max word count."""
    a, b = a.lower().strip(), b.lower().strip()
    if a == b:
        return 1.0
    if a in b or b in a:
        return 0.8
    a_words = {w for w in _WORD_SPLIT.split(a) if len(w) > 1}
    b_words = {w for w in _WORD_SPLIT.split(b) if len(w) > 1}
    overlap = 0
    for w in a_words:
        if w in b_words:
            overlap += 1
        else:
            overlap += 0.5 * sum(1 for bw in b_words if bw in w or w in bw)
    most = max(len(a_words), len(b_words))
    return overlap / most if most else 0


def _best(text, candidates):
    """candidates: iterable of (canonical, [names to score]); first best wins."""
    best, best_score = '', 0
    for canonical, names in candidates:
        for name in names:
            s = similarity(text, name)
            if s > best_score:
                best, best_score = canonical, s
    return best, best_score


def _sub_candidates(functions):
    for fn in functions:
        for sf, aliases in FUNCTION_TAXONOMY[fn]['subFunctions'].items():
            yield sf, [sf] + aliases


def normalize_function(label):
    if not label:
        return label
    best, score = _best(label, ((fn, [fn] + d['aliases']) for fn, d in FUNCTION_TAXONOMY.items()))
    if score >= FUNCTION_THRESHOLD:
        return best
    logging.warning(f"No taxonomy match for function '{label}' (best '{best}' @ {score:.2f})")
    return label


def normalize_sub_function(function_name, label):
    if not label or not function_name:
        return label
    # A canonical name is kept as-is, even one from another function
    if label.strip().lower() in SUB_FUNCTION_NAMES:
        return SUB_FUNCTION_NAMES[label.strip().lower()]
    if function_name not in FUNCTION_TAXONOMY:
        best, score = _best(label, _sub_candidates(FUNCTION_NAMES))
        return best if score >= FUNCTION_THRESHOLD else label

    best, score = _best(label, _sub_candidates([function_name]))
    if score >= SUB_FUNCTION_THRESHOLD:
        return best
    other, other_score = _best(label, _sub_candidates([f for f in FUNCTION_NAMES if f != function_name]))
    if other_score > score:
        best, score = other, other_score
    if score >= FUNCTION_THRESHOLD:
        return best
    logging.warning(f"No sub-function match for '{label}' under '{function_name}' (best '{best}' @ {score:.2f})")
    return label


def normalize_ai_primitive(label):
    """Comma-separated lists are normalized item by item."""
    if not label:
        return label
    if ',' in label:
        return ', '.join(normalize_ai_primitive(p.strip()) for p in label.split(','))
    best, score = _best(label, ((p, [p] + aliases) for p, aliases in AI_PRIMITIVES.items()))
    return best if score >= PRIMITIVE_THRESHOLD else label


# ══════════════════════════════════════════════════════════════
#  FORMULA ANNOTATION
# ══════════════════════════════════════════════════════════════

FORMULA_LABELS = {
    'revenue':  ['Revenue Uplift', 'Revenue at Risk', 'Realization Factor', 'Data Maturity'],
    'cost':     ['Hours Saved', 'Hourly Rate', 'Benefits Loading', 'Adoption Rate', 'Data Maturity'],
    'cashflow': ['Annual Revenue', 'Days Improved / 365', 'Cost of Capital', 'Realization Factor', 'Data Maturity'],
    'risk':     ['Risk Reduction %', 'Risk Exposure', 'Realization Factor', 'Data Maturity'],
}


def annotate_formula(text, kind):
    """Split 'a × b × c = $X → $Y' into labelled components for display."""
    if not text:
        return None
    low = text.lower()
    if 'no ' in low or 'n/a' in low or '=' not in text:
        return None
    lhs, rhs = text.split('=', 1)
    parts = [p.strip() for p in lhs.split('×') if p.strip()]
    if not parts:
        return None
    labels = FORMULA_LABELS.get(kind, [])
    return {
        'components': [{'value': p, 'label': labels[i] if i < len(labels) else f'Factor {i + 1}'}
                       for i, p in enumerate(parts)],
        'result': rhs.strip().split('→')[0].strip(),
        'rawFormula': text,
    }


# ══════════════════════════════════════════════════════════════
#  CROSS-STEP CONSISTENCY
# ══════════════════════════════════════════════════════════════

def verify_function_consistency(kpis, frictions, use_cases):
    """Warnings only; nothing is rewritten."""
    warnings = []
    f2 = {r.get('Function') for r in kpis if r.get('Function')}
    f3 = [r.get('Function') for r in frictions if r.get('Function')]
    f4 = [r.get('Function') for r in use_cases if r.get('Function')]

    for fn in dict.fromkeys(f3):
        if fn not in f2:
            warnings.append(f'Friction function "{fn}" (Step 3) has no corresponding KPI in Step 2')
    for fn in dict.fromkeys(f4):
        if fn not in set(f3):
            warnings.append(f'Use case function "{fn}" (Step 4) has no corresponding friction point in Step 3')

    kpi_subs = {}
    for r in kpis:
        if r.get('Function') and r.get('Sub-Function'):
            kpi_subs.setdefault(r['Function'], set()).add(r['Sub-Function'])
    for r in frictions:
        fn, sf = r.get('Function'), r.get('Sub-Function')
        if fn and sf and fn in kpi_subs and sf not in kpi_subs[fn]:
            warnings.append(f'Friction sub-function "{sf}" under "{fn}" (Step 3) not in Step 2 KPIs')

    for w in warnings:
        logging.info(f"Function consistency: {w}")
    return {'isValid': True, 'warnings': warnings}
