"""Shared assessment documents for the ValueLens tests."""
import pytest


def _step(n, data, title=''):
    return {'step': n, 'title': title, 'content': '', 'data': data}


@pytest.fixture
def sample_document():
    """Two use cases with a few of the usual model mistakes baked in:
    an absurd hours claim, free-text role names, legacy column names and
    1-5 readiness scores, and a step 7 missing one use case."""
    return {
        'steps': [
            _step(0, [{'Company': 'Acme Corp', 'Annual Revenue ($)': '$500M', 'Total Employees': 5000}]),
            _step(1, [{'Driver': 'Cost reduction', 'Primary Driver': 'Lower cost to serve'}]),
            _step(2, [
                {'Function': 'Finance', 'Sub-Function': 'Accounts Payable', 'KPI': 'Invoice cycle time'},
                {'Function': 'Customer Service', 'Sub-Function': 'Ticket Management', 'KPI': 'Average handle time'},
            ]),
            _step(3, [
                {'Function': 'Finance', 'Sub-Function': 'Accounts Payable',
                 'Friction Point': 'Manual invoice matching', 'Role': 'Staff Accountant',
                 'Annual Hours': 28000, 'Hourly Rate': '$45/hr',
                 'Estimated Annual Cost ($)': '$1.3M', 'Primary Driver Impact': 'Cost reduction'},
                {'Function': 'Customer Service', 'Sub-Function': 'Ticket Management',
                 'Friction Point': 'Repetitive customer inquiries', 'Role': 'Call Center Agent',
                 'Annual Hours': '40,000', 'Estimated Annual Cost ($)': '$1.8M',
                 'Primary Driver Impact': 'Customer experience'},
            ]),
            _step(4, [
                {'ID': 'UC-01', 'Use Case': 'Invoice matching agent', 'Target Friction': 'Manual invoice matching',
                 'AI Primitives': 'Data Analysis, Workflow Automation',
                 'Function': 'Finance', 'Sub-Function': 'Accounts Payable'},
                {'ID': 'UC-02', 'Use Case Name': 'Customer inquiry assistant',
                 'Target Friction': 'Repetitive customer inquiries', 'AI Primitives': 'Chatbot',
                 'Function': 'Customer Service', 'Sub-Function': 'Ticket Management'},
            ]),
            _step(5, [
                {'ID': 'UC-01', 'Use Case': 'Invoice matching agent',
                 'Cost Benefit ($)': '$27B',
                 'Cost Formula': '420,000,000 hours × $95/hr × 0.90 × 0.75 = $27B',
                 'Revenue Formula': 'No direct revenue impact',
                 'Cash Flow Formula': '$500M × (5 / 365) × 0.08 × 0.85 × 0.75 = $0.3M',
                 'Risk Formula': 'N/A',
                 'Probability of Success': '80%'},
                {'ID': 'UC-02', 'Use Case Name': 'Customer inquiry assistant',
                 'Cost Formula': '20,000 hours × $50/hr × 0.90 × 0.75 = $0.9M',
                 'Revenue Formula': '5% × $100M × 0.95 × 0.75 = $3.6M',
                 'Cash Flow Formula': 'No direct cash flow impact',
                 'Risk Formula': '20% × $10M exposure × 0.80 × 0.70 = $1.1M'},
            ]),
            _step(6, [
                {'ID': 'UC-01', 'Use Case Name': 'Invoice matching agent',
                 'Organizational Capacity': 8, 'Data Availability & Quality': 7,
                 'Technical Infrastructure': 6, 'Governance': 7, 'Time-to-Value (months)': 3,
                 'Runs/Month': 10000, 'Input Tokens/Run': 2000, 'Output Tokens/Run': 500},
                {'ID': 'UC-02', 'Use Case': 'Customer inquiry assistant',
                 'Change Mgmt (1-5)': 4, 'Data Readiness (1-5)': 3, 'TTV': '6 months',
                 'Runs/Month': 5000, 'Input Tokens/Run': 1000, 'Output Tokens/Run': 300},
            ]),
            _step(7, [
                {'ID': 'UC-01', 'Use Case': 'Invoice matching agent', 'Strategic Theme': 'Finance automation'},
            ]),
        ],
    }


@pytest.fixture
def overclaimed_document():
    """Four identical use cases on a $10M company: every one breaches the
    per use case cap and together they breach the portfolio cap."""
    ucs = [{'ID': f'UC-0{i}', 'Use Case': f'Automation {i}',
            'Cost Formula': '100,000 hours × $100/hr × 0.90 × 0.75 = $9.1M'} for i in range(1, 5)]
    return {
        'steps': [
            _step(0, {'Annual Revenue ($)': '$10M'}),
            _step(5, ucs),
        ],
    }
