from valuelens.assumptions import build_assumptions
from valuelens.roles import (
    STANDARDIZED_ROLES, get_role_by_function, normalize_friction_roles, normalize_role, role_rate,
)


def test_role_table_ids_are_unique():
    ids = [r['roleId'] for r in STANDARDIZED_ROLES]
    assert len(ids) == len(set(ids)) == 26


def test_exact_name_match():
    role, confidence = normalize_role('business analyst')
    assert role['roleId'] == 'ROLE_PRO_BIZ_ANALYST'
    assert confidence == 'exact'


def test_alias_match():
    role, confidence = normalize_role('Staff Accountant')
    assert role['roleName'] == 'Accountant'
    assert confidence == 'alias'
    role, confidence = normalize_role('CSR')
    assert role['roleId'] == 'ROLE_OPS_CUST_SVC_REP'
    assert confidence == 'alias'


def test_containment_match():
    role, confidence = normalize_role('Senior Financial Analyst II')
    assert role['roleId'] == 'ROLE_PRO_FIN_ANALYST'
    assert confidence == 'fuzzy'


def test_short_alias_needs_whole_token():
    role, _ = normalize_role('Lead BA')
    assert role['roleId'] == 'ROLE_PRO_BIZ_ANALYST'


def test_function_fallback_prefers_professional_roles():
    role, confidence = normalize_role(None, 'Finance')
    assert confidence == 'function-fallback'
    assert role['category'] == 'professional'
    assert get_role_by_function('Human Resources')['roleId'] == 'ROLE_PRO_HR_SPEC'


def test_default_role():
    role, confidence = normalize_role('', '')
    assert role['roleId'] == 'ROLE_PRO_BIZ_ANALYST'
    assert confidence == 'default'


def test_role_rate_override():
    a = build_assumptions({'roleRates': {'ROLE_PRO_ACCOUNTANT': 120}})
    assert role_rate('ROLE_PRO_ACCOUNTANT', a) == 120
    assert role_rate('ROLE_PRO_ACCOUNTANT') == 90
    assert role_rate('ROLE_DOES_NOT_EXIST') == 75


def test_normalize_friction_roles_overwrites_rate():
    records = [{'Friction Point': 'Manual invoice matching', 'Role': 'Staff Accountant',
                'Hourly Rate': '$45/hr', 'Function': 'Finance'}]
    out, entries = normalize_friction_roles(records)
    assert out[0]['Role'] == 'Accountant'
    assert out[0]['Role ID'] == 'ROLE_PRO_ACCOUNTANT'
    assert out[0]['Hourly Rate'] == 90
    assert records[0]['Hourly Rate'] == '$45/hr'
    e = entries[0]
    assert e['originalRole'] == 'Staff Accountant'
    assert e['originalRate'] == 45
    assert e['standardizedRate'] == 90
    assert e['confidence'] == 'alias'
    assert e['wasNormalized'] is False


def test_normalize_friction_roles_flags_fuzzy_matches():
    _, entries = normalize_friction_roles([{'Friction Point': 'X', 'Role': 'Lead BA'}])
    assert entries[0]['wasNormalized'] is True
    assert entries[0]['originalRate'] == 0
