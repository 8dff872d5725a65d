"""CLI command tests (flask orgs / users / statements)."""

from datetime import datetime

from consignment.models import Organization, Statement, User
from conftest import make_sale


def test_orgs_create_and_list(app, db_session):
    runner = app.test_cli_runner()
    result = runner.invoke(args=[
        "orgs", "create", "--name", "Velvet Hanger", "--email", "owner@velvet.test",
        "--password", "Password123!",
    ])
    assert result.exit_code == 0, result.output
    assert "slug: velvet-hanger" in result.output

    org = db_session.query(Organization).filter_by(slug="velvet-hanger").one()
    assert db_session.query(User).filter_by(org_id=org.id, role="OWNER").count() == 1

    result = runner.invoke(args=["orgs", "list"])
    assert "velvet-hanger" in result.output


def test_set_subscription(app, db_session, org_b):
    result = app.test_cli_runner().invoke(args=[
        "orgs", "set-subscription", "--org-id", str(org_b.id), "--status", "active", "--tier", "pro",
    ])
    assert result.exit_code == 0, result.output
    org = db_session.get(Organization, org_b.id)
    assert (org.subscription_status, org.subscription_tier) == ("ACTIVE", "PRO")


def test_users_create_duplicate_email_fails(app, db_session, org_a, owner_a):
    result = app.test_cli_runner().invoke(args=[
        "users", "create", "--org-id", str(org_a.id), "--email", owner_a.email,
        "--password", "Password123!", "--role", "CLERK",
    ])
    assert result.exit_code != 0
    assert "already exists" in result.output


def test_statements_generate(app, db_session, org_a, consignor_a):
    make_sale(db_session, consignor_a, "SC-CLI", sale_date=datetime(2025, 11, 8, 10))
    result = app.test_cli_runner().invoke(args=[
        "statements", "generate", "--org-id", str(org_a.id), "--year", "2025", "--month", "11",
    ])
    assert result.exit_code == 0, result.output
    assert "1/1 statements generated" in result.output
    assert db_session.query(Statement).one().total_earnings_cents == 6000


def test_statements_generate_unknown_org(app, db_session):
    result = app.test_cli_runner().invoke(args=[
        "statements", "generate", "--org-id", "9999", "--year", "2025", "--month", "11",
    ])
    assert result.exit_code != 0
    assert "not found" in result.output
