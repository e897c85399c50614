import uuid
from unittest.mock import patch

import pytest
from sqlalchemy import select

from leadhub.models.balance import BalanceTransaction, TransactionType
from leadhub.models.lead import ImportedLead, LeadStatus
from leadhub.models.lead_import import LeadPlatform
from leadhub.models.notification import LeadNotification
from leadhub.services import ledger
from leadhub.services.lead_settlement import (
    SettlementError,
    SettlementInconsistent,
    process_lead,
    resolve_config_for_campaign,
)

LEAD_85 = {
    "first_name": "Jane",
    "last_name": "Doe",
    "email": "jane@example.com",
    "phone": "+1 555 123 4567",
    "demographics": {"age": 34, "income": "75k", "homeowner": True},
}
LEAD_40 = {"first_name": "Jane", "email": "jane@example.com"}


def _leads(db_session):
    return db_session.scalars(select(ImportedLead)).all()


def _deductions(db_session):
    return db_session.scalars(
        select(BalanceTransaction).where(BalanceTransaction.type == TransactionType.deduction)
    ).all()


def test_successful_settlement(db_session, account, fund, make_config):
    fund(account.id, 10000)
    config = make_config(account, cost_per_lead_cents=500, quality_score_min=60)

    result = process_lead(db_session, config.id, LEAD_85, "lead-1")

    assert result.success is True
    assert result.quality_score == 85
    lead = db_session.get(ImportedLead, result.lead_id)
    assert lead.status == LeadStatus.delivered
    assert lead.cost_cents == 500
    assert lead.source_platform == LeadPlatform.custom
    assert ledger.get_balance(db_session, account.id).balance_cents == 9500
    deductions = _deductions(db_session)
    assert len(deductions) == 1
    assert deductions[0].amount_cents == -500
    assert deductions[0].reference_id == str(result.lead_id)
    notification = db_session.scalars(select(LeadNotification)).one()
    assert notification.type == "new_lead"
    assert notification.data["lead_id"] == str(result.lead_id)


def test_insufficient_funds_without_auto_recharge(db_session, account, make_config):
    config = make_config(account, cost_per_lead_cents=500)

    result = process_lead(db_session, config.id, LEAD_85, "lead-1")

    assert result.success is False
    assert result.error == "Insufficient balance"
    assert result.reason == SettlementError.insufficient_funds
    assert _leads(db_session) == []
    assert ledger.get_balance(db_session, account.id).balance_cents == 0


def test_below_threshold_is_rejected_without_side_effects(db_session, account, fund, make_config):
    fund(account.id, 10000)
    config = make_config(account, cost_per_lead_cents=500, quality_score_min=60)

    result = process_lead(db_session, config.id, LEAD_40, "lead-1")

    assert result.success is False
    assert result.error == "Lead quality below threshold"
    assert result.quality_score == 40
    assert _leads(db_session) == []
    assert ledger.get_balance(db_session, account.id).balance_cents == 10000


def test_region_not_allowed(db_session, account, fund, make_config):
    fund(account.id, 10000)
    config = make_config(account, geo_restrictions=["CA", "NY"])

    lead = {**LEAD_85, "address": {"state": "TX"}}

    result = process_lead(db_session, config.id, lead, "lead-1")

    assert result.error == "Lead location not in allowed regions"
    assert _leads(db_session) == []


def test_lead_without_location_passes_geo_filter(db_session, account, fund, make_config):
    fund(account.id, 10000)
    config = make_config(account, geo_restrictions=["CA"])

    result = process_lead(db_session, config.id, {"email": "a@b.com"}, "lead-1")

    assert result.success is True


@pytest.mark.parametrize("identifier", ["not-a-uuid", str(uuid.uuid4())])
def test_unknown_config(db_session, identifier):
    result = process_lead(db_session, identifier, LEAD_85, "lead-1")

    assert result.success is False
    assert result.error == "Invalid or inactive import configuration"


def test_inactive_config(db_session, account, fund, make_config):
    fund(account.id, 10000)
    config = make_config(account, is_active=False)

    result = process_lead(db_session, config, LEAD_85, "lead-1")

    assert result.reason == SettlementError.config_not_found


def test_redelivered_lead_is_not_charged_twice(db_session, account, fund, make_config):
    fund(account.id, 10000)
    config = make_config(account, cost_per_lead_cents=500)

    first = process_lead(db_session, config.id, LEAD_85, "lead-1")
    second = process_lead(db_session, config.id, LEAD_85, "lead-1")

    assert second.success is True
    assert second.duplicate is True
    assert second.lead_id == first.lead_id
    assert len(_leads(db_session)) == 1
    assert ledger.get_balance(db_session, account.id).balance_cents == 9500


def test_auto_recharge_failure(db_session, account, make_config):
    config = make_config(account, auto_recharge=True, recharge_amount_cents=5000)

    with patch(
        "leadhub.services.lead_settlement.attempt_auto_recharge", return_value=False
    ) as mock_recharge:
        result = process_lead(db_session, config.id, LEAD_85, "lead-1")

    mock_recharge.assert_called_once_with(db_session, account.id, 5000)
    assert result.error == "Insufficient balance and auto-recharge failed"
    assert _leads(db_session) == []


def test_auto_recharge_success_then_settles(db_session, account, make_config):
    config = make_config(account, auto_recharge=True, recharge_amount_cents=5000)

    def _recharge(db, account_id, amount_cents):
        ledger.credit(db, account_id, amount_cents, TransactionType.auto_recharge, "pi_auto")
        return True

    with patch("leadhub.services.lead_settlement.attempt_auto_recharge", side_effect=_recharge):
        result = process_lead(db_session, config.id, LEAD_85, "lead-1")

    assert result.success is True
    assert ledger.get_balance(db_session, account.id).balance_cents == 3500


def test_lost_debit_race_marks_lead_failed(db_session, account, fund, make_config):
    fund(account.id, 10000)
    config = make_config(account, cost_per_lead_cents=500)

    with patch(
        "leadhub.services.lead_settlement.ledger.debit",
        return_value=ledger.DebitResult.insufficient_funds,
    ):
        result = process_lead(db_session, config.id, LEAD_85, "lead-1")

    assert result.success is False
    assert result.error == "Insufficient balance"
    lead = db_session.get(ImportedLead, result.lead_id)
    assert lead.status == LeadStatus.failed
    assert lead.failure_reason == "insufficient_funds"
    assert ledger.get_balance(db_session, account.id).balance_cents == 10000


def test_debit_error_raises_inconsistent(db_session, account, fund, make_config):
    fund(account.id, 10000)
    config = make_config(account, cost_per_lead_cents=500)

    with patch(
        "leadhub.services.lead_settlement.ledger.debit",
        side_effect=RuntimeError("connection lost"),
    ):
        with pytest.raises(SettlementInconsistent) as excinfo:
            process_lead(db_session, config.id, LEAD_85, "lead-1")

    lead = db_session.get(ImportedLead, excinfo.value.lead_id)
    assert lead.status == LeadStatus.failed
    assert lead.failure_reason == "settlement_error"


def test_notification_failure_does_not_fail_settlement(db_session, account, fund, make_config):
    fund(account.id, 10000)
    config = make_config(account, cost_per_lead_cents=500)

    with patch(
        "leadhub.services.lead_notifications.notify", side_effect=RuntimeError("down")
    ):
        result = process_lead(db_session, config.id, LEAD_85, "lead-1")

    assert result.success is True
    assert db_session.get(ImportedLead, result.lead_id).status == LeadStatus.delivered


def test_is_test_flag_is_persisted(db_session, account, fund, make_config):
    fund(account.id, 10000)
    config = make_config(account)

    result = process_lead(db_session, config, LEAD_85, "lead-1", is_test=True)

    assert db_session.get(ImportedLead, result.lead_id).is_test is True


def test_resolve_config_for_campaign_returns_active_match(db_session, make_account, make_config):
    owner = make_account()
    other = make_account()
    config = make_config(owner, platform=LeadPlatform.facebook, campaign_id="form-1")
    make_config(other, platform=LeadPlatform.facebook, campaign_id="form-1", is_active=False)

    assert resolve_config_for_campaign(db_session, LeadPlatform.facebook, "form-1").id == config.id
    assert (
        resolve_config_for_campaign(db_session, LeadPlatform.facebook, "form-1", other.id)
        is None
    )
    assert (
        resolve_config_for_campaign(db_session, LeadPlatform.facebook, "form-1", "bad-id")
        is None
    )
