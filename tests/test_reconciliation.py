from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import pytest

from leadhub.models.balance import BalanceTransaction, TransactionType
from leadhub.models.lead import ImportedLead, LeadStatus
from leadhub.services.reconciliation import reconcile_stale_pending_leads


def _pending_lead(db_session, config, source_id, minutes_ago):
    lead = ImportedLead(
        account_id=config.account_id,
        config_id=config.id,
        campaign_id=config.campaign_id,
        source_platform=config.platform,
        source_lead_id=source_id,
        lead_data={},
        cost_cents=config.cost_per_lead_cents,
        status=LeadStatus.pending,
        imported_at=datetime.now(timezone.utc) - timedelta(minutes=minutes_ago),
    )
    db_session.add(lead)
    db_session.commit()
    return lead


def test_reconcile_stale_pending_leads(db_session, account, make_config):
    config = make_config(account)
    charged = _pending_lead(db_session, config, "charged", 60)
    uncharged = _pending_lead(db_session, config, "uncharged", 60)
    fresh = _pending_lead(db_session, config, "fresh", 1)
    db_session.add(
        BalanceTransaction(
            account_id=account.id,
            type=TransactionType.deduction,
            amount_cents=-config.cost_per_lead_cents,
            reference_id=str(charged.id),
        )
    )
    db_session.commit()

    summary = reconcile_stale_pending_leads(db_session, older_than_minutes=15)

    assert summary == {"scanned": 2, "delivered": 1, "failed": 1}
    assert db_session.get(ImportedLead, charged.id).status == LeadStatus.delivered
    failed = db_session.get(ImportedLead, uncharged.id)
    assert failed.status == LeadStatus.failed
    assert failed.failure_reason == "stale_pending"
    assert db_session.get(ImportedLead, fresh.id).status == LeadStatus.pending


class TestReconciliationTask:
    def test_reconcile_pending_leads_success(self):
        mock_session = MagicMock()

        with patch("leadhub.tasks.reconciliation.SessionLocal", return_value=mock_session):
            with patch(
                "leadhub.tasks.reconciliation.reconciliation_service.reconcile_stale_pending_leads",
                return_value={"scanned": 0, "delivered": 0, "failed": 0},
            ) as mock_run:
                from leadhub.tasks.reconciliation import reconcile_pending_leads

                reconcile_pending_leads()

                mock_run.assert_called_once_with(mock_session)
                mock_session.close.assert_called_once()

    def test_reconcile_pending_leads_exception_rollback(self):
        mock_session = MagicMock()

        with patch("leadhub.tasks.reconciliation.SessionLocal", return_value=mock_session):
            with patch(
                "leadhub.tasks.reconciliation.reconciliation_service.reconcile_stale_pending_leads",
                side_effect=Exception("db down"),
            ):
                from leadhub.tasks.reconciliation import reconcile_pending_leads

                with pytest.raises(Exception, match="db down"):
                    reconcile_pending_leads()

                mock_session.rollback.assert_called_once()
                mock_session.close.assert_called_once()

    def test_beat_schedule_registers_task(self):
        from leadhub.celery_app import celery_app

        entry = celery_app.conf.beat_schedule["reconcile-pending-leads"]
        assert entry["task"] == "leadhub.tasks.reconciliation.reconcile_pending_leads"


def test_reconcile_delivers_free_leads(db_session, account, make_config):
    config = make_config(account, cost_per_lead_cents=0)
    free = _pending_lead(db_session, config, "free", 60)

    summary = reconcile_stale_pending_leads(db_session, older_than_minutes=15)

    assert summary == {"scanned": 1, "delivered": 1, "failed": 0}
    assert db_session.get(ImportedLead, free.id).status == LeadStatus.delivered
