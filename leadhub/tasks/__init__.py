from leadhub.tasks.reconciliation import reconcile_pending_leads

__all__ = ["reconcile_pending_leads"]
