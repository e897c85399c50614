from prometheus_client import Counter, Histogram

LEAD_SETTLEMENTS = Counter(
    "lead_settlements_total",
    "Lead settlement attempts by outcome",
    ["platform", "outcome"],
)
LEAD_SETTLEMENT_LATENCY = Histogram(
    "lead_settlement_duration_seconds",
    "Lead settlement duration",
    ["platform"],
)
AUTO_RECHARGE_ATTEMPTS = Counter(
    "auto_recharge_attempts_total",
    "Auto-recharge attempts by outcome",
    ["outcome"],
)
WEBHOOK_EVENTS = Counter(
    "webhook_events_total",
    "Inbound webhook lead events by outcome",
    ["platform", "outcome"],
)


def observe_settlement(platform: str, outcome: str, duration: float) -> None:
    LEAD_SETTLEMENTS.labels(platform=platform, outcome=outcome).inc()
    LEAD_SETTLEMENT_LATENCY.labels(platform=platform).observe(duration)
