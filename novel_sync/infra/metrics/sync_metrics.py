# novel_sync/infra/metrics/sync_metrics.py
"""
Ledger Sync Metrics

Prometheus metrics for:
- Ledger calls (latency, failures, timeouts)
- Event dispatch (received / handled / unhandled / failed)
- Recharge workflow outcomes
- Ledger vs projection consistency
"""

from prometheus_client import Counter, Histogram, Gauge

# ============================================================================
# Ledger Call Metrics
# ============================================================================

ledger_call_duration_seconds = Histogram(
    'novel_sync_ledger_call_duration_seconds',
    'Ledger transaction round-trip time',
    ['kind', 'tx_name'],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0]
)

ledger_call_failures_total = Counter(
    'novel_sync_ledger_call_failures_total',
    'Failed ledger transactions',
    ['kind', 'tx_name', 'reason']
)

# ============================================================================
# Event Dispatch Metrics
# ============================================================================

ledger_events_total = Counter(
    'novel_sync_ledger_events_total',
    'Ledger events seen by the dispatcher',
    ['event_name', 'outcome']
)

projection_handler_duration_seconds = Histogram(
    'novel_sync_projection_handler_duration_seconds',
    'Time spent applying one event to the projection',
    ['event_name'],
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 5.0]
)

ledger_last_block_processed = Gauge(
    'novel_sync_ledger_last_block_processed',
    'Block number of the last event the dispatcher finished with'
)

dispatcher_running = Gauge(
    'novel_sync_dispatcher_running',
    'Whether the event dispatcher loop is active (1) or stopped (0)'
)

# ============================================================================
# Recharge Metrics
# ============================================================================

recharge_requests_total = Counter(
    'novel_sync_recharge_requests_total',
    'Recharge requests by outcome',
    ['outcome']
)

recharge_credits_added_total = Counter(
    'novel_sync_recharge_credits_added_total',
    'Credits added to the ledger by recharges'
)

# ============================================================================
# Reconciliation Metrics
# ============================================================================

reconciliation_runs_total = Counter(
    'novel_sync_reconciliation_runs_total',
    'Consistency checks by result',
    ['status']
)

reconciliation_duration_seconds = Histogram(
    'novel_sync_reconciliation_duration_seconds',
    'Time taken by a consistency check',
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0]
)

entity_count = Gauge(
    'novel_sync_entity_count',
    'Entity counts observed by the last consistency check',
    ['entity_type', 'side']
)

consistency_status = Gauge(
    'novel_sync_consistency_status',
    'Result of the last consistency check (1 = consistent, 0 = drift)'
)


# ============================================================================
# Helper Functions
# ============================================================================

def record_event_outcome(event_name: str, outcome: str) -> None:
    """Count one dispatched event. outcome: handled / unhandled / failed / filtered"""
    ledger_events_total.labels(event_name=event_name, outcome=outcome).inc()


def record_recharge_outcome(outcome: str) -> None:
    recharge_requests_total.labels(outcome=outcome).inc()


def record_entity_counts(entity_type: str, ledger: int, projection: int) -> None:
    entity_count.labels(entity_type=entity_type, side='ledger').set(ledger)
    entity_count.labels(entity_type=entity_type, side='projection').set(projection)
