"""Prometheus metrics for triage, response lifecycle and alerting."""
from __future__ import annotations

from prometheus_client import Counter, Histogram


FEEDBACK_TRANSITIONS_TOTAL = Counter(
    "guest_feedback_transitions_total",
    "Feedback status transitions",
    ["from_status", "to_status"],
)

RESPONSE_TRANSITIONS_TOTAL = Counter(
    "guest_response_transitions_total",
    "Review response status transitions",
    ["from_status", "to_status"],
)

DRAFTS_TOTAL = Counter(
    "guest_response_drafts_total",
    "Drafting service calls by outcome",
    ["adapter", "outcome", "regenerate"],
)

DRAFT_LATENCY_SECONDS = Histogram(
    "guest_response_draft_latency_seconds",
    "Drafting service latency",
    ["adapter"],
    buckets=(0.1, 0.25, 0.5, 1, 2, 5, 10, 20, 40),
)

ALERT_SIGNALS_TOTAL = Counter(
    "guest_alert_signals_total",
    "Critical alert signals detected",
    ["signal_type", "severity"],
)

SIDE_EFFECTS_TOTAL = Counter(
    "guest_side_effects_total",
    "Best-effort side-effect dispatches by outcome",
    ["kind", "outcome"],
)

REPORTS_TOTAL = Counter(
    "guest_reports_total",
    "Reports synthesized by type",
    ["report_type"],
)

SLA_BREACHES_TOTAL = Counter(
    "guest_sla_breaches_total",
    "Open feedback items found in breach by the SLA sweep",
    ["sla_state"],
)

RESPONSE_RISK_TOTAL = Counter(
    "guest_response_risk_total",
    "Drafted responses by assessed risk level",
    ["risk_level"],
)
