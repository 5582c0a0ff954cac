"""Celery application — RabbitMQ broker, Redis result backend.

Hosts the timer-triggered digests and sweeps plus the fire-and-forget
drafting, alerting and notification work.
"""
from __future__ import annotations

from celery import Celery
from celery.schedules import crontab
from celery.signals import setup_logging as celery_setup_logging
from kombu import Exchange, Queue

from feedback_engine.config import settings
from feedback_engine.logging_config import setup_logging

celery = Celery(
    "feedback_engine",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.REDIS_URL,
    include=[
        "feedback_engine.workers.alerts",
        "feedback_engine.workers.draft",
        "feedback_engine.workers.notify",
        "feedback_engine.workers.reports",
        "feedback_engine.workers.sla_sweep",
        "feedback_engine.workers.orchestrator",
    ],
)

# ── Serialisation ──
celery.conf.accept_content = ["json"]
celery.conf.task_serializer = "json"
celery.conf.result_serializer = "json"
celery.conf.timezone = "UTC"
celery.conf.enable_utc = True


@celery_setup_logging.connect
def _worker_logging(**_kwargs) -> None:
    """Workers log JSON through the same root handler as the API."""
    setup_logging()


# ── Reliability ──
celery.conf.task_acks_late = True
celery.conf.worker_prefetch_multiplier = 1
celery.conf.task_reject_on_worker_lost = True

# ── Exchanges & Queues ──
default_exchange = Exchange("feedback", type="direct")

celery.conf.task_queues = (
    Queue("drafting", default_exchange, routing_key="drafting"),
    Queue("alerts", default_exchange, routing_key="alerts"),
    Queue("notifications", default_exchange, routing_key="notifications"),
    Queue("reports", default_exchange, routing_key="reports"),
    Queue("maintenance", default_exchange, routing_key="maintenance"),
)

celery.conf.task_default_queue = "maintenance"
celery.conf.task_default_exchange = "feedback"
celery.conf.task_default_routing_key = "maintenance"

# ── Task routes ──
celery.conf.task_routes = {
    "feedback_engine.workers.draft.run_drafting": {"queue": "drafting"},
    "feedback_engine.workers.alerts.run_critical_check": {"queue": "alerts"},
    "feedback_engine.workers.notify.run_notification": {"queue": "notifications"},
    "feedback_engine.workers.reports.run_report": {"queue": "reports"},
    "feedback_engine.workers.sla_sweep.run_sla_sweep": {"queue": "maintenance"},
    "feedback_engine.workers.orchestrator.fan_out": {"queue": "maintenance"},
}

# ── Beat Schedule ──
celery.conf.beat_schedule = {
    "sla-sweep-every-5m": {
        "task": "feedback_engine.workers.orchestrator.fan_out",
        "schedule": 300.0,
        "args": ["feedback_engine.workers.sla_sweep.run_sla_sweep"],
    },
    "critical-check-every-30m": {
        "task": "feedback_engine.workers.orchestrator.fan_out",
        "schedule": 1800.0,
        "args": ["feedback_engine.workers.alerts.run_critical_check"],
    },
    "morning-digest-0700": {
        "task": "feedback_engine.workers.orchestrator.fan_out",
        "schedule": crontab(minute=0, hour=7),
        "args": ["feedback_engine.workers.reports.run_report", "morning"],
    },
    "weekly-digest-monday-0800": {
        "task": "feedback_engine.workers.orchestrator.fan_out",
        "schedule": crontab(minute=0, hour=8, day_of_week="mon"),
        "args": ["feedback_engine.workers.reports.run_report", "weekly"],
    },
}
