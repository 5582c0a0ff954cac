from __future__ import annotations

import asyncio
from datetime import timedelta

from conftest import NOW, TENANT, FakeSideEffects, make_feedback
from feedback_engine.celery_app import celery
from feedback_engine.workers.alerts import alert_hash, dispatch_critical_alerts
from feedback_engine.workers.notify import post_json
from feedback_engine.workers.orchestrator import dispatch_per_tenant, queue_for


def _dispatch(storage, side_effects, now=NOW):
    return asyncio.run(dispatch_critical_alerts(storage, side_effects, TENANT, now))


def test_all_clear_emits_nothing(storage) -> None:
    side_effects = FakeSideEffects()
    assert _dispatch(storage, side_effects) is None
    assert storage.alerts.rows == []
    assert side_effects.events == []


def test_identical_signals_are_suppressed_during_cooldown(storage) -> None:
    asyncio.run(storage.feedback.add(TENANT, make_feedback(rating=1, created_at=NOW - timedelta(hours=1))))
    side_effects = FakeSideEffects()

    first = _dispatch(storage, side_effects)
    assert first is not None
    assert first.signal_types == "guest_complaint"
    assert first.max_severity == 9
    assert first.cooldown_until == NOW + timedelta(seconds=1800)
    assert side_effects.events[0]["kind"] == "critical_alert"
    assert side_effects.events[0]["alert_log_id"] == first.id

    assert _dispatch(storage, side_effects, NOW + timedelta(minutes=10)) is None
    assert len(side_effects.events) == 1

    again = _dispatch(storage, side_effects, NOW + timedelta(minutes=31))
    assert again is not None
    assert len(side_effects.events) == 2


def test_new_signal_breaks_cooldown(storage) -> None:
    asyncio.run(storage.feedback.add(TENANT, make_feedback(rating=1, created_at=NOW - timedelta(hours=1))))
    side_effects = FakeSideEffects()
    _dispatch(storage, side_effects)

    asyncio.run(storage.feedback.add(TENANT, make_feedback(rating=2, created_at=NOW)))
    assert _dispatch(storage, side_effects, NOW + timedelta(minutes=1)) is not None
    assert len(storage.alerts.rows) == 2


def test_alert_log_survives_notification_failure(storage) -> None:
    asyncio.run(storage.feedback.add(TENANT, make_feedback(rating=1, created_at=NOW - timedelta(hours=1))))
    row = _dispatch(storage, FakeSideEffects(fail=True))
    assert row is not None
    assert storage.alerts.rows == [row]


def test_alert_hash_ignores_signal_order(storage) -> None:
    asyncio.run(storage.feedback.add(TENANT, make_feedback(rating=1, created_at=NOW - timedelta(hours=1))))
    asyncio.run(storage.feedback.add(TENANT, make_feedback(rating=3, created_at=NOW - timedelta(hours=2))))
    from feedback_engine.alert_detector import CriticalAlertDetector

    signals = asyncio.run(CriticalAlertDetector(storage).detect(TENANT, NOW))
    assert alert_hash(signals) == alert_hash(list(reversed(signals)))


def test_fan_out_sends_tenant_as_last_argument(monkeypatch) -> None:
    sent = []
    monkeypatch.setattr(celery, "send_task", lambda name, **kwargs: sent.append((name, kwargs)))

    count = dispatch_per_tenant("feedback_engine.workers.reports.run_report", ["a", "b"], "morning")

    assert count == 2
    assert [kwargs["args"] for _, kwargs in sent] == [["morning", "a"], ["morning", "b"]]
    assert all(kwargs["queue"] == "reports" for _, kwargs in sent)


def test_queue_for_falls_back_to_default_queue() -> None:
    assert queue_for("feedback_engine.workers.sla_sweep.run_sla_sweep") == "maintenance"
    assert queue_for("unknown.task") == "maintenance"


def test_beat_schedule_runs_every_job_through_fan_out() -> None:
    schedule = celery.conf.beat_schedule
    assert {entry["task"] for entry in schedule.values()} == {"feedback_engine.workers.orchestrator.fan_out"}
    assert schedule["sla-sweep-every-5m"]["schedule"] == 300.0
    assert schedule["critical-check-every-30m"]["schedule"] == 1800.0


def test_post_json_without_url_only_logs() -> None:
    assert asyncio.run(post_json("", {"kind": "sla_breach"}, kind="sla_breach")) is False
