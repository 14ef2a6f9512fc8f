"""
Tests for decision audit logging and metrics.
"""

import json
import logging
from datetime import datetime, timedelta

import pytest
from prometheus_client import CollectorRegistry

from grbac.audit import (
    DecisionEvent,
    LoggingAuditLogger,
    MemoryAuditLogger,
    create_audit_logger,
)
from grbac.metrics import DecisionMetrics, create_decision_metrics


def make_event(principal_id=1, allowed=True, **kwargs):
    return DecisionEvent(principal_id=principal_id, permissions=["users:read"],
                         allowed=allowed, source="local", **kwargs)


class TestMemoryAuditLogger:
    """Test in-memory audit logging."""

    @pytest.mark.asyncio
    async def test_filters(self):
        audit = MemoryAuditLogger()
        await audit.log(make_event(1, True))
        await audit.log(make_event(1, False))
        await audit.log(make_event(2, True))

        assert len(await audit.get_events()) == 3
        assert len(await audit.get_events(principal_id=1)) == 2
        assert len(await audit.get_events(principal_id=2, allowed=False)) == 0
        assert len(await audit.get_events(allowed=True)) == 2

    @pytest.mark.asyncio
    async def test_time_window(self):
        audit = MemoryAuditLogger()
        now = datetime.now()
        await audit.log(make_event(timestamp=now - timedelta(hours=2)))
        await audit.log(make_event(timestamp=now))

        recent = await audit.get_events(start_time=now - timedelta(hours=1))
        assert len(recent) == 1
        old = await audit.get_events(end_time=now - timedelta(hours=1))
        assert len(old) == 1

    @pytest.mark.asyncio
    async def test_max_entries(self):
        audit = MemoryAuditLogger(max_entries=2)
        for principal_id in range(3):
            await audit.log(make_event(principal_id))

        assert [e.principal_id for e in await audit.get_events()] == [1, 2]

    def test_event_dict(self):
        event = make_event(combinator="OR", principal_type="users")
        data = event.to_dict()

        assert data["event_id"] == event.event_id
        assert data["combinator"] == "OR"
        assert data["principal_type"] == "users"
        assert make_event().event_id != event.event_id


class TestLoggingAuditLogger:
    """Test audit logging through the logging module."""

    @pytest.mark.asyncio
    async def test_writes_json_lines(self, caplog):
        caplog.set_level(logging.INFO, logger="grbac.audit.decisions")
        audit = LoggingAuditLogger()
        await audit.log(make_event(7, False, reason="Permission denied."))

        record = json.loads(caplog.records[-1].getMessage())
        assert record["principal_id"] == 7
        assert record["allowed"] is False
        assert record["reason"] == "Permission denied."
        assert await audit.get_events() == []

    def test_factory(self):
        assert isinstance(create_audit_logger(), MemoryAuditLogger)
        assert create_audit_logger("memory", max_entries=5).max_entries == 5
        assert isinstance(create_audit_logger("logging"), LoggingAuditLogger)
        with pytest.raises(ValueError):
            create_audit_logger("redis")


class TestDecisionMetrics:
    """Test Prometheus decision metrics."""

    def test_counts(self, metrics):
        metrics.record_decision("local", True)
        metrics.record_decision("local", True)
        metrics.record_decision("remote", False)

        assert metrics.get_count("local", True) == 2
        assert metrics.get_count("remote", False) == 1
        assert metrics.get_count("rules", True) == 0

    def test_export(self, metrics):
        metrics.record_decision("rules", False)
        metrics.record_remote_error(timed_out=True)
        with metrics.timer("rules"):
            pass
        text = metrics.export()

        assert 'grbac_decisions_total{outcome="denied",source="rules"} 1.0' in text
        assert 'grbac_remote_errors_total{reason="timeout"} 1.0' in text
        assert 'grbac_decision_duration_seconds_count{source="rules"} 1.0' in text

    def test_disabled(self):
        metrics = DecisionMetrics(registry=CollectorRegistry(), enabled=False)
        metrics.record_decision("local", True)
        metrics.record_remote_error(timed_out=False)

        assert metrics.get_summary() == {"enabled": False, "counts": {}}

    def test_namespace(self):
        metrics = create_decision_metrics(registry=CollectorRegistry(), namespace="authz")
        metrics.record_compilation("DEFAULT", success=False)
        assert 'authz_rule_compilations_total{group="DEFAULT",status="failure"} 1.0' in metrics.export()
