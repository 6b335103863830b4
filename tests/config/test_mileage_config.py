"""Tests for YAML configuration loading and config-driven wiring.

get_active_config -> MileageConfig -> build_notifier / build_dispatcher /
VoucherOrchestrator.
"""
from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
import yaml

from mileage_config import get_active_config
from mileage_config.loader import apply_env_overrides, parse_config
from mileage_kernel.domain.notification import (
    DeliveryStatus,
    NotificationAction,
    NotificationRequest,
    VoucherSummary,
)
from mileage_kernel.domain.voucher import Principal, VoucherStatus
from mileage_services.email_notifier import LoggingNotifier, SmtpEmailNotifier
from mileage_services.voucher_orchestrator import (
    VoucherOrchestrator,
    build_dispatcher,
    build_notifier,
)


def _request():
    return NotificationRequest(
        action=NotificationAction.SUBMIT,
        recipient="sup@x.com",
        summary=VoucherSummary(
            voucher_id=uuid4(),
            employee_id=uuid4(),
            employee_name="Jamie Rivera",
            month=date(2025, 3, 1),
            total_miles=Decimal("42.00"),
        ),
    )


def _write_config(tmp_path, **overrides):
    data = {
        "config_id": "test-set",
        "log_level": "debug",
        "database": {"url": f"sqlite:///{tmp_path / 'cfg.db'}"},
        "notifications": {"app_url": "https://mileage.example.com/", "timeout_seconds": 1.5},
        "smtp": {"host": None},
    }
    data.update(overrides)
    path = tmp_path / "mileage.yaml"
    path.write_text(yaml.safe_dump(data))
    return path


class TestLoadConfig:

    def test_default_set(self):
        config = get_active_config(environ={})

        assert config.config_id == "mileage-default"
        assert config.database.url.startswith("postgresql://")
        assert config.notifications.timeout_seconds == 5.0
        assert config.smtp is None

    def test_parses_file(self, tmp_path):
        config = get_active_config(_write_config(tmp_path), environ={})

        assert config.config_id == "test-set"
        assert config.log_level == "DEBUG"
        assert config.notifications.app_url == "https://mileage.example.com"
        assert config.notifications.timeout_seconds == 1.5
        assert config.database.sqlite_busy_timeout == 15.0

    def test_env_overrides(self, tmp_path):
        config = get_active_config(
            _write_config(tmp_path),
            environ={
                "MILEAGE_DATABASE_URL": "sqlite:///elsewhere.db",
                "MILEAGE_SMTP_HOST": "smtp.example.com",
            },
        )

        assert config.database.url == "sqlite:///elsewhere.db"
        assert config.smtp is not None
        assert config.smtp.host == "smtp.example.com"
        assert config.smtp.port == 587

    def test_env_override_does_not_mutate_input(self):
        data = {"database": {"url": "a"}}
        apply_env_overrides(data, {"MILEAGE_DATABASE_URL": "b"})
        assert data["database"]["url"] == "a"

    def test_unknown_keys_kept_as_extra(self, tmp_path):
        config = get_active_config(_write_config(tmp_path, reports={"weekly": True}), environ={})
        assert config.extra == {"reports": {"weekly": True}}

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "absent.yaml", environ={})

    def test_missing_required_key(self):
        with pytest.raises(KeyError):
            parse_config({"config_id": "x", "notifications": {"app_url": "u"}})

    @pytest.mark.parametrize("timeout", [0, -2])
    def test_timeout_must_be_positive(self, tmp_path, timeout):
        path = _write_config(tmp_path, notifications={"app_url": "u", "timeout_seconds": timeout})
        with pytest.raises(ValueError):
            get_active_config(path, environ={})

    def test_logs_config_trace(self, tmp_path, captured_logs):
        get_active_config(_write_config(tmp_path), environ={})

        traces = [r for r in captured_logs() if r["message"] == "MILEAGE_CONFIG_TRACE"]
        assert traces and traces[0]["config_id"] == "test-set"


class TestWiringFromConfig:

    def test_logging_notifier_without_smtp(self, tmp_path):
        config = get_active_config(_write_config(tmp_path), environ={})
        assert isinstance(build_notifier(config), LoggingNotifier)

    def test_smtp_notifier_with_relay(self, tmp_path):
        path = _write_config(tmp_path, smtp={"host": "relay.local", "port": 25, "use_tls": False})
        config = get_active_config(path, environ={})

        assert config.smtp.use_tls is False
        assert isinstance(build_notifier(config), SmtpEmailNotifier)

    def test_dispatcher_uses_configured_timeout(self, tmp_path):
        config = get_active_config(_write_config(tmp_path), environ={})
        dispatcher = build_dispatcher(config)
        try:
            assert dispatcher.timeout_seconds == 1.5
        finally:
            dispatcher.shutdown()

    def test_notifications_disabled(self, tmp_path):
        path = _write_config(
            tmp_path, notifications={"app_url": "u", "enabled": False},
        )
        assert build_dispatcher(get_active_config(path, environ={})) is None

    def test_orchestrator_runs_workflow(self, tmp_path, session, notifier, deterministic_clock):
        config = get_active_config(_write_config(tmp_path), environ={})
        orchestrator = VoucherOrchestrator(
            session, config, notifier=notifier, clock=deterministic_clock,
        )
        try:
            employee = Principal(uuid4(), "employee@x.com")
            draft = orchestrator.workflow.get_or_create_voucher(
                employee.principal_id, deterministic_clock.now().date(),
                total_miles=Decimal("42"),
            )
            result = orchestrator.workflow.submit_voucher(draft.id, employee, "sup@x.com")
        finally:
            orchestrator.close()

        assert result.status == VoucherStatus.PENDING_SUPERVISOR
        assert orchestrator.vouchers.get_voucher(draft.id).status == VoucherStatus.PENDING_SUPERVISOR
        assert [o.delivered for o in result.notifications] == [True]
        assert notifier.actions() == [("submit", "sup@x.com")]

    def test_close_leaves_shared_dispatcher_running(self, tmp_path, session, notifier):
        config = get_active_config(_write_config(tmp_path), environ={})
        shared = build_dispatcher(config, notifier)
        try:
            VoucherOrchestrator(session, config, dispatcher=shared).close()
            (outcome,) = shared.dispatch([_request()])
        finally:
            shared.shutdown(wait=True)

        assert outcome.status == DeliveryStatus.SENT

    def test_close_shuts_down_own_dispatcher(self, tmp_path, session, notifier):
        config = get_active_config(_write_config(tmp_path), environ={})
        orchestrator = VoucherOrchestrator(session, config, notifier=notifier)
        orchestrator.close()

        (outcome,) = orchestrator.dispatcher.dispatch([_request()])

        assert outcome.status == DeliveryStatus.FAILED
        assert notifier.requests == []
