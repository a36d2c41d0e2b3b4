"""Tests for SLAService, the policy lookup, the YAML provider and the config watcher."""

from datetime import datetime, timedelta, timezone
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from src.config import SLAState
from src.core import ConfigurationException
from src.incidents.domain import Incident
from src.sla.application import SLAService
from src.sla.domain import SLAConfig
from src.sla.infrastructure import (
    SLAConfigWatcher,
    SLAPolicyModel,
    SQLAlchemySLAPolicyLookup,
    YAMLConfigProvider,
)
from src.sla.infrastructure.external import ConfigFileHandler

from conftest import MONDAY_10AM, ORG, OTHER_ORG


UTC = timezone.utc


def _make_policy(**overrides) -> SLAPolicyModel:
    fields = {
        "organization_id": ORG,
        "name": "Gold",
        "priority": "high",
        "response_time_mins": 10,
        "resolution_time_mins": 60,
        "business_hours_only": True,
        "is_active": True,
    }
    fields.update(overrides)
    return SLAPolicyModel(**fields)


async def _insert(session_maker, *models):
    async with session_maker() as session:
        session.add_all(models)
        await session.commit()


def _make_incident(**overrides) -> Incident:
    fields = {
        "id": "inc-1",
        "organization_id": ORG,
        "ticket_number": "INC-000001",
        "title": "Payroll export failing",
        "description": "",
        "reporter_id": "user-1",
        "created_at": MONDAY_10AM,
        "updated_at": MONDAY_10AM,
        "status": "in_progress",
        "sla_response_due": MONDAY_10AM + timedelta(hours=1),
        "sla_resolution_due": MONDAY_10AM + timedelta(hours=8),
        "sla_response_at": None,
        "sla_response_met": None,
        "sla_resolution_met": None,
        "sla_paused_at": None,
        "sla_total_paused_mins": 0,
        "resolved_at": None,
        "closed_at": None,
    }
    fields.update(overrides)
    return Incident(**fields)


@pytest.fixture
def sla_service(session_maker, config_provider):
    return SLAService(SQLAlchemySLAPolicyLookup(session_maker), config_provider)


# ========== Deadline resolution ==========

class TestResolveIncidentSLA:

    @pytest.mark.asyncio
    async def test_default_targets_without_policy(self, sla_service):
        deadlines = await sla_service.resolve_incident_sla(ORG, "medium", MONDAY_10AM)

        assert deadlines.response_due == datetime(2024, 1, 8, 12, 0, tzinfo=UTC)
        assert deadlines.resolution_due == datetime(2024, 1, 11, 10, 0, tzinfo=UTC)
        assert deadlines.policy_id is None
        assert deadlines.business_hours_only is True

    @pytest.mark.asyncio
    async def test_active_policy_overrides_defaults(self, sla_service, session_maker):
        await _insert(session_maker, _make_policy())

        deadlines = await sla_service.resolve_incident_sla(ORG, "HIGH", MONDAY_10AM)

        assert deadlines.response_due == MONDAY_10AM + timedelta(minutes=10)
        assert deadlines.resolution_due == MONDAY_10AM + timedelta(minutes=60)
        assert deadlines.policy_id is not None

    @pytest.mark.asyncio
    async def test_policy_wall_clock_flag(self, sla_service, session_maker):
        await _insert(
            session_maker,
            _make_policy(business_hours_only=False, resolution_time_mins=600),
        )
        friday_4pm = datetime(2024, 1, 12, 16, 0, tzinfo=UTC)

        deadlines = await sla_service.resolve_incident_sla(ORG, "high", friday_4pm)

        assert deadlines.resolution_due == friday_4pm + timedelta(minutes=600)
        assert deadlines.business_hours_only is False

    @pytest.mark.asyncio
    async def test_inactive_and_foreign_policies_ignored(self, sla_service, session_maker):
        await _insert(
            session_maker,
            _make_policy(is_active=False),
            _make_policy(organization_id=OTHER_ORG),
        )

        deadlines = await sla_service.resolve_incident_sla(ORG, "high", MONDAY_10AM)

        assert deadlines.policy_id is None
        assert deadlines.response_due == MONDAY_10AM + timedelta(minutes=30)

    @pytest.mark.asyncio
    async def test_newest_active_policy_wins(self, session_maker):
        older = _make_policy(response_time_mins=20, created_at=MONDAY_10AM - timedelta(days=2))
        newer = _make_policy(response_time_mins=5, created_at=MONDAY_10AM - timedelta(days=1))
        await _insert(session_maker, older, newer)

        policy = await SQLAlchemySLAPolicyLookup(session_maker).get_active_policy(ORG, "high")

        assert policy.response_time_mins == 5
        assert policy.id == str(newer.id)

    @pytest.mark.asyncio
    async def test_organization_calendar_used(self, session_maker, tmp_path):
        path = tmp_path / "sla.yaml"
        path.write_text(
            "organization_calendars:\n"
            "  org-1:\n"
            "    start_hour: 10\n"
            "    end_hour: 12\n"
        )
        service = SLAService(SQLAlchemySLAPolicyLookup(session_maker), YAMLConfigProvider(path))

        # high: 30 minutes response, 480 minutes resolution in a 2 hour day
        deadlines = await service.resolve_incident_sla(ORG, "high", MONDAY_10AM)

        assert deadlines.response_due == MONDAY_10AM + timedelta(minutes=30)
        assert deadlines.resolution_due == datetime(2024, 1, 11, 12, 0, tzinfo=UTC)


# ========== Status evaluation ==========

class TestEvaluate:

    def _service(self):
        return SLAService(MagicMock(), MagicMock())

    def test_running_clocks(self):
        incident = _make_incident()

        status = self._service().evaluate(incident, MONDAY_10AM)

        assert status.response.state == SLAState.ON_TRACK
        assert status.response.remaining_seconds == 3600
        assert status.resolution.state == SLAState.ON_TRACK
        assert not status.is_any_breached

    def test_at_risk_and_breached(self):
        incident = _make_incident()

        status = self._service().evaluate(incident, MONDAY_10AM + timedelta(minutes=45))
        assert status.response.state == SLAState.AT_RISK

        status = self._service().evaluate(incident, MONDAY_10AM + timedelta(minutes=61))
        assert status.response.state == SLAState.BREACHED
        assert status.response.remaining_seconds == 0
        assert status.is_any_breached
        assert status.most_urgent_state == SLAState.BREACHED

    def test_met_response_clock(self):
        incident = _make_incident(
            sla_response_at=MONDAY_10AM + timedelta(minutes=5), sla_response_met=True
        )

        status = self._service().evaluate(incident, MONDAY_10AM + timedelta(hours=3))

        assert status.response.state == SLAState.MET
        assert status.response.met is True

    def test_missed_response_clock(self):
        incident = _make_incident(
            sla_response_at=MONDAY_10AM + timedelta(hours=2), sla_response_met=False
        )

        status = self._service().evaluate(incident, MONDAY_10AM + timedelta(hours=3))

        assert status.response.state == SLAState.BREACHED

    def test_paused_clocks(self):
        paused_at = MONDAY_10AM + timedelta(minutes=20)
        incident = _make_incident(status="pending", sla_paused_at=paused_at)

        # far past the nominal deadline, but the clock is frozen
        status = self._service().evaluate(incident, MONDAY_10AM + timedelta(days=2))

        assert status.paused is True
        assert status.response.state == SLAState.PAUSED
        assert status.response.remaining_seconds == 40 * 60
        assert status.resolution.state == SLAState.PAUSED

    def test_paused_after_breach_stays_breached(self):
        paused_at = MONDAY_10AM + timedelta(hours=2)
        incident = _make_incident(status="pending", sla_paused_at=paused_at)

        status = self._service().evaluate(incident, paused_at)

        assert status.response.state == SLAState.BREACHED
        assert status.resolution.state == SLAState.PAUSED

    def test_cancelled_incident_stops_clocks(self):
        incident = _make_incident(
            status="cancelled", closed_at=MONDAY_10AM + timedelta(hours=2)
        )

        status = self._service().evaluate(incident, MONDAY_10AM + timedelta(days=5))

        assert status.response.state == SLAState.BREACHED
        assert status.resolution.state == SLAState.STOPPED
        assert status.resolution.met is None
        assert status.most_urgent_state == SLAState.BREACHED

    def test_cancelled_before_any_deadline(self):
        incident = _make_incident(
            status="cancelled", closed_at=MONDAY_10AM + timedelta(minutes=10)
        )

        status = self._service().evaluate(incident, MONDAY_10AM + timedelta(days=5))

        assert status.response.state == SLAState.STOPPED
        assert status.resolution.state == SLAState.STOPPED
        assert not status.is_any_breached

    def test_missing_deadlines(self):
        incident = _make_incident(sla_response_due=None, sla_resolution_due=None)

        status = self._service().evaluate(incident, MONDAY_10AM)

        assert status.response.state == SLAState.ON_TRACK
        assert status.response.deadline is None

    def test_to_dict(self):
        status = self._service().evaluate(_make_incident(sla_total_paused_mins=15), MONDAY_10AM)
        payload = status.to_dict()

        assert payload["incident_id"] == "inc-1"
        assert payload["response"]["sla_type"] == "response"
        assert payload["overall"]["state"] == "on_track"
        assert payload["overall"]["total_paused_minutes"] == 15


# ========== YAML configuration ==========

class TestYAMLConfigProvider:

    def test_missing_file_uses_defaults(self, tmp_path):
        provider = YAMLConfigProvider(tmp_path / "nope.yaml")

        assert provider.get_config() == SLAConfig()

    def test_empty_file_uses_defaults(self, tmp_path):
        path = tmp_path / "sla.yaml"
        path.write_text("")

        assert YAMLConfigProvider(path).get_config().get_targets("low") == (480, 10080)

    def test_loads_overrides(self, tmp_path):
        path = tmp_path / "sla.yaml"
        path.write_text("default_targets:\n  critical:\n    response: 5\n")

        config = YAMLConfigProvider(path).get_config()

        assert config.get_targets("critical") == (5, 240)

    def test_invalid_values_raise(self, tmp_path):
        path = tmp_path / "sla.yaml"
        path.write_text("business_hours:\n  start_hour: 18\n  end_hour: 9\n")

        with pytest.raises(ConfigurationException):
            YAMLConfigProvider(path)

    def test_malformed_yaml_raises(self, tmp_path):
        path = tmp_path / "sla.yaml"
        path.write_text("default_targets: [unclosed\n")

        with pytest.raises(ConfigurationException):
            YAMLConfigProvider(path)

    def test_shipped_config_is_valid(self):
        config = YAMLConfigProvider(Path(__file__).parents[2] / "sla_config.yaml").get_config()

        assert config.calendar_for("org-berlin").timezone == "Europe/Berlin"
        assert config.get_targets("high") == (30, 480)

    def test_reload_picks_up_changes(self, tmp_path):
        path = tmp_path / "sla.yaml"
        path.write_text("default_targets:\n  low:\n    response: 100\n")
        provider = YAMLConfigProvider(path)

        path.write_text("default_targets:\n  low:\n    response: 200\n")
        provider.reload()

        assert provider.get_config().get_targets("low") == (200, 10080)


class TestSLAConfigWatcher:

    def test_reload_success(self, tmp_path):
        path = tmp_path / "sla.yaml"
        path.write_text("default_targets:\n  low:\n    response: 100\n")
        provider = YAMLConfigProvider(path)
        watcher = SLAConfigWatcher(provider)

        path.write_text("default_targets:\n  low:\n    response: 300\n")

        assert watcher.reload() is True
        assert provider.get_config().get_targets("low")[0] == 300

    def test_invalid_edit_keeps_previous_config(self, tmp_path):
        path = tmp_path / "sla.yaml"
        path.write_text("default_targets:\n  low:\n    response: 100\n")
        provider = YAMLConfigProvider(path)
        logger = MagicMock()
        watcher = SLAConfigWatcher(provider, logger=logger)

        path.write_text("default_targets:\n  low:\n    response: -1\n")

        assert watcher.reload() is False
        assert provider.get_config().get_targets("low")[0] == 100
        logger.error.assert_called_once()

    def test_handler_reacts_to_config_file_only(self, tmp_path):
        path = tmp_path / "sla.yaml"
        path.write_text("")
        watcher = MagicMock()
        handler = ConfigFileHandler(watcher, path)

        handler.on_modified(SimpleNamespace(is_directory=False, src_path=str(tmp_path / "other.yaml")))
        handler.on_modified(SimpleNamespace(is_directory=True, src_path=str(path)))
        watcher.reload.assert_not_called()

        handler.on_modified(SimpleNamespace(is_directory=False, src_path=str(path)))
        watcher.reload.assert_called_once()

    def test_missing_file_skips_watching(self, tmp_path):
        watcher = SLAConfigWatcher(YAMLConfigProvider(tmp_path / "nope.yaml"))

        watcher.start_watching()

        assert watcher.is_watching is False
        watcher.stop_watching()
