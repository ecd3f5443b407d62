"""Tests for SecurityAlertService."""
import pytest
from datetime import datetime, timedelta
from unittest.mock import Mock
from uuid import uuid4

from src.events.domain import EventResult
from src.models.enums import AlertSeverity, AlertStatus, AlertType


NOW = datetime(2026, 10, 19, 12, 0, 0)


def ledger_counts(current, baseline, now=NOW):
    """
    Build a count_in_window side effect.

    ``current``/``baseline`` are (total, failures) for the window ending
    at ``now`` and for any earlier window.
    """

    def count(window, success=None, anomalous=None):
        total, failures = current if window.end == now else baseline
        if success is False:
            return failures
        if success is True:
            return total - failures
        return total

    return count


class TestPercentageIncrease:
    """Tests for the relative increase helper."""

    def test_relative_to_baseline(self):
        from src.services.security_alert_service import percentage_increase

        assert percentage_increase(40.0, 10.0) == pytest.approx(300.0)
        assert percentage_increase(15.0, 10.0) == pytest.approx(50.0)

    def test_zero_baseline_uses_current_rate(self):
        from src.services.security_alert_service import percentage_increase

        assert percentage_increase(60.0, 0.0) == 60.0


class TestAlertFindings:
    """Tests for the per-type finding variants."""

    def test_base_finding_is_abstract(self):
        from src.services.alert_findings import AlertFinding
        from src.utils.time_window import TimeWindow

        window = TimeWindow.ending_at(NOW, timedelta(minutes=5))

        with pytest.raises(TypeError):
            AlertFinding(window=window)

    def test_variant_missing_text_cannot_be_built(self):
        from dataclasses import dataclass
        from src.services.alert_findings import AlertFinding
        from src.utils.time_window import TimeWindow

        @dataclass(frozen=True)
        class Incomplete(AlertFinding):
            @property
            def severity(self):
                return AlertSeverity.INFO

        window = TimeWindow.ending_at(NOW, timedelta(minutes=5))

        with pytest.raises(TypeError):
            Incomplete(window=window)


class TestSecurityAlertService:
    """Test suite for SecurityAlertService."""

    @pytest.fixture
    def mock_alert_repo(self):
        repo = Mock()

        def create(alert, since):
            alert.id = uuid4()
            return alert

        repo.create_unless_suppressed.side_effect = create
        repo.save.side_effect = lambda alert: alert
        return repo

    @pytest.fixture
    def mock_attempt_repo(self):
        repo = Mock()
        repo.count_in_window.return_value = 0
        repo.count_by_origin.return_value = []
        repo.countries_in_window.return_value = set()
        repo.count_distinct_accounts.return_value = 3
        return repo

    @pytest.fixture
    def admins(self):
        return [
            Mock(id=uuid4(), email="admin1@example.com", name="Admin One"),
            Mock(id=uuid4(), email="admin2@example.com", name="Admin Two"),
        ]

    @pytest.fixture
    def mock_user_repo(self, admins):
        repo = Mock()
        repo.find_admins.return_value = admins
        return repo

    @pytest.fixture
    def mock_dispatcher(self):
        dispatcher = Mock()
        dispatcher.emit.return_value = EventResult.success_result()
        return dispatcher

    @pytest.fixture
    def service(self, mock_alert_repo, mock_attempt_repo, mock_user_repo, mock_dispatcher):
        from src.services.security_alert_service import SecurityAlertService

        return SecurityAlertService(
            alert_repository=mock_alert_repo,
            attempt_repository=mock_attempt_repo,
            user_repository=mock_user_repo,
            event_dispatcher=mock_dispatcher,
        )

    # --- failure spike ---

    def test_spike_from_ten_to_forty_percent_is_critical(self, service, mock_attempt_repo):
        """40% now vs 10% baseline is a 300% increase."""
        # Arrange
        mock_attempt_repo.count_in_window.side_effect = ledger_counts(
            current=(100, 40), baseline=(2300, 230)
        )

        # Act
        alert = service.check_failure_spike(NOW)

        # Assert
        assert alert is not None
        assert alert.alert_type == AlertType.SPIKE_FAILURES
        assert alert.severity == AlertSeverity.CRITICAL
        assert alert.current_value == pytest.approx(40.0)
        assert alert.baseline_value == pytest.approx(10.0)
        assert alert.details["percentage_increase"] == pytest.approx(300.0)
        assert alert.period_end == NOW
        assert alert.period_start == NOW - timedelta(hours=1)

    def test_moderate_spike_is_warning(self, service, mock_attempt_repo):
        # Arrange
        mock_attempt_repo.count_in_window.side_effect = ledger_counts(
            current=(100, 16), baseline=(1000, 100)
        )

        # Act
        alert = service.check_failure_spike(NOW)

        # Assert
        assert alert.severity == AlertSeverity.WARNING

    def test_small_increase_raises_nothing(self, service, mock_attempt_repo, mock_alert_repo):
        # Arrange
        mock_attempt_repo.count_in_window.side_effect = ledger_counts(
            current=(100, 12), baseline=(1000, 100)
        )

        # Act
        alert = service.check_failure_spike(NOW)

        # Assert
        assert alert is None
        mock_alert_repo.create_unless_suppressed.assert_not_called()

    def test_empty_windows_raise_nothing(self, service, mock_attempt_repo):
        # Arrange
        mock_attempt_repo.count_in_window.side_effect = ledger_counts(
            current=(50, 50), baseline=(0, 0)
        )

        # Act / Assert
        assert service.detect_failure_spike(NOW) is None

    def test_baseline_window_precedes_current_hour(self, service, mock_attempt_repo):
        # Act
        service.detect_failure_spike(NOW)

        # Assert
        windows = [c[0][0] for c in mock_attempt_repo.count_in_window.call_args_list]
        current, baseline = windows[0], windows[1]
        assert baseline.end == current.start
        assert baseline.start == NOW - timedelta(hours=24)

    # --- suppression ---

    def test_suppressed_alert_is_not_notified(self, service, mock_attempt_repo, mock_alert_repo, mock_dispatcher):
        # Arrange
        mock_attempt_repo.count_in_window.side_effect = ledger_counts(
            current=(100, 40), baseline=(2300, 230)
        )
        mock_alert_repo.create_unless_suppressed.side_effect = None
        mock_alert_repo.create_unless_suppressed.return_value = None

        # Act
        alert = service.check_failure_spike(NOW)

        # Assert
        assert alert is None
        since = mock_alert_repo.create_unless_suppressed.call_args[0][1]
        assert since == NOW - timedelta(minutes=60)
        mock_dispatcher.emit.assert_not_called()

    # --- velocity ---

    def test_velocity_attack(self, service, mock_attempt_repo):
        # Arrange
        mock_attempt_repo.count_by_origin.return_value = [("203.0.113.50", 75)]

        # Act
        alert = service.check_velocity_attack(NOW)

        # Assert
        mock_attempt_repo.count_by_origin.assert_called_once()
        window, min_count = mock_attempt_repo.count_by_origin.call_args[0]
        assert min_count == 50
        assert window.minutes == 5
        assert alert.severity == AlertSeverity.CRITICAL
        assert alert.current_value == pytest.approx(15.0)
        assert alert.details["affected_ip_addresses"] == ["203.0.113.50"]
        assert alert.details["attempts_by_ip"] == {"203.0.113.50": 75}

    def test_no_fast_origin_no_velocity_alert(self, service):
        assert service.check_velocity_attack(NOW) is None

    # --- geography ---

    def test_geographic_anomaly(self, service, mock_attempt_repo):
        # Arrange
        def countries(window):
            if window.end == NOW:
                return {"DE", "BR", "CN", "NG", "RU", "VN", "KP"}
            return {"DE", "FR"}

        mock_attempt_repo.countries_in_window.side_effect = countries

        # Act
        alert = service.check_geographic_anomaly(NOW)

        # Assert
        assert alert.severity == AlertSeverity.WARNING
        assert alert.current_value == 6
        assert alert.details["affected_countries"] == ["BR", "CN", "KP", "NG", "RU", "VN"]

    def test_few_new_countries_no_alert(self, service, mock_attempt_repo):
        # Arrange
        def countries(window):
            if window.end == NOW:
                return {"DE", "BR", "CN"}
            return {"DE"}

        mock_attempt_repo.countries_in_window.side_effect = countries

        # Act / Assert
        assert service.check_geographic_anomaly(NOW) is None

    # --- sustained ---

    def test_sustained_attack_is_urgent(self, service, mock_attempt_repo):
        # Arrange
        mock_attempt_repo.count_in_window.side_effect = ledger_counts(
            current=(100, 45), baseline=(0, 0)
        )

        # Act
        alert = service.check_sustained_attack(NOW)

        # Assert
        assert alert.severity == AlertSeverity.URGENT
        assert alert.current_value == pytest.approx(45.0)
        assert alert.period_start == NOW - timedelta(minutes=15)

    def test_sustained_requires_enough_failures(self, service, mock_attempt_repo):
        """High rate on low volume is not sustained."""
        # Arrange
        mock_attempt_repo.count_in_window.side_effect = ledger_counts(
            current=(30, 20), baseline=(0, 0)
        )

        # Act / Assert
        assert service.check_sustained_attack(NOW) is None

    # --- notification ---

    def test_created_alert_notifies_admins(self, service, mock_attempt_repo, mock_dispatcher, mock_alert_repo, admins):
        # Arrange
        mock_attempt_repo.count_by_origin.return_value = [("203.0.113.50", 75)]
        mock_dispatcher.emit.return_value = EventResult.success_result(
            {"notified": [str(admins[0].id)]}
        )

        # Act
        alert = service.check_velocity_attack(NOW)

        # Assert
        event = mock_dispatcher.emit.call_args[0][0]
        assert event.name == "security.alert.raised"
        assert event.alert_id == str(alert.id)
        assert [r["email"] for r in event.recipients] == [
            "admin1@example.com",
            "admin2@example.com",
        ]
        mock_alert_repo.mark_notified.assert_called_once_with(alert.id, [str(admins[0].id)])

    def test_failed_notification_leaves_alert_unnotified(
        self, service, mock_attempt_repo, mock_dispatcher, mock_alert_repo
    ):
        # Arrange
        mock_attempt_repo.count_by_origin.return_value = [("203.0.113.50", 75)]
        mock_dispatcher.emit.return_value = EventResult.error_result("smtp down")

        # Act
        alert = service.check_velocity_attack(NOW)

        # Assert
        assert alert is not None
        assert alert.notification_sent is False
        mock_alert_repo.mark_notified.assert_not_called()

    def test_dispatcher_exception_does_not_escape(self, service, mock_attempt_repo, mock_dispatcher):
        # Arrange
        mock_attempt_repo.count_by_origin.return_value = [("203.0.113.50", 75)]
        mock_dispatcher.emit.side_effect = RuntimeError("boom")

        # Act
        alert = service.check_velocity_attack(NOW)

        # Assert
        assert alert is not None

    # --- run_all_checks ---

    def test_run_all_checks_continues_after_failure(self, service, mock_attempt_repo):
        # Arrange
        mock_attempt_repo.count_in_window.side_effect = RuntimeError("db hiccup")
        mock_attempt_repo.count_by_origin.return_value = [("203.0.113.50", 75)]

        # Act
        created = service.run_all_checks(NOW)

        # Assert
        assert list(created.keys()) == ["velocity_attack"]
        assert len(created["velocity_attack"]) == 1

    def test_run_all_checks_uses_one_now(self, service, mock_attempt_repo):
        # Act
        service.run_all_checks(NOW)

        # Assert
        windows = [c[0][0] for c in mock_attempt_repo.count_in_window.call_args_list]
        windows.append(mock_attempt_repo.count_by_origin.call_args[0][0])
        assert {w.end for w in windows} <= {NOW, NOW - timedelta(hours=1)}

    # --- lifecycle ---

    def make_alert(self, status):
        alert = Mock()
        alert.id = uuid4()
        alert.status = status
        return alert

    def test_acknowledge_active_alert(self, service, mock_alert_repo):
        # Arrange
        alert = self.make_alert(AlertStatus.ACTIVE)
        mock_alert_repo.find_by_id.return_value = alert
        admin_id = uuid4()

        # Act
        result = service.acknowledge_alert(alert.id, str(admin_id))

        # Assert
        assert result.status == AlertStatus.ACKNOWLEDGED
        assert result.acknowledged_by == admin_id
        mock_alert_repo.save.assert_called_once_with(alert)

    def test_acknowledge_twice_fails(self, service, mock_alert_repo):
        from src.services.security_errors import AlertTransitionError

        mock_alert_repo.find_by_id.return_value = self.make_alert(AlertStatus.ACKNOWLEDGED)

        with pytest.raises(AlertTransitionError):
            service.acknowledge_alert(uuid4(), uuid4())

    def test_resolve_acknowledged_alert(self, service, mock_alert_repo):
        # Arrange
        alert = self.make_alert(AlertStatus.ACKNOWLEDGED)
        mock_alert_repo.find_by_id.return_value = alert

        # Act
        result = service.resolve_alert(alert.id, uuid4(), "Blocked the offending range")

        # Assert
        assert result.status == AlertStatus.RESOLVED
        assert result.resolution == "Blocked the offending range"

    def test_resolved_alert_is_final(self, service, mock_alert_repo):
        from src.services.security_errors import AlertTransitionError

        mock_alert_repo.find_by_id.return_value = self.make_alert(AlertStatus.RESOLVED)

        with pytest.raises(AlertTransitionError):
            service.mark_false_positive(uuid4(), uuid4())

    def test_false_positive_default_note(self, service, mock_alert_repo):
        # Arrange
        alert = self.make_alert(AlertStatus.ACTIVE)
        mock_alert_repo.find_by_id.return_value = alert

        # Act
        result = service.mark_false_positive(alert.id, uuid4())

        # Assert
        assert result.status == AlertStatus.FALSE_POSITIVE
        assert result.resolution == "Marked as false positive"

    def test_unknown_alert_raises(self, service, mock_alert_repo):
        from src.services.security_errors import NotFoundError

        mock_alert_repo.find_by_id.return_value = None

        with pytest.raises(NotFoundError):
            service.acknowledge_alert(uuid4(), uuid4())

    def test_thresholds_from_config(self):
        from src.services.security_alert_service import AlertThresholds

        thresholds = AlertThresholds.from_mapping(
            {"ALERT_VELOCITY_PER_MINUTE": "20", "ALERT_SUPPRESSION_MINUTES": 30}
        )

        assert thresholds.velocity_per_minute == 20
        assert thresholds.suppression_minutes == 30
        assert thresholds.geo_new_countries == 5
