"""Aggregate monitor: attack detection over the attempt ledger."""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Mapping, Optional

from src.events.domain import DomainEventDispatcher
from src.events.security_events import SecurityAlertRaisedEvent
from src.models.enums import AlertSeverity, AlertStatus, AlertType
from src.models.security_alert import SecurityAlert
from src.repositories.login_attempt_repository import LoginAttemptRepository
from src.repositories.security_alert_repository import SecurityAlertRepository
from src.repositories.user_repository import UserRepository
from src.services.alert_findings import (
    AlertFinding,
    FailureSpikeFinding,
    GeographicAnomalyFinding,
    SustainedAttackFinding,
    VelocityAttackFinding,
)
from src.services.notifications import notify
from src.services.security_errors import AlertTransitionError, NotFoundError
from src.utils.identifiers import parse_uuid
from src.utils.time_window import TimeWindow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AlertThresholds:
    """Detection thresholds of the aggregate checks."""

    failure_spike_percent: float = 50.0
    failure_spike_critical_percent: float = 100.0
    velocity_per_minute: int = 10
    velocity_window_minutes: int = 5
    geo_new_countries: int = 5
    geo_baseline_days: int = 7
    sustained_minutes: int = 15
    sustained_failure_rate_percent: float = 30.0
    sustained_min_failures: int = 20
    suppression_minutes: int = 60

    @classmethod
    def from_mapping(cls, cfg: Optional[Mapping] = None) -> "AlertThresholds":
        """Build thresholds from Flask-style config keys (ALERT_*)."""
        cfg = cfg or {}
        default = cls()
        return cls(
            failure_spike_percent=float(
                cfg.get("ALERT_FAILURE_SPIKE_PERCENT", default.failure_spike_percent)
            ),
            failure_spike_critical_percent=float(
                cfg.get(
                    "ALERT_FAILURE_SPIKE_CRITICAL_PERCENT",
                    default.failure_spike_critical_percent,
                )
            ),
            velocity_per_minute=int(
                cfg.get("ALERT_VELOCITY_PER_MINUTE", default.velocity_per_minute)
            ),
            velocity_window_minutes=int(
                cfg.get("ALERT_VELOCITY_WINDOW_MINUTES", default.velocity_window_minutes)
            ),
            geo_new_countries=int(cfg.get("ALERT_GEO_NEW_COUNTRIES", default.geo_new_countries)),
            geo_baseline_days=int(cfg.get("ALERT_GEO_BASELINE_DAYS", default.geo_baseline_days)),
            sustained_minutes=int(cfg.get("ALERT_SUSTAINED_MINUTES", default.sustained_minutes)),
            sustained_failure_rate_percent=float(
                cfg.get(
                    "ALERT_SUSTAINED_FAILURE_RATE_PERCENT",
                    default.sustained_failure_rate_percent,
                )
            ),
            sustained_min_failures=int(
                cfg.get("ALERT_SUSTAINED_MIN_FAILURES", default.sustained_min_failures)
            ),
            suppression_minutes=int(
                cfg.get("ALERT_SUPPRESSION_MINUTES", default.suppression_minutes)
            ),
        )


def percentage_increase(current_rate: float, baseline_rate: float) -> float:
    """Relative change of ``current_rate`` over ``baseline_rate``, in percent."""
    if baseline_rate > 0:
        return (current_rate - baseline_rate) / baseline_rate * 100
    return current_rate


class SecurityAlertService:
    """
    Runs the four aggregate checks and manages the alert lifecycle.

    Each check reads the attempt ledger over windows derived from one
    ``now`` and yields at most one finding. Findings become alerts
    unless an active alert of the same type already exists within the
    suppression horizon.
    """

    HOUR = timedelta(hours=1)
    DAY = timedelta(days=1)

    def __init__(
        self,
        alert_repository: SecurityAlertRepository,
        attempt_repository: LoginAttemptRepository,
        user_repository: UserRepository,
        event_dispatcher: Optional[DomainEventDispatcher] = None,
        thresholds: Optional[AlertThresholds] = None,
    ):
        self._alert_repo = alert_repository
        self._attempt_repo = attempt_repository
        self._user_repo = user_repository
        self._dispatcher = event_dispatcher
        self._thresholds = thresholds or AlertThresholds()

    @property
    def thresholds(self) -> AlertThresholds:
        return self._thresholds

    # --- detection ---

    def detect_failure_spike(self, now: datetime) -> Optional[FailureSpikeFinding]:
        """Failure rate of the last hour against the preceding 23 hours."""
        current = TimeWindow.ending_at(now, self.HOUR)
        baseline = current.preceding(self.DAY - self.HOUR)

        current_total = self._attempt_repo.count_in_window(current)
        baseline_total = self._attempt_repo.count_in_window(baseline)
        if current_total == 0 or baseline_total == 0:
            return None

        current_failures = self._attempt_repo.count_in_window(current, success=False)
        baseline_failures = self._attempt_repo.count_in_window(baseline, success=False)

        current_rate = current_failures / current_total * 100
        baseline_rate = baseline_failures / baseline_total * 100
        increase = percentage_increase(current_rate, baseline_rate)

        if increase < self._thresholds.failure_spike_percent:
            return None

        return FailureSpikeFinding(
            window=current,
            affected_user_count=self._attempt_repo.count_distinct_accounts(current),
            current_rate=current_rate,
            baseline_rate=baseline_rate,
            percentage_increase=increase,
            spike_percent=self._thresholds.failure_spike_percent,
            critical_percent=self._thresholds.failure_spike_critical_percent,
        )

    def detect_velocity_attack(self, now: datetime) -> Optional[VelocityAttackFinding]:
        """Origins with too many attempts in the velocity window."""
        minutes = self._thresholds.velocity_window_minutes
        window = TimeWindow.ending_at(now, timedelta(minutes=minutes))
        min_count = self._thresholds.velocity_per_minute * minutes

        origins = self._attempt_repo.count_by_origin(window, min_count)
        if not origins:
            return None

        return VelocityAttackFinding(
            window=window,
            affected_user_count=self._attempt_repo.count_distinct_accounts(window),
            origins=tuple(origins),
            per_minute_threshold=self._thresholds.velocity_per_minute,
        )

    def detect_geographic_anomaly(self, now: datetime) -> Optional[GeographicAnomalyFinding]:
        """Countries of the last hour unseen in the baseline days before it."""
        current = TimeWindow.ending_at(now, self.HOUR)
        baseline = current.preceding(timedelta(days=self._thresholds.geo_baseline_days))

        new_countries = self._attempt_repo.countries_in_window(
            current
        ) - self._attempt_repo.countries_in_window(baseline)

        if len(new_countries) < self._thresholds.geo_new_countries:
            return None

        return GeographicAnomalyFinding(
            window=current,
            affected_user_count=self._attempt_repo.count_distinct_accounts(current),
            new_countries=tuple(sorted(new_countries)),
            baseline_window=baseline,
            min_new_countries=self._thresholds.geo_new_countries,
        )

    def detect_sustained_attack(self, now: datetime) -> Optional[SustainedAttackFinding]:
        """Failure rate and count both elevated over the sustained window."""
        window = TimeWindow.ending_at(now, timedelta(minutes=self._thresholds.sustained_minutes))

        total = self._attempt_repo.count_in_window(window)
        if total == 0:
            return None

        failures = self._attempt_repo.count_in_window(window, success=False)
        failure_rate = failures / total * 100

        if (
            failure_rate <= self._thresholds.sustained_failure_rate_percent
            or failures <= self._thresholds.sustained_min_failures
        ):
            return None

        return SustainedAttackFinding(
            window=window,
            affected_user_count=self._attempt_repo.count_distinct_accounts(window),
            failure_rate=failure_rate,
            failures=failures,
            total=total,
            rate_percent=self._thresholds.sustained_failure_rate_percent,
        )

    # --- checks ---

    def check_failure_spike(self, now: Optional[datetime] = None) -> Optional[SecurityAlert]:
        now = now or datetime.utcnow()
        return self._raise_alert(self.detect_failure_spike(now), now)

    def check_velocity_attack(self, now: Optional[datetime] = None) -> Optional[SecurityAlert]:
        now = now or datetime.utcnow()
        return self._raise_alert(self.detect_velocity_attack(now), now)

    def check_geographic_anomaly(self, now: Optional[datetime] = None) -> Optional[SecurityAlert]:
        now = now or datetime.utcnow()
        return self._raise_alert(self.detect_geographic_anomaly(now), now)

    def check_sustained_attack(self, now: Optional[datetime] = None) -> Optional[SecurityAlert]:
        now = now or datetime.utcnow()
        return self._raise_alert(self.detect_sustained_attack(now), now)

    def run_all_checks(self, now: Optional[datetime] = None) -> Dict[str, List[str]]:
        """
        Run every check against the same ``now``.

        A failing check is logged and does not stop the others.

        Returns:
            Created alert ids keyed by alert type value
        """
        now = now or datetime.utcnow()
        checks: Dict[AlertType, Callable[[datetime], Optional[SecurityAlert]]] = {
            AlertType.SPIKE_FAILURES: self.check_failure_spike,
            AlertType.VELOCITY_ATTACK: self.check_velocity_attack,
            AlertType.GEOGRAPHIC_ANOMALY: self.check_geographic_anomaly,
            AlertType.SUSTAINED_ATTACK: self.check_sustained_attack,
        }

        created: Dict[str, List[str]] = {}
        for alert_type, check in checks.items():
            try:
                alert = check(now)
            except Exception:
                logger.exception(f"Security check {alert_type.value} failed")
                continue
            if alert:
                created.setdefault(alert_type.value, []).append(str(alert.id))

        logger.info(f"Security checks completed, created alerts: {created or 'none'}")
        return created

    # --- lifecycle ---

    def acknowledge_alert(self, alert_id, admin_id) -> SecurityAlert:
        """
        Acknowledge an active alert.

        Raises:
            NotFoundError: If the alert does not exist
            AlertTransitionError: If the alert is not active
        """
        alert = self._get_alert(alert_id)
        if alert.status != AlertStatus.ACTIVE:
            raise AlertTransitionError(
                f"Cannot acknowledge alert in status {alert.status.value}"
            )

        alert.status = AlertStatus.ACKNOWLEDGED
        alert.acknowledged_at = datetime.utcnow()
        alert.acknowledged_by = parse_uuid(admin_id)
        return self._alert_repo.save(alert)

    def resolve_alert(self, alert_id, admin_id, resolution: str) -> SecurityAlert:
        """Resolve an alert. Resolved alerts are final."""
        return self._close(alert_id, admin_id, AlertStatus.RESOLVED, resolution)

    def mark_false_positive(self, alert_id, admin_id, notes: Optional[str] = None) -> SecurityAlert:
        """Close an alert as a false positive. Final like resolve."""
        return self._close(
            alert_id, admin_id, AlertStatus.FALSE_POSITIVE, notes or "Marked as false positive"
        )

    # --- queries ---

    def get_active_alerts(
        self, severity: Optional[AlertSeverity] = None, limit: int = 50
    ) -> List[SecurityAlert]:
        return self._alert_repo.find_active(severity=severity, limit=limit)

    def get_alert_history(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        alert_type: Optional[AlertType] = None,
        severity: Optional[AlertSeverity] = None,
        status: Optional[AlertStatus] = None,
        limit: int = 100,
    ) -> List[SecurityAlert]:
        return self._alert_repo.find_history(
            start=start,
            end=end,
            alert_type=alert_type,
            severity=severity,
            status=status,
            limit=limit,
        )

    # --- internals ---

    def _raise_alert(self, finding: Optional[AlertFinding], now: datetime) -> Optional[SecurityAlert]:
        if finding is None:
            return None

        since = now - timedelta(minutes=self._thresholds.suppression_minutes)
        alert = self._alert_repo.create_unless_suppressed(finding.to_alert(), since)

        if alert is None:
            logger.info(f"Suppressed {finding.alert_type.value} alert: active alert exists")
            return None

        logger.warning(f"Created {alert.severity.value} alert: {alert.title}")
        self._notify_admins(alert)
        return alert

    def _notify_admins(self, alert: SecurityAlert) -> None:
        admins = self._user_repo.find_admins()
        if not admins:
            logger.warning(f"No administrators to notify about alert {alert.id}")
            return

        result = notify(
            self._dispatcher,
            SecurityAlertRaisedEvent(
                alert_id=str(alert.id),
                alert_type=alert.alert_type.value,
                severity=alert.severity.value,
                title=alert.title,
                description=alert.description,
                recommendation=alert.recommendation,
                recipients=[
                    {"id": str(admin.id), "email": admin.email, "name": admin.name}
                    for admin in admins
                ],
            ),
        )
        if result is None or not result.success:
            return

        notified = (result.data or {}).get("notified") or [str(admin.id) for admin in admins]
        try:
            self._alert_repo.mark_notified(alert.id, notified)
        except Exception:
            logger.exception(f"Failed to record notification state of alert {alert.id}")

    def _get_alert(self, alert_id) -> SecurityAlert:
        alert = self._alert_repo.find_by_id(alert_id)
        if not alert:
            raise NotFoundError(f"Alert {alert_id} not found")
        return alert

    def _close(self, alert_id, admin_id, status: AlertStatus, resolution: str) -> SecurityAlert:
        alert = self._get_alert(alert_id)
        if alert.status.is_terminal:
            raise AlertTransitionError(f"Alert already closed as {alert.status.value}")

        alert.status = status
        alert.resolved_at = datetime.utcnow()
        alert.resolved_by = parse_uuid(admin_id)
        alert.resolution = resolution
        return self._alert_repo.save(alert)
