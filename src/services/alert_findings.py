"""Findings produced by the aggregate checks, one variant per alert type."""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from src.models.enums import AlertSeverity, AlertStatus, AlertType
from src.models.security_alert import SecurityAlert
from src.utils.time_window import TimeWindow


@dataclass(frozen=True)
class AlertFinding(ABC):
    """
    Base of the per-type findings.

    Subclasses set ``alert_type`` and provide the alert text plus the
    fields only their type needs. ``to_alert`` wraps a finding into the
    shared ``SecurityAlert`` envelope.
    """

    window: TimeWindow
    affected_user_count: int = 0

    alert_type = None
    metric = ""

    @property
    @abstractmethod
    def severity(self) -> AlertSeverity:
        """Severity derived from the measured values."""

    @property
    @abstractmethod
    def title(self) -> str:
        """Headline shown to administrators."""

    @property
    @abstractmethod
    def description(self) -> str:
        """What was measured over the window."""

    @property
    @abstractmethod
    def recommendation(self) -> str:
        """Suggested response."""

    @property
    @abstractmethod
    def current_value(self) -> float:
        """Measured metric value."""

    @property
    @abstractmethod
    def threshold(self) -> float:
        """Threshold the value was compared with."""

    @property
    def baseline_value(self) -> Optional[float]:
        return None

    def details(self) -> Dict[str, Any]:
        return {}

    def to_alert(self) -> SecurityAlert:
        return SecurityAlert(
            alert_type=self.alert_type,
            severity=self.severity,
            status=AlertStatus.ACTIVE,
            title=self.title,
            description=self.description,
            recommendation=self.recommendation,
            metric=self.metric,
            current_value=float(self.current_value),
            threshold=float(self.threshold),
            baseline_value=self.baseline_value,
            period_start=self.window.start,
            period_end=self.window.end,
            affected_user_count=self.affected_user_count,
            details=self.details(),
            notification_sent=False,
            notified_admins=[],
        )


@dataclass(frozen=True)
class FailureSpikeFinding(AlertFinding):
    """Failure rate of the last hour against the trailing baseline (percentages)."""

    current_rate: float = 0.0
    baseline_rate: float = 0.0
    percentage_increase: float = 0.0
    spike_percent: float = 50.0
    critical_percent: float = 100.0

    alert_type = AlertType.SPIKE_FAILURES
    metric = "failure_rate"

    @property
    def severity(self) -> AlertSeverity:
        if self.percentage_increase >= self.critical_percent:
            return AlertSeverity.CRITICAL
        return AlertSeverity.WARNING

    @property
    def title(self) -> str:
        return "Failure Rate Spike Detected"

    @property
    def description(self) -> str:
        return (
            f"Failed authentication attempts have increased by "
            f"{self.percentage_increase:.1f}% in the last hour. "
            f"Current failure rate: {self.current_rate:.1f}%, "
            f"Baseline: {self.baseline_rate:.1f}%"
        )

    @property
    def recommendation(self) -> str:
        return (
            "Review recent failed attempts for patterns. Check whether specific "
            "accounts or IP addresses are being targeted."
        )

    @property
    def current_value(self) -> float:
        return self.current_rate

    @property
    def threshold(self) -> float:
        return self.spike_percent

    @property
    def baseline_value(self) -> Optional[float]:
        return self.baseline_rate

    def details(self) -> Dict[str, Any]:
        return {"percentage_increase": round(self.percentage_increase, 2)}


@dataclass(frozen=True)
class VelocityAttackFinding(AlertFinding):
    """Origins whose attempt count in the window reached the velocity limit."""

    origins: Tuple[Tuple[str, int], ...] = ()
    per_minute_threshold: int = 10

    alert_type = AlertType.VELOCITY_ATTACK
    metric = "attempts_per_minute"

    @property
    def total_attempts(self) -> int:
        return sum(count for _, count in self.origins)

    @property
    def severity(self) -> AlertSeverity:
        return AlertSeverity.CRITICAL

    @property
    def title(self) -> str:
        return "Velocity Attack Detected"

    @property
    def description(self) -> str:
        return (
            f"Detected {self.total_attempts} authentication attempts from "
            f"{len(self.origins)} IP address(es) in the last "
            f"{self.window.minutes:g} minutes. This indicates a possible automated attack."
        )

    @property
    def recommendation(self) -> str:
        return (
            "Review the source IP addresses and consider blocking them. "
            "Check affected accounts for compromise."
        )

    @property
    def current_value(self) -> float:
        return self.total_attempts / self.window.minutes

    @property
    def threshold(self) -> float:
        return self.per_minute_threshold

    def details(self) -> Dict[str, Any]:
        return {
            "affected_ip_addresses": [ip for ip, _ in self.origins],
            "attempts_by_ip": {ip: count for ip, count in self.origins},
        }


@dataclass(frozen=True)
class GeographicAnomalyFinding(AlertFinding):
    """Countries seen in the window that the baseline period never saw."""

    new_countries: Tuple[str, ...] = ()
    baseline_window: Optional[TimeWindow] = None
    min_new_countries: int = 5

    alert_type = AlertType.GEOGRAPHIC_ANOMALY
    metric = "new_locations_per_hour"

    @property
    def severity(self) -> AlertSeverity:
        return AlertSeverity.WARNING

    @property
    def title(self) -> str:
        return "Unusual Geographic Activity Detected"

    @property
    def description(self) -> str:
        return (
            f"Detected authentication attempts from {len(self.new_countries)} new "
            f"countries in the last hour that were not seen in the previous week."
        )

    @property
    def recommendation(self) -> str:
        return (
            "Review attempts from these locations. Verify whether legitimate "
            "users are traveling or accounts may be compromised."
        )

    @property
    def current_value(self) -> float:
        return len(self.new_countries)

    @property
    def threshold(self) -> float:
        return self.min_new_countries

    def details(self) -> Dict[str, Any]:
        details = {"affected_countries": sorted(self.new_countries)}
        if self.baseline_window:
            details["baseline_start"] = self.baseline_window.start.isoformat()
            details["baseline_end"] = self.baseline_window.end.isoformat()
        return details


@dataclass(frozen=True)
class SustainedAttackFinding(AlertFinding):
    """Failure rate that stayed elevated over the whole window."""

    failure_rate: float = 0.0
    failures: int = 0
    total: int = 0
    rate_percent: float = 30.0

    alert_type = AlertType.SUSTAINED_ATTACK
    metric = "sustained_failure_rate"

    @property
    def severity(self) -> AlertSeverity:
        return AlertSeverity.URGENT

    @property
    def title(self) -> str:
        return "Sustained Attack Pattern Detected"

    @property
    def description(self) -> str:
        return (
            f"Elevated failure rate ({self.failure_rate:.1f}%) has been sustained for "
            f"{self.window.minutes:g} minutes with {self.failures} failed attempts."
        )

    @property
    def recommendation(self) -> str:
        return (
            "IMMEDIATE ACTION REQUIRED: review system security, apply temporary "
            "lockdowns if necessary and investigate the source of the attack."
        )

    @property
    def current_value(self) -> float:
        return self.failure_rate

    @property
    def threshold(self) -> float:
        return self.rate_percent

    def details(self) -> Dict[str, Any]:
        return {"failures": self.failures, "total_attempts": self.total}
