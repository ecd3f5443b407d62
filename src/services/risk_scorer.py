"""Per-attempt risk scoring (anomaly detection)."""
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterable, List, Mapping, Optional

from src.models.enums import AnomalyReason
from src.repositories.login_attempt_repository import LoginAttemptRepository
from src.services.geolocation import Location

SUSPICIOUS_USER_AGENT = re.compile(
    r"bot|crawler|spider|scraper|curl|wget|python|java", re.IGNORECASE
)


@dataclass(frozen=True)
class RiskPolicy:
    """Signal weights and thresholds for the risk scorer."""

    new_country_weight: float = 0.4
    new_location_weight: float = 0.2
    new_device_weight: float = 0.3
    impossible_travel_weight: float = 0.5
    suspicious_user_agent_weight: float = 0.3
    anomaly_threshold: float = 0.3
    history_days: int = 90
    history_limit: int = 20
    impossible_travel_hours: float = 2.0

    @classmethod
    def from_mapping(cls, cfg: Optional[Mapping] = None) -> "RiskPolicy":
        """Build policy from Flask-style config keys (RISK_*)."""
        cfg = cfg or {}
        default = cls()
        return cls(
            new_country_weight=float(cfg.get("RISK_WEIGHT_NEW_COUNTRY", default.new_country_weight)),
            new_location_weight=float(cfg.get("RISK_WEIGHT_NEW_LOCATION", default.new_location_weight)),
            new_device_weight=float(cfg.get("RISK_WEIGHT_NEW_DEVICE", default.new_device_weight)),
            impossible_travel_weight=float(
                cfg.get("RISK_WEIGHT_IMPOSSIBLE_TRAVEL", default.impossible_travel_weight)
            ),
            suspicious_user_agent_weight=float(
                cfg.get("RISK_WEIGHT_SUSPICIOUS_USER_AGENT", default.suspicious_user_agent_weight)
            ),
            anomaly_threshold=float(cfg.get("RISK_ANOMALY_THRESHOLD", default.anomaly_threshold)),
            history_days=int(cfg.get("RISK_HISTORY_DAYS", default.history_days)),
            history_limit=int(cfg.get("RISK_HISTORY_LIMIT", default.history_limit)),
            impossible_travel_hours=float(
                cfg.get("RISK_IMPOSSIBLE_TRAVEL_HOURS", default.impossible_travel_hours)
            ),
        )


@dataclass
class RiskAssessment:
    """Outcome of scoring one attempt."""

    is_anomalous: bool = False
    reasons: List[str] = field(default_factory=list)
    confidence: float = 0.0

    @classmethod
    def none(cls) -> "RiskAssessment":
        return cls()


class RiskScorer:
    """
    Scores an attempt against the account's recent successful logins.

    An account without successful logins in the history window has no
    baseline and is never flagged.
    """

    def __init__(
        self,
        attempt_repository: LoginAttemptRepository,
        policy: Optional[RiskPolicy] = None,
    ):
        self._attempt_repo = attempt_repository
        self._policy = policy or RiskPolicy()

    @property
    def policy(self) -> RiskPolicy:
        return self._policy

    def assess(
        self,
        user,
        location: Location,
        device_fingerprint: Optional[str] = None,
        user_agent: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> RiskAssessment:
        """
        Score an attempt for ``user``.

        Must be called before the attempt itself is written and before
        the user's known origins/devices are updated.

        Args:
            user: Account the attempt belongs to
            location: Resolved location of the attempt's origin
            device_fingerprint: Opaque device signature
            user_agent: Client signature
            now: Attempt time

        Returns:
            RiskAssessment with clamped confidence and reason codes
        """
        now = now or datetime.utcnow()
        since = now - timedelta(days=self._policy.history_days)
        history = self._attempt_repo.find_recent_successful(
            user.id, since, self._policy.history_limit
        )

        if not history:
            return RiskAssessment.none()

        return self.score(
            known_locations=user.known_locations or [],
            known_devices=user.known_devices or [],
            previous_login=history[0],
            location=location,
            device_fingerprint=device_fingerprint,
            user_agent=user_agent,
            now=now,
        )

    def score(
        self,
        known_locations: Iterable[str],
        known_devices: Iterable[str],
        previous_login,
        location: Location,
        device_fingerprint: Optional[str],
        user_agent: Optional[str],
        now: datetime,
    ) -> RiskAssessment:
        """Accumulate signal weights. Pure function of its arguments."""
        policy = self._policy
        known_locations = list(known_locations)
        reasons: List[str] = []
        confidence = 0.0

        location_key = location.as_key()
        if location_key and location_key not in known_locations:
            known_countries = {loc.split(":")[0] for loc in known_locations if loc}
            if location.country and location.country not in known_countries:
                reasons.append(AnomalyReason.NEW_COUNTRY.value)
                confidence += policy.new_country_weight
            else:
                reasons.append(AnomalyReason.NEW_LOCATION.value)
                confidence += policy.new_location_weight

        if device_fingerprint and device_fingerprint not in set(known_devices):
            reasons.append(AnomalyReason.NEW_DEVICE.value)
            confidence += policy.new_device_weight

        if self._is_impossible_travel(previous_login, location, now):
            reasons.append(AnomalyReason.IMPOSSIBLE_TRAVEL.value)
            confidence += policy.impossible_travel_weight

        if user_agent and SUSPICIOUS_USER_AGENT.search(user_agent):
            reasons.append(AnomalyReason.SUSPICIOUS_USER_AGENT.value)
            confidence += policy.suspicious_user_agent_weight

        confidence = min(max(confidence, 0.0), 1.0)

        return RiskAssessment(
            is_anomalous=confidence >= policy.anomaly_threshold,
            reasons=reasons,
            confidence=confidence,
        )

    def _is_impossible_travel(self, previous_login, location: Location, now: datetime) -> bool:
        if previous_login is None or not location.country:
            return False

        previous_country = previous_login.location_country
        if not previous_country or previous_country == location.country:
            return False

        elapsed = now - previous_login.timestamp
        return elapsed < timedelta(hours=self._policy.impossible_travel_hours)
