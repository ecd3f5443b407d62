"""Login throttling, CAPTCHA escalation and account lockout."""
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Mapping, Optional, Tuple

from src.events.domain import DomainEventDispatcher
from src.events.security_events import AccountLockedEvent, AnomalousLoginEvent
from src.models.enums import AttemptKind, SecurityEventType
from src.models.login_attempt import LoginAttempt
from src.repositories.login_attempt_repository import LoginAttemptRepository
from src.repositories.user_repository import UserRepository
from src.services.activity_logger import ActivityLogger
from src.services.geolocation import EMPTY_LOCATION, GeoLocationResolver, Location
from src.services.notifications import notify
from src.services.risk_scorer import RiskAssessment, RiskScorer
from src.services.security_errors import ConcurrentUpdateError, NotFoundError
from src.utils.identifiers import parse_uuid
from src.utils.time_window import TimeWindow

logger = logging.getLogger(__name__)

ACCOUNT_LOCKED = "ACCOUNT_LOCKED"
CAPTCHA_REQUIRED = "CAPTCHA_REQUIRED"


@dataclass(frozen=True)
class ThrottlePolicy:
    """Thresholds of the throttle & lockout state machine."""

    delay_base_ms: int = 1000
    max_delay_ms: int = 16000
    captcha_threshold: int = 3
    lockout_threshold: int = 10
    lockout_minutes: int = 30
    failure_window_minutes: int = 15

    @classmethod
    def from_mapping(cls, cfg: Optional[Mapping] = None) -> "ThrottlePolicy":
        """Build policy from Flask-style config keys (LOGIN_*)."""
        cfg = cfg or {}
        default = cls()
        return cls(
            delay_base_ms=int(cfg.get("LOGIN_DELAY_BASE_MS", default.delay_base_ms)),
            max_delay_ms=int(cfg.get("LOGIN_MAX_DELAY_MS", default.max_delay_ms)),
            captcha_threshold=int(cfg.get("LOGIN_CAPTCHA_THRESHOLD", default.captcha_threshold)),
            lockout_threshold=int(cfg.get("LOGIN_LOCKOUT_THRESHOLD", default.lockout_threshold)),
            lockout_minutes=int(cfg.get("LOGIN_LOCKOUT_MINUTES", default.lockout_minutes)),
            failure_window_minutes=int(
                cfg.get("LOGIN_FAILURE_WINDOW_MINUTES", default.failure_window_minutes)
            ),
        )

    @property
    def failure_window(self) -> timedelta:
        return timedelta(minutes=self.failure_window_minutes)

    @property
    def lockout_duration(self) -> timedelta:
        return timedelta(minutes=self.lockout_minutes)


def calculate_delay(failed_attempts: int, base_ms: int = 1000, max_ms: int = 16000) -> int:
    """
    Progressive delay for ``failed_attempts`` failures in the current window.

    delay = min(base * 2^(n-1), max), and 0 when n == 0.
    """
    if failed_attempts <= 0:
        return 0
    # Beyond this exponent the cap always wins
    exponent = min(failed_attempts - 1, 32)
    return min(base_ms * (2 ** exponent), max_ms)


@dataclass
class PrecheckResult:
    """Decision returned before credentials are evaluated."""

    allowed: bool
    required_delay_ms: int
    requires_captcha: bool
    is_locked: bool
    failed_attempts: int
    locked_until: Optional[datetime] = None
    reason: Optional[str] = None

    def denial_reason(self, captcha_verified: bool = False) -> Optional[str]:
        """
        Reason code the calling flow should render, if the attempt must stop.

        Args:
            captcha_verified: Whether the client solved a CAPTCHA for this attempt

        Returns:
            ``ACCOUNT_LOCKED``, ``CAPTCHA_REQUIRED`` or None
        """
        if self.is_locked:
            return ACCOUNT_LOCKED
        if self.requires_captcha and not captcha_verified:
            return CAPTCHA_REQUIRED
        return None


@dataclass
class AttemptResult:
    """Result of recording an attempt in the ledger."""

    attempt_id: str
    timestamp: datetime
    is_anomalous: bool = False
    anomaly_reasons: List[str] = field(default_factory=list)
    failed_attempts: int = 0
    requires_captcha: bool = False
    locked_until: Optional[datetime] = None


@dataclass
class FailureTransition:
    """Account state change caused by one failed attempt."""

    failed_attempts: int
    requires_captcha: bool
    newly_locked: bool
    locked_until: Optional[datetime] = None


@dataclass
class SecurityStats:
    """Login statistics over a trailing window."""

    time_window: str
    since: datetime
    total_attempts: int
    failed_attempts: int
    successful_attempts: int
    anomalous_attempts: int
    locked_accounts: int
    captcha_required_accounts: int
    failure_rate: float
    anomaly_rate: float


@dataclass
class DeviceSummary:
    """A device the account has logged in from."""

    fingerprint: str
    last_used: datetime
    user_agent: Optional[str]
    location: Optional[str]


class LoginSecurityService:
    """
    Throttle & lockout state machine.

    Normal → Delayed (≥1 failure in window) → CaptchaRequired (≥3)
    → Locked (≥10, for a fixed duration). The failure window is reset
    lazily: a counter whose last failure is older than the window reads
    as zero.
    """

    MAX_UPDATE_ROUNDS = 5

    STATS_WINDOWS = {
        "hour": timedelta(hours=1),
        "day": timedelta(days=1),
        "week": timedelta(days=7),
    }

    def __init__(
        self,
        user_repository: UserRepository,
        attempt_repository: LoginAttemptRepository,
        risk_scorer: RiskScorer,
        geo_resolver: Optional[GeoLocationResolver] = None,
        event_dispatcher: Optional[DomainEventDispatcher] = None,
        activity_logger: Optional[ActivityLogger] = None,
        policy: Optional[ThrottlePolicy] = None,
    ):
        """
        Initialize service with repositories and collaborators.

        Args:
            user_repository: Repository for account security state
            attempt_repository: Attempt ledger
            risk_scorer: Scores attempts for anomalies
            geo_resolver: Resolves origins to locations (optional)
            event_dispatcher: Delivers notification events (optional)
            activity_logger: Audit/security log writer (optional)
            policy: Thresholds, defaults when omitted
        """
        self._user_repo = user_repository
        self._attempt_repo = attempt_repository
        self._risk_scorer = risk_scorer
        self._geo = geo_resolver
        self._dispatcher = event_dispatcher
        self._activity_logger = activity_logger or ActivityLogger()
        self._policy = policy or ThrottlePolicy()

    @property
    def policy(self) -> ThrottlePolicy:
        return self._policy

    # --- state derivation ---

    def effective_failed_attempts(self, user, now: Optional[datetime] = None) -> int:
        """Failure count that still counts: zero once the window has elapsed."""
        now = now or datetime.utcnow()
        if user.last_failed_login_at is None:
            return 0
        if now - user.last_failed_login_at > self._policy.failure_window:
            return 0
        return user.failed_login_count or 0

    def calculate_delay(self, failed_attempts: int) -> int:
        """Progressive delay in milliseconds under this service's policy."""
        return calculate_delay(
            failed_attempts, self._policy.delay_base_ms, self._policy.max_delay_ms
        )

    # --- pre-check & delay ---

    def precheck(self, identifier: str) -> PrecheckResult:
        """
        Decide whether a login for ``identifier`` may proceed.

        Unknown identifiers get the same frictionless answer as a clean
        account so the response does not reveal which accounts exist.

        Args:
            identifier: Login identifier (email)

        Returns:
            PrecheckResult
        """
        user = self._user_repo.find_by_email(identifier)

        if not user:
            return PrecheckResult(
                allowed=True,
                required_delay_ms=0,
                requires_captcha=False,
                is_locked=False,
                failed_attempts=0,
            )

        now = datetime.utcnow()
        failed = self.effective_failed_attempts(user, now)

        if user.locked_until is not None and user.locked_until > now:
            return PrecheckResult(
                allowed=False,
                required_delay_ms=0,
                requires_captcha=False,
                is_locked=True,
                failed_attempts=failed,
                locked_until=user.locked_until,
                reason=ACCOUNT_LOCKED,
            )

        return PrecheckResult(
            allowed=True,
            required_delay_ms=self.calculate_delay(failed),
            requires_captcha=failed >= self._policy.captcha_threshold,
            is_locked=False,
            failed_attempts=failed,
        )

    def apply_delay(
        self,
        delay_ms: int,
        max_wait_ms: Optional[int] = None,
        cancel_event=None,
    ) -> int:
        """
        Suspend the calling request for the required delay.

        Only the calling thread waits. The wait is cut short by the
        caller's remaining deadline (``max_wait_ms``) or by setting
        ``cancel_event``; the attempt then proceeds.

        Args:
            delay_ms: Delay from precheck
            max_wait_ms: Time left before the caller's own deadline
            cancel_event: threading.Event that aborts the wait when set

        Returns:
            Milliseconds actually scheduled
        """
        if delay_ms <= 0:
            return 0

        wait_ms = delay_ms
        if max_wait_ms is not None:
            wait_ms = max(0, min(delay_ms, max_wait_ms))
            if wait_ms < delay_ms:
                logger.info(f"Login delay truncated from {delay_ms}ms to {wait_ms}ms by deadline")

        if wait_ms == 0:
            return 0

        if cancel_event is not None:
            cancel_event.wait(wait_ms / 1000)
        else:
            time.sleep(wait_ms / 1000)
        return wait_ms

    # --- recording ---

    def record_failure(
        self,
        identifier: str,
        reason: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        device_fingerprint: Optional[str] = None,
        captcha_required: bool = False,
        captcha_verified: Optional[bool] = None,
    ) -> AttemptResult:
        """
        Record a failed login and advance the account's lockout state.

        The ledger entry is always written, also for unknown identifiers.

        Args:
            identifier: Login identifier (email)
            reason: Failure reason code (e.g. "invalid_credentials")
            ip_address: Origin of the attempt
            user_agent: Client signature
            device_fingerprint: Opaque device signature
            captcha_required: Whether a CAPTCHA was demanded for this attempt
            captcha_verified: Whether the CAPTCHA was solved, None if not asked

        Returns:
            AttemptResult with anomaly verdict and the new lockout state
        """
        user = self._user_repo.find_by_email(identifier)
        now = datetime.utcnow()
        location = self._resolve_location(ip_address)

        assessment = RiskAssessment.none()
        if user:
            assessment = self._risk_scorer.assess(
                user, location, device_fingerprint, user_agent, now
            )

        attempt = self._attempt_repo.create(
            self._build_attempt(
                user_id=user.id if user else None,
                identifier=identifier,
                kind=AttemptKind.LOGIN,
                ip_address=ip_address,
                user_agent=user_agent,
                device_fingerprint=device_fingerprint,
                timestamp=now,
                success=False,
                failure_reason=reason,
                requires_captcha=captcha_required,
                captcha_verified=captcha_verified,
                location=location,
                assessment=assessment,
            )
        )

        result = AttemptResult(
            attempt_id=str(attempt.id),
            timestamp=now,
            is_anomalous=assessment.is_anomalous,
            anomaly_reasons=list(assessment.reasons),
        )

        if not user:
            return result

        transition = self._update_account(user, lambda u: self._failure_transition(u, now))
        result.failed_attempts = transition.failed_attempts
        result.requires_captcha = transition.requires_captcha
        result.locked_until = transition.locked_until

        if transition.newly_locked:
            self._on_locked(user, transition, ip_address)

        return result

    def record_success(
        self,
        user_id,
        ip_address: Optional[str] = None,
        device_fingerprint: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> AttemptResult:
        """
        Record a successful login, reset friction and learn the origin/device.

        The attempt is still scored; anomalous successes notify the
        account holder.

        Args:
            user_id: Authenticated account
            ip_address: Origin of the attempt
            device_fingerprint: Opaque device signature
            user_agent: Client signature

        Returns:
            AttemptResult with anomaly verdict

        Raises:
            NotFoundError: If the account does not exist
        """
        user = self._user_repo.find_by_id(user_id)
        if not user:
            raise NotFoundError(f"User {user_id} not found")

        now = datetime.utcnow()
        location = self._resolve_location(ip_address)
        assessment = self._risk_scorer.assess(
            user, location, device_fingerprint, user_agent, now
        )

        attempt = self._attempt_repo.create(
            self._build_attempt(
                user_id=user.id,
                identifier=user.email,
                kind=AttemptKind.LOGIN,
                ip_address=ip_address,
                user_agent=user_agent,
                device_fingerprint=device_fingerprint,
                timestamp=now,
                success=True,
                location=location,
                assessment=assessment,
            )
        )

        location_key = location.as_key()
        self._update_account(
            user,
            lambda u: self._success_values(u, now, ip_address, location_key, device_fingerprint),
        )

        if assessment.is_anomalous:
            notify(
                self._dispatcher,
                AnomalousLoginEvent(
                    user_id=str(user.id),
                    email=user.email,
                    user_name=user.name,
                    ip=ip_address,
                    location=location_key,
                    device=user_agent or device_fingerprint,
                    reasons=list(assessment.reasons),
                ),
            )

        return AttemptResult(
            attempt_id=str(attempt.id),
            timestamp=now,
            is_anomalous=assessment.is_anomalous,
            anomaly_reasons=list(assessment.reasons),
        )

    def record_step_up_attempt(
        self,
        user_id,
        success: bool,
        ip_address: Optional[str] = None,
        device_fingerprint: Optional[str] = None,
        user_agent: Optional[str] = None,
        failure_reason: Optional[str] = None,
    ) -> AttemptResult:
        """
        Append a step-up (second factor) verification to the ledger.

        Step-up attempts feed the aggregate monitor; they do not move
        the login lockout counters.

        Raises:
            NotFoundError: If the account does not exist
        """
        user = self._user_repo.find_by_id(user_id)
        if not user:
            raise NotFoundError(f"User {user_id} not found")

        now = datetime.utcnow()
        location = self._resolve_location(ip_address)

        attempt = self._attempt_repo.create(
            self._build_attempt(
                user_id=user.id,
                identifier=user.email,
                kind=AttemptKind.STEP_UP,
                ip_address=ip_address,
                user_agent=user_agent,
                device_fingerprint=device_fingerprint,
                timestamp=now,
                success=success,
                failure_reason=None if success else (failure_reason or "invalid_code"),
                location=location,
                assessment=RiskAssessment.none(),
            )
        )
        return AttemptResult(attempt_id=str(attempt.id), timestamp=now)

    # --- administration ---

    def unlock_account(self, user_id, admin_id) -> None:
        """
        Clear lock, failure counter and CAPTCHA flag (admin override).

        Raises:
            NotFoundError: If the account does not exist
        """
        user = self._user_repo.find_by_id(user_id)
        if not user:
            raise NotFoundError(f"User {user_id} not found")

        before = {
            "locked_until": user.locked_until.isoformat() if user.locked_until else None,
            "failed_login_count": user.failed_login_count,
            "captcha_required": user.captcha_required_since is not None,
        }

        self._update_account(
            user,
            lambda u: {
                "locked_until": None,
                "failed_login_count": 0,
                "last_failed_login_at": None,
                "captcha_required_since": None,
            },
        )

        self._activity_logger.log(
            action=SecurityEventType.ACCOUNT_MANUALLY_UNLOCKED.value,
            actor_id=admin_id,
            entity_type="user",
            entity_id=str(user_id),
            before=before,
            after={"unlocked_by": str(admin_id)},
        )
        self._activity_logger.log_security_event(
            event_type=SecurityEventType.ACCOUNT_MANUALLY_UNLOCKED,
            action="MANUAL_UNLOCK",
            user_id=user_id,
            admin_id=admin_id,
        )

    # --- reporting ---

    def get_login_attempt_history(
        self,
        user_id,
        limit: int = 50,
        include_successful: bool = True,
        anomalous_only: bool = False,
    ) -> List[LoginAttempt]:
        """Ledger entries for an account, newest first."""
        return self._attempt_repo.find_history(
            parse_uuid(user_id),
            limit=limit,
            include_successful=include_successful,
            anomalous_only=anomalous_only,
        )

    def get_security_stats(self, time_window: str = "day") -> SecurityStats:
        """
        Login statistics for the trailing hour, day or week.

        Raises:
            ValueError: If ``time_window`` is not hour, day or week
        """
        if time_window not in self.STATS_WINDOWS:
            raise ValueError(f"Unknown time window: {time_window}")

        now = datetime.utcnow()
        window = TimeWindow.ending_at(now, self.STATS_WINDOWS[time_window])

        total = self._attempt_repo.count_in_window(window)
        failed = self._attempt_repo.count_in_window(window, success=False)
        successful = self._attempt_repo.count_in_window(window, success=True)
        anomalous = self._attempt_repo.count_in_window(window, anomalous=True)

        return SecurityStats(
            time_window=time_window,
            since=window.start,
            total_attempts=total,
            failed_attempts=failed,
            successful_attempts=successful,
            anomalous_attempts=anomalous,
            locked_accounts=self._user_repo.count_locked(now),
            captcha_required_accounts=self._user_repo.count_captcha_required(),
            failure_rate=failed / total if total > 0 else 0.0,
            anomaly_rate=anomalous / total if total > 0 else 0.0,
        )

    def get_user_devices(self, user_id) -> List[DeviceSummary]:
        """Distinct devices of successful logins, most recently used first."""
        return [
            DeviceSummary(
                fingerprint=attempt.device_fingerprint,
                last_used=attempt.timestamp,
                user_agent=attempt.user_agent,
                location=attempt.location_string,
            )
            for attempt in self._attempt_repo.find_devices(parse_uuid(user_id))
        ]

    # --- internals ---

    def _failure_transition(self, user, now: datetime) -> Tuple[Dict, FailureTransition]:
        policy = self._policy
        in_window = self.effective_failed_attempts(user, now) > 0
        failed = (user.failed_login_count or 0) + 1 if in_window else 1

        captcha_since = user.captcha_required_since if in_window else None
        if failed >= policy.captcha_threshold and captcha_since is None:
            captcha_since = now

        values = {
            "failed_login_count": failed,
            "last_failed_login_at": now,
            "total_failed_attempts": (user.total_failed_attempts or 0) + 1,
            "captcha_required_since": captcha_since,
        }

        already_locked = user.locked_until is not None and user.locked_until > now
        newly_locked = failed >= policy.lockout_threshold and not already_locked
        locked_until = user.locked_until if already_locked else None
        if newly_locked:
            locked_until = now + policy.lockout_duration
            values["locked_until"] = locked_until

        return values, FailureTransition(
            failed_attempts=failed,
            requires_captcha=failed >= policy.captcha_threshold,
            newly_locked=newly_locked,
            locked_until=locked_until,
        )

    @staticmethod
    def _success_values(
        user,
        now: datetime,
        ip_address: Optional[str],
        location_key: Optional[str],
        device_fingerprint: Optional[str],
    ) -> Dict:
        values = {
            "failed_login_count": 0,
            "last_failed_login_at": None,
            "captcha_required_since": None,
            "locked_until": None,
            "last_login_at": now,
            "last_login_ip": ip_address,
            "last_login_location": location_key,
        }

        known_locations = list(user.known_locations or [])
        if location_key and location_key not in known_locations:
            values["known_locations"] = known_locations + [location_key]

        known_devices = list(user.known_devices or [])
        if device_fingerprint and device_fingerprint not in known_devices:
            values["known_devices"] = known_devices + [device_fingerprint]

        return values

    def _update_account(self, user, compute: Callable):
        """
        Read-modify-write of the account row under compare-and-swap.

        ``compute`` maps the current user state to either a values dict
        or a ``(values, outcome)`` tuple; on a lost race the row is
        re-read and ``compute`` runs again.

        Returns:
            The outcome (or values) of the round that won
        """
        for _ in range(self.MAX_UPDATE_ROUNDS):
            computed = compute(user)
            values, outcome = computed if isinstance(computed, tuple) else (computed, computed)
            if self._user_repo.compare_and_update(user.id, user.version, values):
                return outcome
            logger.info(f"Concurrent update on user {user.id}, retrying with fresh state")
            user = self._user_repo.refresh(user)

        raise ConcurrentUpdateError(f"Could not update user {user.id}: too much contention")

    def _on_locked(self, user, transition: FailureTransition, ip_address: Optional[str]) -> None:
        logger.warning(
            f"Account {user.id} locked until {transition.locked_until.isoformat()} "
            f"after {transition.failed_attempts} failed attempts"
        )
        self._activity_logger.log_security_event(
            event_type=SecurityEventType.ACCOUNT_LOCKED,
            action="LOCKOUT",
            user_id=user.id,
            ip_address=ip_address,
            details={
                "locked_until": transition.locked_until.isoformat(),
                "failed_attempts": transition.failed_attempts,
            },
        )
        notify(
            self._dispatcher,
            AccountLockedEvent(
                user_id=str(user.id),
                email=user.email,
                user_name=user.name,
                locked_until=transition.locked_until,
                lockout_minutes=self._policy.lockout_minutes,
                failed_attempts=transition.failed_attempts,
                ip=ip_address,
            ),
        )

    def _resolve_location(self, ip_address: Optional[str]) -> Location:
        if self._geo is None or not ip_address:
            return EMPTY_LOCATION
        try:
            return self._geo.resolve(ip_address)
        except Exception:
            logger.exception(f"Geolocation failed for {ip_address}, continuing without it")
            return EMPTY_LOCATION

    @staticmethod
    def _build_attempt(
        user_id,
        identifier: Optional[str],
        kind: AttemptKind,
        ip_address: Optional[str],
        user_agent: Optional[str],
        device_fingerprint: Optional[str],
        timestamp: datetime,
        success: bool,
        location: Location,
        assessment: RiskAssessment,
        failure_reason: Optional[str] = None,
        requires_captcha: bool = False,
        captcha_verified: Optional[bool] = None,
    ) -> LoginAttempt:
        return LoginAttempt(
            user_id=user_id,
            identifier=identifier.strip().lower() if identifier else None,
            kind=kind,
            ip_address=ip_address,
            user_agent=user_agent,
            device_fingerprint=device_fingerprint,
            timestamp=timestamp,
            success=success,
            failure_reason=failure_reason,
            requires_captcha=requires_captcha,
            captcha_verified=captcha_verified,
            location_country=location.country,
            location_region=location.region,
            location_city=location.city,
            is_anomalous=assessment.is_anomalous,
            anomaly_reasons=list(assessment.reasons),
        )
