"""Administrator-issued emergency access and second factor reset."""
import logging
import re
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Mapping, Optional

from src.events.domain import DomainEventDispatcher
from src.events.security_events import EmergencyCodesIssuedEvent, SecondFactorResetEvent
from src.models.emergency_code import EmergencyCode
from src.models.enums import SecurityEventType
from src.repositories.emergency_code_repository import EmergencyCodeRepository
from src.repositories.two_factor_repository import TwoFactorRepository
from src.repositories.user_repository import UserRepository
from src.services.activity_logger import ActivityLogger
from src.services.notifications import notify
from src.services.secret_hasher import SecretHasher
from src.services.security_errors import (
    InvalidInputError,
    NotFoundError,
    PolicyDeniedError,
)
from src.utils.identifiers import parse_uuid
from src.utils.transaction import TransactionContext

logger = logging.getLogger(__name__)

CODE_PATTERN = re.compile(r"^[0-9A-F]{16}$")
INVALID_OR_EXPIRED = "INVALID_OR_EXPIRED"
SELF_RESET_FORBIDDEN = "SELF_RESET_FORBIDDEN"


@dataclass(frozen=True)
class EmergencyCodePolicy:
    """Batch size and lifetime of emergency codes."""

    count: int = 5
    expiry_hours: int = 48

    @classmethod
    def from_mapping(cls, cfg: Optional[Mapping] = None) -> "EmergencyCodePolicy":
        cfg = cfg or {}
        default = cls()
        return cls(
            count=int(cfg.get("EMERGENCY_CODE_COUNT", default.count)),
            expiry_hours=int(cfg.get("EMERGENCY_CODE_EXPIRY_HOURS", default.expiry_hours)),
        )


@dataclass
class IssuedCodes:
    """Plain codes, grouped as XXXX-XXXX-XXXX-XXXX, handed to the issuing administrator exactly once."""

    codes: List[str]
    expires_at: datetime


@dataclass
class EmergencyAccessStatus:
    """Live emergency codes of an account."""

    active_codes: int
    expires_at: Optional[datetime] = None

    @property
    def has_active_codes(self) -> bool:
        return self.active_codes > 0


def generate_code() -> str:
    """16 uppercase hex characters (64 bits of entropy)."""
    return secrets.token_hex(8).upper()


def normalize_code(candidate: str) -> str:
    """Strip the grouping users add when transcribing a code."""
    return (candidate or "").strip().replace("-", "").replace(" ", "").upper()


def format_code(code: str) -> str:
    """Group a code as XXXX-XXXX-XXXX-XXXX for display."""
    return "-".join(code[i:i + 4] for i in range(0, len(code), 4))


class EmergencyAccessService:
    """
    Emergency codes for accounts locked out of their second factor.

    Codes are bcrypt-hashed before they are stored; only the response
    of ``generate_codes`` ever contains them in clear text.
    """

    def __init__(
        self,
        user_repository: UserRepository,
        code_repository: EmergencyCodeRepository,
        two_factor_repository: TwoFactorRepository,
        hasher: SecretHasher,
        activity_logger: Optional[ActivityLogger] = None,
        event_dispatcher: Optional[DomainEventDispatcher] = None,
        policy: Optional[EmergencyCodePolicy] = None,
        session=None,
    ):
        """
        Initialize service.

        Args:
            user_repository: Account repository
            code_repository: Emergency code repository
            two_factor_repository: Backup code / challenge repository
            hasher: One-way hasher for the codes
            activity_logger: Audit/security log writer
            event_dispatcher: Delivers notification events (optional)
            policy: Batch size and expiry, defaults when omitted
            session: Database session used for the atomic reset
        """
        self._user_repo = user_repository
        self._code_repo = code_repository
        self._two_factor_repo = two_factor_repository
        self._hasher = hasher
        self._activity_logger = activity_logger or ActivityLogger()
        self._dispatcher = event_dispatcher
        self._policy = policy or EmergencyCodePolicy()
        self._session = session

    def generate_codes(self, user_id, admin_id, reason: str) -> IssuedCodes:
        """
        Issue a batch of single-use emergency codes.

        Args:
            user_id: Account that lost access to its second factor
            admin_id: Issuing administrator
            reason: Why access is granted (kept in the audit trail)

        Returns:
            IssuedCodes with the plain codes and their common expiry

        Raises:
            NotFoundError: If the account does not exist
            InvalidInputError: If the account has no second factor enabled
        """
        user = self._get_user(user_id)

        if not user.two_factor_enabled:
            raise InvalidInputError("User does not have a second factor enabled")
        if not reason or not reason.strip():
            raise InvalidInputError("A reason is required")

        now = datetime.utcnow()
        expires_at = now + timedelta(hours=self._policy.expiry_hours)
        codes = [generate_code() for _ in range(self._policy.count)]

        self._code_repo.create_batch(
            [
                EmergencyCode(
                    user_id=user.id,
                    code_hash=self._hasher.hash(code),
                    generated_by=parse_uuid(admin_id),
                    reason=reason,
                    expires_at=expires_at,
                    used=False,
                )
                for code in codes
            ]
        )

        details = {
            "count": len(codes),
            "expires_at": expires_at.isoformat(),
            "reason": reason,
        }
        self._activity_logger.log_security_event(
            event_type=SecurityEventType.EMERGENCY_CODES_GENERATED,
            action="GENERATE_EMERGENCY_CODES",
            user_id=user.id,
            admin_id=admin_id,
            details=details,
        )
        self._activity_logger.log(
            action=SecurityEventType.EMERGENCY_CODES_GENERATED.value,
            actor_id=admin_id,
            entity_type="user",
            entity_id=str(user.id),
            after=details,
        )

        notify(
            self._dispatcher,
            EmergencyCodesIssuedEvent(
                user_id=str(user.id),
                email=user.email,
                user_name=user.name,
                expires_at=expires_at,
            ),
        )

        return IssuedCodes(codes=[format_code(code) for code in codes], expires_at=expires_at)

    def verify_code(self, user_id, candidate: str, ip_address: Optional[str] = None) -> bool:
        """
        Redeem an emergency code.

        Only the matching code is consumed; the rest of the batch stays
        usable. Two concurrent redemptions of the same code yield
        exactly one success.

        Raises:
            InvalidInputError: If ``candidate`` is not a well-formed code
        """
        code = normalize_code(candidate)
        if not CODE_PATTERN.match(code):
            raise InvalidInputError("Malformed emergency code")

        now = datetime.utcnow()
        for stored in self._code_repo.find_usable(parse_uuid(user_id), now):
            if not self._hasher.verify(code, stored.code_hash):
                continue
            if self._code_repo.mark_used(stored.id, now):
                self._activity_logger.log_security_event(
                    event_type=SecurityEventType.EMERGENCY_CODE_USED,
                    action="USE_EMERGENCY_CODE",
                    user_id=user_id,
                    ip_address=ip_address,
                    details={"code_id": str(stored.id)},
                )
                return True
            # Lost the race for this code
            break

        self._activity_logger.log_security_event(
            event_type=SecurityEventType.EMERGENCY_CODE_FAILED,
            action="USE_EMERGENCY_CODE",
            user_id=user_id,
            success=False,
            failure_reason=INVALID_OR_EXPIRED,
            ip_address=ip_address,
        )
        return False

    def reset_second_factor(self, user_id, admin_id, reason: str) -> None:
        """
        Remove every second factor artifact of an account in one transaction.

        Raises:
            NotFoundError: If the account does not exist
            InvalidInputError: If ``admin_id`` is not a valid id
            PolicyDeniedError: If an administrator targets their own account
        """
        user = self._get_user(user_id)
        admin_uuid = parse_uuid(admin_id)
        if admin_uuid is None:
            raise InvalidInputError(f"Invalid admin id: {admin_id!r}")

        if user.id == admin_uuid:
            raise PolicyDeniedError(
                SELF_RESET_FORBIDDEN, "Administrators cannot reset their own second factor"
            )

        now = datetime.utcnow()
        before = {
            "two_factor_enabled": user.two_factor_enabled,
            "two_factor_method": user.two_factor_method.value if user.two_factor_method else None,
            "two_factor_verified_at": (
                user.two_factor_verified_at.isoformat() if user.two_factor_verified_at else None
            ),
            "phone_verified": user.phone_verified,
        }

        with TransactionContext(self._session, label="second factor reset"):
            user.two_factor_enabled = False
            user.two_factor_method = None
            user.two_factor_secret = None
            user.two_factor_verified_at = None
            user.phone_number = None
            user.phone_verified = False
            user.two_factor_last_reset_by = admin_uuid
            user.two_factor_last_reset_at = now
            self._user_repo.add(user)

            backup_codes = self._two_factor_repo.delete_backup_codes(user.id)
            emergency_codes = self._code_repo.delete_for_user(user.id)
            challenges = self._two_factor_repo.delete_challenges(user.id)

        logger.warning(
            f"Second factor of user {user.id} reset by admin {admin_id}: "
            f"{backup_codes} backup codes, {emergency_codes} emergency codes, "
            f"{challenges} challenges removed"
        )

        self._activity_logger.log_security_event(
            event_type=SecurityEventType.ADMIN_2FA_RESET,
            action="RESET_SECOND_FACTOR",
            user_id=user.id,
            admin_id=admin_id,
            details={"reason": reason},
        )
        self._activity_logger.log(
            action=SecurityEventType.ADMIN_2FA_RESET.value,
            actor_id=admin_id,
            entity_type="user",
            entity_id=str(user.id),
            before=before,
            after={
                "two_factor_enabled": False,
                "two_factor_method": None,
                "reason": reason,
            },
        )

        notify(
            self._dispatcher,
            SecondFactorResetEvent(
                user_id=str(user.id),
                email=user.email,
                user_name=user.name,
                reason=reason,
            ),
        )

    def get_status(self, user_id) -> EmergencyAccessStatus:
        codes = self._code_repo.find_usable(parse_uuid(user_id), datetime.utcnow())
        if not codes:
            return EmergencyAccessStatus(active_codes=0)
        return EmergencyAccessStatus(
            active_codes=len(codes),
            expires_at=max(code.expires_at for code in codes),
        )

    def prune_expired(self, older_than_days: int = 7) -> int:
        """Delete codes that expired more than ``older_than_days`` ago."""
        count = self._code_repo.cleanup_expired(older_than_days)
        logger.info(f"Pruned {count} expired emergency codes")
        return count

    def _get_user(self, user_id):
        user = self._user_repo.find_by_id(user_id)
        if not user:
            raise NotFoundError(f"User {user_id} not found")
        return user
