"""Phone/email verification codes and the verified-identifier registry"""

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable

from app.models.mortgage import VerificationType
from app.utils.logger import LoggerMixin, get_logger
from app.utils.phone import format_phone_to_e164, is_valid_phone_number

SmsSender = Callable[[str, str], Awaitable[None]]

CODE_LENGTH = 6


@dataclass(frozen=True)
class PendingCode:
    code: str
    expires_at: datetime


def verification_key(kind: VerificationType, identifier: str) -> str:
    return f"{kind.value}:{identifier}"


def generate_code() -> str:
    return str(10 ** (CODE_LENGTH - 1) + secrets.randbelow(9 * 10 ** (CODE_LENGTH - 1)))


async def log_sms_sender(to: str, body: str) -> None:
    """Development sender: no SMS provider configured, the code only goes to the log."""
    get_logger("sms_delivery").warning(
        "No SMS provider configured, message logged instead", to=to, body=body
    )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class VerificationService(LoggerMixin):
    """
    Issues single-use verification codes and remembers verified identifiers.

    Codes are keyed ``sms:<phone>`` / ``email:<address>`` using the identifier
    exactly as collected, expire after ``code_ttl_minutes`` and are removed once
    used. A verified identifier is remembered for ``verified_retention_hours``.
    Stale codes and verifications are purged whenever a new code is stored.
    Only SMS codes are dispatched; the email address is recorded but not
    verified.
    """

    def __init__(
        self,
        sms_sender: SmsSender = log_sms_sender,
        default_country_code: str = "+1",
        code_ttl_minutes: int = 10,
        verified_retention_hours: int = 24,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.sms_sender = sms_sender
        self.default_country_code = default_country_code
        self.code_ttl = timedelta(minutes=code_ttl_minutes)
        self.verified_retention = timedelta(hours=verified_retention_hours)
        self.clock = clock
        self._pending: dict[str, PendingCode] = {}
        self._verified: dict[str, datetime] = {}

    async def send_verification_codes(self, email: str | None, phone: str) -> None:
        await self.send_sms_code(phone)
        self.logger.info("Email recorded without verification", has_email=bool(email))

    async def send_sms_code(self, phone: str) -> None:
        """
        Generate a code for ``phone``, store it and hand it to the SMS sender.

        Raises:
            ValueError: if the number does not have 7 to 15 digits
        """
        if not is_valid_phone_number(phone):
            self.logger.warning("Rejected SMS verification request, invalid phone")
            raise ValueError("Invalid phone number format")

        code = generate_code()
        self._store(VerificationType.SMS, phone, code)

        destination = format_phone_to_e164(phone, self.default_country_code)
        await self.sms_sender(
            destination,
            f"Your mortgage pre-qualification verification code is: {code}",
        )
        self.logger.info("SMS verification code sent", ttl_minutes=self.code_ttl_minutes)

    @property
    def code_ttl_minutes(self) -> int:
        return int(self.code_ttl.total_seconds() // 60)

    def verify_code(self, kind: VerificationType, code: str, identifier: str) -> bool:
        key = verification_key(kind, identifier)
        pending = self._pending.get(key)

        if pending is None:
            self.logger.info("No pending verification code", type=kind.value)
            return False

        if pending.expires_at < self.clock():
            self.logger.info("Verification code expired", type=kind.value)
            del self._pending[key]
            return False

        is_valid = secrets.compare_digest(pending.code, code.strip())
        if is_valid:
            del self._pending[key]
            self._verified[key] = self.clock()

        self.logger.info("Verification attempt", type=kind.value, success=is_valid)
        return is_valid

    def mark_verified(self, kind: VerificationType, identifier: str) -> None:
        self._verified[verification_key(kind, identifier)] = self.clock()

    def check_if_verified(self, kind: VerificationType, identifier: str) -> bool:
        verified_at = self._verified.get(verification_key(kind, identifier))
        return verified_at is not None and verified_at + self.verified_retention >= self.clock()

    def is_phone_verified(self, phone: str) -> bool:
        return self.check_if_verified(VerificationType.SMS, phone)

    def _store(self, kind: VerificationType, identifier: str, code: str) -> None:
        self._purge_stale()
        self._pending[verification_key(kind, identifier)] = PendingCode(
            code=code, expires_at=self.clock() + self.code_ttl
        )

    def _purge_stale(self) -> None:
        now = self.clock()
        expired_codes = [key for key, pending in self._pending.items() if pending.expires_at < now]
        for key in expired_codes:
            del self._pending[key]

        cutoff = now - self.verified_retention
        stale = [key for key, verified_at in self._verified.items() if verified_at < cutoff]
        for key in stale:
            del self._verified[key]

        if expired_codes or stale:
            self.logger.debug(
                "Purged stale verification entries",
                codes=len(expired_codes),
                verified=len(stale),
            )
