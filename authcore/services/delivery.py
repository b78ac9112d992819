from __future__ import annotations

import logging
from typing import Callable, Optional, Protocol

from authcore.config import Settings
from authcore.errors import DeliveryError
from authcore.schemas.otp import OtpPurpose

LOGGER = logging.getLogger(__name__)

Sender = Callable[[str, str, str], None]


class OtpChannel(Protocol):
    def deliver(self, identity: str, code: str, purpose: OtpPurpose) -> Optional[str]: ...


class ReturnedForTesting:
    """Hands the code back to the caller. Development and tests only."""

    def deliver(self, identity: str, code: str, purpose: OtpPurpose) -> Optional[str]:
        LOGGER.debug("OTP for %s (%s): %s", identity, purpose.value, code)
        return code


class _SenderChannel:
    label = "sender"

    def __init__(self, sender: Sender) -> None:
        self._sender = sender

    def deliver(self, identity: str, code: str, purpose: OtpPurpose) -> Optional[str]:
        try:
            self._sender(identity, code, purpose.value)
        except DeliveryError:
            raise
        except Exception as exc:
            LOGGER.error("OTP %s delivery to %s failed", self.label, identity)
            raise DeliveryError(f"Failed to deliver OTP by {self.label}") from exc
        return None


class EmailChannel(_SenderChannel):
    label = "email"


class SmsChannel(_SenderChannel):
    label = "sms"


def build_channel(config: Settings, sender: Optional[Sender] = None) -> OtpChannel:
    if config.otp_delivery == "returned":
        return ReturnedForTesting()
    if config.otp_delivery not in {"email", "sms"}:
        raise ValueError(f"Unknown OTP delivery: {config.otp_delivery}")
    if sender is None:
        raise DeliveryError(f"OTP {config.otp_delivery} sender is not configured")
    if config.otp_delivery == "email":
        return EmailChannel(sender)
    return SmsChannel(sender)
