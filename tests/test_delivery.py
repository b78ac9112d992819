import pytest

from authcore.errors import DeliveryError
from authcore.schemas.otp import OtpPurpose
from authcore.services.delivery import (
    EmailChannel,
    ReturnedForTesting,
    SmsChannel,
    build_channel,
)
from conftest import make_settings


def test_returned_channel_hands_code_back():
    assert ReturnedForTesting().deliver("a@x.com", "123456", OtpPurpose.REGISTRATION) == "123456"


def test_sender_failure_becomes_delivery_error():
    def failing_sender(identity, code, purpose):
        raise ConnectionError("smtp down")

    with pytest.raises(DeliveryError):
        SmsChannel(failing_sender).deliver("+15550100", "123456", OtpPurpose.FORGOT_PASSWORD)


def test_build_channel():
    sender = lambda identity, code, purpose: None  # noqa: E731
    assert isinstance(build_channel(make_settings()), ReturnedForTesting)
    assert isinstance(build_channel(make_settings(otp_delivery="email"), sender), EmailChannel)
    assert isinstance(build_channel(make_settings(otp_delivery="sms"), sender), SmsChannel)
    with pytest.raises(DeliveryError):
        build_channel(make_settings(otp_delivery="email"))
    with pytest.raises(ValueError):
        build_channel(make_settings(otp_delivery="pigeon"))
