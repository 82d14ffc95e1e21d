"""
Handling of the raw one time passwords typed by a YubiKey.

An OTP is the public id of the key (zero to 16 modhex characters) followed by
the 32 character encrypted password.
"""

from satosa_yubikey.exceptions import MalformedOtpError

OTP_MIN_LENGTH = 32
OTP_MAX_LENGTH = 48
PASSWORD_LENGTH = 32

MALFORMED_OTP_MESSAGE = (
    "The one time password generated by your YubiKey is not valid. Please make sure to use your YubiKey."
    " You don't have to type anything manually."
)


def normalize_otp(otp: str) -> str:
    if not OTP_MIN_LENGTH <= len(otp) <= OTP_MAX_LENGTH:
        raise MalformedOtpError(MALFORMED_OTP_MESSAGE)
    # the validation service is case-insensitive
    return otp.lower()


def split_otp(otp: str) -> tuple[str, str]:
    """Return the device id and the password part of a normalized OTP."""
    return otp[:-PASSWORD_LENGTH], otp[-PASSWORD_LENGTH:]
