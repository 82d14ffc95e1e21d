"""
YubiKey OTP second factor for the SATOSA proxy.

Configure the micro service as `satosa_yubikey.YubikeyOTP`.
"""

from satosa_yubikey.plugin import YubikeyOTP

__all__ = ["YubikeyOTP"]
