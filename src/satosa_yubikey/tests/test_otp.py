import unittest

from satosa_yubikey.exceptions import MalformedOtpError
from satosa_yubikey.otp import normalize_otp, split_otp

PASSWORD = "dteffujehknhfjbrjnlnldnhcujvddbi"


class OTPTests(unittest.TestCase):
    def test_length_bounds(self) -> None:
        assert normalize_otp("c" * 32) == "c" * 32
        assert normalize_otp("c" * 48) == "c" * 48
        for otp in ["", "c" * 31, "c" * 49, "c" * 100]:
            with self.assertRaises(MalformedOtpError):
                normalize_otp(otp)

    def test_normalize(self) -> None:
        assert normalize_otp("CCCCCCCCCCCB" + PASSWORD.upper()) == "cccccccccccb" + PASSWORD

    def test_whitespace_counts_towards_length(self) -> None:
        for otp in ["c" * 16 + PASSWORD + "\n", " " + "c" * 16 + PASSWORD, " " * 17 + PASSWORD]:
            assert len(otp) == 49
            with self.assertRaises(MalformedOtpError):
                normalize_otp(otp)

    def test_split(self) -> None:
        assert split_otp("cccccccccccb" + PASSWORD) == ("cccccccccccb", PASSWORD)
        assert split_otp("aa" + PASSWORD) == ("aa", PASSWORD)

    def test_split_without_device_id(self) -> None:
        assert split_otp(PASSWORD) == ("", PASSWORD)
