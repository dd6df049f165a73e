"""Tests for the checksum validators."""

from redaction.detection.validators import (
    ChecksumKind,
    ipv4_check,
    luhn_check,
    strict_ssn_check,
    validate,
)


class TestLuhn:
    def test_valid(self):
        assert luhn_check("4111111111111111")   # Classic Visa test number

    def test_invalid(self):
        assert not luhn_check("4111111111111112")

    def test_separators_ignored(self):
        assert luhn_check("4111-1111 1111-1111")

    def test_empty_and_single_digit(self):
        assert not luhn_check("")
        assert not luhn_check("0")
        assert not luhn_check("abc")

    def test_short_valid(self):
        assert luhn_check("18")
        assert not luhn_check("19")


class TestIPv4:
    def test_valid(self):
        assert ipv4_check("192.168.1.1")
        assert ipv4_check("0.0.0.0")
        assert ipv4_check("255.255.255.255")

    def test_octet_out_of_range(self):
        assert not ipv4_check("256.1.1.1")

    def test_wrong_number_of_octets(self):
        assert not ipv4_check("1.2.3")
        assert not ipv4_check("1.2.3.4.5")

    def test_extra_characters(self):
        assert not ipv4_check("1.2.3.4 ")
        assert not ipv4_check("1.2.3.")
        assert not ipv4_check("a.b.c.d")
        assert not ipv4_check("1.-2.3.4")


class TestStrictSSN:
    def test_hyphenated(self):
        assert strict_ssn_check("123-45-6789")

    def test_unseparated_rejected(self):
        assert not strict_ssn_check("123456789")

    def test_space_separated_rejected(self):
        assert not strict_ssn_check("123 45 6789")

    def test_no_partial_match(self):
        assert not strict_ssn_check("123-45-67890")


class TestValidate:
    def test_missing_validator_passes(self):
        assert validate(None, "anything")

    def test_dispatch(self):
        assert validate(ChecksumKind.LUHN, "4111111111111111")
        assert not validate(ChecksumKind.IPV4, "999.1.1.1")
        assert validate(ChecksumKind.STRICT_SSN, "123-45-6789")
