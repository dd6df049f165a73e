"""Checksum validators consulted by the pattern catalog.

All validators are pure ``str -> bool`` functions.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Callable

_STRICT_SSN_RE = re.compile(r"\d{3}-\d{2}-\d{4}")


class ChecksumKind(str, Enum):
    LUHN = "Luhn"
    IPV4 = "IPv4"
    STRICT_SSN = "StrictSSN"


def luhn_check(number_str: str) -> bool:
    """Luhn algorithm - validates credit card numbers.

    Non-digit characters are ignored.  Fewer than two digits is invalid.
    """
    digits = [int(d) for d in number_str if d.isdigit()]
    if len(digits) < 2:
        return False
    checksum = 0
    for i, d in enumerate(reversed(digits)):
        if i % 2 == 1:
            d *= 2
            if d > 9:
                d -= 9
        checksum += d
    return checksum % 10 == 0


def ipv4_check(text: str) -> bool:
    """Exactly four dot-separated decimal octets, each in 0-255."""
    parts = text.split(".")
    if len(parts) != 4:
        return False
    for part in parts:
        if not part or not part.isascii() or not part.isdigit():
            return False
        if int(part) > 255:
            return False
    return True


def strict_ssn_check(text: str) -> bool:
    """Only the hyphenated ``DDD-DD-DDDD`` form is accepted."""
    return _STRICT_SSN_RE.fullmatch(text) is not None


VALIDATORS: dict[ChecksumKind, Callable[[str], bool]] = {
    ChecksumKind.LUHN: luhn_check,
    ChecksumKind.IPV4: ipv4_check,
    ChecksumKind.STRICT_SSN: strict_ssn_check,
}


def validate(kind: ChecksumKind | None, text: str) -> bool:
    """Run the validator for *kind*; a missing validator always passes."""
    if kind is None:
        return True
    return VALIDATORS[kind](text)
