"""Pattern catalog - named detectors for known sensitive-data classes.

Each detector pairs a discovery regex with an optional checksum validator
(see ``validators``) and a display colour.  When a regex defines a named
group ``value``, that group is the reported span, so labelled variants
("SSN: 123-45-6789") redact the data and leave the label readable.

The catalog is compiled once at import.  A malformed entry is logged and
left out; it never prevents the remaining detectors from scanning.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable, NamedTuple, Optional

from models.schemas import RGBColor
from redaction.detection.errors import MalformedPatternError
from redaction.detection.validators import ChecksumKind

logger = logging.getLogger(__name__)


class PatternDef(NamedTuple):
    key: str
    name: str
    regex: re.Pattern
    validator: Optional[ChecksumKind]
    color: RGBColor
    description: str = ""
    category: str = "Custom Keywords"
    kind: str = "custom"
    default_enabled: bool = True


# ═══════════════════════════════════════════════════════════════════════════
# Raw catalog
#   (key, name, regex, flags, validator, colour, description, category,
#    kind, default_enabled)
# ═══════════════════════════════════════════════════════════════════════════

_PERSONAL = "Personal Identifiers"
_CONTACT = "Contact Information"
_FINANCIAL = "Financial Information"
_ONLINE = "Online Identifiers"
_DOCUMENT = "Document Identifiers"
_KEYWORDS = "Custom Keywords"

_CATALOG_SOURCE: list[tuple] = [
    # ── Personal identifiers ──────────────────────────────────────────────
    ("ssn", "SSN",
     r"\b(?P<value>\d{3}[-\s]?\d{2}[-\s]?\d{4})\b", 0,
     ChecksumKind.STRICT_SSN, "#ef4444",
     "Social Security Numbers (US)", _PERSONAL, "ssn", True),
    ("ssn_labeled", "SSN Variant",
     r"\b(?:ssn|social\s+security)\s*:?\s*(?P<value>\d{3}[-\s]?\d{2}[-\s]?\d{4})\b", re.IGNORECASE,
     None, "#ef4444",
     "SSN with labels", _PERSONAL, "ssn", True),
    ("sin", "SIN",
     r"\b(?P<value>\d{3}[-\s]?\d{3}[-\s]?\d{3})\b", 0,
     None, "#ef4444",
     "Social Insurance Numbers (Canada)", _PERSONAL, "national_id", False),
    ("nin", "NIN",
     r"\b(?P<value>[A-Z]{2}\d{6}[A-Z]|\d{4}[-\s]?\d{4}[-\s]?\d{4})\b", 0,
     None, "#ef4444",
     "National Insurance Numbers (UK) and National IDs", _PERSONAL, "national_id", False),

    # ── Contact information ───────────────────────────────────────────────
    ("phone", "Phone Number",
     r"(?<![\w+])(?P<value>(?:\+?\d{1,3}[-.\s]?)?(?:\(?\d{3}\)?[-.\s]?)?\d{3}[-.\s]?\d{4})\b", 0,
     None, "#059669",
     "Phone numbers (various formats including XXX-XXX-XXXX)", _CONTACT, "phone", True),
    ("phone_labeled", "Phone Number Variant",
     r"\b(?:phone|number)\s*:?\s*(?P<value>\d{3}[-.\s]?\d{3}[-.\s]?\d{4})\b", re.IGNORECASE,
     None, "#059669",
     "Phone numbers with labels", _CONTACT, "phone", True),
    ("email", "Email",
     r"\b(?P<value>[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,})\b", 0,
     None, "#0284c7",
     "Email addresses", _CONTACT, "email", True),

    # ── Financial ─────────────────────────────────────────────────────────
    ("credit_card", "Credit Card",
     r"\b(?P<value>\d{4}[-\s]?\d{4}[-\s]?\d{4}[-\s]?\d{4}|\d{4}[-\s]?\d{6}[-\s]?\d{5})\b", 0,
     ChecksumKind.LUHN, "#7c3aed",
     "Credit card numbers", _FINANCIAL, "credit_card", True),
    ("bank_account", "Bank Account",
     r"\b(?P<value>\d{8,17}|[A-Z]{2}\d{2}[-\s]?\d{4}[-\s]?\d{4}[-\s]?\d{4}[-\s]?\d{4})\b", 0,
     None, "#7c3aed",
     "Bank account numbers including IBAN formats", _FINANCIAL, "bank", False),
    ("uk_bank_account", "UK Bank Account",
     r"\b(?P<value>[A-Z]{2}\d{2}[-\s]?\d{4}[-\s]?\d{4}[-\s]?\d{4}[-\s]?\d{2})\b", 0,
     None, "#7c3aed",
     "UK-style bank account numbers", _FINANCIAL, "bank", False),

    # ── Online identifiers ────────────────────────────────────────────────
    ("ip_address", "IP Address",
     r"\b(?P<value>\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3})\b", 0,
     ChecksumKind.IPV4, "#a3e635",
     "IPv4 addresses", _ONLINE, "ip", True),
    ("ipv6_address", "IPv6 Address",
     r"\b(?P<value>(?:[0-9a-fA-F]{1,4}:){7}[0-9a-fA-F]{1,4})\b", 0,
     None, "#a3e635",
     "IPv6 addresses", _ONLINE, "ip", True),

    # ── Document identifiers ──────────────────────────────────────────────
    ("passport", "Passport Number",
     r"\b(?P<value>[A-Z]{1,2}\d{6,9}|\d{6,9})\b", 0,
     None, "#fbbf24",
     "Passport numbers (various countries)", _DOCUMENT, "document", False),
    ("drivers_license", "Driver's License",
     r"\b(?P<value>[A-Z]{1,2}[-\s]?\d{3,7}[-\s]?\d{3,7}|\d{8,9})\b", 0,
     None, "#fbbf24",
     "Driver's license numbers (various formats)", _DOCUMENT, "document", False),
    ("medicare", "Medicare Number",
     r"\b(?P<value>\d{3,4}[-\s]?\d{2,3}[-\s]?\d{3,4})\b", 0,
     None, "#fb7185",
     "Medicare numbers", _DOCUMENT, "document", False),

    # ── Keywords ──────────────────────────────────────────────────────────
    ("keywords", "Custom Pattern",
     r"\b(?P<value>confidential|classified|secret|private|sensitive)\b", re.IGNORECASE,
     None, "#f97316",
     "Custom keywords for sensitive content", _KEYWORDS, "keyword", False),
]

CATEGORY_ORDER: tuple[str, ...] = (_PERSONAL, _CONTACT, _FINANCIAL, _ONLINE, _DOCUMENT, _KEYWORDS)

# Words that commonly precede sensitive data on forms ("Phone:", "SSN =").
SENSITIVE_LABELS: tuple[str, ...] = (
    "ssn", "social security", "phone", "tel", "telephone", "mobile", "cell",
    "email", "e-mail", "contact", "card", "credit card", "cc",
)


def compile_pattern(
    name: str,
    regex: str,
    *,
    key: Optional[str] = None,
    flags: int = 0,
    validator: Optional[ChecksumKind] = None,
    color: str = "#f97316",
    description: str = "",
    category: str = _KEYWORDS,
    kind: str = "custom",
    default_enabled: bool = True,
) -> PatternDef:
    """Build a ``PatternDef``, raising ``MalformedPatternError`` on a bad regex."""
    try:
        compiled = re.compile(regex, flags)
    except re.error as exc:
        raise MalformedPatternError(name, regex, str(exc)) from exc
    try:
        rgb = RGBColor.from_hex(color)
    except ValueError:
        raise MalformedPatternError(name, regex, f"invalid colour {color!r}")
    return PatternDef(
        key=key or name,
        name=name,
        regex=compiled,
        validator=validator,
        color=rgb,
        description=description,
        category=category,
        kind=kind,
        default_enabled=default_enabled,
    )


def _build_catalog(source: Iterable[tuple]) -> tuple[PatternDef, ...]:
    catalog: list[PatternDef] = []
    for (key, name, regex, flags, validator, color,
         description, category, kind, default_enabled) in source:
        try:
            catalog.append(compile_pattern(
                name, regex,
                key=key, flags=flags, validator=validator, color=color,
                description=description, category=category, kind=kind,
                default_enabled=default_enabled,
            ))
        except MalformedPatternError as exc:
            logger.warning(f"Excluding detector from catalog: {exc}", extra={"pattern": key})
    return tuple(catalog)


_CATALOG: tuple[PatternDef, ...] = _build_catalog(_CATALOG_SOURCE)
_BY_KEY: dict[str, PatternDef] = {p.key: p for p in _CATALOG}


def detectors() -> list[PatternDef]:
    """Every detector in catalog order."""
    return list(_CATALOG)


def default_detectors() -> list[PatternDef]:
    return [p for p in _CATALOG if p.default_enabled]


def get_pattern(key: str) -> Optional[PatternDef]:
    return _BY_KEY.get(key)


def select_patterns(keys: Optional[Iterable[str]]) -> list[PatternDef]:
    """Resolve enabled detector keys, preserving catalog order.

    ``None`` selects the default set.  Unknown keys are logged and ignored.
    """
    if keys is None:
        return default_detectors()
    wanted = set(keys)
    unknown = wanted - _BY_KEY.keys()
    if unknown:
        logger.warning(f"Ignoring unknown pattern keys: {sorted(unknown)}")
    return [p for p in _CATALOG if p.key in wanted]


def pattern_categories() -> list[tuple[str, list[PatternDef]]]:
    """Detectors grouped by category for display."""
    grouped: dict[str, list[PatternDef]] = {c: [] for c in CATEGORY_ORDER}
    for p in _CATALOG:
        grouped.setdefault(p.category, []).append(p)
    return [(category, pats) for category, pats in grouped.items() if pats]
