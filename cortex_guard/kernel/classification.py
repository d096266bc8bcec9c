"""Classification gate for content leaving the trust boundary.

Decides whether text of a given sensitivity may be forwarded to an
external processor, and masks personal data on the way out when the
policy asks for it. Masking is best-effort pattern matching; it does not
replace the classification ceiling.
"""

from __future__ import annotations

import logging
import re
from typing import List, Union

from cortex_guard.core.enums import ClassificationLevel
from cortex_guard.core.errors import ClassificationBlocked
from cortex_guard.core.protocols import (
    ExternalGatingPolicy,
    GateResult,
    PiiMaskResult,
    PiiMatch,
)

logger = logging.getLogger(__name__)

CLASSIFICATION_ORDER: List[ClassificationLevel] = [
    ClassificationLevel.PUBLIC,
    ClassificationLevel.INTERNAL,
    ClassificationLevel.CONFIDENTIAL,
    ClassificationLevel.RESTRICTED,
]

_RANK = {level: i for i, level in enumerate(CLASSIFICATION_ORDER)}

LevelLike = Union[ClassificationLevel, str]


def compare_classification(a: LevelLike, b: LevelLike) -> int:
    """Negative if *a* is less sensitive than *b*, zero if equal, positive otherwise."""
    return _RANK[ClassificationLevel(a)] - _RANK[ClassificationLevel(b)]


def can_send_to_external_llm(
    classification: LevelLike, max_external_classification: LevelLike
) -> bool:
    return compare_classification(classification, max_external_classification) <= 0


# ── PII masking ──

_EMAIL_RE = re.compile(r"[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}", re.IGNORECASE)
_PHONE_RE = re.compile(r"\+?\d[\d\s().-]{7,}\d")
_CARD_RE = re.compile(r"\b(?:\d[ -]*?){13,19}\b")


def _luhn_valid(digits: str) -> bool:
    total = 0
    for i, ch in enumerate(reversed(digits)):
        n = int(ch)
        if i % 2 == 1:
            n *= 2
            if n > 9:
                n -= 9
        total += n
    return total % 10 == 0


def _phone_or_card(value: str) -> str:
    """Kind for a run caught by the phone pattern.

    The phone pattern sees every card-shaped run first, so a 13-19 digit
    run without a country prefix that passes the Luhn check is a card.
    """
    if value.startswith("+"):
        return "phone"
    digits = re.sub(r"\D", "", value)
    if 13 <= len(digits) <= 19 and _luhn_valid(digits):
        return "card"
    return "phone"


def mask_pii(text: str) -> PiiMaskResult:
    """Replace emails, phone numbers and card numbers with typed markers.

    Patterns run as email, phone, card. Each whole digit run is replaced
    by one marker, so adjacent numbers never leave a partial tail.

    The returned matches hold the raw values. They are meant for the
    caller's immediate decision; anything audited from them goes through
    the audit logger's own redaction.
    """
    matches: List[PiiMatch] = []

    def _record(kind: str, value: str) -> str:
        matches.append(PiiMatch(kind=kind, value=value))
        return f"[{kind.upper()}_REDACTED]"

    text = _EMAIL_RE.sub(lambda m: _record("email", m.group(0)), text)
    text = _PHONE_RE.sub(lambda m: _record(_phone_or_card(m.group(0)), m.group(0)), text)
    text = _CARD_RE.sub(lambda m: _record("card", m.group(0)), text)

    return PiiMaskResult(text=text, masked=bool(matches), matches=matches)


# ── Gate ──


def gate_external_llm(
    classification: LevelLike,
    policy: ExternalGatingPolicy,
    text: str,
) -> GateResult:
    """Apply *policy* to outbound text. Raises ClassificationBlocked if forbidden."""
    level = ClassificationLevel(classification)
    ceiling = policy.max_external_classification
    if not can_send_to_external_llm(level, ceiling):
        logger.info(
            "External transfer blocked: classification=%s max=%s",
            level.value, ceiling.value,
        )
        raise ClassificationBlocked(level.value, ceiling.value)

    if policy.mask_pii_before_external:
        result = mask_pii(text)
        return GateResult(text=result.text, masked=result.masked)

    return GateResult(text=text, masked=False)
