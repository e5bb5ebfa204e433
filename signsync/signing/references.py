from __future__ import annotations

import re
import uuid
from dataclasses import dataclass

_CANONICAL = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$")
_NON_HEX = re.compile(r"[^0-9a-f]")
_GROUPS = (8, 4, 4, 4, 12)

@dataclass(frozen=True)
class NormalizedReference:
    value: str
    original: str | None
    # the input was reshaped into canonical form
    repaired: bool = False
    # the input was unusable and value is a fresh uuid4
    substituted: bool = False

    @property
    def warning(self) -> str | None:
        if self.substituted:
            return f"reference {self.original!r} is not a valid uuid; substituted {self.value}"
        if self.repaired:
            return f"reference {self.original!r} normalized to {self.value}"
        return None

def _regroup(hex32: str) -> str:
    parts = []
    pos = 0
    for size in _GROUPS:
        parts.append(hex32[pos : pos + size])
        pos += size
    return "-".join(parts)

def _normalize(raw: str | None) -> tuple[str | None, bool]:
    # (canonical value or None, whether stray characters had to be dropped)
    if raw is None:
        return None, False
    text = raw.strip().lower()
    if text.startswith("urn:uuid:"):
        text = text[len("urn:uuid:") :]
    text = text.strip("{}")
    if _CANONICAL.match(text):
        return text, False
    digits = _NON_HEX.sub("", text)
    if len(digits) != 32:
        return None, False
    return _regroup(digits), True

def try_normalize(raw: str | None) -> str | None:
    """Canonical lowercase uuid text for raw, or None if it can't be recovered."""
    return _normalize(raw)[0]

def normalize_reference(raw: str | None) -> NormalizedReference:
    value, regrouped = _normalize(raw)
    if value is None:
        return NormalizedReference(value=str(uuid.uuid4()), original=raw, substituted=True)
    return NormalizedReference(value=value, original=raw, repaired=regrouped)
