"""
Team-name normalization shared by the score extractor and the cross-provider
merger. Both sides must use the same function or merge keys will not collide.
"""
from __future__ import annotations

import re
import unicodedata
from typing import Any

_NON_ALNUM_RE = re.compile(r"[^0-9a-z]")


def normalize_team_name(raw: Any) -> str:
    """
    Case-fold, strip accents, drop every non-alphanumeric character.

    "Los Angeles Lakers" -> "losangeleslakers", "LA  Lakers!" -> "lalakers".
    """
    text = str(raw or "").strip().casefold()
    if not text:
        return ""
    text = unicodedata.normalize("NFKD", text)
    text = text.encode("ascii", "ignore").decode("ascii")
    return _NON_ALNUM_RE.sub("", text)


def names_match(a: Any, b: Any, *, allow_containment: bool = True) -> bool:
    """Equal after normalization, or (optionally) one contains the other."""
    na = normalize_team_name(a)
    nb = normalize_team_name(b)
    if not na or not nb:
        return False
    if na == nb:
        return True
    return allow_containment and (na in nb or nb in na)
