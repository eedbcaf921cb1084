"""Utility helpers for the Steam games browser."""

from __future__ import annotations

import html
import re
import unicodedata
from datetime import datetime, timezone

from dateutil import parser


TAG_RE = re.compile(r"<[^>]*>")
WHITESPACE_RE = re.compile(r"\s+")
YEAR_RE = re.compile(r"\b\d{4}\b")


def strip_html(value: str | None) -> str:
    """Return ``value`` without markup, decoding common entities."""

    if not value:
        return ""
    text = value
    previous = None
    # Repeat until stable so nested or broken tags cannot survive one pass.
    while text != previous:
        previous = text
        text = TAG_RE.sub("", text)
    text = html.unescape(text)
    return WHITESPACE_RE.sub(" ", text).strip()


def truncate_text(value: str | None, max_length: int = 100, ellipsis: str = "...") -> str:
    """Shorten ``value`` to ``max_length`` characters including the ellipsis."""

    if not value:
        return ""
    if len(value) <= max_length:
        return value
    return value[: max(0, max_length - len(ellipsis))] + ellipsis


def fold_text(value: str) -> str:
    """Return an accent- and case-insensitive key for collation."""

    decomposed = unicodedata.normalize("NFKD", value)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.casefold()


class StoreDateParserInfo(parser.parserinfo):
    """English month names plus the Portuguese ones the store localises to."""

    MONTHS = [
        ("Jan", "January", "Janeiro"),
        ("Feb", "February", "Fev", "Fevereiro"),
        ("Mar", "March", "Março", "Marco"),
        ("Apr", "April", "Abr", "Abril"),
        ("May", "Mai", "Maio"),
        ("Jun", "June", "Junho"),
        ("Jul", "July", "Julho"),
        ("Aug", "August", "Ago", "Agosto"),
        ("Sep", "Sept", "September", "Set", "Setembro"),
        ("Oct", "October", "Out", "Outubro"),
        ("Nov", "November", "Novembro"),
        ("Dec", "December", "Dez", "Dezembro"),
    ]
    JUMP = parser.parserinfo.JUMP + ["de"]


_STORE_DATE_INFO = StoreDateParserInfo(dayfirst=True)
# Fills in the fields a partial date such as "Nov 2024" or "2019" leaves out.
_DATE_DEFAULT = datetime(2000, 1, 1)


def parse_release_date(value: str | None) -> datetime | None:
    """Parse a Steam store release date string.

    The store formats dates according to the requested language, e.g.
    ``"21 Aug, 2012"``, ``"Aug 21, 2012"``, ``"21 ago., 2012"``,
    ``"21/08/2012"`` or just a year. Strings without a four digit year,
    such as ``"Coming soon"``, yield ``None``.
    """

    if not value:
        return None
    text = WHITESPACE_RE.sub(" ", value).strip()
    if not YEAR_RE.search(text):
        return None

    try:
        parsed = parser.isoparse(text)
    except (ValueError, OverflowError):
        try:
            parsed = parser.parse(
                text, parserinfo=_STORE_DATE_INFO, dayfirst=True, default=_DATE_DEFAULT
            )
        except (ValueError, OverflowError):
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
