import re
from datetime import datetime
from typing import List, Optional, Tuple

# Placeholders that mean "no value yet" on the source sites
NOT_AVAILABLE_VALUES = frozenset({
    "tba",
    "to be announced",
    "to be decided",
    "tbd",
    "n/a",
    "na",
    "not available",
    "not applicable",
    "not disclosed",
    "awaited",
    "pending",
    "coming soon",
    "will be updated",
    "yet to be announced",
    "--",
    "-",
    "",
    "nil",
    "null",
})

COMPANY_CODE_SUFFIXES = (" ltd.", " ltd", " limited", " pvt.", " pvt", " private", " ipo")
SLUG_SUFFIXES = COMPANY_CODE_SUFFIXES + (" inc.", " inc", " corp.", " corp", " company", " co.")

# Tried in order, first successful parse wins
DATE_FORMATS = (
    "%Y-%m-%d",             # 2025-12-10
    "%d-%m-%Y",             # 10-12-2025, 1-2-2025
    "%d/%m/%Y",             # 10/12/2025
    "%b %d, %Y",            # Dec 10, 2025
    "%B %d, %Y",            # December 10, 2025
    "%d %b %Y",             # 10 Dec 2025
    "%d %B %Y",             # 10 December 2025
    "%a, %b %d, %Y",        # Wed, Dec 10, 2025
    "%A, %b %d, %Y",        # Wednesday, Dec 10, 2025
    "%a, %B %d, %Y",        # Wed, December 10, 2025
    "%A, %B %d, %Y",        # Wednesday, December 10, 2025
    "%d-%b-%y",             # 10-Dec-25
    "%d-%b-%Y",             # 10-Dec-2025
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%dT%H:%M:%S.%fZ",
)

_WHITESPACE_RE = re.compile(r"\s+")
_CURRENCY_RE = re.compile(r"[₹$€£¥]")
_SIGNED_NUMBER_RE = re.compile(r"-?\d+\.?\d*")
_SIGNED_PERCENT_RE = re.compile(r"[+-]?\s*\d+\.?\d*")
_STRICT_NUMBER_RE = re.compile(r"^[\d.]+$")
_NON_ALNUM_RUN_RE = re.compile(r"[^a-z0-9]+")


def _normalize_once(s: str) -> str:
    s = _WHITESPACE_RE.sub(" ", s.strip())
    for glyph in ("₹", "Rs.", "Rs "):
        s = s.replace(glyph, "")
    return s.strip()


def normalize_text(s: Optional[str]) -> str:
    """
    '  ₹ 1,200   per share ' → '1,200 per share'
    Trims, collapses whitespace runs and drops the ₹ / Rs. glyphs.
    Applied until stable so normalize_text(normalize_text(s)) == normalize_text(s).
    """
    if not s:
        return ""
    current = s
    while True:
        nxt = _normalize_once(current)
        if nxt == current:
            return nxt
        current = nxt


def is_not_available(s: Optional[str]) -> bool:
    """'TBA', 'N/A', '--', '' ... → True (case-insensitive exact match)."""
    return (s or "").strip().lower() in NOT_AVAILABLE_VALUES


def extract_numeric(s: Optional[str]) -> float:
    """
    Converts '₹1,069.50 Cr' → 1069.5
    Returns 0.0 when no number is present.
    """
    if not s:
        return 0.0
    text = _CURRENCY_RE.sub("", s.strip()).replace(",", "").replace(" ", "")
    match = _SIGNED_NUMBER_RE.search(text)
    if not match:
        return 0.0
    try:
        return float(match.group())
    except ValueError:
        return 0.0


def extract_signed_percentage(s: Optional[str]) -> Optional[float]:
    """
    Converts '+15.2%' → 15.2 and '- 5.8 %' → -5.8
    Returns None for placeholders like 'N/A' or when no number is present.
    """
    if s is None or is_not_available(s):
        return None
    text = s.replace("%", "").strip()
    match = _SIGNED_PERCENT_RE.search(text)
    if not match:
        return None
    try:
        return float(match.group().replace(" ", ""))
    except ValueError:
        return None


def parse_int(value: Optional[str]) -> Optional[int]:
    """
    Converts '120 Shares' → 120
    """
    if not value:
        return None

    match = re.search(r"\d+", value.replace(",", ""))
    return int(match.group()) if match else None


def parse_strict_float(value: Optional[str]) -> Optional[float]:
    """
    Only accepts text that is a bare number once currency glyphs and
    separators are gone: '₹ 1,250.50' → 1250.5, '95 per share' → None.
    """
    if not value:
        return None
    cleaned = re.sub(r"[$,]", "", normalize_text(value)).strip()
    if not _STRICT_NUMBER_RE.match(cleaned):
        return None
    match = re.search(r"\d+\.?\d*", cleaned)
    if not match:
        return None
    try:
        return float(match.group())
    except ValueError:
        return None


def parse_price_band(value: Optional[str]) -> Tuple[Optional[float], Optional[float]]:
    """
    '₹95 - ₹100' → (95.0, 100.0)
    '₹21 to ₹23 per share' → (21.0, 23.0)
    '₹23' → (23.0, 23.0)
    """
    if not value:
        return None, None

    text = normalize_text(value).replace("$", "").replace(",", "").strip()
    for sep in (" - ", "-", " to ", "to", " ~ ", "~"):
        if sep not in text:
            continue
        parts = text.split(sep)
        prices = [p for p in (parse_strict_float(part.strip()) for part in parts[:2]) if p is not None]
        if len(prices) == 2:
            return prices[0], prices[1]

    single = parse_strict_float(text)
    if single is not None:
        return single, single

    # Decorated text ('per share', 'onwards'): take the lowest and highest number
    nums = [float(x) for x in re.findall(r"(\d+(?:\.\d+)?)", text)]
    if not nums:
        return None, None
    return min(nums), max(nums)


def parse_date(value: Optional[str]) -> Optional[datetime]:
    """
    Converts 'Wed, Jan 28, 2026T' → datetime(2026, 1, 28)
    Tries every layout in DATE_FORMATS; returns None when none fits.
    """
    if not value:
        return None

    value = normalize_text(value)
    value = (value[:-1] if value.endswith("T") else value).strip()
    if is_not_available(value):
        return None

    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    return None


def _strip_suffixes(text: str, suffixes) -> str:
    changed = True
    while changed:
        changed = False
        for suffix in suffixes:
            if text.endswith(suffix):
                text = text[: -len(suffix)].rstrip()
                changed = True
    return text


def _slugify(name: Optional[str], suffixes) -> str:
    if not name:
        return ""
    text = _strip_suffixes(name.lower().strip(), suffixes)
    return _NON_ALNUM_RUN_RE.sub("-", text).strip("-")


def generate_company_code(name: Optional[str]) -> str:
    """
    'Wakefit Innovations Ltd.' → 'wakefit-innovations'
    Deterministic and idempotent; used as the fallback join key.
    """
    return _slugify(name, COMPANY_CODE_SUFFIXES)


def generate_slug(name: Optional[str]) -> str:
    """Like generate_company_code, but also drops inc/corp/company suffixes."""
    return _slugify(name, SLUG_SUFFIXES)


def normalize_symbol(value: Optional[str]) -> Optional[str]:
    """' nse: wakefit ' → 'NSEWAKEFIT'; placeholders → None"""
    if value is None or is_not_available(value):
        return None
    symbol = re.sub(r"[^A-Z0-9]", "", value.upper())
    return symbol or None


def split_tokens(name: Optional[str], count: int = 2) -> List[str]:
    """First `count` single-space separated tokens of a trimmed name, padded with ''."""
    parts = (name or "").strip().split(" ")
    return (parts + [""] * count)[:count]
