import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ValidationError, field_validator

from app.core.errors import ParseFailure

logger = logging.getLogger(__name__)

# The detail page ships its data inside an escaped JS string: \"ipoData\":[{...}]
IPO_DATA_MARKER = re.compile(r'\\"ipoData\\":\s*\[')


class ChittorgarhIPOData(BaseModel):
    id: Optional[int] = None
    company_name: str
    issue_open_date: Optional[str] = None
    issue_close_date: Optional[str] = None
    issue_price_lower: Optional[float] = None
    issue_price_upper: Optional[float] = None
    nse_symbol: Optional[str] = None
    registrar_name: Optional[str] = None
    timetable_listing_dt: Optional[str] = None
    timetable_boa_dt: Optional[str] = None
    market_lot_size: Optional[int] = None
    minimum_order_quantity: Optional[int] = None
    issue_size_in_amt: Optional[str] = None
    urlrewrite_folder_name: Optional[str] = None
    logo_url: Optional[str] = None
    description: Optional[str] = None
    about: Optional[str] = None

    @field_validator("issue_price_lower", "issue_price_upper", mode="before")
    @classmethod
    def price_from_text(cls, v):
        if isinstance(v, str):
            v = v.replace(",", "").strip()
            return v or None
        return v

    @field_validator("id", "market_lot_size", "minimum_order_quantity", mode="before")
    @classmethod
    def count_from_text(cls, v):
        """'1,200' → 1200, '120.0' → 120, '' → None"""
        if isinstance(v, str):
            v = v.replace(",", "").strip()
            if not v:
                return None
            try:
                return int(float(v))
            except ValueError:
                return None
        if isinstance(v, float):
            return int(v)
        return v

    @field_validator("issue_size_in_amt", mode="before")
    @classmethod
    def size_to_text(cls, v):
        if v is None:
            return None
        return str(v)


@dataclass
class Ok:
    data: ChittorgarhIPOData


@dataclass
class Fallback:
    """Payload missing or unusable; `partial` holds whatever raw keys were readable."""
    error: ParseFailure
    partial: Dict[str, Any] = field(default_factory=dict)


PayloadResult = Union[Ok, Fallback]


def _matching_brace(text: str, start: int) -> int:
    """
    Index just past the brace closing the object opened at `start`, or -1.
    The page text is one JS-escaped level deep: `\\"` is a JSON quote and
    `\\\\` a JSON backslash. Braces inside JSON strings are not counted.
    """
    depth = 0
    in_string = False
    escaped = False
    i = start
    n = len(text)
    while i < n:
        if text[i] == "\\" and i + 1 < n:
            ch = text[i + 1]
            i += 2
        else:
            ch = text[i]
            i += 1

        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i
    return -1


def extract_embedded_json(text: str) -> str:
    """
    Returns the first ipoData object as plain JSON text.
    Finds the marker, counts braces to the matching close and unescapes
    the embedded string. Raises ParseFailure when any step fails.
    """
    if not text:
        raise ParseFailure("empty page body")

    marker = IPO_DATA_MARKER.search(text)
    if not marker:
        raise ParseFailure("ipoData not found in page")

    start = text.find("{", marker.end())
    if start == -1:
        raise ParseFailure("no opening brace after ipoData")

    end = _matching_brace(text, start)
    if end == -1:
        raise ParseFailure("no matching closing brace for ipoData object")

    raw = text[start:end]
    return raw.replace('\\"', '"').replace("\\\\", "\\")


def parse_ipo_payload(text: str) -> PayloadResult:
    """
    Ok(ChittorgarhIPOData) when the embedded payload decodes and validates,
    Fallback otherwise. Never raises.
    """
    try:
        raw = extract_embedded_json(text)
    except ParseFailure as e:
        logger.debug("Embedded JSON unavailable: %s", e)
        return Fallback(error=e)

    try:
        decoded = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning("Embedded JSON is malformed: %s", e)
        return Fallback(error=ParseFailure(f"failed to parse JSON: {e}"))

    if not isinstance(decoded, dict):
        return Fallback(error=ParseFailure("ipoData entry is not an object"))

    try:
        return Ok(ChittorgarhIPOData.model_validate(decoded))
    except ValidationError as e:
        logger.warning("Embedded JSON failed validation (%d errors)", e.error_count())
        return Fallback(error=ParseFailure(f"invalid ipoData: {e.error_count()} field errors"), partial=decoded)
