import pytest
from datetime import datetime

from app.utils.normalizers import (
    extract_numeric,
    extract_signed_percentage,
    generate_company_code,
    generate_slug,
    is_not_available,
    normalize_symbol,
    normalize_text,
    parse_date,
    parse_price_band,
    parse_strict_float,
    split_tokens,
)

SAMPLE_NAMES = [
    "Wakefit Innovations Ltd.",
    "Meesho Limited IPO",
    "  KFin   Technologies Pvt. Ltd ",
    "ABC - IPO",
    "Foo Ltd Ltd",
    "Foo Ltd..",
    "wakefit-innovations",
    "Ākash & Sons (India) Private",
    "",
    "---",
    "IPO",
]

SAMPLE_TEXTS = [
    "  ₹ 1,200   per share ",
    "Rs. Rs 5",
    "₹₹  ",
    "Rs.Rs. 100",
    "\tline\nbreak  ",
    "",
    "plain",
]


# --- Text ---

def test_normalize_text_strips_currency_and_whitespace():
    assert normalize_text("  ₹ 1,200   per share ") == "1,200 per share"
    assert normalize_text("Rs. 500") == "500"
    assert normalize_text("") == ""
    assert normalize_text(None) == ""


@pytest.mark.parametrize("text", SAMPLE_TEXTS)
def test_normalize_text_is_stable(text):
    once = normalize_text(text)
    assert normalize_text(once) == once


def test_is_not_available():
    for value in ("TBA", " n/a ", "--", "-", "", "Pending", "NULL"):
        assert is_not_available(value)
    assert is_not_available(None)
    assert not is_not_available("100")
    assert not is_not_available("Dec 10, 2025")


# --- Numbers ---

def test_extract_numeric():
    assert extract_numeric("₹1,069.50 Cr") == pytest.approx(1069.5)
    assert extract_numeric("-5.5%") == pytest.approx(-5.5)
    assert extract_numeric("no digits") == 0.0
    assert extract_numeric("") == 0.0


def test_extract_signed_percentage():
    assert extract_signed_percentage("+15.2%") == pytest.approx(15.2)
    assert extract_signed_percentage("- 5.8 %") == pytest.approx(-5.8)
    assert extract_signed_percentage("N/A") is None
    assert extract_signed_percentage("abc") is None
    assert extract_signed_percentage(None) is None


def test_parse_strict_float():
    assert parse_strict_float("₹ 1,250.50") == pytest.approx(1250.5)
    assert parse_strict_float("95 per share") is None


def test_parse_price_band():
    assert parse_price_band("₹95 - ₹100") == (95.0, 100.0)
    assert parse_price_band("₹21 to ₹23 per share") == (21.0, 23.0)
    assert parse_price_band("₹23") == (23.0, 23.0)
    assert parse_price_band(None) == (None, None)
    assert parse_price_band("TBA") == (None, None)


# --- Dates ---

@pytest.mark.parametrize("text,expected", [
    ("2025-12-10", datetime(2025, 12, 10)),
    ("10-12-2025", datetime(2025, 12, 10)),
    ("10/12/2025", datetime(2025, 12, 10)),
    ("Dec 10, 2025", datetime(2025, 12, 10)),
    ("Wed, Dec 10, 2025", datetime(2025, 12, 10)),
    ("Wednesday, December 10, 2025", datetime(2025, 12, 10)),
    ("10-Dec-25", datetime(2025, 12, 10)),
    ("Wed, Jan 28, 2026T", datetime(2026, 1, 28)),
])
def test_parse_date_formats(text, expected):
    assert parse_date(text) == expected


def test_parse_date_returns_none():
    assert parse_date("TBA") is None
    assert parse_date("sometime next week") is None
    assert parse_date("") is None
    assert parse_date(None) is None


# --- Codes ---

def test_generate_company_code_example():
    assert generate_company_code("Wakefit Innovations Ltd.") == "wakefit-innovations"


@pytest.mark.parametrize("name", SAMPLE_NAMES)
def test_generate_company_code_is_idempotent(name):
    code = generate_company_code(name)
    assert generate_company_code(code) == code


def test_generate_company_code_is_deterministic():
    first = [generate_company_code(n) for n in SAMPLE_NAMES]
    second = [generate_company_code(n) for n in reversed(SAMPLE_NAMES)]
    assert first == list(reversed(second))


def test_generate_company_code_strips_stacked_suffixes():
    assert generate_company_code("Meesho Limited IPO") == "meesho"
    assert generate_company_code("KFin Technologies Pvt. Ltd") == "kfin-technologies"


def test_generate_slug_drops_corporate_suffixes():
    assert generate_slug("Acme Corp.") == "acme"
    assert generate_slug("Globex Company") == "globex"


def test_normalize_symbol():
    assert normalize_symbol(" wakefit ") == "WAKEFIT"
    assert normalize_symbol("N/A") is None


def test_split_tokens():
    assert split_tokens("Wakefit Innovations Ltd") == ["Wakefit", "Innovations"]
    assert split_tokens("Solo") == ["Solo", ""]
    assert split_tokens(None) == ["", ""]
