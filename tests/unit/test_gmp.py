from datetime import datetime

import pytest

from app.core.errors import ParseFailure
from app.scraper.gmp import (
    GmpScraper,
    calculate_confidence,
    clean_company_name,
    parse_gmp_row,
    parse_gmp_table,
    parse_gmp_text,
    parse_low_high,
    split_name_cell,
)

NOW = datetime(2025, 12, 9, 10, 30)

FULL_ROW = ["Wakefit Innovations IPO NSE O", "₹25 (30.86%) 20 ↓ / 30 ↑", "🔥🔥🔥", "12.50x", "+15.2%"]

GMP_PAGE = """
<html><body>
  <p>GMP Updated on 09-Dec 10:30</p>
  <table id="report_table">
    <thead><tr><th>IPO</th><th>GMP</th><th>Rating</th><th>Sub</th></tr></thead>
    <tbody>
      <tr><td>Wakefit Innovations IPO NSE O</td><td>₹25 (30.86%)</td><td>🔥🔥🔥</td><td>12.50x</td></tr>
      <tr><td>Acme Tech IPO BSE SME U</td><td>₹0 (0.00%)</td><td></td><td>-</td></tr>
      <tr><td>Ad</td></tr>
    </tbody>
  </table>
</body></html>
"""


# --- Cell parsing ---

@pytest.mark.parametrize("text,expected", [
    ("₹25 (30.86%)", (25.0, 30.86)),
    ("₹-12 (-8.5%)", (-12.0, -8.5)),
    ("₹1,250", (1250.0, None)),
    ("--", (None, None)),
    ("", (None, None)),
    (None, (None, None)),
])
def test_parse_gmp_text(text, expected):
    assert parse_gmp_text(text) == expected


def test_parse_low_high():
    assert parse_low_high("25 ↓ / 45 ↑") == (25.0, 45.0)
    assert parse_low_high("₹25") == (None, None)


def test_clean_company_name_strips_stacked_suffixes():
    assert clean_company_name("Wakefit Innovations IPO BSE SME") == "Wakefit Innovations"


def test_split_name_cell():
    assert split_name_cell("Wakefit Innovations IPO NSE SME O") == ("Wakefit Innovations", "NSE SME", "O")
    assert split_name_cell("Meesho IPO") == ("Meesho", None, None)


# --- Rows ---

def test_parse_full_row():
    snapshot = parse_gmp_row(FULL_ROW, updated_on="09-Dec 10:30", now=NOW)

    assert snapshot.ipo_name == "Wakefit Innovations"
    assert snapshot.company_code == "wakefit-innovations"
    assert snapshot.gmp_value == pytest.approx(25.0)
    assert snapshot.gain_percent == pytest.approx(30.86)
    assert snapshot.ipo_price == pytest.approx(81.01)
    assert snapshot.estimated_listing == pytest.approx(106.01)
    assert snapshot.gmp_low == pytest.approx(20.0)
    assert snapshot.gmp_high == pytest.approx(30.0)
    assert snapshot.rating == 3
    assert snapshot.subscription_status == "12.50x"
    assert snapshot.listing_gain == "+15.2%"
    assert snapshot.ipo_status == "Open"
    assert snapshot.exchange == "NSE"
    assert snapshot.updated_on == "09-Dec 10:30"
    assert snapshot.last_updated == NOW

    meta = snapshot.extraction_metadata
    assert meta.confidence_score == 100
    assert meta.failed_fields == []
    assert "ipo_price" in meta.extracted_fields
    assert meta.extraction_time == NOW


def test_zero_gmp_is_a_value():
    snapshot = parse_gmp_row(["Acme Tech IPO BSE SME U", "₹0 (0.00%)", "", "-"], now=NOW)

    assert snapshot.gmp_value == 0.0
    assert snapshot.gain_percent == 0.0
    assert snapshot.ipo_price is None
    assert snapshot.estimated_listing is None
    assert snapshot.subscription_status is None
    assert snapshot.ipo_status == "Upcoming"
    assert snapshot.exchange == "BSE SME"
    # name 25 + gmp 30 + percent 20 + status 5
    assert snapshot.extraction_metadata.confidence_score == 80
    assert set(snapshot.extraction_metadata.failed_fields) == {"subscription_status", "listing_gain", "rating"}


def test_missing_gmp_does_not_count():
    snapshot = parse_gmp_row(["Acme Tech IPO", "--", ""], now=NOW)
    assert snapshot.gmp_value is None
    score, extracted, _ = calculate_confidence(snapshot)
    assert score == 25
    assert extracted == ["ipo_name"]


@pytest.mark.parametrize("cells", [
    [],
    ["Wakefit Innovations", "₹25"],
    ["AB IPO", "₹5", ""],
])
def test_unusable_rows_are_skipped(cells):
    assert parse_gmp_row(cells, now=NOW) is None


# --- Table ---

def test_parse_gmp_table():
    snapshots = parse_gmp_table(GMP_PAGE, now=NOW)
    assert [s.ipo_name for s in snapshots] == ["Wakefit Innovations", "Acme Tech"]
    assert all(s.updated_on == "GMP Updated on 09-Dec 10:30" for s in snapshots)


def test_parse_gmp_table_without_table():
    with pytest.raises(ParseFailure):
        parse_gmp_table("<html><body><p>Maintenance</p></body></html>", now=NOW)


def test_gmp_scraper_uses_loader_and_clock():
    requested = []

    def loader(url):
        requested.append(url)
        return GMP_PAGE

    scraper = GmpScraper(page_loader=loader, url="https://gmp.example.test/live", clock=lambda: NOW)
    snapshots = scraper.extract_gmp_batch()

    assert requested == ["https://gmp.example.test/live"]
    assert len(snapshots) == 2
    assert snapshots[0].last_updated == NOW


def test_gmp_scraper_rejects_table_without_usable_rows():
    page = "<table><tbody><tr><td>Ad</td></tr></tbody></table>"
    scraper = GmpScraper(page_loader=lambda url: page, url="https://gmp.example.test/live", clock=lambda: NOW)
    with pytest.raises(ParseFailure):
        scraper.extract_gmp_batch()
