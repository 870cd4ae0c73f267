import logging
import re
from datetime import datetime
from typing import Callable, List, Optional, Sequence, Tuple

from bs4 import BeautifulSoup

from app.core.config import settings
from app.core.errors import ParseFailure
from app.schemas.gmp import ExtractionMetadata, GMPSnapshot
from app.scraper.browser import get_html
from app.utils.helpers import clean_text
from app.utils.normalizers import generate_company_code

logger = logging.getLogger(__name__)

DATA_SOURCE = "investorgain.com"
TABLE_STRUCTURE = "investorgain_standard"

GMP_WITH_PERCENT_RE = re.compile(r"(-?\d+(?:\.\d+)?)\s*\((-?\d+(?:\.\d+)?)%\)")
FIRST_NUMBER_RE = re.compile(r"-?\d+(?:\.\d+)?")
LOW_HIGH_RE = re.compile(r"(\d+(?:\.\d+)?)\s*[↓▼⬇]\s*/\s*(\d+(?:\.\d+)?)\s*[↑▲⬆]")

EXCHANGE_MARKER_RE = re.compile(r"\s*(BSE|NSE)\s*(SME)?\s*[UOC]?\s*$", re.IGNORECASE)
STATUS_MARKER_RE = re.compile(r"\s+[UOC]\s*$")
TRAILING_IPO_RE = re.compile(r"\s*IPO\s*$", re.IGNORECASE)
STATUS_LETTER_RE = re.compile(r"\b([UOC])\b")
SUBSCRIPTION_RE = re.compile(r"(\d+(?:\.\d+)?x)", re.IGNORECASE)
LISTING_GAIN_RE = re.compile(r"([+-]\d+(?:\.\d+)?%)")
UPDATED_ON_RE = re.compile(r"\d{1,2}[-/]\w{3}|\d{1,2}:\d{2}")

NAME_SUFFIXES = (" BSE SME", " NSE SME", " BSE", " NSE", " IPO")
STATUS_NAMES = {"U": "Upcoming", "O": "Open", "C": "Closed"}
RATING_GLYPH = "🔥"

CONFIDENCE_WEIGHTS = {
    "ipo_name": 25,
    "gmp_value": 30,
    "gain_percent": 20,
    "subscription_status": 10,
    "rating": 5,
    "listing_gain": 5,
    "ipo_status": 5,
}


def parse_gmp_text(text: Optional[str]) -> Tuple[Optional[float], Optional[float]]:
    """
    '₹25 (30.86%)' → (25.0, 30.86)
    '₹1,250' → (1250.0, None)
    '--' → (None, None)
    """
    if not text:
        return None, None
    cleaned = text.replace("₹", "").replace(",", "").strip()

    match = GMP_WITH_PERCENT_RE.search(cleaned)
    if match:
        return float(match.group(1)), float(match.group(2))

    match = FIRST_NUMBER_RE.search(cleaned)
    if match:
        return float(match.group()), None
    return None, None


def parse_low_high(text: Optional[str]) -> Tuple[Optional[float], Optional[float]]:
    """'25 ↓ / 45 ↑' → (25.0, 45.0)"""
    if not text:
        return None, None
    match = LOW_HIGH_RE.search(text)
    if not match:
        return None, None
    return float(match.group(1)), float(match.group(2))


def clean_company_name(name: str) -> str:
    """'Wakefit Innovations IPO BSE SME' → 'Wakefit Innovations'"""
    name = clean_text(name)
    changed = True
    while changed:
        changed = False
        for suffix in NAME_SUFFIXES:
            if name.endswith(suffix):
                name = name[: -len(suffix)].strip()
                changed = True
    return name


def split_name_cell(cell: str) -> Tuple[str, Optional[str], Optional[str]]:
    """
    Splits the first column into (company name, exchange, status letter).
    'Wakefit Innovations IPO NSE SME O' → ('Wakefit Innovations', 'NSE SME', 'O')
    """
    cell = clean_text(cell)

    status_match = STATUS_LETTER_RE.search(cell)
    status = status_match.group(1) if status_match else None

    exchange = None
    for marker in ("BSE SME", "NSE SME", "BSE", "NSE"):
        if marker in cell:
            exchange = marker
            break

    name = EXCHANGE_MARKER_RE.sub("", cell).strip()
    name = STATUS_MARKER_RE.sub("", name).strip()
    name = TRAILING_IPO_RE.sub("", name).strip()
    return clean_company_name(name), exchange, status


def find_listing_gain(cells: Sequence[str]) -> Optional[str]:
    for cell in cells:
        match = LISTING_GAIN_RE.search(cell)
        if match and "GMP" not in cell:
            return match.group(1)
    return None


def calculate_confidence(snapshot: GMPSnapshot) -> Tuple[int, List[str], List[str]]:
    """
    Confidence score (0-100) plus the extracted and failed field names.
    A field counts as found when it carries a value, zero included.
    """
    present = {
        "ipo_name": bool(snapshot.ipo_name),
        "gmp_value": snapshot.gmp_value is not None,
        "gain_percent": snapshot.gain_percent is not None,
        "subscription_status": bool(snapshot.subscription_status),
        "rating": snapshot.rating > 0,
        "listing_gain": bool(snapshot.listing_gain),
        "ipo_status": bool(snapshot.ipo_status),
    }
    score = sum(CONFIDENCE_WEIGHTS[f] for f, ok in present.items() if ok)

    extracted = [f for f in ("ipo_name", "gmp_value", "gain_percent") if present[f]]
    if snapshot.ipo_price is not None:
        extracted += ["ipo_price", "estimated_listing"]
    failed = [f for f in ("subscription_status", "listing_gain", "rating") if not present[f]]
    return score, extracted, failed


def parse_gmp_row(
    cells: Sequence[str],
    updated_on: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Optional[GMPSnapshot]:
    """
    One table row (cell texts) → GMPSnapshot.
    Columns: name (with exchange/status markers), GMP, rating, subscription.
    Returns None for short rows and rows without a usable name.
    """
    if len(cells) < 3:
        return None

    name, exchange, status_letter = split_name_cell(cells[0])
    if len(name) <= 2:
        return None

    gmp_value, gain_percent = parse_gmp_text(cells[1])
    low, high = parse_low_high(cells[1])
    rating = cells[2].count(RATING_GLYPH)

    subscription = None
    if len(cells) > 3:
        sub_match = SUBSCRIPTION_RE.search(cells[3])
        subscription = sub_match.group(1) if sub_match else (clean_text(cells[3]) or None)
        if subscription == "-":
            subscription = None

    ipo_price = None
    estimated_listing = None
    if gmp_value is not None and gain_percent is not None and gmp_value > 0 and gain_percent > 0:
        ipo_price = round(gmp_value / (gain_percent / 100), 2)
        estimated_listing = round(ipo_price + gmp_value, 2)

    now = now or datetime.now()
    snapshot = GMPSnapshot(
        ipo_name=name,
        company_code=generate_company_code(name),
        gmp_value=gmp_value,
        gain_percent=gain_percent,
        ipo_price=ipo_price,
        estimated_listing=estimated_listing,
        gmp_low=low,
        gmp_high=high,
        subscription_status=subscription,
        listing_gain=find_listing_gain(cells),
        rating=rating,
        ipo_status=STATUS_NAMES.get(status_letter) if status_letter else None,
        exchange=exchange,
        data_source=DATA_SOURCE,
        updated_on=updated_on,
        last_updated=now,
    )

    score, extracted, failed = calculate_confidence(snapshot)
    snapshot.extraction_metadata = ExtractionMetadata(
        extracted_fields=extracted,
        failed_fields=failed,
        confidence_score=score,
        table_structure=TABLE_STRUCTURE,
        extraction_time=now,
        data_source=DATA_SOURCE,
    )
    return snapshot


def find_updated_on(soup: BeautifulSoup) -> Optional[str]:
    """The page's 'Updated on 12-Dec 10:30' line, if any."""
    for text in soup.find_all(string=re.compile("updated", re.IGNORECASE)):
        candidate = clean_text(str(text))
        if UPDATED_ON_RE.search(candidate):
            return candidate
    return None


def parse_gmp_table(html: str, now: Optional[datetime] = None) -> List[GMPSnapshot]:
    soup = BeautifulSoup(html or "", "lxml")
    rows = soup.select("#report_table tbody tr") or soup.select("table tbody tr")
    if not rows:
        raise ParseFailure("GMP table not found in page")

    updated_on = find_updated_on(soup)
    snapshots = []
    skipped = 0
    for row in rows:
        cells = [clean_text(td.get_text(" ")) for td in row.find_all("td")]
        snapshot = parse_gmp_row(cells, updated_on=updated_on, now=now)
        if snapshot is None:
            skipped += 1
            continue
        snapshots.append(snapshot)

    logger.info("Parsed %d GMP rows (%d skipped)", len(snapshots), skipped)
    return snapshots


class GmpScraper:
    """Live GMP table from investorgain; the page is rendered by a headless browser."""

    def __init__(
        self,
        page_loader: Callable[[str], str] = get_html,
        url: Optional[str] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.page_loader = page_loader
        self.url = url or settings.GMP_URL
        self.clock = clock

    def extract_gmp_batch(self) -> List[GMPSnapshot]:
        logger.info("Fetching GMP table from %s", self.url)
        html = self.page_loader(self.url)
        snapshots = parse_gmp_table(html, now=self.clock())
        if not snapshots:
            raise ParseFailure("GMP table contained no usable rows")
        return snapshots
