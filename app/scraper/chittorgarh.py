import json
import logging
from typing import List, Optional, Tuple

from bs4 import BeautifulSoup
from pydantic import ValidationError

from app.core.config import ScraperConfig, settings
from app.core.errors import ParseFailure, PartialExtractionError, ScraperError
from app.scraper.embedded_json import ChittorgarhIPOData, Ok, parse_ipo_payload
from app.scraper.fetcher import ACCEPT_JSON, Fetcher
from app.scraper.rate_limiter import RateLimiter
from app.scraper.parser import (
    ABOUT_MAX_LENGTH,
    DESCRIPTION_MAX_LENGTH,
    FunctionStrategy,
    LabelStrategy,
    clean_free_text,
    extract_free_text,
    extract_list,
    extract_section_by_heading,
    find_card_by_heading,
    first_match,
    selectors,
    td_after,
)
from app.schemas.ipo import IPO, DataCompleteness, IPOListItem, IPOListResponse
from app.utils.helpers import clean_text
from app.utils.normalizers import (
    extract_signed_percentage,
    generate_company_code,
    generate_slug,
    normalize_symbol,
    normalize_text,
    parse_date,
    parse_int,
    parse_price_band,
)

logger = logging.getLogger(__name__)

LOGO_BASE_URL = "https://www.chittorgarh.net/images/ipo/"
UNKNOWN = "Unknown"


def _og_title(soup: BeautifulSoup) -> Optional[str]:
    meta = soup.find("meta", attrs={"property": "og:title"})
    return meta.get("content") if meta else None


# --- Strategy lists, most specific first ---

NAME_STRATEGIES = (
    selectors("h1.page-title", "h1", ".company-name", ".ipo-title")
    + [FunctionStrategy("og:title", _og_title)]
    + selectors("title", "h2")
)

SYMBOL_STRATEGIES = (
    td_after("Symbol", "Stock Symbol", "NSE Symbol", "BSE Symbol", "Ticker")
    + selectors(".symbol", ".stock-symbol", "[data-symbol]")
    + [LabelStrategy("NSE Symbol")]
)

REGISTRAR_STRATEGIES = (
    td_after("Registrar", "Registrar to Issue", "Registrar & Transfer Agent", "R&T Agent")
    + selectors(".registrar", "[data-registrar]")
)

OPEN_DATE_STRATEGIES = (
    td_after("Open Date", "Opening Date", "Subscription Open", "Issue Open", "Opens On")
    + selectors(".open-date", "[data-open-date]")
    + [LabelStrategy("Open Date")]
)

CLOSE_DATE_STRATEGIES = (
    td_after("Close Date", "Closing Date", "Subscription Close", "Issue Close", "Closes On")
    + selectors(".close-date", "[data-close-date]")
    + [LabelStrategy("Close Date")]
)

RESULT_DATE_STRATEGIES = (
    td_after("Allotment Date", "Result Date", "Allotment Result", "Basis of Allotment")
    + selectors(".result-date", "[data-result-date]")
)

LISTING_DATE_STRATEGIES = (
    td_after("Listing Date", "Expected Listing", "Tentative Listing", "Listing On")
    + selectors(".listing-date", "[data-listing-date]")
    + [LabelStrategy("Listing Date")]
)

PRICE_BAND_STRATEGIES = (
    td_after("Price Band", "Issue Price", "Price Range")
    + selectors(".price-band", "[data-price-band]")
    + td_after("Band")
    + [LabelStrategy("Price Band")]
)

ISSUE_SIZE_STRATEGIES = (
    td_after("Issue Size", "Total Issue", "Size")
    + selectors(".issue-size", "[data-issue-size]")
    + [LabelStrategy("Issue Size")]
)

MIN_QTY_STRATEGIES = (
    td_after("Lot Size", "Min Qty", "Minimum Quantity", "Application Lot")
    + selectors(".min-qty", "[data-min-qty]")
    + [LabelStrategy("Lot Size")]
)

MIN_AMOUNT_STRATEGIES = (
    td_after("Min Investment", "Min Amount", "Minimum Amount", "Application Amount")
    + selectors(".min-amount", "[data-min-amount]")
)

STATUS_STRATEGIES = selectors(".status", "[data-status]") + td_after("Status")
SUBSCRIPTION_STRATEGIES = selectors(".subscription-status", "[data-subscription]") + td_after("Subscription")
LISTING_GAIN_STRATEGIES = selectors(".listing-gain", "[data-listing-gain]") + td_after("Listing Gain")

DESCRIPTION_STRATEGIES = (
    selectors(
        ".company-description",
        ".about-company",
        ".business-overview",
        ".company-profile",
        ".ipo-description",
        ".company-summary",
        ".business-summary",
        ".content-area .company-description",
        ".main-content .business-overview",
        ".ipo-details .company-profile",
        ".content-wrapper .company-summary",
        combine=True,
    )
    + td_after(
        "Company Description",
        "Business Overview",
        "About Company",
        "Company Profile",
        "Business Description",
        "Company Summary",
        "Business Summary",
        "Company Business",
        "Business Activities",
        "Main Business",
    )
    + selectors(
        "div.content p:-soup-contains('Company Description')",
        "div.content p:-soup-contains('Business Overview')",
        "div.content p:-soup-contains('About Company')",
        "section.company-info p:-soup-contains('About')",
        "div.ipo-content p:-soup-contains('Business')",
        "h3:-soup-contains('Company Description') + p",
        "h3:-soup-contains('Business Overview') + p",
        "h3:-soup-contains('About Company') + p",
        "h4:-soup-contains('Company Description') + p",
        "h4:-soup-contains('Business Overview') + p",
        "h2:-soup-contains('Company Description') + p",
        "div:-soup-contains('Company Description') p",
        "div:-soup-contains('Business Overview') p",
        "div:-soup-contains('About Company') p",
        "section:-soup-contains('Company Description') p",
        "section:-soup-contains('Business Overview') p",
        "p:-soup-contains('Company Description')",
        "p:-soup-contains('Business Overview')",
        "p:-soup-contains('About the Company')",
        "p:-soup-contains('Company Business')",
        "p:-soup-contains('Business Activities')",
        "div:-soup-contains('Company Description')",
        "div:-soup-contains('Business Overview')",
        "section:-soup-contains('Company Description')",
        "section:-soup-contains('Business Overview')",
        "p:-soup-contains('business')",
        "p:-soup-contains('company')",
        "div:-soup-contains('business activities')",
        "div:-soup-contains('main business')",
        combine=True,
    )
)

ABOUT_STRATEGIES = (
    selectors(
        ".company-about",
        ".company-details",
        ".company-profile",
        ".ipo-about",
        ".company-info",
        ".company-information",
        ".business-details",
        ".business-profile",
        ".content-area .company-about",
        ".main-content .company-details",
        ".ipo-details .company-info",
        ".content-wrapper .business-model",
        ".content-wrapper .company-information",
        combine=True,
    )
    + td_after(
        "About",
        "Company Details",
        "Business Model",
        "Company Profile",
        "About Company",
        "Company Information",
        "Business Details",
        "Company Background",
        "Business Profile",
        "Company Overview",
        "Business Activities",
        "Products and Services",
    )
    + selectors(
        "h3:-soup-contains('About') + p",
        "h3:-soup-contains('Company Details') + p",
        "h3:-soup-contains('Business Model') + p",
        "h4:-soup-contains('About') + p",
        "h4:-soup-contains('Company Details') + p",
        "h2:-soup-contains('About') + p",
        "h2:-soup-contains('Company Details') + p",
        "div.content div:-soup-contains('About Us')",
        "div.content div:-soup-contains('Company Details')",
        "div.main-content div:-soup-contains('Business Model')",
        "section.company-info div:-soup-contains('About')",
        "div.ipo-content div:-soup-contains('Company')",
        "p:-soup-contains('About Us')",
        "p:-soup-contains('Company Details')",
        "p:-soup-contains('Business Model')",
        "p:-soup-contains('Products and Services')",
        "p:-soup-contains('Company Background')",
        "div:-soup-contains('About Us') p",
        "div:-soup-contains('Company Details') p",
        "div:-soup-contains('Business Model') p",
        "section:-soup-contains('About') p",
        "section:-soup-contains('Company Details') p",
        "section:-soup-contains('About')",
        "section:-soup-contains('Company Details')",
        "div:-soup-contains('About Us')",
        "div:-soup-contains('Company Details')",
        "div:-soup-contains('Business Model')",
        "div:-soup-contains('Company Information')",
        "div:-soup-contains('Business Profile')",
        "div:-soup-contains('company information')",
        "div:-soup-contains('business activities')",
        "div:-soup-contains('products and services')",
        "p:-soup-contains('company information')",
        "p:-soup-contains('business activities')",
        combine=True,
    )
)

COMPLETENESS_FIELDS = (
    "name",
    "stock_id",
    "symbol",
    "registrar",
    "logo_url",
    "open_date",
    "close_date",
    "result_date",
    "listing_date",
    "price_band_low",
    "price_band_high",
    "issue_size",
    "min_qty",
    "min_amount",
    "description",
    "about",
)
CRITICAL_FIELDS = ("name", "stock_id", "registrar", "open_date", "close_date", "price_band_low", "price_band_high")


def _is_date(text: str) -> bool:
    return parse_date(text) is not None


def _has_number(text: str) -> bool:
    return parse_int(text) is not None


def logo_url_for(logo_file: Optional[str], folder: Optional[str] = None) -> Optional[str]:
    """
    'wakefit-logo.png' → 'https://www.chittorgarh.net/images/ipo/wakefit-logo.png'
    Without a file name the URL is derived from the folder: 'wakefit-ipo' → '.../wakefit-logo.png'
    """
    if logo_file:
        if logo_file.startswith("http"):
            return logo_file
        return LOGO_BASE_URL + logo_file.lstrip("/")
    if folder:
        base = folder[: -len("-ipo")] if folder.endswith("-ipo") else folder
        return f"{LOGO_BASE_URL}{base}-logo.png"
    return None


def extract_strengths(soup: BeautifulSoup) -> List[str]:
    """Strengths list: 'Competitive Strengths' paragraph in the summary, else a section by heading."""
    section = soup.find("div", id="ipoSummary") or soup.find("div", id="about-company-section")
    if section:
        for p in section.find_all("p"):
            t = (p.get_text() or "").lower()
            if "competitive" in t and ("strength" in t or "strenght" in t):
                ul = p.find_next_sibling("ul") or p.find_next("ul")
                if ul:
                    return extract_list(ul)
    section = (
        find_card_by_heading(soup, "Strengths", "Strength")
        or extract_section_by_heading(soup, "Strengths")
        or extract_section_by_heading(soup, "Strength")
    )
    return _items_of(section)


def extract_risks(soup: BeautifulSoup) -> List[str]:
    section = (
        find_card_by_heading(soup, "Risks", "Risk Factors", "Weaknesses", "Weakness")
        or extract_section_by_heading(soup, "Risk")
        or extract_section_by_heading(soup, "Weakness")
        or soup.find("div", id=lambda x: bool(x) and ("risk" in x.lower() or "weakness" in x.lower()))
    )
    return _items_of(section)


def _items_of(section) -> List[str]:
    if not section:
        return []
    out = extract_list(section)
    if not out:
        out = [t for t in (clean_text(p.get_text(" ")) for p in section.find_all("p")) if t]
    return out


def parse_html(html: str) -> BeautifulSoup:
    """Parses a page, raising ParseFailure when there is nothing to parse."""
    if not html or "<" not in html:
        raise ParseFailure("page body is not HTML")
    try:
        return BeautifulSoup(html, "lxml")
    except Exception as e:
        raise ParseFailure(f"failed to parse HTML document: {e}") from e


def analyze_completeness(ipo: IPO) -> DataCompleteness:
    """Which fields an extracted IPO carries; 'Unknown' and empty values count as missing."""
    missing = []
    for name in COMPLETENESS_FIELDS:
        value = getattr(ipo, name)
        if value is None or value == "" or value == UNKNOWN:
            missing.append(name)
    total = len(COMPLETENESS_FIELDS)
    extracted = total - len(missing)
    return DataCompleteness(
        total_fields=total,
        extracted_fields=extracted,
        missing_fields=missing,
        critical_missing=[f for f in CRITICAL_FIELDS if f in missing],
        completeness_pct=round(extracted * 100.0 / total, 2),
    )


class ChittorgarhScraper:
    """
    IPO list and detail-page extraction for chittorgarh.com.

    Detail pages are read from the embedded ipoData payload first and from
    HTML selectors when that payload is missing or unusable. Whatever goes
    wrong, extract_ipo hands back a record (a partial one built from the
    list entry in the worst case) together with the error, if any.
    """

    def __init__(self, fetcher: Fetcher, config: Optional[ScraperConfig] = None):
        self.fetcher = fetcher
        self.config = config or ScraperConfig()

    # --- List ---

    def fetch_ipo_list(self) -> List[IPOListItem]:
        result = self.fetcher.fetch(self.config.list_url, accept=ACCEPT_JSON)
        try:
            response = IPOListResponse.model_validate(json.loads(result.body))
        except (json.JSONDecodeError, ValidationError) as e:
            raise ParseFailure(f"failed to parse IPO list JSON response: {e}") from e

        if response.status == 0 and not response.ipoDropDownList:
            raise ScraperError(f"API returned empty response with status code: {response.status}")

        logger.info("Fetched %d IPOs from list API", len(response.ipoDropDownList))
        return response.ipoDropDownList

    def detail_url(self, item: IPOListItem) -> str:
        return f"{self.config.base_url.rstrip('/')}/ipo/{item.urlrewrite_folder_name}/{item.id}/"

    # --- Detail ---

    def extract_ipo(self, item: IPOListItem) -> Tuple[IPO, Optional[ScraperError]]:
        url = self.detail_url(item)
        logger.info("Scraping IPO %s (%s)", item.ipo_news_title, url)

        try:
            page = self.fetcher.fetch(url)
            ipo = self.extract_ipo_from_page(page.body, item)
        except ScraperError as e:
            partial = self.partial_from_list_item(item)
            logger.warning("Returning partial record for %s: %s", item.ipo_news_title, e)
            return partial, PartialExtractionError(
                f"failed to scrape IPO {item.id} ({item.ipo_news_title}): {e}", partial=partial, cause=e
            )
        return ipo, None

    def extract_ipo_from_page(self, html: str, item: IPOListItem) -> IPO:
        soup = parse_html(html)
        payload = parse_ipo_payload(html)

        if isinstance(payload, Ok):
            ipo = self.ipo_from_payload(payload.data, item)
            return self._enrich_from_html(ipo, soup)

        logger.warning("Embedded JSON unusable for %s (%s), using HTML selectors", item.ipo_news_title, payload.error)
        return self.extract_ipo_from_html(soup, item)

    def ipo_from_payload(self, data: ChittorgarhIPOData, item: IPOListItem) -> IPO:
        low, high = data.issue_price_lower, data.issue_price_upper
        min_qty = data.market_lot_size or data.minimum_order_quantity
        min_amount = int(min_qty * high) if min_qty and high else None
        name = normalize_text(data.company_name) or item.ipo_news_title

        return IPO(
            stock_id=str(data.id or item.id),
            name=name,
            symbol=normalize_symbol(data.nse_symbol),
            registrar=data.registrar_name or UNKNOWN,
            logo_url=logo_url_for(item.logo_url or data.logo_url, data.urlrewrite_folder_name or item.urlrewrite_folder_name),
            description=clean_free_text(data.description or "", DESCRIPTION_MAX_LENGTH),
            about=clean_free_text(data.about or "", ABOUT_MAX_LENGTH),
            open_date=parse_date(data.issue_open_date),
            close_date=parse_date(data.issue_close_date),
            result_date=parse_date(data.timetable_boa_dt),
            listing_date=parse_date(data.timetable_listing_dt),
            price_band_low=low,
            price_band_high=high,
            issue_size=data.issue_size_in_amt or None,
            min_qty=min_qty,
            min_amount=min_amount,
            company_code=generate_company_code(name),
            slug=generate_slug(name),
        )

    def _enrich_from_html(self, ipo: IPO, soup: BeautifulSoup) -> IPO:
        status = self.extract_status_group(soup)
        updates = {
            "subscription_status": status["subscription_status"],
            "listing_gain": status["listing_gain"],
            "strengths": extract_strengths(soup),
            "risks": extract_risks(soup),
        }
        if ipo.description is None:
            updates["description"] = extract_free_text(soup, DESCRIPTION_STRATEGIES, DESCRIPTION_MAX_LENGTH, "description")
        if ipo.about is None:
            updates["about"] = extract_free_text(soup, ABOUT_STRATEGIES, ABOUT_MAX_LENGTH, "about")
        return ipo.model_copy(update=updates)

    def extract_ipo_from_html(self, soup: BeautifulSoup, item: IPOListItem) -> IPO:
        basic = self.extract_basic_group(soup)
        if not basic["name"] and soup.find(["table", "h1", "h2", "title"]) is None:
            raise ParseFailure("page has no recognisable IPO content")

        name = basic["name"] or item.ipo_news_title
        dates = self.extract_dates_group(soup)
        pricing = self.extract_pricing_group(soup)
        status = self.extract_status_group(soup)

        return IPO(
            stock_id=str(item.id),
            name=name,
            symbol=basic["symbol"],
            registrar=basic["registrar"] or UNKNOWN,
            logo_url=logo_url_for(item.logo_url, item.urlrewrite_folder_name),
            description=extract_free_text(soup, DESCRIPTION_STRATEGIES, DESCRIPTION_MAX_LENGTH, "description"),
            about=extract_free_text(soup, ABOUT_STRATEGIES, ABOUT_MAX_LENGTH, "about"),
            strengths=extract_strengths(soup),
            risks=extract_risks(soup),
            company_code=generate_company_code(name),
            slug=generate_slug(name),
            **dates,
            **pricing,
            **status,
        )

    # --- Field groups ---

    def extract_basic_group(self, soup: BeautifulSoup) -> dict:
        name, _ = first_match(soup, NAME_STRATEGIES, "name")
        symbol, _ = first_match(soup, SYMBOL_STRATEGIES, "symbol")
        registrar, _ = first_match(soup, REGISTRAR_STRATEGIES, "registrar")
        return {
            "name": normalize_text(name) or None,
            "symbol": normalize_symbol(symbol),
            "registrar": normalize_text(registrar) or None,
        }

    def extract_dates_group(self, soup: BeautifulSoup) -> dict:
        groups = {
            "open_date": OPEN_DATE_STRATEGIES,
            "close_date": CLOSE_DATE_STRATEGIES,
            "result_date": RESULT_DATE_STRATEGIES,
            "listing_date": LISTING_DATE_STRATEGIES,
        }
        dates = {}
        for field, strategies in groups.items():
            text, _ = first_match(soup, strategies, field, accept=_is_date)
            dates[field] = parse_date(text)
        return dates

    def extract_pricing_group(self, soup: BeautifulSoup) -> dict:
        band, _ = first_match(soup, PRICE_BAND_STRATEGIES, "price_band", accept=_has_number)
        low, high = parse_price_band(band)
        issue_size, _ = first_match(soup, ISSUE_SIZE_STRATEGIES, "issue_size", accept=_has_number)
        min_qty, _ = first_match(soup, MIN_QTY_STRATEGIES, "min_qty", accept=_has_number)
        min_amount, _ = first_match(soup, MIN_AMOUNT_STRATEGIES, "min_amount", accept=_has_number)

        qty = parse_int(min_qty)
        amount = parse_int(min_amount)
        if amount is None and qty and high:
            amount = int(qty * high)

        return {
            "price_band_low": low,
            "price_band_high": high,
            "issue_size": clean_text(issue_size) or None,
            "min_qty": qty,
            "min_amount": amount,
        }

    def extract_status_group(self, soup: BeautifulSoup) -> dict:
        status, _ = first_match(soup, STATUS_STRATEGIES, "status")
        subscription, _ = first_match(soup, SUBSCRIPTION_STRATEGIES, "subscription_status")
        listing_gain, _ = first_match(
            soup, LISTING_GAIN_STRATEGIES, "listing_gain",
            accept=lambda t: extract_signed_percentage(t) is not None,
        )
        return {
            "status": normalize_text(status) or UNKNOWN,
            "subscription_status": normalize_text(subscription) or None,
            "listing_gain": normalize_text(listing_gain) or None,
        }

    # --- Fallback ---

    def partial_from_list_item(self, item: IPOListItem) -> IPO:
        """Minimal record from list metadata; used when the detail page is unusable."""
        name = normalize_text(item.ipo_news_title)
        return IPO(
            stock_id=str(item.id),
            name=name,
            status=UNKNOWN,
            registrar=UNKNOWN,
            logo_url=logo_url_for(item.logo_url, item.urlrewrite_folder_name),
            company_code=generate_company_code(name),
            slug=generate_slug(name),
        )


def build_scraper(config: Optional[ScraperConfig] = None) -> ChittorgarhScraper:
    """Scraper with its own rate limiter, configured from settings by default."""
    config = config or ScraperConfig.from_settings(settings)
    fetcher = Fetcher(
        rate_limiter=RateLimiter(config.rate_limit),
        timeout=config.timeout,
        max_retries=config.retry_count,
    )
    return ChittorgarhScraper(fetcher, config)
