import logging
import re
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from bs4 import BeautifulSoup, Tag
from soupsieve import SelectorSyntaxError

from app.utils.helpers import clean_text, preview

logger = logging.getLogger(__name__)

MIN_TEXT_LENGTH = 10
DESCRIPTION_MAX_LENGTH = 2000
ABOUT_MAX_LENGTH = 5000


# --- Label lookups (chittorgarh table, top-ratios and card layouts) ---

def _has_class(c, name: str) -> bool:
    if not c:
        return False
    return name in (c if isinstance(c, str) else " ".join(c)).lower()


def get_value_by_label_contains(soup: BeautifulSoup, label: str) -> Optional[str]:
    """
    Finds table value where <td> contains label text
    Example: 'Issue Size (₹ Cr)' contains 'Issue Size'
    """
    for td in soup.find_all("td"):
        if label.lower() in td.get_text(strip=True).lower():
            next_td = td.find_next_sibling("td")
            return clean_text(next_td.get_text(" ")) if next_td else None
    return None


def get_value_by_label_in_li(soup: BeautifulSoup, label: str, list_class: str = "top-ratios") -> Optional[str]:
    """
    Finds value in ul.top-ratios where <li> has two <span>s:
    first contains label, second (or span.text-end) contains value.
    """
    ul = soup.find("ul", class_=lambda c: _has_class(c, list_class))
    if not ul:
        return None
    for li in ul.find_all("li"):
        spans = li.find_all("span")
        for s in spans:
            if label.lower() in clean_text(s.get_text()).lower():
                val_span = li.find("span", class_=lambda c: _has_class(c, "text-end"))
                if val_span:
                    return clean_text(val_span.get_text(" "))
                if len(spans) >= 2:
                    return clean_text(spans[-1].get_text(" "))
                return None
    return None


def get_value_from_cards(soup: BeautifulSoup, label: str) -> Optional[str]:
    """
    Finds value in card-ipo layout: p.text-muted (label) + p.fs-5 (value).
    Used for Open Date, Close Date, Issue Size and similar headline figures.
    """
    for p in soup.find_all("p", class_=lambda c: _has_class(c, "text-muted")):
        if label.lower() in clean_text(p.get_text()).lower():
            next_p = p.find_next_sibling("p")
            if next_p:
                return clean_text(next_p.get_text(" "))
            parent = p.parent
            if parent:
                fs5 = parent.find("p", class_=lambda c: _has_class(c, "fs-5"))
                if fs5:
                    return clean_text(fs5.get_text(" "))
    return None


def find_card_by_heading(soup: BeautifulSoup, *headings: str) -> Optional[Tag]:
    """
    Finds a card/section that contains an h2/h3 with any of the given heading texts.
    Returns the closest ancestor holding list or table content, else the heading's parent.
    """
    for h in soup.find_all(["h2", "h3"]):
        t = clean_text(h.get_text()).lower()
        if any(hd.lower() in t for hd in headings):
            p = h.parent
            while p and p.name != "body":
                if p.find("ol") or p.find("ul") or p.find("table"):
                    return p
                p = p.parent
            return h.parent
    return None


def extract_section_by_heading(soup: BeautifulSoup, heading_text: str) -> Optional[Tag]:
    """The element right after a heading containing `heading_text`."""
    for heading in soup.find_all(["h1", "h2", "h3", "h4", "h5", "h6"]):
        if heading_text.lower() in clean_text(heading.get_text()).lower():
            next_sibling = heading.find_next_sibling()
            if next_sibling:
                return next_sibling
            parent = heading.parent
            if parent:
                return parent.find_next_sibling()
    return None


def extract_list(section: Optional[Tag]) -> List[str]:
    """Extract list items from a section"""
    if not section:
        return []
    return [t for t in (clean_text(li.get_text(" ")) for li in section.find_all("li")) if t]


# --- Strategies ---

class Strategy:
    """
    One way of finding a field. Calling it on a document returns
    (text, matched); matched is False when nothing usable was found.
    """
    name = "strategy"

    def __call__(self, soup: BeautifulSoup) -> Tuple[str, bool]:
        raise NotImplementedError

    def __repr__(self):
        return f"{type(self).__name__}({self.name!r})"


class SelectorStrategy(Strategy):
    """
    CSS selector (soupsieve syntax, including :-soup-contains()).
    combine=True joins the text of every matched element, otherwise
    only the first match is read.
    """

    def __init__(self, selector: str, combine: bool = False):
        self.selector = selector
        self.name = selector
        self.combine = combine

    def __call__(self, soup: BeautifulSoup) -> Tuple[str, bool]:
        try:
            if self.combine:
                texts = [clean_text(el.get_text(" ")) for el in soup.select(self.selector)]
                text = " ".join(t for t in texts if t)
            else:
                el = soup.select_one(self.selector)
                text = clean_text(el.get_text(" ")) if el else ""
        except SelectorSyntaxError:
            logger.error("Invalid selector %r", self.selector)
            return "", False
        return text, bool(text)


class LabelStrategy(Strategy):
    """Label lookup across the top-ratios list, table cells and headline cards."""

    def __init__(self, label: str):
        self.label = label
        self.name = f"label:{label}"

    def __call__(self, soup: BeautifulSoup) -> Tuple[str, bool]:
        text = (
            get_value_by_label_in_li(soup, self.label)
            or get_value_by_label_contains(soup, self.label)
            or get_value_from_cards(soup, self.label)
            or ""
        )
        return text, bool(text)


class FunctionStrategy(Strategy):
    def __init__(self, name: str, func: Callable[[BeautifulSoup], Optional[str]]):
        self.name = name
        self.func = func

    def __call__(self, soup: BeautifulSoup) -> Tuple[str, bool]:
        text = clean_text(self.func(soup) or "")
        return text, bool(text)


def selectors(*css: str, combine: bool = False) -> List[Strategy]:
    return [SelectorStrategy(c, combine=combine) for c in css]


def td_after(*labels: str) -> List[Strategy]:
    """`td:-soup-contains('Label') + td` for each label, in order."""
    return [SelectorStrategy(f"td:-soup-contains('{label}') + td") for label in labels]


def first_match(
    soup: BeautifulSoup,
    strategies: Sequence[Strategy],
    field: str = "",
    accept: Optional[Callable[[str], bool]] = None,
) -> Tuple[str, Optional[Strategy]]:
    """
    Runs strategies in order and returns the text of the first one that
    matches (and passes `accept`, when given) together with that strategy.
    ('', None) when every strategy comes up empty.
    """
    for strategy in strategies:
        text, matched = strategy(soup)
        if not matched:
            continue
        if accept is not None and not accept(text):
            continue
        logger.debug("%s matched by %r: %s", field or "field", strategy, preview(text, 60))
        return text, strategy
    if field:
        logger.debug("%s: no strategy matched (%d tried)", field, len(strategies))
    return "", None


# --- Free-text cleanup ---

NAVIGATION_PATTERNS = [re.compile(p, re.IGNORECASE) for p in (
    r"\bdashboard\s*ipo\s*list\b",
    r"\bipo\s*list\s*ipo\s*list\b",
    r"\bdashboard\b",
    r"\bipo\s*list\b",
    r"\bipo\s*details\b",
    r"\bbookbuilding\s*ipo\b",
    r"\|\s*₹\d+\s*cr\s*\|",
    r"₹\d+\s*cr\b",
    r"\bmessages\b",
    r"\bgmp\b",
    r"\bdocs\b",
    r"\brhp\b",
    r"\bdrhp\b",
    r"\banchor\s*investor\s*link\b",
    r"\bsubscription\b",
    r"\breviews\b",
    r"\ballotment\b",
    r"\bstock\s*price\b",
    r"\bfinal\s*prospectus\b",
    r"\blist(?:ing|ed)\s*at\s*(?:bse|nse)\b",
    r"\bbse\s*nse\b",
    r"\bnse\s*bse\b",
    r"\bipo\s*(?:news|calendar|performance|analysis|rating|recommendation|apply|forms|documents)\b",
    r"\bapply\s*online\b",
    r"\bmenu\b",
    r"\bnavigation\b",
    r"\bhome\b",
    r"\bback\s*to\s*top\b",
    r"\b(?:share|print|email)\s*this\b",
    r"\s*\|\s*",
    r"\s+-\s+",
    r"\s*•\s*",
    r"\s*→\s*",
    r"\s*»\s*",
    r"^\s*\d+\s*$",
    r"^\s*₹\s*\d+\s*$",
    r"^\s*rs\.?\s*\d+\s*$",
    r"\bclick\s*here\b",
    r"\bread\s*more\b",
    r"\bmore\s*details\b",
    r"\bview\s*details\b",
    r"\bsee\s*more\b",
    r"\blearn\s*more\b",
    r"\bfind\s*out\s*more\b",
    r"\bupdated\s*on\b",
    r"\bpublished\s*on\b",
    r"\blast\s*updated\b",
    r"\bposted\s*on\b",
)]

BOILERPLATE_PATTERNS = [re.compile(p, re.IGNORECASE) for p in (
    r"^company description:\s*",
    r"^about us:\s*",
    r"^about the company:\s*",
    r"^business overview:\s*",
    r"^company details:\s*",
    r"^business model:\s*",
    r"^about:\s*",
    r"\s*read more\s*$",
    r"\s*click here for more\s*$",
    r"\s*more details\s*$",
)]

_TAG_RE = re.compile(r"<[^>]*>")


def strip_markup(text: str) -> str:
    """Drops leftover tags, collapses whitespace and non-printable characters."""
    if not text:
        return ""
    text = clean_text(_TAG_RE.sub("", text))
    return "".join(ch for ch in text if ch.isprintable())


def remove_navigation(text: str) -> str:
    if not text:
        return ""
    for pattern in NAVIGATION_PATTERNS:
        text = pattern.sub(" ", text)
    return clean_text(text)


def remove_boilerplate(text: str) -> str:
    """Strips leading labels / trailing calls to action and ends the text with punctuation."""
    if not text:
        return ""
    for pattern in BOILERPLATE_PATTERNS:
        text = pattern.sub("", text)
    text = text.strip()
    if text and text[-1] not in ".!?":
        text += "."
    return text


def truncate_text(text: str, max_length: int) -> str:
    """Cuts at the last space that leaves room for '...'; the result never exceeds max_length."""
    if not text or len(text) <= max_length:
        return text
    limit = max(max_length - 3, 1)
    cut = text.rfind(" ", 0, limit + 1)
    if cut <= 0:
        cut = limit
    return text[:cut].rstrip() + "..."


def clean_free_text(text: str, max_length: int, min_length: int = MIN_TEXT_LENGTH) -> Optional[str]:
    """
    Cleanup for description/about style fields. Returns None when the
    remaining text is shorter than min_length.
    """
    cleaned = truncate_text(remove_boilerplate(remove_navigation(strip_markup(text))), max_length)
    if len(cleaned) < min_length:
        logger.debug("Free text rejected after cleanup (%d chars)", len(cleaned))
        return None
    return cleaned


def extract_free_text(
    soup: BeautifulSoup,
    strategies: Iterable[Strategy],
    max_length: int,
    field: str = "",
) -> Optional[str]:
    """
    first_match over free-text strategies, where a strategy only counts
    when its text survives clean_free_text.
    """
    text, strategy = first_match(
        soup,
        list(strategies),
        field or "free text",
        accept=lambda t: clean_free_text(t, max_length) is not None,
    )
    if strategy is None:
        logger.info("No %s content found", field or "free text")
        return None
    return clean_free_text(text, max_length)
