from bs4 import BeautifulSoup

from app.scraper.parser import (
    FunctionStrategy,
    LabelStrategy,
    SelectorStrategy,
    clean_free_text,
    extract_free_text,
    first_match,
    get_value_by_label_in_li,
    get_value_from_cards,
    selectors,
    strip_markup,
    td_after,
    truncate_text,
)

PAGE = """
<html><head><title>Wakefit Innovations IPO</title></head>
<body>
  <h1>Wakefit Innovations Ltd. IPO</h1>
  <table>
    <tr><td>Registrar</td><td>KFin Technologies Ltd.</td></tr>
    <tr><td>Issue Size (₹ Cr)</td><td>₹1,289.00 Cr</td></tr>
  </table>
  <ul class="top-ratios">
    <li><span>Face Value</span><span class="text-end">₹1 per share</span></li>
  </ul>
  <div class="card-ipo">
    <p class="text-muted">Open Date</p>
    <p class="fs-5">Mon, Dec 8, 2025</p>
  </div>
  <div class="company-description">Part one of the story.</div>
  <div class="company-description">Part two of the story.</div>
</body></html>
"""


def soup():
    return BeautifulSoup(PAGE, "lxml")


# --- Strategies ---

def test_td_adjacency_selector():
    text, matched = td_after("Registrar")[0](soup())
    assert matched
    assert text == "KFin Technologies Ltd."


def test_selector_without_match():
    assert SelectorStrategy(".missing")(soup()) == ("", False)


def test_invalid_selector_is_reported_as_no_match():
    assert SelectorStrategy("td:-soup-contains(")(soup()) == ("", False)


def test_combined_selector_joins_all_matches():
    text, matched = SelectorStrategy(".company-description", combine=True)(soup())
    assert matched
    assert text == "Part one of the story. Part two of the story."


def test_label_strategy_reads_list_table_and_cards():
    assert LabelStrategy("Face Value")(soup()) == ("₹1 per share", True)
    assert LabelStrategy("Issue Size")(soup()) == ("₹1,289.00 Cr", True)
    assert LabelStrategy("Open Date")(soup()) == ("Mon, Dec 8, 2025", True)


def test_label_helpers():
    s = soup()
    assert get_value_by_label_in_li(s, "face value") == "₹1 per share"
    assert get_value_from_cards(s, "Open Date") == "Mon, Dec 8, 2025"
    assert get_value_from_cards(s, "Close Date") is None


def test_first_match_is_ordered():
    strategies = selectors(".missing", "h1", "title")
    text, strategy = first_match(soup(), strategies, "name")
    assert text == "Wakefit Innovations Ltd. IPO"
    assert strategy is strategies[1]


def test_first_match_respects_accept():
    strategies = selectors("h1", "title")
    text, strategy = first_match(soup(), strategies, "name", accept=lambda t: "Ltd" not in t)
    assert text == "Wakefit Innovations IPO"
    assert strategy is strategies[1]


def test_first_match_nothing_found():
    assert first_match(soup(), selectors(".a", ".b"), "nothing") == ("", None)


def test_function_strategy():
    strategy = FunctionStrategy("fixed", lambda s: "  some   value ")
    assert strategy(soup()) == ("some value", True)


# --- Free text ---

def test_strip_markup():
    assert strip_markup("<p>Hello <b>world</b></p>\n\t") == "Hello world"


def test_clean_free_text_removes_boilerplate_and_adds_punctuation():
    text = "About Us: Acme makes widgets for industrial customers Read more"
    assert clean_free_text(text, 2000) == "Acme makes widgets for industrial customers."


def test_clean_free_text_strips_navigation_chrome():
    text = "Dashboard IPO List | Acme builds solar inverters for rooftops"
    assert clean_free_text(text, 2000) == "Acme builds solar inverters for rooftops."


def test_clean_free_text_keeps_hyphenated_words():
    text = "State-of-the-art manufacturing facility in Pune"
    assert clean_free_text(text, 2000) == "State-of-the-art manufacturing facility in Pune."


def test_clean_free_text_rejects_short_results():
    assert clean_free_text("Read more", 2000) is None
    assert clean_free_text("Tiny.", 2000) is None


def test_truncate_text_never_cuts_mid_word():
    assert truncate_text("alpha beta gamma", 13) == "alpha beta..."
    assert truncate_text("alpha beta gamma", 12) == "alpha..."
    assert truncate_text("short", 50) == "short"


def test_truncate_text_stays_within_limit():
    assert truncate_text("abcdefghij", 5) == "ab..."
    for limit in (8, 12, 13, 15):
        assert len(truncate_text("alpha beta gamma delta", limit)) <= limit


def test_clean_free_text_truncates_to_limit():
    text = " ".join(["word"] * 1000)
    cleaned = clean_free_text(text, 2000)
    assert cleaned.endswith("...")
    assert len(cleaned) <= 2000
    assert "wor..." not in cleaned


def test_extract_free_text_skips_strategies_rejected_by_cleanup():
    html = "<div class='a'>Read more</div><div class='b'>Acme designs compact electric motors</div>"
    s = BeautifulSoup(html, "lxml")
    assert extract_free_text(s, selectors(".a", ".b"), 2000, "description") == "Acme designs compact electric motors."


def test_extract_free_text_none_when_every_strategy_rejected():
    html = "<div class='a'>Read more</div><div class='b'>Tiny.</div>"
    s = BeautifulSoup(html, "lxml")
    assert extract_free_text(s, selectors(".a", ".b", ".missing"), 2000, "about") is None


def test_extract_free_text_accepts_a_generator_and_truncates():
    html = "<div class='b'>" + " ".join(["motors"] * 50) + "</div>"
    s = BeautifulSoup(html, "lxml")
    text = extract_free_text(s, (st for st in selectors(".b")), 40, "description")
    assert text.endswith("...")
    assert len(text) <= 40
