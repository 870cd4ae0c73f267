import logging
from typing import Optional

from playwright.sync_api import TimeoutError as PlaywrightTimeoutError
from playwright.sync_api import sync_playwright

from app.core.errors import TransientNetworkError
from app.utils.helpers import human_delay

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/122.0.0.0 Safari/537.36"
)


def get_html(
    url: str,
    wait_selector: Optional[str] = "table tbody tr",
    headless: bool = True,
    timeout_ms: int = 60000,
) -> str:
    """
    Renders a JS-driven page and returns its HTML.
    Waits for `wait_selector` (the GMP table rows by default) before reading.
    """
    with sync_playwright() as p:
        browser = p.chromium.launch(
            headless=headless,
            args=["--disable-blink-features=AutomationControlled"]
        )
        try:
            context = browser.new_context(
                user_agent=USER_AGENT,
                viewport={"width": 1366, "height": 768},
                locale="en-IN",
                timezone_id="Asia/Kolkata"
            )

            page = context.new_page()
            page.goto(url, timeout=timeout_ms)
            if wait_selector:
                page.wait_for_selector(wait_selector, timeout=timeout_ms)
            human_delay()

            html = page.content()
        except PlaywrightTimeoutError as e:
            logger.warning("Timed out rendering %s: %s", url, e)
            raise TransientNetworkError(f"timed out rendering {url}", url=url) from e
        finally:
            browser.close()
        return html
