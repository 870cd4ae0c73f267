import random
import re
import time
from typing import Callable, Optional

_WHITESPACE_RE = re.compile(r"\s+")
_ZERO_WIDTH = ("\u200b", "\u200c", "\u200d", "\ufeff")


def human_delay(min_sec=2.5, max_sec=5.5, sleep: Callable[[float], None] = time.sleep) -> float:
    """Random pause between browser actions. Returns the seconds slept."""
    seconds = random.uniform(min_sec, max_sec)
    sleep(seconds)
    return seconds


def clean_text(text: Optional[str]) -> str:
    """Collapses whitespace runs (nbsp included) and drops zero-width characters."""
    if not text:
        return ""
    for ch in _ZERO_WIDTH:
        text = text.replace(ch, "")
    return _WHITESPACE_RE.sub(" ", text).strip()


def preview(text: Optional[str], max_length: int = 100) -> str:
    """Short form of a long text for log lines."""
    if not text or len(text) <= max_length:
        return text or ""
    return text[:max_length] + "..."
