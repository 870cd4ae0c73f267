from app.utils.helpers import clean_text, human_delay, preview


def test_clean_text():
    assert clean_text("  KFin Technologies \n Ltd. ") == "KFin Technologies Ltd."
    assert clean_text("Wake\u200bfit") == "Wakefit"
    assert clean_text(None) == ""


def test_human_delay_stays_in_range():
    slept = []
    seconds = human_delay(1.0, 2.0, sleep=slept.append)
    assert slept == [seconds]
    assert 1.0 <= seconds <= 2.0


def test_preview():
    assert preview("short") == "short"
    assert preview("x" * 150, 100) == "x" * 100 + "..."
    assert preview(None) == ""
