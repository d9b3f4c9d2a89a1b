import pytest

from drew.intent_helpers import (
    CONFIRM_CHECKLIST_PREFIX,
    _ensure_json,
    _is_finalize,
    _is_skip_checklist,
    _is_skip_products,
    _is_start_new,
    match_job_alias,
    match_quick_reply,
    parse_hours,
    parse_percent,
    parse_pseudo_command,
    quick_match_job_type,
)


@pytest.mark.parametrize(
    "text", ["start over", "Start New", "start new quote", "new quote", "start fresh", "  START OVER  "]
)
def test_start_new_phrases(text):
    assert _is_start_new(text)


def test_start_new_does_not_match_inside_sentences():
    assert not _is_start_new("I want to start over the panel job next week")


def test_job_alias_exact():
    assert match_job_alias("Panel") == "panel_upgrade"
    assert match_job_alias("EV charger") == "ev_charger"
    assert match_job_alias("something else") is None


def test_quick_match_confidence():
    assert quick_match_job_type("panel replacement") == ("panel_upgrade", "high")
    assert quick_match_job_type("need a tesla charger in the garage") == ("ev_charger", "medium")
    assert quick_match_job_type("paint the fence") is None


def test_match_quick_reply_exact_then_prefix():
    replies = ("100A", "150A", "Not sure")
    assert match_quick_reply("100a", replies) == "100A"
    assert match_quick_reply("not", replies) == "Not sure"
    assert match_quick_reply("I think it's 150A", replies) == "150A"
    assert match_quick_reply("banana", replies) is None


def test_parse_hours_variants():
    assert parse_hours("4") == 4.0
    assert parse_hours("4 hours") == 4.0
    assert parse_hours("6.5 hrs") == 6.5
    assert parse_hours("half day") == 4.0
    assert parse_hours("Full day") == 8.0
    assert parse_hours("a while") is None


def test_parse_percent_variants():
    assert parse_percent("20") == 20.0
    assert parse_percent("20%") == 20.0
    assert parse_percent("15 percent") == 15.0
    assert parse_percent("No markup") == 0.0
    assert parse_percent("none") == 0.0
    assert parse_percent("lots") is None


def test_skip_phrases_are_state_specific():
    assert _is_skip_checklist("no materials")
    assert _is_skip_products("skip products")
    assert _is_skip_products("done")
    assert not _is_skip_checklist("done")


def test_finalize_phrases():
    for text in ("yes", "Yes, finalize", "looks good", "save"):
        assert _is_finalize(text), text
    assert not _is_finalize("")


def test_pseudo_command_decoding():
    assert parse_pseudo_command(CONFIRM_CHECKLIST_PREFIX + '["panel", "breakers"]', CONFIRM_CHECKLIST_PREFIX) == [
        "panel",
        "breakers",
    ]
    assert parse_pseudo_command(CONFIRM_CHECKLIST_PREFIX + "[oops", CONFIRM_CHECKLIST_PREFIX) is None
    assert parse_pseudo_command("yes", CONFIRM_CHECKLIST_PREFIX) is None


def test_ensure_json_tolerates_prose():
    assert _ensure_json('Sure! {"job_type": "ev_charger"} hope that helps') == {"job_type": "ev_charger"}
    assert _ensure_json("not json at all") == {}
