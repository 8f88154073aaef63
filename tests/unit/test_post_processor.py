"""Deterministic reply shaping."""

from cvassist.shaping.post_processor import (
    ResponsePostProcessor,
    cap_sentences,
    ensure_terminal,
    strip_filler,
    truncate_to_sentence,
)


def test_truncates_dangling_fragment():
    text = "I engineered Terraform modules at Acme. I also built a pipeline that"
    assert truncate_to_sentence(text) == "I engineered Terraform modules at Acme."


def test_no_sentence_boundary_appends_ellipsis():
    assert truncate_to_sentence("I engineered Terraform modules") == "I engineered Terraform modules..."


def test_complete_text_is_left_alone():
    text = "I engineered Terraform modules at Acme."
    assert truncate_to_sentence(text) == text


def test_strips_filler_lead_ins():
    text = "Additionally, I delivered React dashboards at Globex."
    assert strip_filler(text) == "I delivered React dashboards at Globex."

    text = "My expertise spans cloud and data. I delivered React dashboards at Globex."
    assert strip_filler(text) == "I delivered React dashboards at Globex."


def test_cap_sentences():
    text = "One thing. Two things! Three things? Four."
    assert cap_sentences(text, 2) == "One thing. Two things!"


def test_cap_is_idempotent():
    samples = [
        "One. Two. Three. Four.",
        "Only one sentence here",
        "Mixed! Punctuation? And more. Yes.",
        "",
        "Trailing spaces.   Lots of them.   Really.",
    ]
    for text in samples:
        once = cap_sentences(text, 2)
        assert cap_sentences(once, 2) == once


def test_ensure_terminal():
    assert ensure_terminal("Delivered at Acme") == "Delivered at Acme."
    assert ensure_terminal("Delivered at Acme!") == "Delivered at Acme!"
    assert ensure_terminal("") == ""


def test_process_runs_steps_in_order():
    processor = ResponsePostProcessor(max_sentences=2)
    raw = (
        "Notably, I engineered Python services cutting latency by 60% at Acme. "
        "I tuned PostgreSQL at Acme. I built React dashboards at Globex. And then I"
    )
    assert processor.process(raw) == (
        "I engineered Python services cutting latency by 60% at Acme. I tuned PostgreSQL at Acme."
    )


def test_process_empty_reply():
    assert ResponsePostProcessor().process("") == ""
    assert ResponsePostProcessor().process(None) == ""


def test_validate_quality_flags_issues():
    processor = ResponsePostProcessor()
    report = processor.validate_quality("I've worked in many areas across multiple projects. One. Two. Three.")
    assert not report.is_valid
    assert "Missing employer at end" in report.issues
    assert any(issue.startswith("Too many sentences") for issue in report.issues)
    assert any("I've worked in" in issue for issue in report.issues)

    good = processor.validate_quality("I engineered Python services at Acme.")
    assert good.is_valid
