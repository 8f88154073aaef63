"""Deterministic clean-up of generated replies.

Steps always run in this order: truncate to the last complete sentence,
strip filler lead-ins, cap the sentence count, ensure terminal punctuation.
The model is never trusted to limit its own length.
"""

from __future__ import annotations

import re

from pydantic import BaseModel, Field

from ..observability.logger import get_logger

logger = get_logger(__name__)


class FillerRule(BaseModel):
    pattern: re.Pattern[str]
    replace_all: bool = False


def _rule(pattern: str, replace_all: bool = False) -> FillerRule:
    return FillerRule(pattern=re.compile(pattern, re.IGNORECASE), replace_all=replace_all)


DEFAULT_FILLER_RULES: list[FillerRule] = [
    # Generic openers
    _rule(r"^I've worked in \w+(-\w+)?\s+(technologies|domains?|areas?|fields?)?\s+for \d+ years?,?\s*", True),
    _rule(r"^I've consistently delivered (high-quality )?work (across|for|over) \d+ years (of experience )?in[^.]+\.\s*", True),
    _rule(r"^My expertise spans\s+[^.]+\.\s*", True),
    _rule(r"^I've demonstrated expertise in (multiple areas?|various domains?),?\s*", True),
    # Project and skill listings
    _rule(r"^I've worked (on|with) (a range of |various )?projects,?\s*(utilising|using) (a range of |various )?skills (including|such as)[^.]+\.\s*"),
    _rule(r"^I've worked (on|with) (a range of |various )?(projects|technologies|tools)[^.]+\.\s*"),
    _rule(r"^I've worked (on|with) [A-Z][a-z]+ for \d+ years?,?\s*"),
    _rule(r",?\s*(utilising|using) (a range of |various )?(skills|technologies) (including|such as)[^.]+", True),
    _rule(r",?\s*including [A-Z][^,]+ for [^,]+(?:, [A-Z][^,]+ for [^,]+)*,?\s*(and [A-Z][^,]+ for [^.]+)?", True),
    _rule(r",?\s*and (also )?(worked with|used|explored|implemented) [^,]+ (and|using|with) [^,]+,?\s*", True),
    _rule(r"I'?m a (junior|mid-level|senior|principal)(-level)? professional with a strong background in[^.]+\.\s*", True),
    _rule(r",?\s*having also worked (with|on) [^.]+\.\s*", True),
    # Transitions
    _rule(r"^Notably,?\s*"),
    _rule(r"^Additionally,?\s*"),
    _rule(r"^Moreover,?\s*"),
    _rule(r"^Furthermore,?\s*"),
    _rule(r"^In addition,?\s*"),
    _rule(r"These skills have been applied across various projects,?\s*"),
    # Trailing generic phrases
    _rule(r",?\s*including [^.]+,\s*[^.]+,\s*and [^.]+\.$", True),
    _rule(r"\s+across (multiple|various) (projects|domains|areas)\.$", True),
]

FILLER_CHECKS: list[tuple[str, str]] = [
    ("I've worked in", "high"),
    ("My expertise spans", "high"),
    ("I've consistently", "high"),
    ("I've demonstrated", "high"),
    ("across multiple", "medium"),
    ("various projects", "medium"),
]

PROPER_ENDINGS = ('.', '!', '?', '"', "'", ')', ']')
TERMINAL = ('.', '!', '?')

_SENTENCE_END = re.compile(r"[.!?](?=\s+[A-Z]|\s*$)")
_TRAILING_FRAGMENT = re.compile(r"([.!?])(?=\s+[A-Z])\s+[^.!?]*$")
_SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+")
_EMPLOYER_CLOSING = re.compile(r"at [A-Z][a-zA-Z\s]+\.$")
_SENTENCES = re.compile(r"[^.!?]+[.!?]+")


class QualityReport(BaseModel):
    is_valid: bool
    issues: list[str] = Field(default_factory=list)


def truncate_to_sentence(text: str) -> str:
    """Cut back to the last complete sentence when the text ends mid-sentence."""
    cleaned = text.strip()
    if not cleaned:
        return cleaned
    if not cleaned.endswith(PROPER_ENDINGS):
        ends = list(_SENTENCE_END.finditer(cleaned))
        if ends:
            cleaned = cleaned[: ends[-1].end()].strip()
        else:
            cleaned = cleaned + "..."
    return _TRAILING_FRAGMENT.sub(r"\1", cleaned)


def strip_filler(text: str, rules: list[FillerRule] | None = None) -> str:
    cleaned = text.strip()
    for rule in rules if rules is not None else DEFAULT_FILLER_RULES:
        cleaned = rule.pattern.sub("", cleaned, count=0 if rule.replace_all else 1)
    return cleaned.strip()


def split_sentences(text: str) -> list[str]:
    return [s for s in _SENTENCE_SPLIT.split(text.strip()) if s.strip()]


def cap_sentences(text: str, max_sentences: int) -> str:
    """Keep the first ``max_sentences`` sentences. Applying it twice changes nothing."""
    return " ".join(split_sentences(text)[:max_sentences]).strip()


def ensure_terminal(text: str) -> str:
    text = text.strip()
    if text and not text.endswith(TERMINAL):
        text += "."
    return text


class ResponsePostProcessor:
    def __init__(
        self,
        max_sentences: int = 2,
        max_words: int = 60,
        filler_rules: list[FillerRule] | None = None,
    ):
        self.max_sentences = max_sentences
        self.max_words = max_words
        self.filler_rules = filler_rules if filler_rules is not None else list(DEFAULT_FILLER_RULES)

    def process(self, reply: str | None) -> str:
        if not reply or not reply.strip():
            return ""
        text = truncate_to_sentence(reply)
        text = strip_filler(text, self.filler_rules)
        text = cap_sentences(text, self.max_sentences)
        processed = ensure_terminal(text)

        report = self.validate_quality(processed)
        if not report.is_valid:
            logger.debug("reply_quality_issues", issues=report.issues)
        return processed

    def validate_quality(self, reply: str) -> QualityReport:
        """Report style issues without modifying the reply."""
        issues: list[str] = []

        if not _EMPLOYER_CLOSING.search(reply):
            issues.append("Missing employer at end")

        sentences = _SENTENCES.findall(reply)
        if len(sentences) > 3:
            issues.append(f"Too many sentences ({len(sentences)}, max 3)")

        word_count = len(reply.split())
        if word_count > self.max_words:
            issues.append(f"Too wordy ({word_count} words, target <{self.max_words})")

        for phrase, severity in FILLER_CHECKS:
            if phrase in reply:
                issues.append(f'Contains filler ({severity}): "{phrase}"')

        return QualityReport(is_valid=not issues, issues=issues)
