"""Input sanitation and gibberish/abuse rejection for user questions.

Checks run in a fixed order and the first failing check wins. The word
lists and injection patterns are plain module-level tables so they can be
extended without touching the control flow.
"""

import re

from pydantic import BaseModel, Field

from ..config.settings import ValidationSettings
from ...observability.logger import get_logger

logger = get_logger(__name__)

REPHRASE_MESSAGE = "That doesn't look like a valid question. Could you rephrase?"
UNSAFE_MESSAGE = "That input isn't appropriate for this assistant."

UNSAFE_KEYWORDS: list[str] = [
    "hate", "kill", "murder", "abuse", "violence", "racist", "sexist",
    "discriminat", "vulgar", "obscene", "explicit", "porn", "sex", "xxx",
]

INJECTION_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"ignore\s+(previous|all|above|prior)\s+(instructions|prompts?|rules?|directives?)", re.I),
    re.compile(r"you\s+are\s+(now|a|an)\s+", re.I),
    re.compile(r"forget\s+(everything|all|previous)", re.I),
    re.compile(r"system\s*:\s*", re.I),
    re.compile(r"assistant\s*:\s*", re.I),
    re.compile(r"<\|im_start\|>", re.I),
    re.compile(r"<\|im_end\|>", re.I),
    re.compile(r"\[INST\]", re.I),
    re.compile(r"\[/INST\]", re.I),
    re.compile(r"###\s*Instruction", re.I),
]

COMMON_WORDS: frozenset[str] = frozenset(
    """
    the be to of and a in that have i it for not on with he as you do at this but his by from
    they we say her she or an will my one all would there their what so up out if about who get
    which go me when make can like time no just him know take people into year your good some
    could them see other than then now look only come its over think also back after use two how
    our work first well way even new want because any these give day most us are am is was were
    been being has had having experience years expert senior junior skill skills c# key main
    primary projects project java javascript sql server development backend frontend performance
    database cloud architecture devops team lead leader principal manager engineer consultant
    design build maintain qualified candidate profile background resume cv capabilities competent
    suitable master masters microservices microservice principles api apis docker kubernetes
    terraform aws azure gcp python typescript react angular vue node nodejs rest restful graphql
    agile scrum ci cd git github gitlab jenkins testing deployment infrastructure security
    monitoring logging tracing
    """.split()
)

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F-\x9F]")
_SCRIPT_TAGS = re.compile(r"<script[^>]*>.*?</script>", re.I | re.S)
_HTML_TAGS = re.compile(r"<[^>]*>")
_WHITESPACE = re.compile(r"\s+")
_REPEATED_RUN = re.compile(r"(.)\1{4,}")
_CONTRACTION = re.compile(r"^[a-z]+'[a-z]+$")


class ValidationResult(BaseModel):
    is_valid: bool
    sanitized: str | None = None
    message: str | None = None
    check: str | None = Field(None, description="Name of the failing check (logged only)")


def sanitize(text: str) -> str:
    """Strip control characters and HTML, then collapse whitespace."""
    cleaned = _CONTROL_CHARS.sub("", text)
    cleaned = _SCRIPT_TAGS.sub("", cleaned)
    cleaned = _HTML_TAGS.sub("", cleaned)
    return _WHITESPACE.sub(" ", cleaned).strip()


def find_unsafe_keyword(text: str) -> str | None:
    """Whole-word match so 'skills' never trips 'sex'."""
    lowered = text.lower()
    for keyword in UNSAFE_KEYWORDS:
        if re.search(rf"\b{re.escape(keyword)}\b", lowered):
            return keyword
    return None


def alphabetic_ratio(text: str) -> float:
    if not text:
        return 0.0
    return sum(1 for ch in text if "a" <= ch.lower() <= "z") / len(text)


def vowel_ratio(text: str) -> float | None:
    """Vowel share of ASCII letters, or None with fewer than 5 letters."""
    letters = [ch for ch in text.lower() if "a" <= ch <= "z"]
    if len(letters) < 5:
        return None
    return sum(1 for ch in letters if ch in "aeiou") / len(letters)


def english_word_ratio(text: str) -> float | None:
    """Share of tokens that are common, capitalized or contractions; None below 3 tokens."""
    words = text.split()
    if len(words) < 3:
        return None
    valid = 0
    for word in words:
        lowered = word.lower()
        if lowered in COMMON_WORDS or word[0].isupper() or _CONTRACTION.match(lowered):
            valid += 1
    return valid / len(words)


def common_word_ratio(text: str) -> float:
    """Share of multi-character tokens found in ``COMMON_WORDS`` after stripping punctuation."""
    word_count = 0
    matches = 0
    for token in text.lower().split():
        if len(token) <= 1:
            continue
        clean = re.sub(r"[^a-z#]", "", token)
        if not clean:
            continue
        word_count += 1
        if clean in COMMON_WORDS:
            matches += 1
    return matches / word_count if word_count else 0.0


class InputValidator:
    """Ordered validation of a raw question."""

    def __init__(self, settings: ValidationSettings | None = None):
        self.settings = settings or ValidationSettings()
        self.logger = get_logger(f"{__name__}.{self.__class__.__name__}")

    def _reject(self, check: str, message: str = REPHRASE_MESSAGE, **details) -> ValidationResult:
        self.logger.info("input_rejected", check=check, **details)
        return ValidationResult(is_valid=False, message=message, check=check)

    def validate(self, raw: str | None) -> ValidationResult:
        if not raw or not isinstance(raw, str):
            return self._reject("empty")

        # Length is checked before sanitizing to bound the work done
        if len(raw) > self.settings.max_length:
            return self._reject("too_long", length=len(raw))

        text = sanitize(raw)
        if len(text) < self.settings.min_length:
            return self._reject("too_short", length=len(text))

        keyword = find_unsafe_keyword(text)
        if keyword:
            return self._reject("unsafe_keyword", UNSAFE_MESSAGE, keyword=keyword)

        ratio = alphabetic_ratio(text)
        if ratio < self.settings.min_alphabetic_ratio:
            return self._reject("alphabetic_ratio", ratio=round(ratio, 3))

        vowels = vowel_ratio(text)
        if vowels is not None and not (self.settings.min_vowel_ratio <= vowels <= self.settings.max_vowel_ratio):
            return self._reject("vowel_balance", ratio=round(vowels, 3))

        english = english_word_ratio(text)
        if english is not None and english < self.settings.min_english_word_ratio:
            return self._reject("english_words", ratio=round(english, 3))

        for pattern in INJECTION_PATTERNS:
            if pattern.search(text):
                return self._reject("prompt_injection", pattern=pattern.pattern)

        if len(_REPEATED_RUN.findall(text)) > self.settings.max_repeated_runs:
            return self._reject("repeated_characters")

        common = common_word_ratio(text)
        if common < self.settings.min_common_word_ratio:
            return self._reject("common_words", ratio=round(common, 3))

        return ValidationResult(is_valid=True, sanitized=text)
