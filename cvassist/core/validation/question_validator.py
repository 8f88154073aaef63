"""Rejects questions outside technical and professional topics."""

import re

from pydantic import BaseModel

from ...observability.logger import get_logger

logger = get_logger(__name__)

OFF_TOPIC_MESSAGE = "I can only answer questions about technical skills, projects, and professional achievements."


class TopicRule(BaseModel):
    pattern: re.Pattern[str]
    topic: str
    suggestion: str


class QuestionCheck(BaseModel):
    is_valid: bool
    topic: str | None = None
    message: str | None = None
    suggestion: str | None = None


def default_rules(subject: str) -> list[TopicRule]:
    return [
        TopicRule(
            pattern=re.compile(
                r"\b(salary|compensation|pay|wage|money|market rate|below market|above market|"
                r"remuneration|cost|expensive|cheap|affordable)\b",
                re.I,
            ),
            topic="compensation",
            suggestion=(
                f"Try asking: 'What experience does {subject} have with enterprise systems?' "
                f"or 'What technologies has {subject} used in fintech?'"
            ),
        ),
        TopicRule(
            pattern=re.compile(
                r"\b(personal|private|family|age|married|children|spouse|relationship|home|address|contact)\b",
                re.I,
            ),
            topic="personal",
            suggestion="Try asking about specific technologies, projects, or technical accomplishments.",
        ),
        TopicRule(
            pattern=re.compile(
                r"\b(willing to relocate|accept offer|consider position|available for|start date|"
                r"notice period|when can|join date)\b",
                re.I,
            ),
            topic="employment",
            suggestion=(
                f"Try asking: 'What are {subject}'s key technical strengths?' "
                f"or 'What projects has {subject} worked on?'"
            ),
        ),
        TopicRule(
            pattern=re.compile(
                r"\b(weakness|weaknesses|failures|mistakes|regrets|worst|bad at|not good at|struggles with)\b",
                re.I,
            ),
            topic="negative",
            suggestion="Try asking about specific technologies, achievements, or successful projects.",
        ),
    ]


class QuestionValidator:
    def __init__(self, subject: str = "the candidate", rules: list[TopicRule] | None = None):
        self.rules = rules if rules is not None else default_rules(subject)

    def add_rule(self, pattern: str, topic: str, suggestion: str) -> None:
        self.rules.append(TopicRule(pattern=re.compile(pattern, re.I), topic=topic, suggestion=suggestion))

    def validate(self, query: str) -> QuestionCheck:
        for rule in self.rules:
            if rule.pattern.search(query):
                logger.info("question_off_topic", topic=rule.topic)
                return QuestionCheck(
                    is_valid=False,
                    topic=rule.topic,
                    message=OFF_TOPIC_MESSAGE,
                    suggestion=rule.suggestion,
                )
        return QuestionCheck(is_valid=True)
