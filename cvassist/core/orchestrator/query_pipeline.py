"""QueryOrchestrator - answers one question end to end."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

from ..config.settings import Settings
from ..errors import InferenceFailed, QuotaExhausted, SearchUnavailable
from ..models.enums import ErrorCategory, ResponseStatus
from ..models.query import ProjectContext, QueryError, QueryResponse, RankedMatch
from ..models.skill import MatchFilter
from ..validation.availability import AvailabilityWindow
from ..validation.input_validator import InputValidator
from ..validation.question_validator import QuestionValidator
from ...integrations.inference import InferenceService
from ...kb.ingestion.embedder import EmbeddingGenerator
from ...kb.utils.quota_breaker import QuotaCircuitBreaker
from ...observability.logger import get_logger, query_context
from ...search.cache import QueryCache
from ...search.service import SearchService
from ...shaping.post_processor import ResponsePostProcessor
from ...shaping.project_detector import ProjectDetector
from ...shaping.prompt_builder import build_messages, confidence_tier

logger = get_logger(__name__)

NO_DATA_MESSAGE = (
    "I couldn't find matching experience for that question. "
    "Try asking about a specific technology or project."
)
SEARCH_UNAVAILABLE_MESSAGE = "Search is temporarily unavailable. Please try again later."

# Statuses whose responses are not memoized
_UNCACHED = {ResponseStatus.QUOTA_EXHAUSTED, ResponseStatus.INFERENCE_FAILED}


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class QueryOrchestrator:
    """Sequences validation, caching, search, ranking, budget check and shaping.

    ``answer_query`` never raises: every outcome is a ``QueryResponse`` whose
    ``status`` (and ``error.category`` on failures) tells callers what happened.
    """

    def __init__(
        self,
        settings: Settings,
        embedder: EmbeddingGenerator,
        search: SearchService,
        cache: QueryCache,
        quota: QuotaCircuitBreaker,
        inference: InferenceService,
        detector: ProjectDetector | None = None,
        input_validator: InputValidator | None = None,
        question_validator: QuestionValidator | None = None,
        window: AvailabilityWindow | None = None,
        post_processor: ResponsePostProcessor | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.settings = settings
        self.embedder = embedder
        self.search = search
        self.cache = cache
        self.quota = quota
        self.inference = inference
        self.detector = detector or ProjectDetector(settings.projects)
        self.input_validator = input_validator or InputValidator(settings.validation)
        self.question_validator = question_validator or QuestionValidator(settings.response.subject_name)
        self.window = window or AvailabilityWindow(settings.window)
        self.post_processor = post_processor or ResponsePostProcessor(
            max_sentences=settings.response.max_sentences,
            max_words=settings.response.max_words,
        )
        self.clock = clock
        self.logger = get_logger(f"{__name__}.{self.__class__.__name__}")

    async def answer_query(self, raw_text: str, bypass_token: str | None = None) -> QueryResponse:
        """Answer one question.

        Args:
            raw_text: Question as typed by the user
            bypass_token: Optional token that opens the availability window

        Returns:
            QueryResponse (never raises)
        """
        query = (raw_text or "").strip()
        with query_context(query):
            try:
                response = await self._answer(query, bypass_token)
            except SearchUnavailable as exc:
                self.logger.error("query_search_unavailable", detail=exc.detail or str(exc.__cause__ or ""))
                response = self._failure(
                    query,
                    ResponseStatus.SEARCH_UNAVAILABLE,
                    ErrorCategory.SEARCH_UNAVAILABLE,
                    SEARCH_UNAVAILABLE_MESSAGE,
                )
            except Exception as exc:
                self.logger.error("query_unexpected_error", error=str(exc), exc_info=True)
                response = self._failure(
                    query,
                    ResponseStatus.SEARCH_UNAVAILABLE,
                    ErrorCategory.SEARCH_UNAVAILABLE,
                    SEARCH_UNAVAILABLE_MESSAGE,
                )
            self.logger.info("query_finished", status=response.status, cached=response.cached)
            return response

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------
    async def _answer(self, query: str, bypass_token: str | None) -> QueryResponse:
        # 1. Validate and sanitize
        validation = self.input_validator.validate(query)
        if not validation.is_valid:
            return self._failure(
                query, ResponseStatus.INPUT_REJECTED, ErrorCategory.INPUT_REJECTED, validation.message
            )
        text = validation.sanitized

        topic = self.question_validator.validate(text)
        if not topic.is_valid:
            return self._failure(
                text,
                ResponseStatus.INPUT_REJECTED,
                ErrorCategory.INPUT_REJECTED,
                topic.message,
                suggestion=topic.suggestion,
            )

        # 2. Availability window
        if not self.window.is_open(self.clock(), bypass_token):
            self.logger.info("query_window_closed")
            return QueryResponse(
                query=text,
                status=ResponseStatus.WINDOW_CLOSED,
                reply=self.window.message,
                error=QueryError(category=ErrorCategory.WINDOW_CLOSED, message=self.window.message),
            )

        # 3. Project scoping
        project = self.detector.detect(text)
        filters = MatchFilter(employer=project.project_name) if project.is_project_specific else None

        # 4. Embedding
        try:
            embedding = await self.embedder.embed_query(project.clean_query)
        except Exception as exc:
            raise SearchUnavailable(SEARCH_UNAVAILABLE_MESSAGE, detail=f"embedding failed: {exc}") from exc

        # 5. Cache
        cached = self.cache.get(text)
        if cached is not None:
            return cached

        # 6. Search and rank
        result = await self.search.search(embedding, self.settings.search.top_k, filters)
        if not result.matches:
            response = QueryResponse(
                query=text,
                status=ResponseStatus.NO_DATA,
                reply=NO_DATA_MESSAGE,
                source=result.source,
                project=project.project_name,
            )
            self.cache.put(text, response)
            return response

        # 7. Budget gate, then generate or fall back
        response = await self._shape(text, project, result.matches, result.source)

        # 8. Cache
        if ResponseStatus(response.status) not in _UNCACHED:
            self.cache.put(text, response)
        return response

    async def _shape(
        self,
        query: str,
        project: ProjectContext,
        matches: list[RankedMatch],
        source: str | None,
    ) -> QueryResponse:
        tier = confidence_tier(matches[0].score, self.settings.search)
        base = QueryResponse(
            query=query,
            matches=matches,
            source=source,
            project=project.project_name,
            confidence=tier,
        )

        try:
            self.quota.check()
        except QuotaExhausted:
            fallback = self.quota.fallback_message([m.name for m in matches])
            self.logger.warning("query_quota_exhausted", matches=len(matches))
            return base.model_copy(
                update={
                    "status": ResponseStatus.QUOTA_EXHAUSTED,
                    "reply": fallback,
                    "quota_exceeded": True,
                    "error": QueryError(category=ErrorCategory.QUOTA_EXHAUSTED, message=fallback),
                }
            )

        system_prompt, user_prompt = build_messages(
            project.clean_query,
            project,
            matches,
            tier,
            subject=self.settings.response.subject_name,
            max_sentences=self.settings.response.max_sentences,
            max_words=self.settings.response.max_words,
        )
        try:
            raw_reply = await self.inference.generate(system_prompt, user_prompt)
        except InferenceFailed as exc:
            self.logger.warning("query_inference_failed", detail=exc.detail or str(exc))
            return base.model_copy(
                update={
                    "status": ResponseStatus.INFERENCE_FAILED,
                    "reply": "",
                    "quota_exceeded": False,
                    "error": QueryError(
                        category=ErrorCategory.INFERENCE_FAILED,
                        message="A summary could not be generated; the matching skills are listed instead.",
                    ),
                }
            )

        self.quota.record_inference()
        reply = self.post_processor.process(raw_reply)
        self.logger.info("query_answered", matches=len(matches), confidence=tier.value, source=source)
        return base.model_copy(update={"reply": reply, "quota_exceeded": False})

    def _failure(
        self,
        query: str,
        status: ResponseStatus,
        category: ErrorCategory,
        message: str | None,
        suggestion: str | None = None,
    ) -> QueryResponse:
        message = message or "Request could not be completed."
        return QueryResponse(
            query=query,
            status=status,
            error=QueryError(category=category, message=message, suggestion=suggestion),
        )
