"""Daily inference budget tracking backed by the key-value store.

Spend is accumulated per UTC day under ``ai:quota:daily:<YYYY-MM-DD>`` with
a raw inference count under the same key plus ``:count``. Both keys expire
at the next UTC midnight, so the breaker reopens without a scheduler.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable

from ...core.config.settings import QuotaSettings
from ...core.errors import QuotaExhausted
from ...core.models.quota import QuotaStatus
from ...core.storage.kv_store import KeyValueStore
from ...observability.logger import get_logger

logger = get_logger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class QuotaCircuitBreaker:
    """Gate inference calls on the accumulated daily cost."""

    def __init__(
        self,
        store: KeyValueStore,
        settings: QuotaSettings | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.store = store
        self.settings = settings or QuotaSettings()
        self.clock = clock
        self.logger = get_logger(f"{__name__}.{self.__class__.__name__}")

    # ------------------------------------------------------------------
    # Keys and expiry
    # ------------------------------------------------------------------
    def _today(self) -> str:
        return self.clock().astimezone(timezone.utc).strftime("%Y-%m-%d")

    def _cost_key(self) -> str:
        return f"{self.settings.key_prefix}:{self._today()}"

    def _count_key(self) -> str:
        return f"{self._cost_key()}:count"

    def next_reset(self) -> datetime:
        now = self.clock().astimezone(timezone.utc)
        midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
        return midnight + timedelta(days=1)

    def _ttl(self) -> float:
        return max(1.0, (self.next_reset() - self.clock().astimezone(timezone.utc)).total_seconds())

    def cost_of(self, kind: str | None = None) -> float:
        kind = kind or self.settings.default_kind
        if kind not in self.settings.costs:
            raise ValueError(f"Unknown inference kind: {kind}")
        return self.settings.costs[kind]

    # ------------------------------------------------------------------
    # Gate
    # ------------------------------------------------------------------
    def used(self) -> float:
        return max(0.0, float(self.store.get(self._cost_key()) or 0.0))

    def status(self) -> QuotaStatus:
        used = self.used()
        limit = self.settings.daily_limit
        return QuotaStatus(
            date=self._today(),
            used=used,
            limit=limit,
            remaining=max(0.0, limit - used),
            inference_count=int(self.store.get(self._count_key()) or 0),
            reset_at=self.next_reset(),
        )

    def can_use(self) -> bool:
        return self.used() < self.settings.daily_limit

    def check(self) -> None:
        """Raise ``QuotaExhausted`` when today's spend has reached the limit."""
        if self.can_use():
            return
        status = self.status()
        self.logger.warning(
            "quota_exhausted",
            used=status.used,
            limit=status.limit,
            reset_at=status.reset_at.isoformat(),
        )
        raise QuotaExhausted("Daily AI budget exhausted")

    def record_inference(self, kind: str | None = None) -> float:
        """Atomically add one inference's cost and bump the count. Returns the new total."""
        cost = self.cost_of(kind)
        ttl = self._ttl()
        total = self.store.increment(self._cost_key(), cost, ttl=ttl)
        count = self.store.increment(self._count_key(), 1, ttl=ttl)
        self.logger.info(
            "inference_recorded",
            kind=kind or self.settings.default_kind,
            cost=cost,
            total=total,
            count=int(count),
        )
        if total >= self.settings.daily_limit:
            self.logger.warning("quota_limit_reached", total=total, limit=self.settings.daily_limit)
        return total

    # ------------------------------------------------------------------
    # Admin
    # ------------------------------------------------------------------
    def reset(self) -> QuotaStatus:
        self.store.delete(self._cost_key())
        self.store.delete(self._count_key())
        self.logger.info("quota_reset", date=self._today())
        return self.status()

    def sync(self, actual: float) -> QuotaStatus:
        """Overwrite today's spend with an externally measured figure."""
        if actual < 0:
            raise ValueError("actual usage must be non-negative")
        self.store.put(self._cost_key(), float(actual), ttl=self._ttl())
        self.logger.info("quota_synced", date=self._today(), actual=actual)
        return self.status()

    def fallback_message(self, match_names: list[str]) -> str:
        """Deterministic reply used when the budget is spent."""
        names = [n for n in match_names if n][:3]
        if not names:
            return "The daily AI budget has been used up. Please try again after midnight UTC."
        listed = names[0] if len(names) == 1 else ", ".join(names[:-1]) + f" and {names[-1]}"
        return (
            f"The daily AI budget has been used up, but the closest matching skills are {listed}. "
            "Detailed summaries resume after midnight UTC."
        )
