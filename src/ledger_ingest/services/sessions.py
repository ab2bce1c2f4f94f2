import uuid
from time import monotonic

from ledger_ingest.core import settings
from ledger_ingest.errors import ReviewError
from ledger_ingest.logger import get_logger
from ledger_ingest.services.review import ReviewBuffer, ReviewState

logger = get_logger(__name__)


class ReviewSessions:
    """
    In-memory review buffers keyed by session id; nothing here survives a restart.
    Sessions untouched for longer than ``ttl`` seconds are evicted.
    """

    def __init__(self, ttl: float | None = None) -> None:
        self._buffers: dict[str, ReviewBuffer] = {}
        self._last_used: dict[str, float] = {}
        self.ttl = max(0.0, ttl if ttl is not None else settings.REVIEW_SESSION_TTL)

    def evict_expired(self) -> int:
        if self.ttl <= 0:
            return 0
        cutoff = monotonic() - self.ttl
        expired = [session_id for session_id, used in self._last_used.items() if used < cutoff]
        for session_id in expired:
            self._buffers.pop(session_id, None)
            self._last_used.pop(session_id, None)
        if expired:
            logger.info("[REVIEW] Evicted %d abandoned review sessions", len(expired))
        return len(expired)

    def open(self, buffer: ReviewBuffer) -> str:
        self.evict_expired()
        session_id = uuid.uuid4().hex
        self._buffers[session_id] = buffer
        self._last_used[session_id] = monotonic()
        return session_id

    def get(self, session_id: str, user_id: str | None = None) -> ReviewBuffer:
        self.evict_expired()
        buffer = self._buffers.get(session_id)
        if buffer is None or (user_id is not None and buffer.user_id != user_id):
            raise ReviewError("Review session not found.", status_code=404)
        self._last_used[session_id] = monotonic()
        return buffer

    def close_finished(self, session_id: str) -> None:
        buffer = self._buffers.get(session_id)
        if buffer is not None and buffer.state in {ReviewState.COMMITTED, ReviewState.DISCARDED}:
            self._buffers.pop(session_id, None)
            self._last_used.pop(session_id, None)

    def __len__(self) -> int:
        return len(self._buffers)
