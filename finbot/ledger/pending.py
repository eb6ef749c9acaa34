"""
Pending-Confirmation Store

Holds interpreted transactions until the user presses confirm or cancel.
Entries live in the expiring cache under (chat_id, transaction_id) and
expire silently after the TTL.

Confirm and cancel both go through take(), which removes the entry. A
retried callback therefore finds nothing and is reported as "expired or
already processed" instead of writing twice.
"""

from typing import Optional

import structlog
from pydantic import ValidationError

from finbot.models.finance import PendingCandidate
from finbot.services.storage.interface import ExpiringCache


logger = structlog.get_logger(__name__)

DEFAULT_TTL_SECONDS = 15 * 60


class PendingConfirmationStore:
    """Short-lived keyed storage of unconfirmed candidates."""

    def __init__(self, cache: ExpiringCache, ttl_seconds: int = DEFAULT_TTL_SECONDS):
        self._cache = cache
        self._ttl_seconds = ttl_seconds

    @staticmethod
    def _key(chat_id: str, transaction_id: str) -> str:
        return f"pending:{chat_id}:{transaction_id}"

    async def put(
        self,
        candidate: PendingCandidate,
        ttl_seconds: Optional[int] = None,
    ) -> None:
        await self._cache.put(
            self._key(candidate.chat_id, candidate.transaction_id),
            candidate.model_dump_json(),
            ttl_seconds or self._ttl_seconds,
        )

    async def get(self, chat_id: str, transaction_id: str) -> Optional[PendingCandidate]:
        raw = await self._cache.get(self._key(chat_id, transaction_id))
        if raw is None:
            return None
        try:
            return PendingCandidate.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(
                "pending_candidate_unreadable",
                transaction_id=transaction_id,
                error=str(e),
            )
            await self.remove(chat_id, transaction_id)
            return None

    async def remove(self, chat_id: str, transaction_id: str) -> None:
        await self._cache.remove(self._key(chat_id, transaction_id))

    async def take(self, chat_id: str, transaction_id: str) -> Optional[PendingCandidate]:
        """Get and remove in one step; None if expired or already taken."""
        candidate = await self.get(chat_id, transaction_id)
        if candidate is not None:
            await self.remove(chat_id, transaction_id)
        return candidate
