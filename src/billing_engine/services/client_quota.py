"""Free-tier client quota."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

from billing_engine.repository import BillingRepository

logger = logging.getLogger(__name__)

FREE_CLIENT_LIMIT = 3


@dataclass(frozen=True)
class ClientCapacity:
    """Whether a company may add another client."""

    can_create: bool
    count: int
    limit: int | None  # None means unlimited
    remaining: int | None


class ClientQuotaEnforcer:
    """Keeps free-tier companies within their client limit.

    Excess clients are archived, never deleted, and never unarchived here.
    The oldest clients (by created_at) are the ones that stay active.
    """

    def __init__(self, repository: BillingRepository, limit: int = FREE_CLIENT_LIMIT):
        self.repository = repository
        self.limit = limit

    async def enforce(self, company_id: UUID | None) -> list[UUID]:
        """Archive active clients beyond the limit.

        Returns:
            Ids of the clients archived by this call (empty if none).
        """
        if company_id is None:
            return []

        clients = await self.repository.list_active_clients(company_id)
        if len(clients) <= self.limit:
            return []

        excess = list(clients[self.limit :])
        await self.repository.archive_clients(excess)
        archived = [c.client_id for c in excess]
        logger.info(
            "Archived %d client(s) of company %s to fit the free limit of %d",
            len(archived),
            company_id,
            self.limit,
        )
        return archived

    async def check_capacity(self, company_id: UUID, *, unlimited: bool) -> ClientCapacity:
        """Report whether another active client can be created."""
        count = await self.repository.count_active_clients(company_id)
        if unlimited:
            return ClientCapacity(can_create=True, count=count, limit=None, remaining=None)
        remaining = max(0, self.limit - count)
        return ClientCapacity(
            can_create=count < self.limit,
            count=count,
            limit=self.limit,
            remaining=remaining,
        )
