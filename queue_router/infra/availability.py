import asyncio
from collections.abc import Sequence
from datetime import UTC, datetime, timedelta
from typing import Protocol
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from queue_router.core.logging import get_logger
from queue_router.domain.enums import OperatorPresence
from queue_router.infra.db.repositories import OperatorRepository
from queue_router.services.errors import DependencyTimeout

logger = get_logger(__name__)


class AvailabilityOracle(Protocol):
    async def is_online(self, operator_id: UUID) -> bool: ...

    async def is_online_many(self, operator_ids: Sequence[UUID]) -> dict[UUID, bool]: ...


class PresenceAvailabilityOracle:
    """Online means presence=online with a heartbeat newer than stale_after.

    Presence is written by whatever tracks operator connections; this oracle
    only reads it and treats stale heartbeats as offline. A batch of ids is
    answered by one query on one connection.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        stale_after: timedelta,
    ) -> None:
        self.session_factory = session_factory
        self.stale_after = stale_after

    async def is_online(self, operator_id: UUID) -> bool:
        online = await self.is_online_many([operator_id])
        return online.get(operator_id, False)

    async def is_online_many(self, operator_ids: Sequence[UUID]) -> dict[UUID, bool]:
        if not operator_ids:
            return {}
        async with self.session_factory() as session:
            rows = await OperatorRepository(session).list_presence(operator_ids)

        now = datetime.now(UTC)
        online = {operator_id: False for operator_id in operator_ids}
        for operator_id, presence, last_seen_at in rows:
            online[operator_id] = self._is_fresh(presence, last_seen_at, now)
        return online

    def _is_fresh(
        self,
        presence: OperatorPresence,
        last_seen_at: datetime | None,
        now: datetime,
    ) -> bool:
        if presence != OperatorPresence.ONLINE or last_seen_at is None:
            return False
        if last_seen_at.tzinfo is None:
            last_seen_at = last_seen_at.replace(tzinfo=UTC)
        return now - last_seen_at <= self.stale_after


async def is_online_within(
    oracle: AvailabilityOracle, operator_id: UUID, timeout: float
) -> bool:
    """Single availability check; timeouts and collaborator errors count as offline."""
    try:
        try:
            return await asyncio.wait_for(oracle.is_online(operator_id), timeout=timeout)
        except TimeoutError as exc:
            raise DependencyTimeout("availability", timeout) from exc
    except DependencyTimeout as exc:
        logger.warning(
            "availability_check_timed_out",
            operator_id=str(operator_id),
            timeout_seconds=exc.timeout_seconds,
        )
    except Exception as exc:
        logger.warning(
            "availability_check_failed",
            operator_id=str(operator_id),
            error=str(exc),
        )
    return False


async def check_availability(
    oracle: AvailabilityOracle,
    operator_ids: Sequence[UUID],
    timeout: float,
) -> dict[UUID, bool]:
    """Batched availability for a candidate list.

    One lookup under one timeout; when it times out or fails every operator in
    the batch counts as offline.
    """
    unique_ids = list(dict.fromkeys(operator_ids))
    if not unique_ids:
        return {}

    online: dict[UUID, bool] = {}
    try:
        try:
            online = await asyncio.wait_for(oracle.is_online_many(unique_ids), timeout=timeout)
        except TimeoutError as exc:
            raise DependencyTimeout("availability", timeout) from exc
    except DependencyTimeout as exc:
        logger.warning(
            "availability_check_timed_out",
            operator_count=len(unique_ids),
            timeout_seconds=exc.timeout_seconds,
        )
    except Exception as exc:
        logger.warning(
            "availability_check_failed",
            operator_count=len(unique_ids),
            error=str(exc),
        )
    return {operator_id: bool(online.get(operator_id, False)) for operator_id in unique_ids}
