"""Find-or-Create by Derived Key — the one atomic dedup primitive behind every merge.

Invariants:
    - One call == one transaction: the row is locked, merged or created, then committed
    - Existing row is read with SELECT ... FOR UPDATE and populate_existing, so the merge
      sees the committed state, not a stale identity-map copy
    - A UNIQUE violation on create means a concurrent writer won the race: the
      transaction is rolled back and the call retries once as a merge
    - Never swallows other errors: callers decide whether the batch continues

Design Decisions:
    - Callers supply the lookup statement plus create/merge coroutines: the soft-key
      (knowledge) and fingerprint (patterns) call sites share this primitive
    - Rollback only discards the current record's work: earlier records in a batch
      were already committed by earlier calls
"""

import logging
from typing import Any, Awaitable, Callable

from sqlalchemy import Select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

_MAX_ATTEMPTS = 2


async def find_or_create_by_key(
    db: AsyncSession,
    lookup: Select,
    create: Callable[[], Awaitable[Any]],
    merge: Callable[[Any], Awaitable[None]],
) -> bool:
    """Merge into the row matched by `lookup`, or create it. Returns True if created."""
    locked = (
        lookup.limit(1)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    for attempt in range(1, _MAX_ATTEMPTS + 1):
        existing = (await db.execute(locked)).scalar_one_or_none()
        if existing is not None:
            await merge(existing)
            await db.commit()
            return False
        try:
            await create()
            await db.commit()
            return True
        except IntegrityError:
            await db.rollback()
            if attempt == _MAX_ATTEMPTS:
                raise
            logger.info(
                "Derived-key insert lost a race, retrying as merge",
                extra={"operation": "find_or_create"},
            )
    return False  # pragma: no cover
