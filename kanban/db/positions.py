from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

# Larger than any real sibling count, so parked rows never collide with live ones.
_PARK_OFFSET = 1_000_000


async def flush_positions(session: AsyncSession, rows: Iterable[Any]) -> None:
    """Persist new positions without tripping the per-group unique constraints.

    Rows are first parked at ``position + offset`` and flushed, then written
    with their final values.
    """
    targets = [(row, row.position) for row in rows]
    if not targets:
        await session.flush()
        return

    for row, final in targets:
        row.position = final + _PARK_OFFSET
    await session.flush()

    for row, final in targets:
        row.position = final
    await session.flush()
