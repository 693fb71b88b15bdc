from __future__ import annotations

import asyncio

from offboardly.persistence.db import SessionLocal, engine
from offboardly.services.maintenance import prune_audit_events


async def prune() -> None:
    try:
        async with SessionLocal() as session:
            deleted = await prune_audit_events(session)
            await session.commit()
    finally:
        await engine.dispose()
    print(f"pruned_audit_events={deleted}")


if __name__ == "__main__":
    asyncio.run(prune())
