"""Create the tables and a demo provider, then print an admin token for it.

Usage: python -m scripts.seed [provider name]
"""

import asyncio
import sys

from slotbook.core.db import async_session_maker, engine, init_db
from slotbook.core.security import create_admin_token
from slotbook.models.provider import Provider


async def main(name: str) -> None:
    await init_db()
    async with async_session_maker() as session:
        provider = Provider(name=name, contact_email=None)
        session.add(provider)
        await session.commit()
        print(f"Provider: {provider.id}")
        print(f"Admin token: {create_admin_token(provider.id, expires_minutes=7 * 24 * 60)}")
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else "Praxis Demo"))
