"""Management CLI.

Usage:
    python -m onetouch.cli init-db                  # Create every table
    python -m onetouch.cli issue-token <account_id> # Print an access token
"""

import asyncio
import sys

from onetouch.auth.jwt import create_access_token
from onetouch.database import Base, async_session, engine
from onetouch.models import Account
from onetouch.utils.clock import utcnow


async def init_db():
    """Create all tables on the configured database (no migrations)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await engine.dispose()
    print(f"  Created {len(Base.metadata.tables)} tables")


async def issue_token(account_id: str) -> int:
    """Development stand-in for the external credential service."""
    async with async_session() as session:
        account = await session.get(Account, account_id)
        if account is None or not account.is_active:
            print(f"  Account not found or inactive: {account_id}", file=sys.stderr)
            return 1
        principal = account.to_principal()
        account.last_login_at = utcnow()
        await session.commit()
    await engine.dispose()
    print(create_access_token(principal))
    return 0


def main(argv: list[str] | None = None) -> int:
    argv = sys.argv if argv is None else argv
    cmd = argv[1] if len(argv) > 1 else ""
    if cmd == "init-db":
        asyncio.run(init_db())
        return 0
    if cmd == "issue-token" and len(argv) > 2:
        return asyncio.run(issue_token(argv[2]))
    print(__doc__)
    return 1


if __name__ == "__main__":
    sys.exit(main())
