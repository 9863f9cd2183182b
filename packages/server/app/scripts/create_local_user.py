"""
Script to create a local user and print a bearer token for manual testing.

Tokens are normally issued by the external identity service; this script
signs one with the local secret so the API can be exercised with curl.
"""

import argparse
import asyncio
from datetime import timedelta

from sqlmodel import select

from app.core.auth import create_access_token
from app.core.database import get_session_context, init_db
from app.models.user import User
from taskgraph_shared.schemas.common import Role


async def create_user(name: str, email: str, role: str, expire_minutes: int) -> None:
    await init_db()

    async with get_session_context() as session:
        result = await session.execute(select(User).where(User.email == email))
        user = result.scalar_one_or_none()

        if not user:
            user = User(name=name, email=email, role=role)
            session.add(user)
            await session.flush()
            print(f"Created {role} user: {email} (id={user.id})")
        else:
            print(f"User {email} already exists (id={user.id}, role={user.role}).")

        token = create_access_token(
            user.id, user.role, expires_delta=timedelta(minutes=expire_minutes)
        )

    print(f"Bearer token:\n{token}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create a local user and print a bearer token.")
    parser.add_argument("--email", required=True, help="Email address for the user")
    parser.add_argument("--name", default=None, help="Display name (defaults to the email local part)")
    parser.add_argument(
        "--role",
        choices=[r.value for r in Role],
        default=Role.USER.value,
        help="Role for a new user",
    )
    parser.add_argument("--expire-minutes", type=int, default=24 * 60, help="Token lifetime")

    args = parser.parse_args()

    asyncio.run(
        create_user(args.name or args.email.split("@")[0], args.email, args.role, args.expire_minutes)
    )
