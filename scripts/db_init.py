#!/usr/bin/env python3
"""
Create the board's tables and optionally fill them with demo content

    python scripts/db_init.py init
    python scripts/db_init.py seed
    python scripts/db_init.py reset --confirm
"""
import argparse
import asyncio
import sys
from pathlib import Path

# Make the board package importable when run from a checkout
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

DEMO_PASSWORD = "Password123!"

DEMO_USERS = [
    ("ada", "Ada"),
    ("grace", "Grace"),
    ("linus", "Linus"),
]

# (title, body, [comment bodies, each replying to the previous one])
DEMO_THREADS = [
    ("Sourdough starter keeps dying",
     "Fed it twice a day and it still smells like nail polish.",
     ["Try feeding it rye flour for a week.", "Nail polish smell means it is hungry."]),
    ("Best budget mechanical keyboard?",
     "Looking for something quiet for an open office.",
     ["Brown switches are the quiet-ish compromise."]),
    ("Weekend hiking routes near the lake",
     "Share your favourite trails, ideally under 15 km.",
     ["The ridge loop is lovely in autumn.", "Seconded, bring water though."]),
]

async def create_tables() -> None:
    from board.config import settings
    from board.db.session import init_db

    print(f"🚀 Creating tables in {settings.database_url}")
    await init_db()

async def drop_tables() -> None:
    from board.db.base import Base
    from board.db.session import engine
    import board.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    print("🗑️  Dropped all tables")

async def ensure_user(db, username: str, display_name: str):
    from sqlalchemy import select
    from board.models.user import User
    from board.schemas.user_schema import UserCreate
    from board.services.auth_service import AuthService

    result = await db.execute(select(User).where(User.username == username))
    user = result.scalar_one_or_none()
    if user is not None:
        return user
    return await AuthService(db).register(UserCreate(
        username=username,
        email=f"{username}@example.com",
        display_name=display_name,
        password=DEMO_PASSWORD
    ))

async def seed() -> None:
    """Demo users, threads and reply chains, written through the services"""
    from board.db.session import session_scope
    from board.schemas.comment_schema import CommentCreate
    from board.schemas.thread_schema import ThreadCreate
    from board.services.comment_service import CommentService
    from board.services.thread_service import ThreadService

    async with session_scope() as db:
        users = [await ensure_user(db, username, name) for username, name in DEMO_USERS]
        threads = ThreadService(db)
        comments = CommentService(db)

        for i, (title, body, replies) in enumerate(DEMO_THREADS):
            thread = await threads.create_thread(users[i % len(users)].id, ThreadCreate(title=title, body=body))
            parent_id = None
            for j, text in enumerate(replies):
                author = users[(i + j + 1) % len(users)]
                comment = await comments.add_comment(
                    thread.id, author.id, CommentCreate(body=text, parent_comment_id=parent_id)
                )
                parent_id = comment.id

    print(f"🌱 Seeded {len(DEMO_USERS)} users and {len(DEMO_THREADS)} threads (password: {DEMO_PASSWORD})")

async def run(command: str) -> None:
    from board.db.session import close_db

    try:
        if command == "init":
            await create_tables()
        elif command == "seed":
            await create_tables()
            await seed()
        elif command == "reset":
            await drop_tables()
            await create_tables()
            await seed()
    finally:
        await close_db()

def main() -> None:
    parser = argparse.ArgumentParser(description="Discussion board database setup")
    parser.add_argument("command", choices=["init", "seed", "reset"])
    parser.add_argument("--confirm", action="store_true", help="Required for reset")
    args = parser.parse_args()

    if args.command == "reset" and not args.confirm:
        print("⚠️  reset drops ALL tables and data; pass --confirm to proceed")
        sys.exit(1)

    try:
        asyncio.run(run(args.command))
    except KeyboardInterrupt:
        print("\n⚠️  Operation cancelled by user")
        sys.exit(1)
    except Exception as e:
        print(f"❌ {args.command} failed: {e}")
        sys.exit(1)

if __name__ == "__main__":
    main()
