#!/usr/bin/env python3
"""
Rebuild search documents from the current threads and comments
"""
import asyncio
import sys
from pathlib import Path

# Add the project root to the Python path
current_dir = Path(__file__).parent
root_dir = current_dir.parent
sys.path.insert(0, str(root_dir))

async def reindex(thread_id: int = None) -> None:
    from board.db.session import close_db, session_scope
    from board.services.search_indexer import SearchIndexer

    async with session_scope() as db:
        indexer = SearchIndexer(db)
        if thread_id:
            await indexer.rebuild_document(thread_id)
            print(f"✅ Rebuilt search document for thread {thread_id}")
        else:
            count = await indexer.rebuild_all()
            print(f"✅ Rebuilt {count} search documents")

    await close_db()

def main() -> None:
    import argparse

    parser = argparse.ArgumentParser(description="Search index maintenance")
    parser.add_argument("--thread", type=int, help="Only rebuild this thread's document")
    args = parser.parse_args()

    try:
        asyncio.run(reindex(args.thread))
    except KeyboardInterrupt:
        print("\n⚠️  Operation cancelled by user")
        sys.exit(1)
    except Exception as e:
        print(f"❌ Reindex failed: {e}")
        sys.exit(1)

if __name__ == "__main__":
    main()
