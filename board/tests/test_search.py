from datetime import datetime, timedelta

import pytest
from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import asyncpg
from sqlalchemy.dialects.sqlite import aiosqlite

from board.core.exceptions import NotFound, ValidationError
from board.models.search_document import SearchDocument
from board.schemas.comment_schema import CommentCreate
from board.schemas.search_schema import ScoredThread
from board.services.comment_service import CommentService
from board.services.search_indexer import SearchIndexer, normalize_document, tokenize_query
from board.services.search_service import SearchService, rank_candidates, word_frequency
from board.tests.conftest import make_comment, make_thread


# Normalization

def test_normalize_document_collapses_and_pads():
    assert normalize_document(["Hello, World!", "  C'est--la   vie "]) == " hello world c est la vie "


def test_normalize_document_treats_underscore_as_separator():
    assert normalize_document(["snake_case words"]) == " snake case words "


def test_normalize_document_of_nothing_is_a_single_space():
    assert normalize_document(["", "!!!"]) == " "


def test_tokenize_query_lowercases_and_dedupes_in_order():
    assert tokenize_query("Fox, fox; BROWN fox!") == ["fox", "brown"]


def test_tokenize_query_without_alphanumerics_is_empty():
    assert tokenize_query("-- !! ..") == []


def test_word_frequency_counts_whole_words_only():
    document = normalize_document(["the lazy fox fox fox foxes firefox"])
    assert word_frequency(document, ["fox"]) == 3
    assert word_frequency(document, ["fox", "lazy"]) == 4
    assert word_frequency(document, ["wolf"]) == 0


def test_rank_candidates_orders_by_frequency_relevance_then_recency():
    now = datetime(2024, 5, 1)

    def scored(thread_id, frequency, relevance, age_days):
        return ScoredThread(
            thread_id=thread_id,
            title=f"t{thread_id}",
            owner_name="x",
            created_at=now - timedelta(days=age_days),
            frequency=frequency,
            relevance=relevance
        )

    ranked = rank_candidates([
        scored(1, 1, 5.0, 0),
        scored(2, 3, 0.1, 9),
        scored(3, 1, 5.0, 2),
        scored(4, 1, 7.0, 5),
    ])

    assert [c.thread_id for c in ranked] == [2, 4, 1, 3]


# Indexer

async def test_rebuild_document_uses_title_body_and_live_comments(test_db, alice, bob):
    thread = await make_thread(test_db, alice, title="Garden Tips", body="Water daily.")
    await make_comment(test_db, thread, bob, body="Use mulch!")
    await make_comment(test_db, thread, bob, body="hidden text", is_deleted=True)

    await SearchIndexer(test_db).rebuild_document(thread.id)

    result = await test_db.execute(
        select(SearchDocument.content).where(SearchDocument.thread_id == thread.id)
    )
    assert result.scalar_one() == " garden tips water daily use mulch "


async def test_rebuild_document_replaces_previous_document(test_db, alice):
    thread = await make_thread(test_db, alice, title="First", body="draft")
    indexer = SearchIndexer(test_db)

    await indexer.rebuild_document(thread.id)
    await make_comment(test_db, thread, alice, body="follow up")
    await indexer.rebuild_document(thread.id)

    count = await test_db.execute(
        select(func.count()).select_from(SearchDocument).where(SearchDocument.thread_id == thread.id)
    )
    content = await test_db.execute(
        select(SearchDocument.content).where(SearchDocument.thread_id == thread.id)
    )
    assert count.scalar_one() == 1
    assert content.scalar_one() == " first draft follow up "


async def test_rebuild_document_for_missing_thread(test_db):
    with pytest.raises(NotFound):
        await SearchIndexer(test_db).rebuild_document(404)


async def test_rebuild_all_indexes_every_thread(test_db, alice):
    for i in range(3):
        await make_thread(test_db, alice, title=f"thread {i}")

    assert await SearchIndexer(test_db).rebuild_all() == 3


# Ranking

async def index_thread(db, owner, title, body, **fields):
    thread = await make_thread(db, owner, title=title, body=body, **fields)
    await SearchIndexer(db).rebuild_document(thread.id)
    return thread


async def test_search_ranks_by_word_frequency(test_db, alice):
    quick = await index_thread(test_db, alice, "Animals", "the quick brown fox")
    lazy = await index_thread(test_db, alice, "Animals", "the lazy fox fox fox")

    results = await SearchService(test_db).search("fox", 10)

    assert [r.thread_id for r in results] == [lazy.id, quick.id]
    assert [r.frequency for r in results] == [3, 1]


async def test_search_breaks_ties_by_newest_first(test_db, alice):
    old = await index_thread(test_db, alice, "Bikes", "fixing a bike", created_at=datetime(2023, 1, 1))
    new = await index_thread(test_db, alice, "Bikes", "fixing a bike", created_at=datetime(2024, 1, 1))

    results = await SearchService(test_db).search("bike", 10)

    assert [r.thread_id for r in results] == [new.id, old.id]


async def test_search_truncates_to_limit(test_db, alice):
    for i in range(5):
        await index_thread(test_db, alice, f"Recipe {i}", "soup " * (i + 1))

    results = await SearchService(test_db).search("soup", 2)

    assert len(results) == 2
    assert [r.frequency for r in results] == [5, 4]


async def test_search_matches_comment_text(test_db, alice, bob):
    thread = await index_thread(test_db, alice, "Question", "How do I start?")
    await CommentService(test_db).add_comment(thread.id, bob.id, CommentCreate(body="Try sourdough"))

    results = await SearchService(test_db).search("SOURDOUGH", 5)

    assert [r.thread_id for r in results] == [thread.id]


async def test_search_ignores_partial_words(test_db, alice):
    await index_thread(test_db, alice, "Browsers", "firefox and foxglove")

    assert await SearchService(test_db).search("fox", 10) == []


async def test_search_without_candidates_is_empty(test_db, alice):
    await index_thread(test_db, alice, "Cats", "purring")

    assert await SearchService(test_db).search("dog", 10) == []


async def test_search_with_no_usable_tokens_is_empty(test_db, alice):
    await index_thread(test_db, alice, "Cats", "purring")

    assert await SearchService(test_db).search("?!", 10) == []


async def test_search_rejects_blank_query(test_db):
    with pytest.raises(ValidationError):
        await SearchService(test_db).search("   ", 10)


async def test_search_rejects_out_of_range_limit(test_db):
    with pytest.raises(ValidationError):
        await SearchService(test_db).search("fox", 10_000)


# Stage-1 SQL per dialect

def test_postgres_candidates_use_full_text_rank():
    stmt = SearchService(None).candidate_query(["fox", "den"], 50, dialect="postgresql")

    sql = str(stmt.compile(dialect=asyncpg.dialect()))

    assert "to_tsvector(" in sql
    assert "::REGCONFIG" in sql
    assert "ts_rank(" in sql
    assert "to_tsquery(" in sql
    assert "@@" in sql
    assert "LIMIT" in sql


def test_sqlite_candidates_count_whole_word_matches():
    stmt = SearchService(None).candidate_query(["fox"], 50, dialect="sqlite")

    sql = str(stmt.compile(dialect=aiosqlite.dialect()))

    assert "LIKE" in sql
    assert "ts_rank" not in sql
    assert "@@" not in sql
