import pytest
from sqlalchemy import func, select

from board.core.exceptions import Forbidden, NotFound, ValidationError
from board.models.comment import Comment
from board.models.search_document import SearchDocument
from board.models.thread import Thread
from board.schemas.comment_schema import CommentCreate, CommentUpdate, DELETED_AUTHOR, DELETED_BODY, comment_response
from board.schemas.like_schema import LikeAction
from board.services.comment_service import CommentService
from board.tests.conftest import make_comment, make_thread


async def comments_count(db, thread_id):
    result = await db.execute(select(Thread.comments_count).where(Thread.id == thread_id))
    return result.scalar_one()


async def document_of(db, thread_id):
    result = await db.execute(
        select(SearchDocument.content).where(SearchDocument.thread_id == thread_id)
    )
    return result.scalar_one()


async def test_add_comment_bumps_counter_and_indexes(test_db, alice, bob):
    thread = await make_thread(test_db, alice, title="Tomatoes", body="When to plant")
    service = CommentService(test_db)

    comment = await service.add_comment(thread.id, bob.id, CommentCreate(body="  After frost  "))

    assert comment.id is not None
    assert comment.body == "After frost"
    assert comment.parent_comment_id is None
    assert await comments_count(test_db, thread.id) == 1
    assert await document_of(test_db, thread.id) == " tomatoes when to plant after frost "


async def test_reply_to_comment_in_same_thread(test_db, alice, bob):
    thread = await make_thread(test_db, alice)
    service = CommentService(test_db)
    parent = await service.add_comment(thread.id, alice.id, CommentCreate(body="question"))

    reply = await service.add_comment(
        thread.id, bob.id, CommentCreate(body="answer", parent_comment_id=parent.id)
    )

    assert reply.parent_comment_id == parent.id
    assert await comments_count(test_db, thread.id) == 2


async def test_reply_to_deleted_parent_is_allowed(test_db, alice, bob):
    thread = await make_thread(test_db, alice)
    parent = await make_comment(test_db, thread, alice, is_deleted=True)

    reply = await CommentService(test_db).add_comment(
        thread.id, bob.id, CommentCreate(body="still replying", parent_comment_id=parent.id)
    )

    assert reply.parent_comment_id == parent.id


async def test_parent_from_other_thread_is_rejected_before_insert(test_db, alice, bob):
    thread = await make_thread(test_db, alice)
    other = await make_thread(test_db, alice)
    foreign = await make_comment(test_db, other, alice)

    with pytest.raises(ValidationError):
        await CommentService(test_db).add_comment(
            thread.id, bob.id, CommentCreate(body="hi", parent_comment_id=foreign.id)
        )

    stored = await test_db.execute(
        select(func.count()).select_from(Comment).where(Comment.thread_id == thread.id)
    )
    assert stored.scalar_one() == 0
    assert await comments_count(test_db, thread.id) == 0


async def test_missing_parent_is_rejected(test_db, alice):
    thread = await make_thread(test_db, alice)

    with pytest.raises(ValidationError):
        await CommentService(test_db).add_comment(
            thread.id, alice.id, CommentCreate(body="hi", parent_comment_id=777)
        )


async def test_comment_on_missing_thread(test_db, alice):
    with pytest.raises(NotFound):
        await CommentService(test_db).add_comment(404, alice.id, CommentCreate(body="hello"))


async def test_blank_comment_is_rejected(test_db, alice):
    thread = await make_thread(test_db, alice)

    with pytest.raises(ValidationError):
        await CommentService(test_db).add_comment(thread.id, alice.id, CommentCreate(body="   "))


async def test_edit_comment_marks_edited_and_reindexes(test_db, alice):
    thread = await make_thread(test_db, alice, title="Trip", body="Plans")
    service = CommentService(test_db)
    comment = await service.add_comment(thread.id, alice.id, CommentCreate(body="Rome"))

    edited = await service.edit_comment(comment.id, alice.id, CommentUpdate(body="Lisbon"))

    assert edited.body == "Lisbon"
    assert edited.is_edited is True
    assert await document_of(test_db, thread.id) == " trip plans lisbon "


async def test_only_author_can_edit(test_db, alice, bob):
    thread = await make_thread(test_db, alice)
    comment = await make_comment(test_db, thread, alice)

    with pytest.raises(Forbidden):
        await CommentService(test_db).edit_comment(comment.id, bob.id, CommentUpdate(body="mine now"))


async def test_cannot_edit_deleted_comment(test_db, alice):
    thread = await make_thread(test_db, alice)
    comment = await make_comment(test_db, thread, alice, is_deleted=True)

    with pytest.raises(ValidationError):
        await CommentService(test_db).edit_comment(comment.id, alice.id, CommentUpdate(body="back"))


async def test_soft_delete_masks_and_decrements_once(test_db, alice, bob):
    thread = await make_thread(test_db, alice, title="Chess", body="Openings")
    service = CommentService(test_db)
    root = await service.add_comment(thread.id, bob.id, CommentCreate(body="Sicilian"))
    reply = await service.add_comment(
        thread.id, alice.id, CommentCreate(body="Nice", parent_comment_id=root.id)
    )

    deleted = await service.soft_delete_comment(root.id, bob.id)
    again = await service.soft_delete_comment(root.id, bob.id)

    assert deleted.is_deleted is True
    assert deleted.deleted_by == bob.id
    assert again.is_deleted is True
    assert await comments_count(test_db, thread.id) == 1
    assert await document_of(test_db, thread.id) == " chess openings nice "

    rows = await service.list_comment_rows(thread.id)
    assert [r.comment_id for r in rows] == [root.id, reply.id]
    assert rows[0].body == DELETED_BODY
    assert rows[0].author_name == DELETED_AUTHOR
    assert rows[0].author_id is None
    assert rows[1].parent_comment_id == root.id


async def test_only_author_can_delete(test_db, alice, bob):
    thread = await make_thread(test_db, alice)
    comment = await make_comment(test_db, thread, alice)

    with pytest.raises(Forbidden):
        await CommentService(test_db).soft_delete_comment(comment.id, bob.id)


async def test_delete_missing_comment(test_db, alice):
    with pytest.raises(NotFound):
        await CommentService(test_db).soft_delete_comment(31337, alice.id)


async def test_list_comment_rows_reports_viewer_likes(test_db, alice, bob):
    thread = await make_thread(test_db, alice)
    first = await make_comment(test_db, thread, alice, body="one")
    second = await make_comment(test_db, thread, alice, body="two")
    service = CommentService(test_db)
    await service.toggle_comment_like(second.id, bob.id, LikeAction.LIKE)

    rows = await service.list_comment_rows(thread.id, viewer_id=bob.id)
    anonymous = await service.list_comment_rows(thread.id)

    assert [(r.comment_id, r.liked) for r in rows] == [(first.id, False), (second.id, True)]
    assert rows[1].likes_count == 1
    assert not any(r.liked for r in anonymous)


async def test_comment_response_hides_body_and_author_of_deleted_comment(test_db, alice):
    thread = await make_thread(test_db, alice)
    live = await make_comment(test_db, thread, alice, body="visible")
    gone = await make_comment(test_db, thread, alice, body="secret", is_deleted=True)

    shown = comment_response(live)
    masked = comment_response(gone)

    assert (shown.body, shown.author_id) == ("visible", alice.id)
    assert (masked.body, masked.author_id) == (DELETED_BODY, None)
