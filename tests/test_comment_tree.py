from datetime import datetime, timedelta

import pytest

from app.utils.comment_tree import (
    CommentNode,
    CommentSort,
    CommentTreeError,
    add_comment,
    add_reply,
    build_threads,
    find_node,
    sort_threads,
    toggle_like,
    visible_threads,
)

BASE = datetime(2026, 3, 1, 9, 0, 0)


def node(id, minutes=0, likes=0, parent_id=None, liked=False):
    return CommentNode(
        id=id,
        user_id="u",
        content=f"comment {id}",
        created_at=BASE + timedelta(minutes=minutes),
        likes=likes,
        liked=liked,
        parent_id=parent_id,
    )


def test_build_threads_groups_replies_under_their_parent():
    threads = build_threads([
        node("a", 0),
        node("b", 5),
        node("r2", 9, parent_id="a"),
        node("r1", 7, parent_id="a"),
        node("orphan", 8, parent_id="missing"),
    ])
    assert [t.comment.id for t in threads] == ["b", "a"]
    assert [r.id for r in threads[1].replies] == ["r1", "r2"]
    assert find_node(threads, "orphan") is None


def test_popular_sort_orders_by_likes_descending():
    threads = build_threads([node("x", 0, likes=5), node("y", 1, likes=1), node("z", 2, likes=9)])
    ordered = sort_threads(threads, CommentSort.POPULAR)
    assert [t.comment.likes for t in ordered] == [9, 5, 1]


def test_oldest_sort_and_stable_ties():
    threads = build_threads([node("x", 0, likes=2), node("y", 1, likes=2), node("z", 2)])
    assert [t.id for t in sort_threads(threads, CommentSort.OLDEST)] == ["x", "y", "z"]
    # newest first going in, so equal likes keep y before x
    assert [t.id for t in sort_threads(threads, CommentSort.POPULAR)] == ["y", "x", "z"]


def test_double_toggle_restores_like_state():
    threads = build_threads([node("a", 0, likes=3), node("r", 1, parent_id="a")])
    first = toggle_like(threads, "a")
    assert (first.likes, first.liked) == (4, True)
    second = toggle_like(threads, "a")
    assert (second.likes, second.liked) == (3, False)

    reply = toggle_like(threads, "r")
    assert (reply.likes, reply.liked) == (1, True)
    reply = toggle_like(threads, "r")
    assert (reply.likes, reply.liked) == (0, False)


def test_unlike_decrements_even_from_zero():
    # A stale count must not absorb the unlike, or the next like would overshoot
    threads = build_threads([node("a", 0, likes=0, liked=True)])
    unliked = toggle_like(threads, "a")
    assert (unliked.likes, unliked.liked) == (-1, False)
    relike = toggle_like(threads, "a")
    assert (relike.likes, relike.liked) == (0, True)


def test_toggle_unknown_comment_raises():
    with pytest.raises(CommentTreeError):
        toggle_like([], "nope")


def test_add_comment_prepends_and_reply_needs_top_level_parent():
    threads = add_comment(build_threads([node("a", 0)]), node("b", 10))
    assert [t.id for t in threads] == ["b", "a"]

    threads = add_reply(threads, "a", node("r", 11))
    assert find_node(threads, "r").parent_id == "a"

    with pytest.raises(CommentTreeError):
        add_reply(threads, "r", node("rr", 12))
    with pytest.raises(CommentTreeError):
        add_comment(threads, node("c", 13, parent_id="a"))


def test_visible_threads_limits_until_expanded():
    threads = build_threads([node(str(i), i) for i in range(8)])
    assert len(visible_threads(threads)) == 5
    assert len(visible_threads(threads, limit=3)) == 3
    assert len(visible_threads(threads, expanded=True)) == 8
