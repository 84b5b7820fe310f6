"""
Two-level comment threads.

A thread is a top-level comment plus a flat list of replies. Replies never
carry replies of their own, so the shape is fixed at two levels.
"""
import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, List, Optional, Set


class CommentSort(str, enum.Enum):
    NEWEST = "newest"
    OLDEST = "oldest"
    POPULAR = "popular"


DEFAULT_PREVIEW_LIMIT = 5


class CommentTreeError(ValueError):
    pass


@dataclass
class CommentNode:
    id: Any
    user_id: Any
    content: str
    created_at: datetime
    likes: int = 0
    liked: bool = False
    username: Optional[str] = None
    display_name: Optional[str] = None
    avatar: Optional[str] = None
    parent_id: Any = None

    def toggle_like(self) -> "CommentNode":
        if self.liked:
            self.liked = False
            self.likes -= 1
        else:
            self.liked = True
            self.likes += 1
        return self


@dataclass
class CommentThread:
    comment: CommentNode
    replies: List[CommentNode] = field(default_factory=list)

    @property
    def id(self):
        return self.comment.id

    def add_reply(self, reply: CommentNode) -> None:
        reply.parent_id = self.comment.id
        self.replies.append(reply)
        self.replies.sort(key=lambda r: r.created_at)


def node_from_comment(comment, liked_ids: Optional[Set[Any]] = None) -> CommentNode:
    """Build a node from a Comment row (with its `user` loaded)."""
    liked_ids = liked_ids or set()
    user = getattr(comment, "user", None)
    return CommentNode(
        id=comment.id,
        user_id=comment.user_id,
        content=comment.content,
        created_at=comment.created_at,
        likes=comment.likes_count or 0,
        liked=comment.id in liked_ids,
        username=user.username if user else None,
        display_name=user.display_name if user else None,
        avatar=user.avatar if user else None,
        parent_id=comment.parent_id,
    )


def build_threads(nodes: Iterable[CommentNode]) -> List[CommentThread]:
    """
    Group flat nodes into threads, newest thread first, replies oldest first.

    Replies whose parent is missing or is itself a reply are dropped.
    """
    nodes = list(nodes)
    threads = {}
    for node in nodes:
        if node.parent_id is None:
            threads[node.id] = CommentThread(comment=node)

    for node in sorted((n for n in nodes if n.parent_id is not None), key=lambda n: n.created_at):
        thread = threads.get(node.parent_id)
        if thread is not None:
            thread.replies.append(node)

    return sort_threads(list(threads.values()), CommentSort.NEWEST)


def add_comment(threads: List[CommentThread], node: CommentNode) -> List[CommentThread]:
    if node.parent_id is not None:
        raise CommentTreeError("Top-level comments cannot have a parent")
    return [CommentThread(comment=node)] + list(threads)


def find_thread(threads: Iterable[CommentThread], comment_id: Any) -> Optional[CommentThread]:
    for thread in threads:
        if thread.comment.id == comment_id:
            return thread
    return None


def add_reply(threads: List[CommentThread], parent_id: Any, reply: CommentNode) -> List[CommentThread]:
    thread = find_thread(threads, parent_id)
    if thread is None:
        raise CommentTreeError("Replies must target a top-level comment")
    thread.add_reply(reply)
    return threads


def find_node(threads: Iterable[CommentThread], comment_id: Any) -> Optional[CommentNode]:
    for thread in threads:
        if thread.comment.id == comment_id:
            return thread.comment
        for reply in thread.replies:
            if reply.id == comment_id:
                return reply
    return None


def toggle_like(threads: List[CommentThread], comment_id: Any) -> CommentNode:
    node = find_node(threads, comment_id)
    if node is None:
        raise CommentTreeError("Comment not found")
    return node.toggle_like()


def sort_threads(threads: List[CommentThread], mode: CommentSort = CommentSort.NEWEST) -> List[CommentThread]:
    # sorted() is stable, so ties keep their incoming order
    mode = CommentSort(mode)
    if mode == CommentSort.OLDEST:
        return sorted(threads, key=lambda t: t.comment.created_at)
    if mode == CommentSort.POPULAR:
        return sorted(threads, key=lambda t: t.comment.likes, reverse=True)
    return sorted(threads, key=lambda t: t.comment.created_at, reverse=True)


def visible_threads(
    threads: List[CommentThread],
    expanded: bool = False,
    limit: int = DEFAULT_PREVIEW_LIMIT,
) -> List[CommentThread]:
    if expanded:
        return list(threads)
    return list(threads[:limit])
