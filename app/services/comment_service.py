import logging
from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any, Dict, Optional
from uuid import UUID

from app.config import settings
from app.exceptions import AuthorizationError, BusinessLogicError, NotFoundError
from app.models.comment import Comment, CommentLike
from app.models.post import Post
from app.models.user import User
from app.schemas.comment_schemas import CommentListResponse, CommentThreadResponse, CommentNodeResponse
from app.services.notification_service import NotificationService
from app.services.post_service import PostService
from app.utils.comment_tree import (
    CommentSort,
    build_threads,
    node_from_comment,
    sort_threads,
    visible_threads,
)

logger = logging.getLogger(__name__)


class CommentService:
    @staticmethod
    async def _get_comment(db: AsyncSession, comment_id: UUID) -> Comment:
        result = await db.execute(select(Comment).where(Comment.id == comment_id))
        comment = result.unique().scalar_one_or_none()
        if not comment:
            raise NotFoundError("Comment not found")
        return comment

    @staticmethod
    async def _accessible_post(db: AsyncSession, post_id: UUID, viewer: Optional[User]) -> Post:
        post = await PostService.get_post(db, post_id)
        subscriptions = await PostService.viewer_context(db, viewer)
        if not PostService.visible_to(post, viewer):
            raise NotFoundError("Post not found")
        if not PostService.can_view(post, viewer, subscriptions):
            raise AuthorizationError("Subscribe to a higher tier to see this conversation")
        return post

    @staticmethod
    async def list_threads(
        db: AsyncSession,
        post_id: UUID,
        viewer: Optional[User],
        sort: CommentSort = CommentSort.NEWEST,
        expanded: bool = False,
    ) -> CommentListResponse:
        await CommentService._accessible_post(db, post_id, viewer)

        result = await db.execute(select(Comment).where(Comment.post_id == post_id))
        comments = list(result.unique().scalars().all())

        liked_ids = set()
        if viewer is not None and comments:
            liked = await db.execute(
                select(CommentLike.comment_id).where(
                    CommentLike.user_id == viewer.id,
                    CommentLike.comment_id.in_([c.id for c in comments]),
                )
            )
            liked_ids = {row[0] for row in liked.all()}

        threads = sort_threads(build_threads(node_from_comment(c, liked_ids) for c in comments), sort)
        shown = visible_threads(threads, expanded, settings.comment_preview_limit)
        return CommentListResponse(
            total=len(threads),
            shown=len(shown),
            has_more=len(shown) < len(threads),
            sort=sort,
            items=[CommentThreadResponse.from_thread(t) for t in shown],
        )

    @staticmethod
    async def add_comment(
        db: AsyncSession,
        user: User,
        post_id: UUID,
        content: str,
        parent_id: Optional[UUID] = None,
    ) -> CommentNodeResponse:
        """Add a top-level comment, or a reply when `parent_id` names a top-level comment."""
        post = await CommentService._accessible_post(db, post_id, user)
        if post.creator is not None and not post.creator.comments_enabled:
            raise AuthorizationError("Comments are disabled for this creator")

        parent = None
        if parent_id is not None:
            parent = await CommentService._get_comment(db, parent_id)
            if parent.post_id != post.id:
                raise BusinessLogicError("Reply must belong to the same post")
            if parent.parent_id is not None:
                raise BusinessLogicError("Replies can only target a top-level comment")

        comment = Comment(post_id=post.id, user_id=user.id, parent_id=parent_id, content=content.strip())
        db.add(comment)
        post.comments_count = (post.comments_count or 0) + 1
        try:
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        await db.refresh(comment)

        if parent is not None:
            await NotificationService.notify_comment(db, parent.user_id, user, post.id, comment.id, is_reply=True)
        else:
            await NotificationService.notify_comment(db, post.creator_id, user, post.id, comment.id, is_reply=False)

        node = node_from_comment(comment)
        if parent is None:
            return CommentThreadResponse.from_thread(build_threads([node])[0])
        return CommentNodeResponse.from_node(node)

    @staticmethod
    async def delete_comment(db: AsyncSession, user: User, comment_id: UUID) -> int:
        """Delete a comment and its replies; returns how many comments were removed."""
        comment = await CommentService._get_comment(db, comment_id)
        post = await PostService.get_post(db, comment.post_id)
        if user.id not in (comment.user_id, post.creator_id) and not user.is_admin:
            raise AuthorizationError("You cannot delete this comment")

        doomed = select(Comment.id).where(or_(Comment.id == comment_id, Comment.parent_id == comment_id))
        removed = (await db.execute(select(func.count()).select_from(doomed.subquery()))).scalar_one()

        await db.execute(delete(CommentLike).where(CommentLike.comment_id.in_(doomed)))
        await db.execute(delete(Comment).where(Comment.parent_id == comment_id))
        await db.execute(delete(Comment).where(Comment.id == comment_id))
        post.comments_count = max((post.comments_count or 0) - removed, 0)
        await db.commit()
        logger.info(f"Comment {comment_id} deleted by {user.id} ({removed} removed)")
        return removed

    @staticmethod
    async def _is_liked(db: AsyncSession, comment_id: UUID, user_id: UUID) -> bool:
        result = await db.execute(
            select(func.count(CommentLike.id)).where(
                CommentLike.comment_id == comment_id, CommentLike.user_id == user_id
            )
        )
        return result.scalar_one() > 0

    @staticmethod
    async def set_like(db: AsyncSession, user: User, comment_id: UUID, liked: bool) -> Dict[str, Any]:
        """Set the like state; repeating the same call changes nothing."""
        comment = await CommentService._get_comment(db, comment_id)
        await CommentService._accessible_post(db, comment.post_id, user)

        currently = await CommentService._is_liked(db, comment.id, user.id)
        if currently == liked:
            return {"liked": currently, "likes": comment.likes_count}

        if liked:
            db.add(CommentLike(comment_id=comment.id, user_id=user.id))
            comment.likes_count = (comment.likes_count or 0) + 1
        else:
            await db.execute(
                delete(CommentLike).where(CommentLike.comment_id == comment.id, CommentLike.user_id == user.id)
            )
            comment.likes_count = max((comment.likes_count or 0) - 1, 0)

        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            comment = await CommentService._get_comment(db, comment_id)
            return {"liked": await CommentService._is_liked(db, comment.id, user.id), "likes": comment.likes_count}

        if liked:
            await NotificationService.notify_comment_like(db, comment.user_id, user, comment.post_id, comment.id)
        return {"liked": liked, "likes": comment.likes_count}

    @staticmethod
    async def toggle_like(db: AsyncSession, user: User, comment_id: UUID) -> Dict[str, Any]:
        comment = await CommentService._get_comment(db, comment_id)
        node = node_from_comment(comment)
        node.liked = await CommentService._is_liked(db, comment.id, user.id)
        return await CommentService.set_like(db, user, comment_id, node.toggle_like().liked)
