import logging
from datetime import datetime
from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any, Dict, List, Optional, Set, Tuple
from uuid import UUID

from app.exceptions import AuthorizationError, NotFoundError
from app.models.comment import Comment, CommentLike
from app.models.post import Post, PostLike, PostStatus
from app.models.user import User
from app.schemas.post_schemas import PostCreate, PostResponse, PostUpdate
from app.services.notification_service import NotificationService
from app.services.subscription_service import SubscriptionService
from app.utils.tier_hierarchy import has_access, is_public
from app.utils.time_utils import utcnow

logger = logging.getLogger(__name__)


class PostService:
    @staticmethod
    async def viewer_context(db: AsyncSession, viewer: Optional[User]) -> Dict[UUID, str]:
        """Map of creator id to the viewer's active tier name."""
        if viewer is None:
            return {}
        return await SubscriptionService.active_tier_map(db, viewer.id)

    @staticmethod
    def can_view(post: Post, viewer: Optional[User], subscriptions: Dict[UUID, str]) -> bool:
        # Creators always see their own posts, admins see everything
        if viewer is not None and (viewer.id == post.creator_id or viewer.is_admin):
            return True
        return has_access(post.tier, post.creator_id, subscriptions, viewer)

    @staticmethod
    def to_response(post: Post, viewer: Optional[User], subscriptions: Dict[UUID, str], liked_ids: Set[UUID]) -> PostResponse:
        response = PostResponse.model_validate(post)
        response.has_access = PostService.can_view(post, viewer, subscriptions)
        response.liked = post.id in liked_ids
        if not response.has_access:
            response.content = None
            response.media_urls = []
        return response

    @staticmethod
    async def liked_post_ids(db: AsyncSession, user: Optional[User], post_ids: List[UUID]) -> Set[UUID]:
        if user is None or not post_ids:
            return set()
        result = await db.execute(
            select(PostLike.post_id).where(PostLike.user_id == user.id, PostLike.post_id.in_(post_ids))
        )
        return {row[0] for row in result.all()}

    @staticmethod
    async def get_post(db: AsyncSession, post_id: UUID) -> Post:
        result = await db.execute(select(Post).where(Post.id == post_id))
        post = result.unique().scalar_one_or_none()
        if not post:
            raise NotFoundError("Post not found")
        return post

    @staticmethod
    def visible_to(post: Post, viewer: Optional[User]) -> bool:
        if post.status == PostStatus.PUBLISHED.value:
            return True
        return viewer is not None and (viewer.id == post.creator_id or viewer.is_admin)

    @staticmethod
    async def get_for_viewer(db: AsyncSession, post_id: UUID, viewer: Optional[User]) -> PostResponse:
        post = await PostService.get_post(db, post_id)
        if not PostService.visible_to(post, viewer):
            raise NotFoundError("Post not found")
        subscriptions = await PostService.viewer_context(db, viewer)
        liked = await PostService.liked_post_ids(db, viewer, [post.id])
        return PostService.to_response(post, viewer, subscriptions, liked)

    @staticmethod
    async def list_feed(
        db: AsyncSession,
        viewer: Optional[User],
        offset: int = 0,
        limit: int = 20,
        creator_id: Optional[UUID] = None,
        subscribed_only: bool = False,
    ) -> Tuple[List[PostResponse], int]:
        """Published posts, newest first, each annotated with `has_access`."""
        subscriptions = await PostService.viewer_context(db, viewer)

        query = select(Post)
        if creator_id is not None:
            query = query.where(Post.creator_id == creator_id)
        # A creator browsing their own page also sees drafts and scheduled posts
        own_page = viewer is not None and creator_id == viewer.id
        if not own_page:
            query = query.where(Post.status == PostStatus.PUBLISHED.value)
        if subscribed_only:
            if not subscriptions:
                return [], 0
            query = query.where(Post.creator_id.in_(list(subscriptions.keys())))

        total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar_one()
        result = await db.execute(query.order_by(Post.created_at.desc()).offset(offset).limit(limit))
        posts = list(result.unique().scalars().all())

        liked = await PostService.liked_post_ids(db, viewer, [p.id for p in posts])
        return [PostService.to_response(p, viewer, subscriptions, liked) for p in posts], total

    @staticmethod
    def _ensure_author(post: Post, user: User) -> None:
        if post.creator_id != user.id and not user.is_admin:
            raise AuthorizationError("Only the creator can modify this post")

    @staticmethod
    def _normalize_tier(tier: str) -> str:
        return "public" if is_public(tier) else tier.strip()

    @staticmethod
    async def create_post(db: AsyncSession, creator: User, data: PostCreate) -> Post:
        if not creator.is_creator and not creator.is_admin:
            raise AuthorizationError("Only creators can publish posts")

        post = Post(
            creator_id=creator.id,
            title=data.title,
            content=data.content,
            media_type=data.media_type.value,
            media_urls=data.media_urls,
            tier=PostService._normalize_tier(data.tier),
            status=data.status.value,
            scheduled_for=data.scheduled_for,
        )
        db.add(post)
        await db.commit()
        await db.refresh(post)
        logger.info(f"Post {post.id} created by {creator.id} (tier={post.tier}, status={post.status})")

        if post.status == PostStatus.PUBLISHED.value:
            await PostService._announce(db, creator, post)
        return post

    @staticmethod
    async def _announce(db: AsyncSession, creator: User, post: Post) -> None:
        subscriber_ids = await SubscriptionService.active_subscriber_ids(db, creator.id)
        await NotificationService.notify_new_post(db, subscriber_ids, creator, post.id, post.title)

    @staticmethod
    async def update_post(db: AsyncSession, user: User, post_id: UUID, data: PostUpdate) -> Post:
        post = await PostService.get_post(db, post_id)
        PostService._ensure_author(post, user)

        was_published = post.status == PostStatus.PUBLISHED.value
        for field, value in data.model_dump(exclude_unset=True).items():
            if value is None and field not in ("content", "scheduled_for"):
                continue
            if field == "tier":
                value = PostService._normalize_tier(value)
            elif hasattr(value, "value"):
                value = value.value
            setattr(post, field, value)

        await db.commit()
        await db.refresh(post)
        if not was_published and post.status == PostStatus.PUBLISHED.value:
            await PostService._announce(db, post.creator, post)
        return post

    @staticmethod
    async def delete_post(db: AsyncSession, user: User, post_id: UUID) -> None:
        post = await PostService.get_post(db, post_id)
        PostService._ensure_author(post, user)

        comment_ids = select(Comment.id).where(Comment.post_id == post_id)
        await db.execute(delete(CommentLike).where(CommentLike.comment_id.in_(comment_ids)))
        await db.execute(delete(Comment).where(Comment.post_id == post_id, Comment.parent_id.is_not(None)))
        await db.execute(delete(Comment).where(Comment.post_id == post_id))
        await db.execute(delete(PostLike).where(PostLike.post_id == post_id))
        await db.execute(delete(Post).where(Post.id == post_id))
        await db.commit()
        logger.info(f"Post {post_id} deleted by {user.id}")

    @staticmethod
    async def _like_state(db: AsyncSession, post: Post, user: User) -> Dict[str, Any]:
        result = await db.execute(
            select(func.count(PostLike.id)).where(PostLike.post_id == post.id, PostLike.user_id == user.id)
        )
        return {"liked": result.scalar_one() > 0, "likes": post.likes_count}

    @staticmethod
    async def _ensure_viewable(db: AsyncSession, post: Post, user: User) -> None:
        subscriptions = await PostService.viewer_context(db, user)
        if not PostService.visible_to(post, user) or not PostService.can_view(post, user, subscriptions):
            raise AuthorizationError("Subscribe to a higher tier to interact with this post")

    @staticmethod
    async def like_post(db: AsyncSession, user: User, post_id: UUID) -> Dict[str, Any]:
        """Idempotent: liking twice leaves one like."""
        post = await PostService.get_post(db, post_id)
        await PostService._ensure_viewable(db, post, user)

        state = await PostService._like_state(db, post, user)
        if state["liked"]:
            return state

        db.add(PostLike(post_id=post.id, user_id=user.id))
        post.likes_count = (post.likes_count or 0) + 1
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            post = await PostService.get_post(db, post_id)
            return await PostService._like_state(db, post, user)

        await NotificationService.notify_post_like(db, post.creator_id, user, post.id, post.title)
        return {"liked": True, "likes": post.likes_count}

    @staticmethod
    async def unlike_post(db: AsyncSession, user: User, post_id: UUID) -> Dict[str, Any]:
        post = await PostService.get_post(db, post_id)
        result = await db.execute(
            delete(PostLike).where(PostLike.post_id == post.id, PostLike.user_id == user.id)
        )
        if result.rowcount:
            post.likes_count = max((post.likes_count or 0) - 1, 0)
        await db.commit()
        return {"liked": False, "likes": post.likes_count}

    @staticmethod
    async def publish_scheduled(db: AsyncSession, now: Optional[datetime] = None) -> int:
        """Publish scheduled posts whose time has come."""
        now = now or utcnow()
        result = await db.execute(
            select(Post).where(
                Post.status == PostStatus.SCHEDULED.value,
                Post.scheduled_for.is_not(None),
                Post.scheduled_for <= now,
            )
        )
        posts = list(result.unique().scalars().all())
        for post in posts:
            post.status = PostStatus.PUBLISHED.value
        await db.commit()

        for post in posts:
            await PostService._announce(db, post.creator, post)
        if posts:
            logger.info(f"Published {len(posts)} scheduled post(s)")
        return len(posts)
