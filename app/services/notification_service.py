import logging
from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any, Dict, Iterable, List, Optional, Tuple
from uuid import UUID

from app.exceptions import NotFoundError
from app.models.notification import Notification, NotificationType
from app.models.user import User, UserStatus
from app.realtime.hub import hub
from app.schemas.notification_schemas import NotificationResponse

logger = logging.getLogger(__name__)


def serialize_notification(notification: Notification) -> Dict[str, Any]:
    return NotificationResponse.model_validate(notification).model_dump(mode="json")


class NotificationService:
    @staticmethod
    async def create(
        db: AsyncSession,
        user_id: UUID,
        type: NotificationType,
        title: str,
        message: str,
        action_url: Optional[str] = None,
        actor_id: Optional[UUID] = None,
        entity_type: Optional[str] = None,
        entity_id: Optional[Any] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Optional[Notification]:
        """Store a notification and push it to the recipient's open sockets.

        Users are never notified about their own actions; returns None then.
        """
        if actor_id is not None and actor_id == user_id:
            return None

        notification = Notification(
            user_id=user_id,
            type=NotificationType(type).value,
            title=title,
            message=message,
            action_url=action_url,
            actor_id=actor_id,
            entity_type=entity_type,
            entity_id=str(entity_id) if entity_id is not None else None,
            extra=metadata or {},
        )
        db.add(notification)
        await db.commit()
        await db.refresh(notification)

        delivered = await hub.send_to_user(
            str(user_id),
            {"type": "new_notification", "notification": serialize_notification(notification)},
        )
        logger.debug(f"Notification {notification.type} for {user_id} pushed to {delivered} socket(s)")
        return notification

    @staticmethod
    async def list_for_user(
        db: AsyncSession,
        user_id: UUID,
        offset: int = 0,
        limit: int = 20,
        unread_only: bool = False,
    ) -> Tuple[List[Notification], int]:
        query = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            query = query.where(Notification.read.is_(False))
        total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar_one()
        result = await db.execute(
            query.order_by(Notification.created_at.desc()).offset(offset).limit(limit)
        )
        return list(result.scalars().all()), total

    @staticmethod
    async def unread_count(db: AsyncSession, user_id: UUID) -> int:
        result = await db.execute(
            select(func.count(Notification.id)).where(
                Notification.user_id == user_id, Notification.read.is_(False)
            )
        )
        return result.scalar_one()

    @staticmethod
    async def _get_owned(db: AsyncSession, user_id: UUID, notification_id: UUID) -> Notification:
        result = await db.execute(
            select(Notification).where(
                Notification.id == notification_id, Notification.user_id == user_id
            )
        )
        notification = result.scalar_one_or_none()
        if not notification:
            raise NotFoundError("Notification not found")
        return notification

    @staticmethod
    async def mark_read(db: AsyncSession, user_id: UUID, notification_id: UUID) -> Notification:
        notification = await NotificationService._get_owned(db, user_id, notification_id)
        notification.read = True
        await db.commit()
        await db.refresh(notification)
        return notification

    @staticmethod
    async def mark_all_read(db: AsyncSession, user_id: UUID) -> int:
        result = await db.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.read.is_(False))
            .values(read=True)
        )
        await db.commit()
        return result.rowcount or 0

    @staticmethod
    async def delete(db: AsyncSession, user_id: UUID, notification_id: UUID) -> None:
        await NotificationService._get_owned(db, user_id, notification_id)
        await db.execute(delete(Notification).where(Notification.id == notification_id))
        await db.commit()

    @staticmethod
    async def broadcast(
        db: AsyncSession,
        admin_id: UUID,
        title: str,
        message: str,
        action_url: Optional[str] = None,
    ) -> int:
        """Store a system notification for every active user and push it live."""
        result = await db.execute(select(User.id).where(User.status == UserStatus.ACTIVE.value))
        user_ids = [row[0] for row in result.all()]
        for uid in user_ids:
            db.add(Notification(
                user_id=uid,
                type=NotificationType.SYSTEM.value,
                title=title,
                message=message,
                action_url=action_url,
                actor_id=admin_id,
            ))
        await db.commit()

        await hub.broadcast({
            "type": "notification",
            "title": title,
            "message": message,
            "action_url": action_url,
        })
        logger.info(f"Broadcast '{title}' stored for {len(user_ids)} users")
        return len(user_ids)

    # Domain events

    @staticmethod
    async def notify_new_subscriber(db: AsyncSession, creator_id: UUID, fan: User, tier_name: str, subscription_id: UUID):
        return await NotificationService.create(
            db, creator_id, NotificationType.NEW_SUBSCRIBER,
            title="New subscriber",
            message=f"{fan.public_name} subscribed to your {tier_name} tier",
            action_url="/creator/subscribers",
            actor_id=fan.id, entity_type="subscription", entity_id=subscription_id,
        )

    @staticmethod
    async def notify_payment_success(db: AsyncSession, fan_id: UUID, amount: str, tier_name: str, reference: str):
        return await NotificationService.create(
            db, fan_id, NotificationType.PAYMENT_SUCCESS,
            title="Payment successful",
            message=f"Your payment of {amount} for {tier_name} was successful",
            action_url="/fan/subscriptions",
            entity_type="payment", entity_id=reference,
        )

    @staticmethod
    async def notify_subscription_change(db: AsyncSession, fan_id: UUID, message: str, subscription_id: UUID):
        return await NotificationService.create(
            db, fan_id, NotificationType.SUBSCRIPTION_CHANGE,
            title="Subscription updated",
            message=message,
            action_url="/fan/subscriptions",
            entity_type="subscription", entity_id=subscription_id,
        )

    @staticmethod
    async def notify_payout(db: AsyncSession, creator_id: UUID, amount: str, payout_id: UUID):
        return await NotificationService.create(
            db, creator_id, NotificationType.PAYOUT,
            title="Payout sent",
            message=f"Your earnings of {amount} are on their way",
            action_url="/creator/earnings",
            entity_type="payout", entity_id=payout_id,
        )

    @staticmethod
    async def notify_comment(db: AsyncSession, recipient_id: UUID, actor: User, post_id: UUID, comment_id: UUID, is_reply: bool):
        if is_reply:
            kind, title, text = NotificationType.COMMENT_REPLY, "New reply", f"{actor.public_name} replied to your comment"
        else:
            kind, title, text = NotificationType.NEW_COMMENT, "New comment", f"{actor.public_name} commented on your post"
        return await NotificationService.create(
            db, recipient_id, kind, title=title, message=text,
            action_url=f"/posts/{post_id}",
            actor_id=actor.id, entity_type="comment", entity_id=comment_id,
            metadata={"post_id": str(post_id)},
        )

    @staticmethod
    async def notify_post_like(db: AsyncSession, creator_id: UUID, actor: User, post_id: UUID, post_title: str):
        return await NotificationService.create(
            db, creator_id, NotificationType.POST_LIKE,
            title="New like",
            message=f"{actor.public_name} liked your post \"{post_title}\"",
            action_url=f"/posts/{post_id}",
            actor_id=actor.id, entity_type="post", entity_id=post_id,
        )

    @staticmethod
    async def notify_comment_like(db: AsyncSession, author_id: UUID, actor: User, post_id: UUID, comment_id: UUID):
        return await NotificationService.create(
            db, author_id, NotificationType.COMMENT_LIKE,
            title="New like",
            message=f"{actor.public_name} liked your comment",
            action_url=f"/posts/{post_id}",
            actor_id=actor.id, entity_type="comment", entity_id=comment_id,
        )

    @staticmethod
    async def notify_message(db: AsyncSession, recipient_id: UUID, sender: User, conversation_id: UUID, preview: str):
        return await NotificationService.create(
            db, recipient_id, NotificationType.NEW_MESSAGE,
            title="New message",
            message=f"{sender.public_name}: {preview[:80]}",
            action_url=f"/messages/{conversation_id}",
            actor_id=sender.id, entity_type="conversation", entity_id=conversation_id,
        )

    @staticmethod
    async def notify_new_post(db: AsyncSession, subscriber_ids: Iterable[UUID], creator: User, post_id: UUID, post_title: str) -> int:
        sent = 0
        for fan_id in subscriber_ids:
            created = await NotificationService.create(
                db, fan_id, NotificationType.NEW_POST,
                title="New post",
                message=f"{creator.public_name} published \"{post_title}\"",
                action_url=f"/posts/{post_id}",
                actor_id=creator.id, entity_type="post", entity_id=post_id,
            )
            if created is not None:
                sent += 1
        return sent
