import logging
from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from app.config import settings
from app.exceptions import AuthorizationError, BusinessLogicError, NotFoundError
from app.models.message import Conversation, Message
from app.models.user import User
from app.realtime.hub import hub
from app.schemas.message_schemas import ConversationResponse, MessageResponse
from app.schemas.user_schemas import UserPublic
from app.services.notification_service import NotificationService
from app.services.user_service import UserService
from app.utils.time_utils import utcnow

logger = logging.getLogger(__name__)


def ordered_pair(a: UUID, b: UUID) -> Tuple[UUID, UUID]:
    """Participants are stored in a fixed order so a pair maps to one conversation."""
    return (a, b) if str(a) <= str(b) else (b, a)


class MessageService:
    @staticmethod
    async def get_or_create_conversation(db: AsyncSession, user: User, participant_id: UUID) -> Conversation:
        if participant_id == user.id:
            raise BusinessLogicError("You cannot start a conversation with yourself")
        other = await UserService.get_or_404(db, participant_id)
        if not other.is_active:
            raise BusinessLogicError("This user is not available")

        first, second = ordered_pair(user.id, other.id)
        result = await db.execute(
            select(Conversation).where(
                Conversation.participant_1_id == first, Conversation.participant_2_id == second
            )
        )
        conversation = result.scalar_one_or_none()
        if conversation:
            return conversation

        try:
            conversation = Conversation(participant_1_id=first, participant_2_id=second)
            db.add(conversation)
            await db.commit()
            await db.refresh(conversation)
            logger.info(f"Created conversation {conversation.id}")
            return conversation
        except Exception as e:
            await db.rollback()
            logger.error(f"Failed to create conversation: {e}")
            raise

    @staticmethod
    async def get_conversation(db: AsyncSession, user: User, conversation_id: UUID) -> Conversation:
        result = await db.execute(select(Conversation).where(Conversation.id == conversation_id))
        conversation = result.scalar_one_or_none()
        if not conversation:
            raise NotFoundError("Conversation not found")
        if not conversation.has_participant(user.id):
            raise AuthorizationError("You are not part of this conversation")
        return conversation

    @staticmethod
    async def list_conversations(db: AsyncSession, user: User) -> List[ConversationResponse]:
        """The user's conversations, most recently active first."""
        result = await db.execute(
            select(Conversation)
            .where(or_(Conversation.participant_1_id == user.id, Conversation.participant_2_id == user.id))
            .order_by(Conversation.updated_at.desc())
        )
        conversations = list(result.scalars().all())
        if not conversations:
            return []

        other_ids = [c.other_participant(user.id) for c in conversations]
        users = await db.execute(select(User).where(User.id.in_(other_ids)))
        users_by_id: Dict[UUID, User] = {u.id: u for u in users.scalars().all()}

        unread = await db.execute(
            select(Message.conversation_id, func.count(Message.id))
            .where(Message.recipient_id == user.id, Message.read.is_(False))
            .group_by(Message.conversation_id)
        )
        unread_by_conversation = dict(unread.all())

        items = []
        for conversation in conversations:
            last = await MessageService._last_message(db, conversation.id)
            other = users_by_id.get(conversation.other_participant(user.id))
            items.append(ConversationResponse(
                id=conversation.id,
                other_participant=UserPublic.model_validate(other) if other else None,
                last_message=MessageResponse.model_validate(last) if last else None,
                unread_count=unread_by_conversation.get(conversation.id, 0),
                created_at=conversation.created_at,
                updated_at=conversation.updated_at,
            ))
        return items

    @staticmethod
    async def _last_message(db: AsyncSession, conversation_id: UUID) -> Optional[Message]:
        result = await db.execute(
            select(Message)
            .where(Message.conversation_id == conversation_id)
            .order_by(Message.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def list_messages(
        db: AsyncSession,
        user: User,
        conversation_id: UUID,
        offset: int = 0,
        limit: int = 50,
    ) -> Tuple[List[Message], int]:
        """Messages oldest first; opening a conversation marks incoming messages read."""
        await MessageService.get_conversation(db, user, conversation_id)

        total = (await db.execute(
            select(func.count(Message.id)).where(Message.conversation_id == conversation_id)
        )).scalar_one()
        result = await db.execute(
            select(Message)
            .where(Message.conversation_id == conversation_id)
            .order_by(Message.created_at.asc())
            .offset(offset)
            .limit(limit)
        )
        messages = list(result.scalars().all())

        await db.execute(
            update(Message)
            .where(
                Message.conversation_id == conversation_id,
                Message.recipient_id == user.id,
                Message.read.is_(False),
            )
            .values(read=True)
        )
        await db.commit()
        return messages, total

    @staticmethod
    async def send_message(db: AsyncSession, user: User, conversation_id: UUID, content: str) -> Message:
        conversation = await MessageService.get_conversation(db, user, conversation_id)
        content = content.strip()
        if not content:
            raise BusinessLogicError("Message cannot be empty")
        if len(content) > settings.max_message_length:
            raise BusinessLogicError(f"Message exceeds {settings.max_message_length} characters")

        recipient_id = conversation.other_participant(user.id)
        message = Message(
            conversation_id=conversation.id,
            sender_id=user.id,
            recipient_id=recipient_id,
            content=content,
        )
        db.add(message)
        conversation.updated_at = utcnow()
        try:
            await db.commit()
        except Exception as e:
            await db.rollback()
            logger.error(f"Failed to send message: {e}")
            raise
        await db.refresh(message)

        payload = MessageResponse.model_validate(message).model_dump(mode="json")
        await hub.send_to_user(str(recipient_id), {
            "type": "new_message_realtime",
            "conversationId": str(conversation.id),
            "message": payload,
        })
        await NotificationService.notify_message(db, recipient_id, user, conversation.id, content)
        return message
