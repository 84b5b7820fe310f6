import logging
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any, Dict, List
from uuid import UUID

from app.config import settings
from app.exceptions import AuthorizationError, ConflictError, NotFoundError
from app.models.subscription import SubscriptionTier
from app.models.user import User
from app.schemas.subscription_schemas import TierCreate, TierResponse, TierUpdate
from app.services.cache_service import CacheService

logger = logging.getLogger(__name__)


class TierService:
    @staticmethod
    async def list_creator_tiers(db: AsyncSession, creator_id: UUID) -> List[Dict[str, Any]]:
        """Active tiers of a creator, cheapest first, served from cache when warm."""
        cached = await CacheService.get_creator_tiers_cache(str(creator_id))
        if cached is not None:
            return cached

        result = await db.execute(
            select(SubscriptionTier)
            .where(SubscriptionTier.creator_id == creator_id, SubscriptionTier.is_active.is_(True))
            .order_by(SubscriptionTier.price.asc(), SubscriptionTier.created_at.asc())
        )
        tiers = [TierResponse.model_validate(t).model_dump(mode="json") for t in result.scalars().all()]
        await CacheService.set_creator_tiers_cache(str(creator_id), tiers, ttl=settings.cache_ttl_creator_tiers)
        return tiers

    @staticmethod
    async def get_tier(db: AsyncSession, tier_id: UUID, active_only: bool = True) -> SubscriptionTier:
        result = await db.execute(select(SubscriptionTier).where(SubscriptionTier.id == tier_id))
        tier = result.scalar_one_or_none()
        if not tier or (active_only and not tier.is_active):
            raise NotFoundError("Tier not found")
        return tier

    @staticmethod
    def _ensure_owner(user: User, creator_id: UUID) -> None:
        if not (user.is_admin or (user.is_creator and user.id == creator_id)):
            raise AuthorizationError("Only the creator can manage these tiers")

    @staticmethod
    async def _ensure_unique_name(db: AsyncSession, creator_id: UUID, name: str, exclude_id: UUID = None) -> None:
        query = select(func.count(SubscriptionTier.id)).where(
            SubscriptionTier.creator_id == creator_id,
            SubscriptionTier.is_active.is_(True),
            func.lower(SubscriptionTier.name) == name.strip().lower(),
        )
        if exclude_id is not None:
            query = query.where(SubscriptionTier.id != exclude_id)
        if (await db.execute(query)).scalar_one():
            raise ConflictError(f"A tier named '{name}' already exists")

    @staticmethod
    async def create_tier(db: AsyncSession, user: User, creator_id: UUID, data: TierCreate) -> SubscriptionTier:
        TierService._ensure_owner(user, creator_id)
        await TierService._ensure_unique_name(db, creator_id, data.name)

        tier = SubscriptionTier(
            creator_id=creator_id,
            name=data.name.strip(),
            description=data.description,
            price=data.price,
            currency=data.currency.upper(),
            benefits=data.benefits,
        )
        db.add(tier)
        await db.commit()
        await db.refresh(tier)
        await CacheService.invalidate_creator_tiers_cache(str(creator_id))
        logger.info(f"Tier '{tier.name}' created for creator {creator_id}")
        return tier

    @staticmethod
    async def update_tier(db: AsyncSession, user: User, tier_id: UUID, data: TierUpdate) -> SubscriptionTier:
        tier = await TierService.get_tier(db, tier_id, active_only=False)
        TierService._ensure_owner(user, tier.creator_id)

        changes = data.model_dump(exclude_unset=True)
        if "name" in changes and changes["name"]:
            await TierService._ensure_unique_name(db, tier.creator_id, changes["name"], exclude_id=tier.id)
            changes["name"] = changes["name"].strip()
        for field, value in changes.items():
            setattr(tier, field, value)

        await db.commit()
        await db.refresh(tier)
        await CacheService.invalidate_creator_tiers_cache(str(tier.creator_id))
        return tier

    @staticmethod
    async def deactivate_tier(db: AsyncSession, user: User, tier_id: UUID) -> SubscriptionTier:
        """Tiers are never deleted; existing subscribers keep their tier."""
        tier = await TierService.get_tier(db, tier_id, active_only=False)
        TierService._ensure_owner(user, tier.creator_id)
        tier.is_active = False
        await db.commit()
        await db.refresh(tier)
        await CacheService.invalidate_creator_tiers_cache(str(tier.creator_id))
        logger.info(f"Tier {tier_id} deactivated")
        return tier
