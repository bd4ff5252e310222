"""User repository (accounts and preferences)."""

import logging
from collections.abc import Mapping
from datetime import timedelta
from typing import Any

from sqlalchemy import func, or_, select

from melodia.domain.exceptions import ValidationException
from melodia.domain.value_objects import SubscriptionTier
from melodia.infrastructure.persistence.errors import translate_store_errors
from melodia.infrastructure.persistence.models import (
    UserModel,
    UserPreferencesModel,
    utc_now,
)
from melodia.infrastructure.persistence.repositories.base import BaseRepository, QueryOptions

logger = logging.getLogger(__name__)

_PROFILE_FIELDS = frozenset(
    {"display_name", "profile_image_url", "country", "preferred_language"}
)
_PREFERENCE_FIELDS = frozenset(
    {"audio_quality", "autoplay", "explicit_content", "crossfade_seconds", "theme"}
)


def _validate_email(email: Any) -> str:
    value = str(email or "").strip()
    if not value or "@" not in value:
        raise ValidationException("A valid email address is required", field="email")
    return value.lower()


class UserRepository(BaseRepository[UserModel]):
    """Users, their subscription and activity."""

    model = UserModel
    entity_name = "User"

    async def create(self, data: Mapping[str, Any]) -> UserModel:
        values = dict(data)
        username = str(values.get("username") or "").strip()
        if not username:
            raise ValidationException("Username is required", field="username")
        values["username"] = username
        values["email"] = _validate_email(values.get("email"))
        values["subscription_tier"] = SubscriptionTier.parse(
            values.get("subscription_tier") or SubscriptionTier.FREE, "subscription_tier"
        ).value
        return await super().create(values)

    async def find_by_email(self, email: str) -> UserModel | None:
        return await self.find_first(
            QueryOptions(where=[func.lower(UserModel.email) == email.strip().lower()])
        )

    async def find_by_username(self, username: str) -> UserModel | None:
        return await self.find_first(
            QueryOptions(where=[func.lower(UserModel.username) == username.strip().lower()])
        )

    async def exists_by_email(self, email: str) -> bool:
        return await self.count(func.lower(UserModel.email) == email.strip().lower()) > 0

    async def exists_by_username(self, username: str) -> bool:
        return await self.count(func.lower(UserModel.username) == username.strip().lower()) > 0

    async def find_active(self, limit: int = 100) -> list[UserModel]:
        return await self.find_many(
            QueryOptions(
                where=[UserModel.is_active.is_(True)],
                order_by=[UserModel.last_active_at.desc().nulls_last()],
                take=self.validate_limit(limit),
            )
        )

    async def find_by_subscription_tier(self, tier: str) -> list[UserModel]:
        parsed = SubscriptionTier.parse(tier, "subscription_tier")
        return await self.find_many(
            QueryOptions(
                where=[UserModel.subscription_tier == parsed.value],
                order_by=[UserModel.username],
            )
        )

    async def find_by_country(self, country: str) -> list[UserModel]:
        return await self.find_many(
            QueryOptions(
                where=[func.upper(UserModel.country) == country.strip().upper()],
                order_by=[UserModel.username],
            )
        )

    async def search(self, query: str, limit: int = 20) -> list[UserModel]:
        """Active users whose username or display name contains ``query``."""
        q = query.strip()
        return await self.find_many(
            QueryOptions(
                where=[
                    UserModel.is_active.is_(True),
                    or_(
                        UserModel.username.icontains(q, autoescape=True),
                        UserModel.display_name.icontains(q, autoescape=True),
                    ),
                ],
                order_by=[UserModel.username],
                take=self.validate_limit(limit),
            )
        )

    async def count_active(self) -> int:
        return await self.count(UserModel.is_active.is_(True))

    async def count_by_tier(self) -> dict[str, int]:
        """Users per subscription tier; tiers without users report 0."""
        stmt = select(UserModel.subscription_tier, func.count()).group_by(
            UserModel.subscription_tier
        )
        with translate_store_errors(self.entity_name, "count_by_tier"):
            result = await self.session.execute(stmt)
        counts = {tier.value: 0 for tier in SubscriptionTier}
        counts.update({tier: int(n) for tier, n in result.all()})
        return counts

    # ------------------------------------------------------------------ updates

    async def update_last_active(self, user_id: str) -> UserModel:
        return await self.update(user_id, {"last_active_at": utc_now()})

    async def update_subscription(self, user_id: str, tier: str) -> UserModel:
        parsed = SubscriptionTier.parse(tier, "subscription_tier")
        return await self.update(user_id, {"subscription_tier": parsed.value})

    async def update_profile(self, user_id: str, data: Mapping[str, Any]) -> UserModel:
        unknown = set(data) - _PROFILE_FIELDS
        if unknown:
            field = sorted(unknown)[0]
            raise ValidationException(f"Field '{field}' cannot be updated here", field=field)
        return await self.update(user_id, data)

    async def deactivate(self, user_id: str) -> UserModel:
        logger.info("Deactivating user %s", user_id, extra={"user_id": user_id})
        return await self.update(user_id, {"is_active": False})

    async def reactivate(self, user_id: str) -> UserModel:
        return await self.update(user_id, {"is_active": True, "last_active_at": utc_now()})

    async def delete_inactive_users(self, inactive_days: int = 365) -> int:
        """Delete deactivated users not seen for ``inactive_days`` days."""
        cutoff = utc_now() - timedelta(days=inactive_days)
        return await self.delete_many(
            [
                UserModel.is_active.is_(False),
                or_(UserModel.last_active_at.is_(None), UserModel.last_active_at < cutoff),
            ]
        )

    # ------------------------------------------------------------------ preferences

    async def get_preferences(self, user_id: str) -> UserPreferencesModel | None:
        stmt = select(UserPreferencesModel).where(UserPreferencesModel.user_id == user_id)
        with translate_store_errors("User preferences", "find", user_id=user_id):
            result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def upsert_preferences(
        self, user_id: str, data: Mapping[str, Any]
    ) -> UserPreferencesModel:
        """Create the preferences row on first write, update it afterwards."""
        unknown = set(data) - _PREFERENCE_FIELDS
        if unknown:
            field = sorted(unknown)[0]
            raise ValidationException(f"Unknown preference '{field}'", field=field)
        if data.get("crossfade_seconds") is not None and not 0 <= data["crossfade_seconds"] <= 12:
            raise ValidationException(
                "Crossfade must be between 0 and 12 seconds", field="crossfade_seconds"
            )
        await self.get(user_id)

        prefs = await self.get_preferences(user_id)
        if prefs is None:
            prefs = UserPreferencesModel(user_id=user_id, **data)
            self.session.add(prefs)
        else:
            for key, value in data.items():
                setattr(prefs, key, value)
        with translate_store_errors("User preferences", "upsert", user_id=user_id):
            await self.session.flush()
        return prefs
