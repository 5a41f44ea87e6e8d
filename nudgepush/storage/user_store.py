"""User profile storage."""

from redis.asyncio import Redis

from nudgepush.core.errors import StoreError
from nudgepush.core.logging import get_logger
from nudgepush.models.user import UserProfile, UserRole
from nudgepush.storage.redis_client import (
    RedisKeys,
    decode_fields,
    encode_fields,
    get_redis,
    store_operation,
)

logger = get_logger(__name__)


class UserStore:
    """User profiles stored as Redis hashes, indexed by a global set."""

    def __init__(self, redis: Redis | None = None):
        self._redis = redis

    @property
    def redis(self) -> Redis:
        return self._redis or get_redis()

    @store_operation
    async def save(self, profile: UserProfile) -> UserProfile:
        """Create or overwrite a profile."""
        fields = profile.model_dump(mode="json", exclude={"user_id"})
        await self.redis.hset(RedisKeys.user_profile(profile.user_id), mapping=encode_fields(fields))
        await self.redis.sadd(RedisKeys.USER_ALL, profile.user_id)
        return profile

    @store_operation
    async def get(self, user_id: str) -> UserProfile | None:
        fields = await self.redis.hgetall(RedisKeys.user_profile(user_id))
        if not fields:
            return None
        return UserProfile.model_validate({"user_id": user_id, **decode_fields(fields)})

    async def get_role(self, user_id: str) -> UserRole:
        """Resolve a user's role.

        A missing profile resolves to standard. So do an unreadable profile
        and an unrecognized role string, both of which are logged.
        """
        try:
            profile = await self.get(user_id)
        except (StoreError, ValueError) as e:
            logger.warning("Role lookup failed, using standard role", user_id=user_id, error=str(e))
            return UserRole.STANDARD

        if profile is None:
            logger.debug("Profile not found, using standard role", user_id=user_id)
            return UserRole.STANDARD

        role = UserRole.parse(profile.role)
        if role is None:
            logger.warning("Unrecognized user role", user_id=user_id, role=profile.role)
            return UserRole.STANDARD
        return role

    @store_operation
    async def list_profiles(self) -> list[UserProfile]:
        """All known profiles, ordered by user ID."""
        user_ids = sorted(await self.redis.smembers(RedisKeys.USER_ALL))
        profiles = []
        for user_id in user_ids:
            profile = await self.get(user_id)
            if profile:
                profiles.append(profile)
        return profiles
