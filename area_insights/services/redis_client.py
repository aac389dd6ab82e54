import redis.asyncio as redis
from typing import Dict, List, Optional, Tuple
from area_insights.config import settings


class RedisClient:
    def __init__(self):
        self.redis: Optional[redis.Redis] = None

    async def connect(self):
        self.redis = redis.from_url(
            settings.redis_url,
            encoding="utf-8",
            decode_responses=True,
            max_connections=20
        )

    async def disconnect(self):
        if self.redis:
            await self.redis.close()

    async def ping(self) -> bool:
        if not self.redis:
            await self.connect()
        return bool(await self.redis.ping())

    async def delete(self, *keys: str) -> int:
        if not self.redis:
            await self.connect()
        if not keys:
            return 0
        return await self.redis.delete(*keys)

    async def exists(self, key: str) -> bool:
        if not self.redis:
            await self.connect()
        return bool(await self.redis.exists(key))

    async def expire(self, key: str, seconds: int):
        if not self.redis:
            await self.connect()
        await self.redis.expire(key, seconds)

    async def hgetall(self, key: str) -> Dict[str, str]:
        if not self.redis:
            await self.connect()
        return await self.redis.hgetall(key)

    async def hset(self, key: str, mapping: Dict[str, str]):
        if not self.redis:
            await self.connect()
        await self.redis.hset(key, mapping=mapping)

    async def hincrby(self, key: str, field: str, amount: int = 1) -> int:
        if not self.redis:
            await self.connect()
        return await self.redis.hincrby(key, field, amount)

    async def zadd(self, key: str, mapping: Dict[str, float]):
        if not self.redis:
            await self.connect()
        await self.redis.zadd(key, mapping)

    async def zincrby(self, key: str, amount: float, member: str) -> float:
        if not self.redis:
            await self.connect()
        return await self.redis.zincrby(key, amount, member)

    async def zrem(self, key: str, *members: str):
        if not self.redis:
            await self.connect()
        if members:
            await self.redis.zrem(key, *members)

    async def zcard(self, key: str) -> int:
        if not self.redis:
            await self.connect()
        return await self.redis.zcard(key)

    async def zrangebyscore(self, key: str, min_score: float, max_score: float) -> List[str]:
        if not self.redis:
            await self.connect()
        return await self.redis.zrangebyscore(key, min_score, max_score)

    async def zremrangebyscore(self, key: str, min_score: float, max_score: float) -> int:
        if not self.redis:
            await self.connect()
        return await self.redis.zremrangebyscore(key, min_score, max_score)

    async def zrange_withscores(self, key: str, start: int, end: int) -> List[Tuple[str, float]]:
        if not self.redis:
            await self.connect()
        return await self.redis.zrange(key, start, end, withscores=True)

    async def zrevrange_withscores(self, key: str, start: int, end: int) -> List[Tuple[str, float]]:
        if not self.redis:
            await self.connect()
        return await self.redis.zrevrange(key, start, end, withscores=True)

    async def lpush(self, key: str, *values):
        if not self.redis:
            await self.connect()
        await self.redis.lpush(key, *values)

    async def ltrim(self, key: str, start: int, end: int):
        if not self.redis:
            await self.connect()
        await self.redis.ltrim(key, start, end)

    async def lrange(self, key: str, start: int, end: int) -> List[str]:
        if not self.redis:
            await self.connect()
        return await self.redis.lrange(key, start, end)

    async def pipeline(self, transaction: bool = True):
        """Command buffer; queue calls on it without awaiting, then ``await pipe.execute()``."""
        if not self.redis:
            await self.connect()
        return self.redis.pipeline(transaction=transaction)


redis_client = RedisClient()
