import sys

from redis.asyncio import Redis
from redis.exceptions import AuthenticationError, TimeoutError

from imagegen.common.log import log
from imagegen.core.conf import settings


class RedisCli(Redis):
    def __init__(self) -> None:
        """Initialize the Redis client"""
        super().__init__(
            host=settings.REDIS_HOST,
            port=settings.REDIS_PORT,
            password=settings.REDIS_PASSWORD or None,
            db=settings.REDIS_DATABASE,
            socket_timeout=settings.REDIS_TIMEOUT,
            socket_connect_timeout=settings.REDIS_TIMEOUT,
            socket_keepalive=True,
            health_check_interval=30,
            decode_responses=True,
        )

    async def open(self) -> None:
        """Check the Redis connection at startup"""
        try:
            await self.ping()
        except TimeoutError:
            log.error('❌ Redis connection timed out')
            sys.exit()
        except AuthenticationError:
            log.error('❌ Redis authentication failed')
            sys.exit()
        except Exception as e:
            log.error('❌ Redis connection error {}', e)
            sys.exit()

    async def delete_prefix(self, prefix: str, exclude: str | list[str] | None = None) -> None:
        """
        Delete every key under a prefix

        :param prefix: key prefix
        :param exclude: keys to keep
        :return:
        """
        keys = []
        async for key in self.scan_iter(match=f'{prefix}*'):
            if isinstance(exclude, str):
                if key != exclude:
                    keys.append(key)
            elif isinstance(exclude, list):
                if key not in exclude:
                    keys.append(key)
            else:
                keys.append(key)
        if keys:
            await self.delete(*keys)


# Create the redis client singleton
redis_client: RedisCli = RedisCli()
