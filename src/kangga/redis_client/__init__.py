from kangga.redis_client.publisher import RedisPublisher

__all__ = ["RedisPublisher"]
