"""指数退避重试。

对一个无参异步操作最多尝试 max_attempts 次（下标 0..max_attempts-1）。
第 i 次失败且还有剩余次数时，等待 delay(i) = 2^i * base_delay + uniform(0, max_jitter) 秒后重试；
最后一次失败原样抛出，不做包装。

默认所有异常都视为可重试；传入 retry_on 可以只重试特定异常
（例如 TransientTransportError），其它异常立即抛出。
"""

import asyncio
import logging
import random
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

from garden_core.infrastructure.logging.logger import logger


T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 5


class BackoffRetryExecutor:
    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        base_delay: float = 1.0,
        max_jitter: float = 1.0,
        retry_on: Tuple[Type[BaseException], ...] = (Exception,),
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        jitter: Callable[[float, float], float] = random.uniform,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_jitter = max_jitter
        self.retry_on = retry_on
        self._sleep = sleep
        self._jitter = jitter

    def delay_floor(self, attempt: int) -> float:
        """第 attempt 次失败后等待时间的确定部分：1s, 2s, 4s, 8s..."""

        return (2 ** attempt) * self.base_delay

    def delay(self, attempt: int) -> float:
        return self.delay_floor(attempt) + self._jitter(0.0, self.max_jitter)

    async def execute(self, operation: Callable[[], Awaitable[T]], max_attempts: Optional[int] = None) -> T:
        attempts = self.max_attempts if max_attempts is None else max_attempts
        if attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        name = getattr(operation, "__name__", "call")
        for attempt in range(attempts):
            try:
                return await operation()
            except self.retry_on as e:
                if attempt == attempts - 1:
                    raise
                wait = self.delay(attempt)
                logger.log(
                    logging.WARNING,
                    "Attempt %s/%s failed (%s). Retrying in %.1fs: %s",
                    attempt + 1,
                    attempts,
                    name,
                    wait,
                    e,
                    extra={"extra": {"attempt": attempt + 1, "max_attempts": attempts, "delay": round(wait, 3)}},
                )
                await self._sleep(wait)
        raise RuntimeError("unreachable")
