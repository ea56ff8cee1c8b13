"""
Phase timers
阶段计时器 - 每个计时器带一个取消令牌，回调执行前先检查令牌
"""

import asyncio
import logging
from typing import Any, Callable

logger = logging.getLogger(__name__)


class AsyncioScheduler:
    """基于运行中事件循环的调度器"""

    def call_later(self, delay: float, callback: Callable[..., Any], *args):
        loop = asyncio.get_running_loop()
        return loop.call_later(delay, callback, *args)


class PhaseTimer:
    """
    一次性的阶段计时器
    被取消或已触发后令牌失效，之后到达的回调直接丢弃
    """

    def __init__(self, scheduler, delay: float, callback: Callable[..., Any], *args, label: str = ""):
        self.label = label
        self.delay = delay
        self.active = True
        self._callback = callback
        self._args = args
        self._handle = scheduler.call_later(delay, self._fire)

    def _fire(self) -> None:
        if not self.active:
            logger.debug(f"Ignoring stale timer {self.label}")
            return
        self.active = False
        try:
            self._callback(*self._args)
        except Exception as e:
            logger.error(f"Timer {self.label} callback failed: {e}", exc_info=True)

    def cancel(self) -> None:
        if self.active:
            logger.debug(f"Cancelling timer {self.label}")
        self.active = False
        self._handle.cancel()

    def __repr__(self):
        return f"<PhaseTimer(label={self.label}, delay={self.delay}, active={self.active})>"
