"""
Notifier
通知层 - 按顺序投递状态转换产生的出站消息
"""

import asyncio
import logging
from typing import Optional

from cvauction.services.outbox import Outbox, ROOM
from cvauction.websocket.connection_manager import ConnectionManager, connection_manager

logger = logging.getLogger(__name__)


class Notifier:
    """
    每次转换的消息整体入队，由单个后台任务依次发送，
    不同转换的消息不会交错
    """

    def __init__(self, manager: ConnectionManager):
        self.manager = manager
        self.queue: asyncio.Queue = asyncio.Queue()
        self.is_running = False
        self.task: Optional[asyncio.Task] = None

    def publish(self, outbox: Outbox) -> None:
        if not outbox:
            return
        self.queue.put_nowait(outbox)

    async def start(self) -> None:
        if self.is_running:
            logger.warning("Notifier already running")
            return
        self.is_running = True
        self.task = asyncio.create_task(self._consume_loop())
        logger.info("Notifier started")

    async def stop(self) -> None:
        if not self.is_running:
            return
        self.is_running = False
        if self.task:
            self.task.cancel()
            try:
                await self.task
            except asyncio.CancelledError:
                pass
            self.task = None
        await self.drain()
        # 队列绑定在当前事件循环上，下次启动使用新队列
        self.queue = asyncio.Queue()
        logger.info("Notifier stopped")

    async def deliver(self, outbox: Outbox) -> int:
        """发送一个出站批次，返回成功发送的消息数"""
        sent = 0
        for item in outbox:
            if item.target == ROOM:
                sent += await self.manager.broadcast_to_room(item.key, item.message, exclude_connection=item.exclude)
            elif await self.manager.send_to_connection(item.key, item.message):
                sent += 1
        return sent

    async def drain(self) -> None:
        """立即发送队列中剩余的批次"""
        while not self.queue.empty():
            outbox = self.queue.get_nowait()
            try:
                await self.deliver(outbox)
            finally:
                self.queue.task_done()

    async def _consume_loop(self) -> None:
        while self.is_running:
            outbox = await self.queue.get()
            try:
                await self.deliver(outbox)
            except Exception as e:
                logger.error(f"Error delivering messages for room {outbox.room_id}: {e}", exc_info=True)
            finally:
                self.queue.task_done()


# 全局通知器实例
notifier = Notifier(connection_manager)
