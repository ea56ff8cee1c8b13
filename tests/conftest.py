"""
Pytest configuration and fixtures
测试配置和固件
"""

import random
from typing import Any, Dict, List, Optional

import pytest

from cvauction.schemas.game import AuctionConfig
from cvauction.services.game import AuctionGameService
from cvauction.services.outbox import Outbox, CONNECTION, ROOM
from cvauction.services.room_registry import RoomRegistry


class FakeHandle:
    """ManualScheduler 返回的可取消句柄"""

    def __init__(self, when: float, seq: int, callback, args):
        self.when = when
        self.seq = seq
        self.callback = callback
        self.args = args
        self.cancelled = False
        self.fired = False

    def cancel(self):
        self.cancelled = True


class ManualScheduler:
    """手动推进时间的调度器，用于确定性地触发计时器"""

    def __init__(self):
        self.now = 0.0
        self.handles: List[FakeHandle] = []
        self._seq = 0

    def call_later(self, delay: float, callback, *args) -> FakeHandle:
        self._seq += 1
        handle = FakeHandle(self.now + delay, self._seq, callback, args)
        self.handles.append(handle)
        return handle

    @property
    def pending(self) -> List[FakeHandle]:
        return [h for h in self.handles if not h.cancelled and not h.fired]

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = [h for h in self.pending if h.when <= target]
            if not due:
                break
            handle = min(due, key=lambda h: (h.when, h.seq))
            self.now = handle.when
            handle.fired = True
            handle.callback(*handle.args)
        self.now = target

    def fire_stale(self, handle: FakeHandle) -> None:
        """模拟已取消的回调仍被事件循环执行"""
        handle.callback(*handle.args)


class CollectingPublisher:
    """记录每个出站批次以及发布时房间内的成员"""

    def __init__(self):
        self.registry: Optional[RoomRegistry] = None
        self.batches: List[tuple] = []

    def __call__(self, outbox: Outbox) -> None:
        room = self.registry.get(outbox.room_id) if self.registry else None
        members = [p.id for p in room.players] if room else []
        self.batches.append((outbox, members))

    @property
    def items(self):
        return [item for outbox, _ in self.batches for item in outbox]

    def of_type(self, message_type: str) -> List[Dict[str, Any]]:
        """每条出站消息只算一次（广播不按接收者展开）"""
        return [item.message for item in self.items if item.message["type"] == message_type]

    def items_of_type(self, message_type: str):
        return [item for item in self.items if item.message["type"] == message_type]

    def messages_for(self, connection_id: str) -> List[Dict[str, Any]]:
        """某个连接会收到的消息，按发布时的房间成员展开广播"""
        received = []
        for outbox, members in self.batches:
            for item in outbox:
                if item.target == CONNECTION and item.key == connection_id:
                    received.append(item.message)
                elif item.target == ROOM and connection_id in members and item.exclude != connection_id:
                    received.append(item.message)
        return received

    def types_for(self, connection_id: str) -> List[str]:
        return [m["type"] for m in self.messages_for(connection_id)]

    def unicasts(self, message_type: str):
        return [
            item for item in self.items
            if item.message["type"] == message_type and item.target == CONNECTION
        ]

    def clear(self) -> None:
        self.batches.clear()


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def rng():
    return random.Random(20240601)


@pytest.fixture
def publisher():
    return CollectingPublisher()


@pytest.fixture
def make_service(scheduler, rng, publisher):
    """按需覆盖拍卖参数创建游戏服务"""

    def _make(max_rooms: int = 10, **overrides) -> AuctionGameService:
        registry = RoomRegistry(max_rooms, lambda: AuctionConfig(**overrides))
        publisher.registry = registry
        return AuctionGameService(registry, publisher, scheduler=scheduler, rng=rng)

    return _make


@pytest.fixture
def service(make_service):
    return make_service()


def seat_players(service: AuctionGameService, room_id: str, count: int) -> List[str]:
    """让 count 名玩家加入房间，返回连接ID（p1 为房主）"""
    ids = []
    for i in range(1, count + 1):
        connection_id = f"p{i}"
        service.join_room(room_id, connection_id, f"玩家{i}")
        ids.append(connection_id)
    return ids


@pytest.fixture
def seat():
    return seat_players
