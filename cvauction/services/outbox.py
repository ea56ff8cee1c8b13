"""
Outbox
一次状态转换产生的有序出站消息
"""

from typing import Any, Dict, Iterator, List, NamedTuple, Optional

ROOM = "room"
CONNECTION = "connection"


class Outbound(NamedTuple):
    """一条待发送的消息：广播到房间或单播到连接"""
    target: str
    key: str
    message: Dict[str, Any]
    exclude: Optional[str] = None


class Outbox:
    """按产生顺序收集消息，转换结束后整体交给通知层"""

    def __init__(self, room_id: str):
        self.room_id = room_id
        self.items: List[Outbound] = []

    def broadcast(self, message_type: str, data: Dict[str, Any], exclude: Optional[str] = None) -> None:
        self.items.append(Outbound(ROOM, self.room_id, {"type": message_type, "data": data}, exclude))

    def send(self, connection_id: str, message_type: str, data: Dict[str, Any]) -> None:
        self.items.append(Outbound(CONNECTION, connection_id, {"type": message_type, "data": data}))

    def __iter__(self) -> Iterator[Outbound]:
        return iter(self.items)

    def __len__(self):
        return len(self.items)

    def __repr__(self):
        return f"<Outbox(room_id={self.room_id}, items={len(self.items)})>"
