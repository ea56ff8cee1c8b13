"""
WebSocket连接管理器
管理连接、房间消息路由和房间广播
"""

import json
import logging
from typing import Dict, Set, Optional, Any
from datetime import datetime
from fastapi import WebSocket

from cvauction.core.config import settings

logger = logging.getLogger(__name__)


class ConnectionManager:
    """
    WebSocket连接管理器
    负责管理连接、消息路由和房间广播；连接ID只在连接存续期间有效
    """

    def __init__(self, max_connections: Optional[int] = None):
        # 活跃连接: connection_id -> WebSocket
        self.active_connections: Dict[str, WebSocket] = {}

        # 房间连接映射: room_id -> Set[connection_id]
        self.room_connections: Dict[str, Set[str]] = {}

        # 连接房间映射: connection_id -> room_id
        self.connection_rooms: Dict[str, str] = {}

        # 连接元数据: connection_id -> connection_info
        self.connection_metadata: Dict[str, Dict[str, Any]] = {}

        # 连接限制
        self.max_connections = max_connections or settings.MAX_WEBSOCKET_CONNECTIONS

    async def connect(self, connection_id: str, websocket: WebSocket, room_id: Optional[str] = None) -> bool:
        """建立WebSocket连接；超过连接数上限时拒绝"""
        if len(self.active_connections) >= self.max_connections:
            logger.warning(f"Connection limit reached, rejecting connection {connection_id}")
            await websocket.close(code=1013, reason="Too many connections")
            return False

        await websocket.accept()

        self.active_connections[connection_id] = websocket
        self.connection_metadata[connection_id] = {
            "connected_at": datetime.now(),
            "room_id": room_id
        }

        if room_id:
            self.join_room(connection_id, room_id)

        logger.info(f"Connection {connection_id} opened" + (f" in room {room_id}" if room_id else ""))
        return True

    def disconnect(self, connection_id: str, reason: str = "Connection closed") -> None:
        """移除连接；不再向其发送任何消息"""
        room_id = self.connection_rooms.get(connection_id)
        if room_id:
            self.leave_room(connection_id, room_id)

        self.active_connections.pop(connection_id, None)
        self.connection_metadata.pop(connection_id, None)
        logger.info(f"Connection {connection_id} closed: {reason}")

    def join_room(self, connection_id: str, room_id: str) -> bool:
        if connection_id not in self.active_connections:
            logger.warning(f"Connection {connection_id} not open, cannot join room {room_id}")
            return False

        old_room_id = self.connection_rooms.get(connection_id)
        if old_room_id and old_room_id != room_id:
            self.leave_room(connection_id, old_room_id)

        self.room_connections.setdefault(room_id, set()).add(connection_id)
        self.connection_rooms[connection_id] = room_id
        if connection_id in self.connection_metadata:
            self.connection_metadata[connection_id]["room_id"] = room_id

        logger.debug(f"Connection {connection_id} routed to room {room_id}")
        return True

    def leave_room(self, connection_id: str, room_id: str) -> bool:
        if room_id in self.room_connections:
            self.room_connections[room_id].discard(connection_id)
            # 房间没有连接时清理
            if not self.room_connections[room_id]:
                del self.room_connections[room_id]

        if self.connection_rooms.get(connection_id) == room_id:
            del self.connection_rooms[connection_id]
        if connection_id in self.connection_metadata:
            self.connection_metadata[connection_id]["room_id"] = None

        logger.debug(f"Connection {connection_id} left room {room_id}")
        return True

    async def send_to_connection(self, connection_id: str, message: dict) -> bool:
        """发送消息给特定连接；连接已不存在时直接丢弃"""
        websocket = self.active_connections.get(connection_id)
        if websocket is None:
            logger.debug(f"Dropping message '{message.get('type', 'unknown')}' for closed connection {connection_id}")
            return False

        try:
            await websocket.send_text(json.dumps(message, ensure_ascii=False))
            return True
        except Exception as e:
            logger.error(f"Error sending message to connection {connection_id}: {e}")
            return False

    async def broadcast_to_room(self, room_id: str, message: dict, exclude_connection: Optional[str] = None) -> int:
        """广播消息到房间内所有连接"""
        sent_count = 0
        connections = self.room_connections.get(room_id, set()).copy()

        for connection_id in connections:
            if exclude_connection and connection_id == exclude_connection:
                continue
            if await self.send_to_connection(connection_id, message):
                sent_count += 1

        logger.debug(f"[BROADCAST] Sent message type '{message.get('type', 'unknown')}' to {sent_count} connections in room {room_id}")
        return sent_count

    def get_connection_count(self) -> int:
        """获取当前连接数"""
        return len(self.active_connections)

    def get_room_count(self) -> int:
        """获取当前房间数"""
        return len(self.room_connections)

    def get_room_connections(self, room_id: str) -> Set[str]:
        """获取房间内的连接"""
        return set(self.room_connections.get(room_id, set()))

    def get_connection_room(self, connection_id: str) -> Optional[str]:
        return self.connection_rooms.get(connection_id)

    def is_connected(self, connection_id: str) -> bool:
        return connection_id in self.active_connections


# 全局连接管理器实例
connection_manager = ConnectionManager()
