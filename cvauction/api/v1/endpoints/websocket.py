"""
WebSocket endpoints
WebSocket连接端点 - 把客户端消息转成房间状态机上的动作
"""

import json
import uuid
import logging
from datetime import datetime
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from cvauction.core.exceptions import AuctionError, InvalidInput
from cvauction.schemas.messages import (
    InboundType, WebSocketMessage, JoinRoomData, BidData, ResaleDecisionData
)
from cvauction.services.game import AuctionGameService, get_game_service
from cvauction.services.outbox import Outbox
from cvauction.websocket.connection_manager import connection_manager

logger = logging.getLogger(__name__)
router = APIRouter()


def reply(service: AuctionGameService, room_id: str, connection_id: str, message_type: str, data: dict) -> None:
    """单播回复；与状态转换的消息走同一个队列以保持顺序"""
    outbox = Outbox(room_id)
    outbox.send(connection_id, message_type, data)
    service.publish(outbox)


def reply_error(service: AuctionGameService, room_id: str, connection_id: str, error: AuctionError) -> None:
    if error.silent:
        logger.debug(f"Silently dropped {error.kind} from connection {connection_id}: {error.message}")
        return
    logger.info(f"Rejected action from connection {connection_id} in room {room_id}: {error.kind} {error.message}")
    reply(service, room_id, connection_id, "error", error.to_message()["data"])


@router.websocket("/{room_id}")
async def websocket_room_endpoint(websocket: WebSocket, room_id: str):
    """
    房间WebSocket连接端点
    每个连接分配一个不透明的连接ID，断开时自动离开房间
    """
    connection_id = str(uuid.uuid4())
    service = get_game_service()

    connected = await connection_manager.connect(connection_id, websocket, room_id)
    if not connected:
        logger.warning(f"[WS_CONNECT] Connection refused for room {room_id}")
        return

    logger.info(f"[WS_CONNECT] Connection {connection_id} opened for room {room_id}")

    try:
        service.connect(room_id, connection_id)

        # 消息处理循环
        while True:
            try:
                data = await websocket.receive_text()
                message = WebSocketMessage.model_validate(json.loads(data))
                await handle_websocket_message(service, connection_id, room_id, message)

            except WebSocketDisconnect:
                logger.info(f"WebSocket disconnected for connection {connection_id} in room {room_id}")
                break
            except json.JSONDecodeError:
                reply_error(service, room_id, connection_id, InvalidInput("消息不是合法的JSON"))
            except ValidationError as e:
                reply_error(service, room_id, connection_id, InvalidInput(f"消息格式错误: {e.errors()[0].get('msg', '')}"))
            except AuctionError as e:
                reply_error(service, room_id, connection_id, e)
            except Exception as e:
                logger.error(f"Error handling WebSocket message from connection {connection_id}: {e}", exc_info=True)
                reply(service, room_id, connection_id, "error", {"kind": "internal_error", "message": "服务器内部错误"})

    finally:
        connection_manager.disconnect(connection_id, "Connection closed")
        service.leave_room(room_id, connection_id)


async def handle_websocket_message(
    service: AuctionGameService,
    connection_id: str,
    room_id: str,
    message: WebSocketMessage
) -> None:
    """处理一条客户端消息；非法动作以 AuctionError 抛出"""
    message_type = message.type
    data = message.data or {}

    if message_type == InboundType.PING:
        reply(service, room_id, connection_id, "pong", {"timestamp": datetime.now().isoformat()})

    elif message_type == InboundType.JOIN_ROOM:
        payload = JoinRoomData.model_validate(data)
        service.join_room(room_id, connection_id, payload.name)

    elif message_type == InboundType.START_GAME:
        service.start_game(room_id, connection_id)

    elif message_type == InboundType.SUBMIT_BID:
        payload = BidData.model_validate(data)
        service.submit_bid(room_id, connection_id, payload.amount)

    elif message_type == InboundType.RESALE_DECISION:
        payload = ResaleDecisionData.model_validate(data)
        service.resale_decision(room_id, connection_id, payload.accept)

    elif message_type == InboundType.SUBMIT_RESALE_BID:
        payload = BidData.model_validate(data)
        service.submit_resale_bid(room_id, connection_id, payload.amount)

    elif message_type == InboundType.READY_FOR_NEXT_ROUND:
        service.ready_for_next_round(room_id, connection_id)

    elif message_type == InboundType.GET_STATE:
        service.send_state(room_id, connection_id)

    else:
        raise InvalidInput(f"未知的消息类型: {message_type}")
