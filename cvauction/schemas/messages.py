"""
WebSocket message schemas
WebSocket消息数据验证模型
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional, Any, Dict
from enum import Enum


class InboundType(str, Enum):
    """客户端可发送的消息类型"""
    JOIN_ROOM = "join_room"
    START_GAME = "start_game"
    SUBMIT_BID = "submit_bid"
    RESALE_DECISION = "resale_decision"
    SUBMIT_RESALE_BID = "submit_resale_bid"
    READY_FOR_NEXT_ROUND = "ready_for_next_round"
    GET_STATE = "get_state"
    PING = "ping"


class WebSocketMessage(BaseModel):
    """WebSocket消息模型"""
    type: str = Field(..., description="消息类型")
    data: Optional[Dict[str, Any]] = Field(None, description="消息数据")

    @field_validator('data', mode='before')
    @classmethod
    def default_data(cls, v):
        return v or {}


class JoinRoomData(BaseModel):
    """加入房间；名字为空则以观众身份加入"""
    name: Optional[str] = Field(None, max_length=32, description="显示名称")


class BidData(BaseModel):
    """出价（原拍卖或转售）；金额不做类型转换，由轮次引擎校验"""
    amount: Any = Field(..., description="出价金额")


class ResaleDecisionData(BaseModel):
    """获胜者是否转售"""
    accept: bool = Field(..., description="是否转售")
