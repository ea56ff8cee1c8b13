"""
Room query API endpoints
房间查询API端点（只读）
"""

from typing import List
from fastapi import APIRouter, Depends, HTTPException, status

from cvauction.core.exceptions import RoomNotFound
from cvauction.schemas.game import GameSnapshot, RoomSummary
from cvauction.services.game import AuctionGameService, get_game_service

router = APIRouter()


@router.get("", response_model=List[RoomSummary])
async def list_rooms(service: AuctionGameService = Depends(get_game_service)):
    """获取所有房间概要"""
    return service.list_rooms()


@router.get("/{room_id}", response_model=GameSnapshot)
async def get_room(room_id: str, service: AuctionGameService = Depends(get_game_service)):
    """
    获取房间公开快照

    不含任何玩家的私有信号，也不含尚未公开的真实价值
    """
    try:
        return service.get_snapshot(room_id)
    except RoomNotFound as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=e.message
        )
