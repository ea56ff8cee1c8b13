"""
Health check endpoints
健康检查端点
"""

from fastapi import APIRouter, Depends

from cvauction.services.game import AuctionGameService, get_game_service
from cvauction.websocket.connection_manager import connection_manager
from cvauction.websocket.notifier import notifier

router = APIRouter()


@router.get("/health")
async def health_check(service: AuctionGameService = Depends(get_game_service)):
    """
    Basic health check endpoint
    基础健康检查端点
    """
    return {
        "status": "healthy",
        "service": "common-value-auction",
        "version": "1.0.0",
        "rooms": len(service.rooms),
        "connections": connection_manager.get_connection_count(),
        "notifier_running": notifier.is_running,
        "pending_batches": notifier.queue.qsize()
    }
