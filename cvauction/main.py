"""
FastAPI main application entry point
共同价值拍卖房间服务主应用入口
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from cvauction.core.config import settings
from cvauction.api.v1.api import api_router
from cvauction.middleware.request_logging import LoggingMiddleware
from cvauction.services.game import get_game_service
from cvauction.websocket.connection_manager import connection_manager
from cvauction.websocket.notifier import notifier
import logging
import os

# Configure logging - 同时输出到控制台和文件
log_level = getattr(logging, settings.LOG_LEVEL.upper())
log_format = settings.LOG_FORMAT

# 确保日志目录存在
log_dir = os.path.join(os.path.dirname(os.path.dirname(__file__)), 'logs')
os.makedirs(log_dir, exist_ok=True)
log_file = os.path.join(log_dir, 'app.log')

logging.basicConfig(
    level=log_level,
    format=log_format,
    handlers=[
        logging.StreamHandler(),  # 控制台输出
        logging.FileHandler(log_file, encoding='utf-8')  # 文件输出
    ]
)
logger = logging.getLogger(__name__)

# 减少 httpx 的日志噪音
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    # Startup
    logger.info("Starting common-value auction service...")
    await notifier.start()
    logger.info("Application startup completed")

    yield

    # Shutdown
    logger.info("Shutting down application...")
    try:
        get_game_service().shutdown()
        await notifier.stop()
        logger.info("Application shutdown completed")
    except Exception as e:
        logger.error(f"Error during shutdown: {e}", exc_info=True)


app = FastAPI(
    title="共同价值拍卖",
    description="Common-Value Auction - 多人共同价值密封拍卖实验",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(LoggingMiddleware)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(api_router, prefix="/api/v1")


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "共同价值拍卖 API",
        "status": "running",
        "version": "1.0.0"
    }


@app.get("/health")
async def health_check():
    """Service health with room and connection counts"""
    service = get_game_service()
    return {
        "status": "healthy",
        "version": "1.0.0",
        "environment": settings.ENVIRONMENT,
        "rooms": len(service.rooms),
        "connections": connection_manager.get_connection_count(),
        "notifier_running": notifier.is_running
    }
