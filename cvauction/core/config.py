"""
Application configuration settings
应用配置设置 - 共同价值拍卖房间服务
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings for the common-value auction service"""

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = True

    # Server configuration
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    WORKERS: int = 1  # 房间状态只在单进程内存中

    # WebSocket configuration
    MAX_WEBSOCKET_CONNECTIONS: int = 200

    # Room configuration
    MAX_ROOMS: int = 50
    MIN_PLAYERS: int = 2
    MAX_PLAYERS: int = 12

    # Auction configuration
    TRUE_VALUE_MIN: float = 50.0
    TRUE_VALUE_MAX: float = 150.0
    SIGNAL_NOISE: float = 20.0  # 信号误差 ~ U[-SIGNAL_NOISE, SIGNAL_NOISE]
    BID_CEILING: float = 190.0
    PRICING_RULE: str = "second_price"  # second_price | median_price
    TIE_PAYMENT: str = "pricing_rule"  # pricing_rule | own_bid
    RESALE_ENABLED: bool = True

    # Phase timers (seconds)
    ROUND_TIME_LIMIT: int = 60
    RESALE_DECISION_TIME_LIMIT: int = 20
    RESALE_BID_TIME_LIMIT: int = 30
    READY_TIME_LIMIT: int = 60
    NEXT_ROUND_DELAY: float = 0.0

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    class Config:
        env_file = ".env"
        case_sensitive = True


# Global settings instance
settings = Settings()
