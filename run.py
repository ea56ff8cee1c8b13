"""
Development server runner
开发服务器启动脚本
"""

import uvicorn
from cvauction.core.config import settings

if __name__ == "__main__":
    # 房间状态保存在进程内存中，只能单进程运行
    if settings.WORKERS > 1:
        print(f"WORKERS={settings.WORKERS} ignored: rooms live in a single process")

    # 开发模式使用 reload
    uvicorn.run(
        "cvauction.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        access_log=True,
        log_level=settings.LOG_LEVEL.lower()
    )
