"""
FastAPI应用主入口
"""
from fastapi import FastAPI

from api.routes import payments as payments_routes
from core.config import settings
from core.exceptions import register_exception_handlers
from core.response import success_response
from core.logging_config import get_logger, configure_logging


# 初始化日志：在入口处显式配置，避免模块导入时的副作用
configure_logging()
logger = get_logger(__name__)


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    debug=settings.DEBUG,
    description="Klarna Checkout payment gateway",
)

# 注册全局异常处理器
register_exception_handlers(app)

# 注册路由
app.include_router(payments_routes.router, prefix=settings.API_PREFIX)


# 健康检查
@app.get("/health", tags=["Health"])
async def health_check():
    """健康检查端点"""
    return success_response(data={"status": "healthy"}, message="ok")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info"
    )
