"""
FastAPI应用主入口
"""
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from api.routes import payments as payments_routes
from api.routes import transactions as transactions_routes
from api.middleware import RequestIDMiddleware, LoggingMiddleware
from application.services.payment_service import PaymentService
from core.config import settings
from core.settings import payment_settings
from core.exceptions import register_exception_handlers
from core.logging_config import get_logger, configure_logging
from domain.services.checksum import ChecksumSigner
from infrastructure.external.payments import get_payment_gateway
from infrastructure.repositories.callback_ledger import InMemoryCallbackLedger, RedisCallbackLedger
from infrastructure.repositories.transaction_repository import InMemoryTransactionRepository


# 初始化日志：在入口处显式配置，避免模块导入时的副作用
configure_logging()
logger = get_logger(__name__)


def _build_callback_ledger():
    ttl = payment_settings.webhook.dedupe_ttl_seconds
    if settings.redis.url:
        from redis import asyncio as aioredis
        client = aioredis.from_url(settings.redis.url, decode_responses=True)
        logger.info("callback_ledger_selected", provider="redis")
        return RedisCallbackLedger(client, ttl_seconds=ttl, namespace=settings.redis.namespace)
    logger.info("callback_ledger_selected", provider="inmemory")
    return InMemoryCallbackLedger(ttl_seconds=ttl)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理：组装仓储、网关与支付服务"""
    phonepe = payment_settings.phonepe
    gateway = get_payment_gateway()
    ledger = _build_callback_ledger()
    app.state.payment_service = PaymentService(
        gateway=gateway,
        repository=InMemoryTransactionRepository(),
        signer=ChecksumSigner(phonepe.salt_key, phonepe.salt_index),
        config=phonepe,
        frontend_url=settings.FRONTEND_URL,
        ledger=ledger,
        id_max_attempts=payment_settings.transaction_id_max_attempts,
    )
    logger.info(
        "application_started",
        environment=settings.ENVIRONMENT,
        merchant_id=phonepe.merchant_id,
        gateway_url=phonepe.api_url(settings.is_production),
        frontend_url=settings.FRONTEND_URL,
        port=settings.PORT,
    )

    yield

    await app.state.payment_service.aclose()
    close = getattr(ledger, "aclose", None)
    if callable(close):
        await close()
    logger.info("application_shutdown", message="Application shutdown")


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
    description="PhonePe 支付网关桥接服务",
)

# 添加中间件（注意顺序：从下往上执行）
app.add_middleware(LoggingMiddleware)
app.add_middleware(RequestIDMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 注册全局异常处理器
register_exception_handlers(app)


# 注册路由
app.include_router(payments_routes.router, prefix="/api")
app.include_router(transactions_routes.router, prefix="/api")


# 健康检查
@app.get("/api/health", tags=["Health"])
async def health_check():
    """健康检查端点"""
    return {
        "status": "OK",
        "message": "PhonePe Backend Server is running",
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info",
    )
