"""
FastAPI应用主入口
"""
import functools
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.middleware import LoggingMiddleware, RequestIDMiddleware
from api.routes import chat as chat_routes
from api.routes import groups as group_routes
from api.routes import ws as ws_routes
from application.services.realtime_service import RealtimeService
from core.config import settings
from core.exceptions import register_exception_handlers
from core.logging_config import configure_logging, get_logger
from infrastructure.database import create_tables, dispose_engine
from infrastructure.external.api_clients import ClerkIdentityClient, GroqCompletionClient
from infrastructure.realtime.connection_manager import ConnectionManager
from infrastructure.realtime.membership_cache import MembershipCache
from infrastructure.repositories.memory import InMemoryDocumentStore
from infrastructure.unit_of_work import InMemoryUnitOfWork, SQLAlchemyUnitOfWork


# 初始化日志：在入口处显式配置，避免模块导入时的副作用
configure_logging()
logger = get_logger(__name__)


async def _init_store():
    """根据 DATABASE__BACKEND 选择持久化实现，返回 Unit of Work 工厂"""
    backend = (settings.database.backend or "sqlalchemy").lower()
    if backend == "memory":
        logger.info("store_selected", backend="memory")
        return functools.partial(InMemoryUnitOfWork, InMemoryDocumentStore())

    # 开发环境自动建表；生产环境需预先建好表结构
    if settings.DEBUG:
        await create_tables()
        logger.info("database_initialized", message="Database tables created (development)")
    logger.info("store_selected", backend="sqlalchemy")
    return SQLAlchemyUnitOfWork


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    uow_factory = await _init_store()

    identity = ClerkIdentityClient(
        settings.CLERK_SECRET_KEY,
        base_url=settings.identity.base_url,
        timeout=settings.identity.timeout,
        max_retries=settings.identity.max_retries,
    )
    completion = GroqCompletionClient(
        settings.AI_API_KEY,
        settings.AI_MODEL,
        base_url=settings.ai.base_url,
        temperature=settings.ai.temperature,
        max_tokens=settings.ai.max_tokens,
        timeout=settings.ai.timeout,
        max_retries=settings.ai.max_retries,
    )
    if not settings.CLERK_SECRET_KEY:
        logger.warning("identity_key_missing", message="CLERK_SECRET_KEY not set, identity lookups will fail")
    if not settings.AI_API_KEY or not settings.AI_MODEL:
        logger.warning("completion_config_missing", message="AI_API_KEY/AI_MODEL not set, /chat will fail")

    # 初始化实时通信（WebSocket）
    connections = ConnectionManager()
    membership = MembershipCache()
    realtime = RealtimeService(
        uow_factory=uow_factory,
        identity=identity,
        connections=connections,
        membership=membership,
    )

    app.state.uow_factory = uow_factory
    app.state.identity_provider = identity
    app.state.completion_provider = completion
    app.state.realtime_connections = connections
    app.state.realtime_service = realtime
    logger.info("application_started", environment=settings.ENVIRONMENT)

    yield

    # 关闭时的清理工作
    await identity.close()
    await completion.close()
    await dispose_engine()
    logger.info("application_shutdown", message="Application shutdown")


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
    description="实时群聊服务：WebSocket 群组广播、群组管理与 AI 助手",
)

# 添加中间件（注意顺序：从下往上执行）
# 1. Request ID中间件（最先执行，为后续中间件提供request_id）
app.add_middleware(RequestIDMiddleware)

# 2. 日志中间件（依赖request_id）
app.add_middleware(LoggingMiddleware)

# 3. CORS中间件
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH"],
    allow_headers=["*"],
)

# 注册全局异常处理器
register_exception_handlers(app)


# 注册路由（前端直接访问根路径，不加版本前缀）
app.include_router(ws_routes.router)
app.include_router(chat_routes.router)
app.include_router(group_routes.router)


# 健康检查
@app.get("/health", tags=["Health"])
async def health_check():
    """健康检查端点"""
    realtime = getattr(app.state, "realtime_connections", None)
    return {
        "status": "healthy",
        "connections": len(realtime) if realtime is not None else 0,
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
