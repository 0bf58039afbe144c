import logging
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
from tenanta.db.session import SessionLocal, engine
from tenanta.core.config import settings
from tenanta.api.router import router
from tenanta.services.exceptions import (
    ServiceException, NotFoundError, QueryValidationError, DDLExecutionError, TenantConnectionError
)
from tenanta.services.query_service import QueryService
from tenanta.services.tenant.provisioner import TenantResourceProvisioner
from tenanta.services.tenant.cache_allocator import TenantCacheAllocator

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # --- 进程级租户资源管理器 ---
    # 租户连接池与缓存客户端都是惰性建立, 启动时只创建管理器本身
    app.state.session_factory = SessionLocal
    app.state.provisioner = TenantResourceProvisioner()
    app.state.cache_allocator = TenantCacheAllocator()

    yield

    # --- 清理 ---
    logger.info("Releasing tenant pools and Redis connections...")
    await QueryService.drain_background_tasks()
    await app.state.provisioner.release_all()
    await app.state.cache_allocator.release_all()
    await engine.dispose()

app = FastAPI(
    title="tenanta",
    lifespan=lifespan
)

#设置允许访问的域名
origins = ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"])

app.include_router(router)

def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"status": status_code, "msg": message, "data": None},
    )

@app.exception_handler(NotFoundError)
async def not_found_exception_handler(request: Request, exc: NotFoundError):
    return _error_response(status.HTTP_404_NOT_FOUND, exc.message)

@app.exception_handler(QueryValidationError)
async def query_validation_exception_handler(request: Request, exc: QueryValidationError):
    return _error_response(status.HTTP_400_BAD_REQUEST, exc.message)

@app.exception_handler(DDLExecutionError)
async def ddl_execution_exception_handler(request: Request, exc: DDLExecutionError):
    """
    DDL 执行失败: 对应的 schema 记录已被标记为 failed。
    """
    return _error_response(status.HTTP_422_UNPROCESSABLE_ENTITY, exc.message)

@app.exception_handler(TenantConnectionError)
async def tenant_connection_exception_handler(request: Request, exc: TenantConnectionError):
    logger.warning(f"Tenant resource unavailable: {exc.message}", extra={"tenant_id": exc.tenant_id})
    return _error_response(status.HTTP_503_SERVICE_UNAVAILABLE, exc.message)

@app.exception_handler(ServiceException)
async def service_exception_handler(request: Request, exc: ServiceException):
    # 处理所有来自服务层的、可预期的业务逻辑错误
    logger.warning(f"Service error on {request.url.path}: {exc.message}")
    return _error_response(status.HTTP_400_BAD_REQUEST, exc.message)

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    # 重写 FastAPI 默认的 HTTPException 处理器，以匹配我们的响应格式
    return JSONResponse(
        status_code=exc.status_code,
        content={"status": exc.status_code, "msg": exc.detail, "data": None},
        headers=exc.headers,
    )

@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    # 这个处理器只处理真正未预料到的服务器内部错误
    logger.exception(f"Unhandled error on {request.url.path}")
    return JSONResponse(
        status_code=500,
        content={"status": 500, "msg": "Internal Server Error", "data": None},
    )
