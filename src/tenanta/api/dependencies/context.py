# src/tenanta/api/dependencies/context.py

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from tenanta.core.context import AppContext
from tenanta.db.session import get_db, SessionLocal
from tenanta.schemas.query import QueryRequestMetadata

async def get_app_context(
    request: Request,
    db: AsyncSession = Depends(get_db)
) -> AppContext:
    """
    构建请求作用域的 AppContext: 控制面会话 + 进程级的租户资源管理器。
    认证由上游网关负责, 这里不做处理。
    """
    return AppContext(
        db=db,
        session_factory=getattr(request.app.state, "session_factory", SessionLocal),
        provisioner=request.app.state.provisioner,
        cache_allocator=request.app.state.cache_allocator
    )

def get_request_metadata(request: Request) -> QueryRequestMetadata:
    forwarded_for = request.headers.get("x-forwarded-for")
    ip_address = forwarded_for.split(",")[0].strip() if forwarded_for else (request.client.host if request.client else None)
    return QueryRequestMetadata(
        user_agent=request.headers.get("user-agent"),
        ip_address=ip_address,
        session_id=request.headers.get("x-session-id"),
    )

ContextDep = Depends(get_app_context)
RequestMetadataDep = Depends(get_request_metadata)
