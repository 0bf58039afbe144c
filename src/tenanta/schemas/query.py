# src/tenanta/schemas/query.py

from datetime import datetime
from typing import Optional, List, Any, Dict
from pydantic import Field
from tenanta.schemas.common import CamelModel

class QueryRequest(CamelModel):
    query: str = Field(..., description="SQL statement executed verbatim against the tenant database.")

class QueryRequestMetadata(CamelModel):
    """Requester metadata captured into the query history."""
    user_agent: Optional[str] = None
    ip_address: Optional[str] = None
    session_id: Optional[str] = None

class QueryResult(CamelModel):
    success: bool
    data: Optional[List[Dict[str, Any]]] = None
    columns: Optional[List[str]] = None
    rows_affected: int = 0
    execution_time: int = Field(0, description="Wall-clock milliseconds.")
    error: Optional[str] = None

class QueryHistoryRead(CamelModel):
    id: str
    tenant_id: str
    query_text: str
    query_hash: str
    execution_time_ms: int
    rows_affected: int
    success: bool
    error_message: Optional[str] = None
    result_columns: Optional[List[str]] = None
    result_preview: Optional[List[Dict[str, Any]]] = None
    user_agent: Optional[str] = None
    ip_address: Optional[str] = None
    session_id: Optional[str] = None
    execution_timestamp: Optional[datetime] = None

class QueryHistoryPage(CamelModel):
    history: List[QueryHistoryRead] = Field(default_factory=list)
    total: int = 0
