# src/tenanta/schemas/schema_definition.py

from datetime import datetime
from typing import Optional, List, Any, Dict
from pydantic import Field
from tenanta.schemas.common import CamelModel
from tenanta.engine.dsl import ParsedTable, ParsedRelationship, SchemaModel, DDLPlan
from tenanta.models import SchemaStatus

class SchemaDefinitionBody(CamelModel):
    code: str = Field("", description="DBML-like DSL text.")

class SchemaUpdateRequest(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    definition: SchemaDefinitionBody

class SchemaDefinitionRead(CamelModel):
    id: str
    tenant_id: str
    name: str
    description: Optional[str] = None
    version: int
    definition: Dict[str, Any]
    status: SchemaStatus
    constraint_failures: int = 0
    last_error: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class OverviewTable(ParsedTable):
    row_count: int = 0

class SchemaOverview(CamelModel):
    tenant_id: str
    schema_name: str
    tables: List[OverviewTable] = Field(default_factory=list)
    relationships: List[ParsedRelationship] = Field(default_factory=list)
    total_tables: int = 0
    total_rows: int = 0
    last_modified: Optional[datetime] = None
    saved_code: Optional[str] = None

class CompileRequest(CamelModel):
    code: str
    namespace: str = "public"

class CompileResult(CamelModel):
    model: SchemaModel
    ddl: DDLPlan
