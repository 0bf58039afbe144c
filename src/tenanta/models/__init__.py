# tenanta/models/__init__.py

from .tenant import Tenant
from .schema_definition import SchemaDefinition, SchemaStatus
from .query_history import QueryHistoryRecord
