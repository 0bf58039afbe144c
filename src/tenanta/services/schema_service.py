# src/tenanta/services/schema_service.py

import logging
from datetime import datetime, timezone
from typing import List, Optional, Tuple
from sqlalchemy import inspect, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection
from redis.exceptions import RedisError
from tenanta.core.config import settings
from tenanta.core.context import AppContext
from tenanta.dao.schema_definition_dao import SchemaDefinitionDao
from tenanta.engine.dsl import (
    ParsedColumn, ParsedRelationship, SchemaModel, DDLPlan,
    parse_to_model, render_ddl, qualified_name, RESERVED_SYSTEM_TABLES
)
from tenanta.models import Tenant, SchemaDefinition, SchemaStatus
from tenanta.schemas.schema_definition import (
    SchemaUpdateRequest, SchemaDefinitionRead, SchemaOverview, OverviewTable, CompileResult
)
from tenanta.services.base_service import BaseService
from tenanta.services.exceptions import (
    ServiceException, NotFoundError, DDLExecutionError, TenantConnectionError
)
from tenanta.services.tenant.cache_allocator import tenant_key_prefix

logger = logging.getLogger(__name__)


def overview_cache_key(tenant_id: str) -> str:
    return f"{tenant_key_prefix(tenant_id)}schema:overview"


class SchemaService(BaseService):
    """
    Schema reconciler: keeps a tenant's physical tables in line with its DSL
    document, and serves the overview consumed by the visualizer.

    An update runs as a saga:
      1. upsert the schema-of-record in its own committed transaction (status=pending);
      2-6. drop and recreate the tenant's tables in one transaction on the tenant
         database, under a per-tenant advisory lock; constraints are best-effort;
      7. mark the record applied (bumping the version) or, compensating, failed.
    """
    def __init__(self, context: AppContext):
        super().__init__(context)
        self.dao = SchemaDefinitionDao(context.db)
        self.namespace = settings.TENANT_DEFAULT_SCHEMA

    # --- Public DTO-returning methods ---

    async def update_tenant_schema(self, tenant_id: str, data: SchemaUpdateRequest) -> SchemaDefinitionRead:
        await self._get_tenant(tenant_id)
        code = data.definition.code or ""
        model = parse_to_model(code)

        # Step 1: Persisting-JSON
        schema_id, created = await self._persist_definition(tenant_id, data, model)

        if not code.strip():
            logger.warning("Schema definition has no DSL code, skipping table reconciliation", extra={"tenant_id": tenant_id})
            schema = await self._finalize(schema_id, SchemaStatus.APPLIED, bump_version=not created)
            await self._invalidate_overview(tenant_id)
            return SchemaDefinitionRead.model_validate(schema)

        plan = render_ddl(model, self.namespace)
        try:
            # Steps 2-6: Recreating-Tables -> Creating-Constraints
            constraint_failures = await self._reconcile(tenant_id, plan)
        except (ServiceException, SQLAlchemyError) as e:
            message = e.message if isinstance(e, ServiceException) else str(e)
            # Step 7 (compensation): 元数据已提交, 标记为 failed 而不是静默保留
            await self._finalize(schema_id, SchemaStatus.FAILED, last_error=message)
            await self._invalidate_overview(tenant_id)
            logger.error(f"Schema reconciliation failed: {message}", extra={"tenant_id": tenant_id})
            if isinstance(e, ServiceException):
                raise
            raise DDLExecutionError(f"Schema reconciliation failed: {message}") from e

        schema = await self._finalize(
            schema_id,
            SchemaStatus.APPLIED,
            constraint_failures=constraint_failures,
            bump_version=not created
        )
        await self._invalidate_overview(tenant_id)
        logger.info(
            f"Schema '{schema.name}' applied (version {schema.version}) with "
            f"{len(plan.create_statements)} tables, {constraint_failures} failed constraints",
            extra={"tenant_id": tenant_id}
        )
        return SchemaDefinitionRead.model_validate(schema)

    async def get_schema_overview(self, tenant_id: str) -> SchemaOverview:
        tenant = await self._get_tenant(tenant_id)

        cached = await self._read_cached_overview(tenant_id)
        if cached is not None:
            return cached

        # 一旦存在保存的 DSL, 它就是结构的唯一来源; 仅在没有时才回退到实时内省
        schema = await self.dao.get_active_for_tenant(tenant_id)
        if schema is not None and schema.code.strip():
            overview = self._overview_from_dsl(tenant, schema)
        else:
            overview = await self._overview_from_database(tenant)

        await self._write_cached_overview(tenant_id, overview)
        return overview

    async def get_tenant_schemas(self, tenant_id: str) -> List[SchemaDefinitionRead]:
        await self._get_tenant(tenant_id)
        schemas = await self.dao.list_for_tenant(tenant_id)
        return [SchemaDefinitionRead.model_validate(s) for s in schemas]

    async def get_schema_by_id(self, schema_id: str) -> SchemaDefinitionRead:
        return SchemaDefinitionRead.model_validate(await self._get_schema(schema_id))

    async def deactivate_schema(self, schema_id: str) -> SchemaDefinitionRead:
        """Soft delete: the record stays for auditing, the overview falls back to introspection."""
        schema = await self._get_schema(schema_id)
        schema.is_active = False
        await self.db.flush()
        await self.db.refresh(schema)
        await self._invalidate_overview(schema.tenant_id)
        return SchemaDefinitionRead.model_validate(schema)

    def compile_preview(self, code: str, namespace: Optional[str] = None) -> CompileResult:
        model = parse_to_model(code)
        return CompileResult(model=model, ddl=render_ddl(model, namespace or self.namespace))

    # --- Saga steps ---

    async def _get_schema(self, schema_id: str) -> SchemaDefinition:
        schema = await self.dao.get_by_pk(schema_id)
        if not schema:
            raise NotFoundError(f"Schema '{schema_id}' not found.")
        return schema

    async def _persist_definition(
        self, tenant_id: str, data: SchemaUpdateRequest, model: SchemaModel
    ) -> Tuple[str, bool]:
        """Upserts the active definition and commits immediately. Returns (schema id, created)."""
        async with self.context.session_factory() as session:
            async with session.begin():
                dao = SchemaDefinitionDao(session)
                schema = await dao.get_active_for_tenant(tenant_id)
                created = schema is None
                if created:
                    schema = SchemaDefinition(tenant_id=tenant_id, version=1, is_active=True)
                schema.name = data.name
                schema.description = data.description
                schema.definition = {"code": data.definition.code}
                schema.structural_model = model.model_dump(mode="json", by_alias=True)
                schema.status = SchemaStatus.PENDING
                schema.last_error = None
                if created:
                    await dao.add(schema)
                else:
                    await session.flush()
                return schema.id, created

    async def _finalize(
        self,
        schema_id: str,
        status: SchemaStatus,
        constraint_failures: int = 0,
        last_error: Optional[str] = None,
        bump_version: bool = False,
    ) -> SchemaDefinition:
        async with self.context.session_factory() as session:
            async with session.begin():
                dao = SchemaDefinitionDao(session)
                schema = await dao.get_by_pk(schema_id)
                if schema is None:
                    raise NotFoundError(f"Schema '{schema_id}' disappeared during reconciliation.")
                schema.status = status
                schema.constraint_failures = constraint_failures
                schema.last_error = last_error
                if bump_version:
                    schema.version = schema.version + 1
                await session.flush()
                await session.refresh(schema)
                return schema

    async def _reconcile(self, tenant_id: str, plan: DDLPlan) -> int:
        """
        Drops and recreates every user table in one transaction.
        Returns the number of constraint statements that failed.
        """
        engine = await self.provisioner.get_engine(tenant_id)

        async with engine.begin() as conn:
            # 同一租户的重建互斥, 跨进程有效, 事务结束时自动释放
            await conn.execute(
                text("SELECT pg_advisory_xact_lock(hashtext(:key))"),
                {"key": f"schema-reconcile:{tenant_id}"}
            )

            for table_name in await self._list_base_tables(conn):
                if table_name in RESERVED_SYSTEM_TABLES:
                    continue
                await conn.exec_driver_sql(f"DROP TABLE IF EXISTS {qualified_name(self.namespace, table_name)} CASCADE")

            for statement in plan.create_statements:
                try:
                    await conn.exec_driver_sql(statement)
                except SQLAlchemyError as e:
                    raise DDLExecutionError(
                        f"Failed to create table: {getattr(e, 'orig', None) or e}", statement=statement
                    ) from e

            constraint_failures = 0
            for statement in plan.constraint_statements:
                try:
                    async with conn.begin_nested():
                        await conn.exec_driver_sql(statement)
                except SQLAlchemyError as e:
                    constraint_failures += 1
                    logger.warning(
                        f"Constraint statement failed, continuing: {getattr(e, 'orig', None) or e}",
                        extra={"tenant_id": tenant_id, "statement": statement}
                    )

        return constraint_failures

    async def _list_base_tables(self, conn: AsyncConnection) -> List[str]:
        result = await conn.execute(
            text("SELECT tablename FROM pg_catalog.pg_tables WHERE schemaname = :schema"),
            {"schema": self.namespace}
        )
        return list(result.scalars().all())

    # --- Overview builders ---

    def _overview_from_dsl(self, tenant: Tenant, schema: SchemaDefinition) -> SchemaOverview:
        model = parse_to_model(schema.code)
        tables = [OverviewTable(**t.model_dump()) for t in model.tables]
        return SchemaOverview(
            tenant_id=tenant.id,
            schema_name=tenant.name,
            tables=tables,
            relationships=model.relationships,
            total_tables=len(tables),
            total_rows=0,
            last_modified=schema.updated_at,
            saved_code=schema.code,
        )

    async def _overview_from_database(self, tenant: Tenant) -> SchemaOverview:
        engine = await self.provisioner.get_engine(tenant.id)
        namespace = self.namespace

        def inspect_sync(sync_conn):
            inspector = inspect(sync_conn)
            tables: List[OverviewTable] = []
            relationships: List[ParsedRelationship] = []
            for table_name in inspector.get_table_names(schema=namespace):
                if table_name in RESERVED_SYSTEM_TABLES:
                    continue
                pk_columns = set(inspector.get_pk_constraint(table_name, schema=namespace).get("constrained_columns") or [])
                unique_columns = {
                    uc["column_names"][0]
                    for uc in inspector.get_unique_constraints(table_name, schema=namespace)
                    if len(uc["column_names"]) == 1
                }
                columns = [
                    ParsedColumn(
                        name=col["name"],
                        type=col["type"].compile(dialect=sync_conn.dialect).lower(),
                        nullable=bool(col["nullable"]),
                        is_primary_key=col["name"] in pk_columns,
                        is_unique=col["name"] in unique_columns,
                        default=col.get("default"),
                    )
                    for col in inspector.get_columns(table_name, schema=namespace)
                ]
                tables.append(OverviewTable(name=table_name, columns=columns))

                for fk in inspector.get_foreign_keys(table_name, schema=namespace):
                    for from_column, to_column in zip(fk["constrained_columns"], fk["referred_columns"]):
                        relationships.append(ParsedRelationship(
                            from_table=table_name,
                            from_column=from_column,
                            to_table=fk["referred_table"],
                            to_column=to_column,
                        ))
            return tables, relationships

        async with engine.connect() as conn:
            tables, relationships = await conn.run_sync(inspect_sync)
            result = await conn.execute(
                text("SELECT relname, n_live_tup FROM pg_stat_user_tables WHERE schemaname = :schema"),
                {"schema": namespace}
            )
            row_counts = {row.relname: int(row.n_live_tup or 0) for row in result}

        for table in tables:
            table.row_count = row_counts.get(table.name, 0)

        return SchemaOverview(
            tenant_id=tenant.id,
            schema_name=tenant.name,
            tables=tables,
            relationships=relationships,
            total_tables=len(tables),
            total_rows=sum(t.row_count for t in tables),
            last_modified=datetime.now(timezone.utc),
        )

    # --- Overview cache (best effort, tenant namespace) ---

    async def _read_cached_overview(self, tenant_id: str) -> Optional[SchemaOverview]:
        try:
            service = await self.cache_allocator.get_service(tenant_id)
            cached = await service.get_json(overview_cache_key(tenant_id))
        except (TenantConnectionError, RedisError, OSError) as e:
            logger.warning(f"Overview cache read failed: {e}", extra={"tenant_id": tenant_id})
            return None
        return SchemaOverview.model_validate(cached) if cached else None

    async def _write_cached_overview(self, tenant_id: str, overview: SchemaOverview):
        try:
            service = await self.cache_allocator.get_service(tenant_id)
            await service.set_json(
                overview_cache_key(tenant_id),
                overview.model_dump(mode="json", by_alias=True),
                expire=settings.SCHEMA_OVERVIEW_CACHE_TTL
            )
        except (TenantConnectionError, RedisError, OSError) as e:
            logger.warning(f"Overview cache write failed: {e}", extra={"tenant_id": tenant_id})

    async def _invalidate_overview(self, tenant_id: str):
        try:
            service = await self.cache_allocator.get_service(tenant_id)
            await service.delete_key(overview_cache_key(tenant_id))
        except (TenantConnectionError, RedisError, OSError) as e:
            logger.warning(f"Overview cache invalidation failed: {e}", extra={"tenant_id": tenant_id})
