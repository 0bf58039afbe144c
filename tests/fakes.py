# tests/fakes.py

"""租户库的替身: 记录语句而不连接真实的 PostgreSQL。"""

from typing import List, Optional, Sequence
from contextlib import asynccontextmanager
from sqlalchemy.exc import ProgrammingError


class FakeResult:
    def __init__(self, rows: Optional[Sequence] = None):
        self._rows = list(rows or [])

    def scalars(self):
        return self

    def all(self):
        return list(self._rows)

    def scalar(self):
        return self._rows[0] if self._rows else None


class FakeConnection:
    """
    记录执行过的语句。
    fail_on 中任一片段出现在语句里时抛出 ProgrammingError, 模拟数据库拒绝该语句。
    """
    def __init__(self, existing_tables: Sequence[str] = (), fail_on: Sequence[str] = ()):
        self.existing_tables = list(existing_tables)
        self.fail_on = list(fail_on)
        self.statements: List[str] = []
        self.queries: List[str] = []
        self.savepoints = 0

    async def execute(self, clause, params=None):
        self.queries.append(str(clause))
        if "pg_tables" in str(clause):
            return FakeResult(self.existing_tables)
        return FakeResult()

    async def exec_driver_sql(self, statement: str):
        if any(marker in statement for marker in self.fail_on):
            raise ProgrammingError(statement, None, Exception(f"statement rejected: {statement.split()[0]}"))
        self.statements.append(statement)

    @asynccontextmanager
    async def begin_nested(self):
        self.savepoints += 1
        yield


class FakeEngine:
    def __init__(self, connection: FakeConnection):
        self.connection = connection
        self.disposed = False

    @asynccontextmanager
    async def begin(self):
        yield self.connection

    @asynccontextmanager
    async def connect(self):
        yield self.connection

    async def dispose(self):
        self.disposed = True
