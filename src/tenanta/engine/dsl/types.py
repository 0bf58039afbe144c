# src/tenanta/engine/dsl/types.py

from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

class DSLModel(BaseModel):
    """Base for compiler outputs; serialized in camelCase for the visualizer."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

class ParsedColumn(DSLModel):
    name: str
    type: str = Field(..., description="Declared type token as written in the DSL, e.g. 'varchar'.")
    length: Optional[str] = Field(None, description="Parenthesized length, e.g. '100' or '10,2'.")
    nullable: bool = True
    is_primary_key: bool = False
    is_unique: bool = False
    is_increment: bool = False
    default: Optional[str] = Field(None, description="Raw default expression token.")

class ParsedTable(DSLModel):
    name: str
    columns: List[ParsedColumn] = Field(default_factory=list)

    def has_column(self, name: str) -> bool:
        return any(c.name == name for c in self.columns)

class ParsedRelationship(DSLModel):
    """Many-to-one: rows of from_table point at to_table."""
    from_table: str
    from_column: str
    to_table: str
    to_column: str

class SchemaModel(DSLModel):
    tables: List[ParsedTable] = Field(default_factory=list)
    relationships: List[ParsedRelationship] = Field(default_factory=list)

class DDLPlan(DSLModel):
    create_statements: List[str] = Field(default_factory=list)
    constraint_statements: List[str] = Field(default_factory=list)
