"""Normalized database schema metadata."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ColumnInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    data_type: str
    nullable: bool = True
    description: str | None = None


class ForeignKeyInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    columns: tuple[str, ...]
    ref_schema: str
    ref_table: str
    ref_columns: tuple[str, ...]

    @property
    def ref_fqn(self) -> str:
        return f"{self.ref_schema}.{self.ref_table}"


class TableInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    schema_name: str
    name: str = Field(min_length=1)
    table_type: str = "BASE TABLE"
    description: str | None = None
    columns: tuple[ColumnInfo, ...] = ()
    primary_key: tuple[str, ...] = ()
    foreign_keys: tuple[ForeignKeyInfo, ...] = ()

    @property
    def fqn(self) -> str:
        return f"{self.schema_name}.{self.name}"

    @property
    def column_names(self) -> tuple[str, ...]:
        return tuple(column.name for column in self.columns)


class SchemaSnapshot(BaseModel):
    """Full set of tables and views known for one database."""

    model_config = ConfigDict(frozen=True)

    database: str = Field(min_length=1)
    tables: tuple[TableInfo, ...] = ()

    @property
    def table_count(self) -> int:
        return len(self.tables)

    @property
    def schemas(self) -> tuple[str, ...]:
        return tuple(sorted({table.schema_name for table in self.tables}))

    def find_table(self, name: str) -> TableInfo | None:
        """Resolve a bare or schema-qualified table name, case-insensitively."""
        lowered = name.strip().strip('"').lower()
        for table in self.tables:
            if table.fqn.lower() == lowered:
                return table
        for table in self.tables:
            if table.name.lower() == lowered:
                return table
        return None
