"""Table definitions and system column names shared by stores and the pull engine."""

from enum import Enum

from pydantic import BaseModel, Field

ID_COLUMN = "id"
UPDATED_AT_COLUMN = "updatedAt"
CREATED_AT_COLUMN = "createdAt"
DELETED_COLUMN = "deleted"
VERSION_COLUMN = "version"

INCLUDE_DELETED_FLAG = "__includeDeleted"

# Local table holding one checkpoint row per incremental pull identity
PULLTIME_TABLE_NAME = "__pulltime"


class ColumnType(str, Enum):
    """Column types understood by local store implementations."""

    STRING = "string"
    INTEGER = "integer"
    REAL = "real"
    BOOLEAN = "boolean"
    DATE = "date"
    OBJECT = "object"


class TableDefinition(BaseModel):
    """Schema of a local table."""

    name: str = Field(default=..., min_length=1, description="Table name")
    column_definitions: dict[str, ColumnType] = Field(
        default_factory=dict, description="Column name to column type mapping"
    )

    def date_columns(self) -> set[str]:
        """Names of columns holding timestamps."""
        return {
            name
            for name, column_type in self.column_definitions.items()
            if column_type == ColumnType.DATE
        }


PULLTIME_TABLE = TableDefinition(
    name=PULLTIME_TABLE_NAME,
    column_definitions={
        ID_COLUMN: ColumnType.STRING,
        "tableName": ColumnType.STRING,
        "value": ColumnType.DATE,
        CREATED_AT_COLUMN: ColumnType.DATE,
        UPDATED_AT_COLUMN: ColumnType.DATE,
    },
)


def synced_table(name: str, **columns: ColumnType) -> TableDefinition:
    """Build a definition for a pulled table, including the system columns.

    Args:
        name: Table name
        **columns: Additional application columns

    Returns:
        TableDefinition with id, createdAt, updatedAt, version and deleted columns
    """
    column_definitions = {
        ID_COLUMN: ColumnType.STRING,
        CREATED_AT_COLUMN: ColumnType.DATE,
        UPDATED_AT_COLUMN: ColumnType.DATE,
        VERSION_COLUMN: ColumnType.STRING,
        DELETED_COLUMN: ColumnType.BOOLEAN,
    }
    column_definitions.update(columns)
    return TableDefinition(name=name, column_definitions=column_definitions)
