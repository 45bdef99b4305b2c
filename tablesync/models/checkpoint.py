"""Pydantic model for persisted incremental pull checkpoints."""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

from tablesync.models.table import CREATED_AT_COLUMN, ID_COLUMN, UPDATED_AT_COLUMN

# Cursor used when nothing has been pulled yet
BEGINNING_OF_TIME = datetime.min.replace(tzinfo=timezone.utc)


class Checkpoint(BaseModel):
    """High-water-mark of an incremental pull, one per pull identity."""

    identity: str = Field(default=..., min_length=1, description="Incremental pull query ID")
    table_name: str = Field(default=..., description="Remote table the query pulls")
    high_water_mark: datetime = Field(
        default=..., description="Latest change timestamp known to be fully pulled"
    )
    created_at: datetime = Field(default=..., description="When the checkpoint was first written")
    updated_at: datetime = Field(default=..., description="When the checkpoint was last written")

    def to_row(self) -> dict[str, Any]:
        """Convert to a row of the pulltime table."""
        return {
            ID_COLUMN: self.identity,
            "tableName": self.table_name,
            "value": self.high_water_mark,
            CREATED_AT_COLUMN: self.created_at,
            UPDATED_AT_COLUMN: self.updated_at,
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Checkpoint":
        """Build a checkpoint from a row of the pulltime table."""
        updated_at = row.get(UPDATED_AT_COLUMN) or row["value"]
        return cls(
            identity=row[ID_COLUMN],
            table_name=row.get("tableName", ""),
            high_water_mark=row["value"],
            created_at=row.get(CREATED_AT_COLUMN) or updated_at,
            updated_at=updated_at,
        )
