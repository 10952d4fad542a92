"""Registry records for the SQL store backend: one JSON value per (namespace, key)."""
from datetime import datetime, timezone

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel


class KeyValueRecord(SQLModel, table=True):
    __tablename__ = "kv_records"
    namespace: str = Field(primary_key=True)  # analysis | report
    key: str = Field(primary_key=True)
    value: dict = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
