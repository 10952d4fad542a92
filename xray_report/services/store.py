"""
Key-value storage behind the analysis and report registries.
MemoryStore lives for the process; SqlStore keeps records in the kv_records table.
"""
from datetime import datetime, timezone
from typing import Protocol

from sqlmodel import Session, func, select

from xray_report.models import KeyValueRecord


class KeyValueStore(Protocol):
    def get(self, key: str) -> dict | None: ...

    def put(self, key: str, value: dict) -> None: ...

    def __contains__(self, key: str) -> bool: ...

    def __len__(self) -> int: ...


class MemoryStore:
    """Plain dict; no eviction, no capacity bound."""

    def __init__(self):
        self._data: dict[str, dict] = {}

    def get(self, key: str) -> dict | None:
        value = self._data.get(key)
        return dict(value) if value is not None else None

    def put(self, key: str, value: dict) -> None:
        self._data[key] = dict(value)

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)


class SqlStore:
    def __init__(self, engine, namespace: str):
        self.engine = engine
        self.namespace = namespace

    def get(self, key: str) -> dict | None:
        with Session(self.engine) as db:
            rec = db.get(KeyValueRecord, (self.namespace, key))
            return dict(rec.value) if rec else None

    def put(self, key: str, value: dict) -> None:
        with Session(self.engine) as db:
            rec = db.get(KeyValueRecord, (self.namespace, key))
            if rec is None:
                rec = KeyValueRecord(namespace=self.namespace, key=key, value=value)
            else:
                rec.value = value
                rec.updated_at = datetime.now(timezone.utc)
            db.add(rec)
            db.commit()

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        with Session(self.engine) as db:
            stmt = select(func.count()).select_from(KeyValueRecord).where(KeyValueRecord.namespace == self.namespace)
            return db.exec(stmt).one()
