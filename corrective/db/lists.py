"""Versioned JSON list columns.

Lists are stored as ``{"version": 1, "items": [...]}`` and exposed to Python
code as lists of pydantic models. Plain JSON arrays written by older clients
are still accepted when reading.
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field
from sqlalchemy import JSON
from sqlalchemy.types import TypeDecorator

LIST_FORMAT_VERSION = 1


class SymptomRef(BaseModel):
    id: int


class AttachmentRef(BaseModel):
    url: str
    uploaded_at: datetime = Field(default_factory=datetime.utcnow)


class EvidenceItem(BaseModel):
    url: str
    type: str = "IMAGE"
    filename: Optional[str] = None
    uploaded_by: Optional[int] = None
    uploaded_at: datetime = Field(default_factory=datetime.utcnow)


class ToolUsage(BaseModel):
    id: Optional[int] = None
    name: str
    quantity: Optional[float] = None


class SparePartUsage(BaseModel):
    id: Optional[int] = None
    name: str
    quantity: float = 1
    cost: Optional[float] = None


class VersionedList(TypeDecorator):
    impl = JSON
    cache_ok = True

    def __init__(self, item_model: type[BaseModel], *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.item_model = item_model

    def _coerce(self, item):
        if isinstance(item, self.item_model):
            return item
        if self.item_model is SymptomRef and isinstance(item, int):
            return SymptomRef(id=item)
        if self.item_model in (AttachmentRef, EvidenceItem) and isinstance(item, str):
            return self.item_model(url=item)
        return self.item_model.model_validate(item)

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        items = [self._coerce(item).model_dump(mode="json") for item in value]
        return {"version": LIST_FORMAT_VERSION, "items": items}

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, dict):
            version = value.get("version", LIST_FORMAT_VERSION)
            if version > LIST_FORMAT_VERSION:
                raise ValueError(f"Unsupported list format version {version}")
            raw_items = value.get("items") or []
        else:
            raw_items = value
        return [self._coerce(item) for item in raw_items]


def symptom_ids(items: Optional[list[SymptomRef]]) -> list[int]:
    return [item.id for item in items or []]
