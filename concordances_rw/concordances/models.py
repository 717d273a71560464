from __future__ import annotations

from enum import Enum
from typing import Any, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class StorageOutcome(str, Enum):
    """
    Result of a mutating operation, shared by the store, service and handlers.
    """

    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    NOT_FOUND = "not_found"
    ERROR = "error"


class ConcordanceRecord(BaseModel):
    """
    A concept id and the ids concorded to it.

    A read miss is the empty record (no concept id); use `found` rather than
    comparing against None.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    concept_id: str = Field(default="", alias="conceptId")
    concorded_ids: Optional[List[str]] = Field(default=None, alias="concordedIds")

    @field_validator("concept_id", mode="before")
    @classmethod
    def _null_concept_id_is_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    @classmethod
    def empty(cls) -> "ConcordanceRecord":
        return cls()

    @property
    def found(self) -> bool:
        return bool(self.concept_id)

    def to_document(self) -> dict[str, Any]:
        return {"conceptId": self.concept_id, "concordedIds": list(self.concorded_ids or [])}

    @classmethod
    def from_document(cls, data: Optional[Mapping[str, Any]]) -> "ConcordanceRecord":
        if not data:
            return cls.empty()
        return cls.model_validate(dict(data))

    def to_response(self) -> dict[str, Any]:
        return {"conceptId": self.concept_id, "concordedIds": list(self.concorded_ids or [])}
