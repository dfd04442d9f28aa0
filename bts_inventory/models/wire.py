"""
Push protocol bodies shared by the sync engine and the reference backend.

Keys are camelCase on the wire and snake_case in Python.
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from .outbox import OutboxOperation


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PushChange(WireModel):
    id: int
    entity_type: str
    entity_id: str
    operation: OutboxOperation
    data: Dict[str, Any]


class PushRequest(WireModel):
    client_id: Optional[str] = None
    changes: List[PushChange]


class ConflictItem(WireModel):
    entity_type: str
    entity_id: str


class ServerChange(WireModel):
    entity_type: str
    data: Dict[str, Any]


class PushResponse(WireModel):
    acked_ids: List[int] = []
    conflicts: List[ConflictItem] = []
    server_changes: List[ServerChange] = []
