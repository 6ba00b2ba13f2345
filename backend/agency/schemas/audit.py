from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class ActivityLogRead(BaseModel):
    id: int
    actor_id: Optional[int] = None
    action: str
    entity_type: str
    entity_id: Optional[str] = None
    old_values: Optional[Dict[str, Any]] = None
    new_values: Optional[Dict[str, Any]] = None
    metadata: Dict[str, Any] = Field(default_factory=dict, validation_alias="metadata_json")
    is_impersonated: bool = False
    request_id: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
