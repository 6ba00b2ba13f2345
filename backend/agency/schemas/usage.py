from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class QuotaUsageRead(BaseModel):
    quota: str
    allowed: bool
    current: int
    limit: Optional[int] = None
    unlimited: bool
    remaining: Optional[int] = None
    resets_at: datetime
