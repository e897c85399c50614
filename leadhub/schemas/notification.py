from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class LeadNotificationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    account_id: UUID
    type: str
    title: str
    message: str | None = None
    data: dict | None = None
    is_read: bool
    created_at: datetime
