from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from enum import Enum

class SwapStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    CANCELLED = "cancelled"

class SwapCreate(BaseModel):
    responder_id: int = Field(..., gt=0)
    skill_offered_id: int = Field(..., gt=0, description="User-skill id owned by the requester")
    skill_wanted_id: int = Field(..., gt=0, description="User-skill id owned by the responder")

class SwapResponse(BaseModel):
    id: int
    requester_id: int
    responder_id: int
    skill_offered_id: int
    skill_wanted_id: int
    status: SwapStatus
    created_at: datetime
    updated_at: datetime

class SwapDetailResponse(SwapResponse):
    requester_name: Optional[str] = None
    responder_name: Optional[str] = None
    skill_offered_name: Optional[str] = None
    skill_wanted_name: Optional[str] = None
