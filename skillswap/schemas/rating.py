from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

class RatingCreate(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    feedback: Optional[str] = Field(None, max_length=500)

class RatingResponse(BaseModel):
    id: int
    swap_id: int
    rater_user_id: int
    rated_user_id: int
    rating: int
    feedback: Optional[str] = None
    created_at: datetime

class RatingSubmitted(BaseModel):
    message: str
    rating: RatingResponse
    rated_user_id: int
    user_rating: Optional[float] = None

class UserRatingSummary(BaseModel):
    user_id: int
    rating: Optional[float] = None
    rating_count: int
