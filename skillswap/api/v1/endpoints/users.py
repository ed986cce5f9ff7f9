from fastapi import APIRouter, Depends, Path
from supabase import Client
from ....core.supabase import get_supabase_client
from ....schemas.rating import UserRatingSummary
from ....services.rating_service import RatingService

router = APIRouter(prefix="/users", tags=["users"])

@router.get("/{user_id}/rating", response_model=UserRatingSummary)
async def get_user_rating(
    user_id: int = Path(...),
    client: Client = Depends(get_supabase_client)
):
    """
    Get a user's displayed rating and how many ratings it is based on.
    """
    return await RatingService(client).get_user_rating_summary(user_id)
