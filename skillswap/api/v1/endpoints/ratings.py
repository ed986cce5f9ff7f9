from fastapi import APIRouter, Depends, Path, Query
from typing import List
from supabase import Client
from ....core.supabase import get_supabase_client
from ....core.security import get_current_user_id
from ....schemas.rating import RatingResponse
from ....services.rating_service import RatingService
from ....services.swap_service import SwapService

router = APIRouter(prefix="/ratings", tags=["ratings"])

@router.get("/user/{user_id}", response_model=List[RatingResponse])
async def get_user_ratings(
    user_id: int = Path(...),
    skip: int = Query(0, ge=0),
    limit: int = Query(10, ge=1, le=100),
    client: Client = Depends(get_supabase_client)
):
    """
    Get all ratings received by a specific user.
    """
    return await RatingService(client).get_ratings_for_user(user_id, skip=skip, limit=limit)

@router.get("/swap/{swap_id}", response_model=List[RatingResponse])
async def get_swap_ratings(
    swap_id: int = Path(...),
    current_user_id: int = Depends(get_current_user_id),
    client: Client = Depends(get_supabase_client)
):
    """
    Get all ratings for a swap. Only its participants can see them.
    """
    return await SwapService(client).list_swap_ratings(swap_id, current_user_id)
