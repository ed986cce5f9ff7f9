from fastapi import APIRouter, status, Depends, Path, Query
from typing import List, Optional
from supabase import Client
from ....core.supabase import get_supabase_client
from ....core.security import get_current_user_id
from ....schemas.swap import SwapCreate, SwapResponse, SwapDetailResponse, SwapStatus
from ....schemas.rating import RatingCreate, RatingSubmitted
from ....services.swap_service import SwapService

router = APIRouter(prefix="/swaps", tags=["swaps"])

def get_swap_service(client: Client = Depends(get_supabase_client)) -> SwapService:
    return SwapService(client)

@router.post("", response_model=SwapResponse, status_code=status.HTTP_201_CREATED)
async def create_swap_request(
    swap: SwapCreate,
    current_user_id: int = Depends(get_current_user_id),
    service: SwapService = Depends(get_swap_service)
):
    """
    Create a new swap request.

    The requester must own skill_offered_id and the responder must own
    skill_wanted_id. Only one pending request may exist from the requester
    to the same responder.
    """
    return await service.create_swap(current_user_id, swap)

@router.get("/my-requests", response_model=List[SwapDetailResponse])
async def get_my_requests(
    status: Optional[SwapStatus] = Query(None),
    current_user_id: int = Depends(get_current_user_id),
    service: SwapService = Depends(get_swap_service)
):
    """
    Get swap requests where the current user is requester or responder.
    """
    return await service.list_swaps(current_user_id, status)

@router.get("/{swap_id}", response_model=SwapDetailResponse)
async def get_swap(
    swap_id: int = Path(...),
    current_user_id: int = Depends(get_current_user_id),
    service: SwapService = Depends(get_swap_service)
):
    """
    Get a specific swap request by ID.
    """
    return await service.get_swap(swap_id, current_user_id)

@router.put("/{swap_id}/accept", response_model=SwapResponse)
async def accept_swap(
    swap_id: int = Path(...),
    current_user_id: int = Depends(get_current_user_id),
    service: SwapService = Depends(get_swap_service)
):
    """
    Accept a pending swap request. Only the responder can accept.
    """
    return await service.accept_swap(swap_id, current_user_id)

@router.put("/{swap_id}/reject", response_model=SwapResponse)
async def reject_swap(
    swap_id: int = Path(...),
    current_user_id: int = Depends(get_current_user_id),
    service: SwapService = Depends(get_swap_service)
):
    """
    Reject a pending swap request. Only the responder can reject.
    """
    return await service.reject_swap(swap_id, current_user_id)

@router.put("/{swap_id}/cancel", response_model=SwapResponse)
async def cancel_swap(
    swap_id: int = Path(...),
    current_user_id: int = Depends(get_current_user_id),
    service: SwapService = Depends(get_swap_service)
):
    """
    Cancel a pending swap request. Only the requester can cancel.
    """
    return await service.cancel_swap(swap_id, current_user_id)

@router.post("/{swap_id}/rate", response_model=RatingSubmitted)
async def rate_swap(
    rating: RatingCreate,
    swap_id: int = Path(...),
    current_user_id: int = Depends(get_current_user_id),
    service: SwapService = Depends(get_swap_service)
):
    """
    Rate the other participant of an accepted swap.
    """
    return await service.rate_swap(swap_id, current_user_id, rating)
