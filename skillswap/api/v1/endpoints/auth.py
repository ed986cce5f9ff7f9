import logging
from datetime import timedelta
from fastapi import APIRouter, Depends, Query
from typing import Dict, Any
from supabase import Client
from ....core.config import get_settings
from ....core.exceptions import NotFoundError
from ....core.security import create_access_token, get_token_claims, revoke_token
from ....core.supabase import get_supabase_client, execute_query
from ....schemas.user import Token, MessageResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

@router.post("/logout", response_model=MessageResponse)
async def logout(
    claims: Dict[str, Any] = Depends(get_token_claims),
    client: Client = Depends(get_supabase_client)
):
    """
    Revoke the presented access token.
    """
    await revoke_token(client, claims)
    return {"message": "Logged out successfully"}

# Only mounted in development; see api.py
dev_router = APIRouter(prefix="/auth", tags=["auth"])

@dev_router.post("/dev-token", response_model=Token)
async def get_dev_token(
    user_id: int = Query(...),
    expires_minutes: int = Query(30, ge=1, le=1440),
    client: Client = Depends(get_supabase_client)
):
    """
    Generate a temporary access token for an existing user.

    Args:
        user_id: The user to issue the token for
        expires_minutes: Token expiration time in minutes (default: 30, max: 1440)
    """
    users = await execute_query(
        client,
        table="users",
        query_type="select",
        select="id, email",
        filters={"id": user_id},
        limit=1
    )

    if not users:
        raise NotFoundError(detail=f"User not found with id: {user_id}")

    logger.info(f"Issuing development token for user {user_id} ({get_settings().environment})")
    token = create_access_token(
        user_id,
        email=users[0].get("email"),
        expires_delta=timedelta(minutes=expires_minutes)
    )
    return {"access_token": token, "token_type": "bearer"}
