import logging
from datetime import datetime, timezone
from typing import List, Dict, Optional
from fastapi import HTTPException, status
from supabase import Client
from ..core.supabase import execute_query
from ..core.exceptions import NotFoundError, BadRequestError, ConflictError, DuplicateRecordError
from ..schemas.swap import SwapCreate, SwapStatus
from ..schemas.rating import RatingCreate
from .rating_service import RatingService

logger = logging.getLogger(__name__)

# Shared by every guarded operation so "missing" and "not yours" look the same
SWAP_NOT_FOUND = "Swap request not found"
DUPLICATE_PENDING = "You already have a pending swap request with this user"
ALREADY_RATED = "You have already rated this swap"

def _now() -> str:
    return datetime.now(timezone.utc).isoformat()

class SwapService:
    """
    The swap ledger: creates swap requests and moves them out of ``pending``.

    Every state change is a single guarded UPDATE whose filters carry the
    swap id, the caller's role and the required status, so a concurrent
    transition that got there first makes this one match zero rows.
    """

    def __init__(self, client: Client):
        self.client = client
        self.ratings = RatingService(client)

    async def create_swap(self, requester_id: int, swap: SwapCreate) -> Dict:
        # Check responder exists and is not banned
        responder = await execute_query(
            self.client,
            table="users",
            query_type="select",
            select="id",
            filters={"id": swap.responder_id, "is_banned": False},
            limit=1
        )

        if not responder:
            raise NotFoundError(detail="Responder not found or is banned")

        if requester_id == swap.responder_id:
            raise BadRequestError(detail="Cannot create swap request with yourself")

        # Verify the offered skill belongs to the requester
        offered = await execute_query(
            self.client,
            table="user_skills",
            query_type="select",
            select="id",
            filters={"id": swap.skill_offered_id, "user_id": requester_id},
            limit=1
        )

        if not offered:
            raise NotFoundError(detail="Skill offered does not belong to you")

        # Verify the wanted skill belongs to the responder
        wanted = await execute_query(
            self.client,
            table="user_skills",
            query_type="select",
            select="id",
            filters={"id": swap.skill_wanted_id, "user_id": swap.responder_id},
            limit=1
        )

        if not wanted:
            raise NotFoundError(detail="Skill wanted does not belong to responder")

        existing = await execute_query(
            self.client,
            table="swap_requests",
            query_type="select",
            select="id",
            filters={
                "requester_id": requester_id,
                "responder_id": swap.responder_id,
                "status": SwapStatus.PENDING.value,
            },
            limit=1
        )

        if existing:
            raise ConflictError(detail=DUPLICATE_PENDING)

        now = _now()
        swap_data = {
            "requester_id": requester_id,
            "responder_id": swap.responder_id,
            "skill_offered_id": swap.skill_offered_id,
            "skill_wanted_id": swap.skill_wanted_id,
            "status": SwapStatus.PENDING.value,
            "created_at": now,
            "updated_at": now,
        }

        # The partial unique index on pending pairs catches a concurrent create
        try:
            new_swap = await execute_query(
                self.client,
                table="swap_requests",
                query_type="insert",
                data=swap_data
            )
        except DuplicateRecordError:
            raise ConflictError(detail=DUPLICATE_PENDING)

        if not new_swap:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to create swap request"
            )

        logger.info(f"Swap {new_swap[0]['id']} created: user {requester_id} -> user {swap.responder_id}")
        return new_swap[0]

    async def _transition(self, swap_id: int, caller_id: int, role_column: str, target: SwapStatus) -> Dict:
        updated = await execute_query(
            self.client,
            table="swap_requests",
            query_type="update",
            filters={
                "id": swap_id,
                role_column: caller_id,
                "status": SwapStatus.PENDING.value,
            },
            data={"status": target.value, "updated_at": _now()}
        )

        if not updated:
            logger.info(f"No pending swap {swap_id} with {role_column}={caller_id}; cannot move to {target.value}")
            raise NotFoundError(detail=SWAP_NOT_FOUND)

        logger.info(f"Swap {swap_id} {target.value} by user {caller_id}")
        return updated[0]

    async def accept_swap(self, swap_id: int, caller_id: int) -> Dict:
        return await self._transition(swap_id, caller_id, "responder_id", SwapStatus.ACCEPTED)

    async def reject_swap(self, swap_id: int, caller_id: int) -> Dict:
        return await self._transition(swap_id, caller_id, "responder_id", SwapStatus.REJECTED)

    async def cancel_swap(self, swap_id: int, caller_id: int) -> Dict:
        return await self._transition(swap_id, caller_id, "requester_id", SwapStatus.CANCELLED)

    async def _participant_swap(self, swap_id: int, user_id: int, required_status: Optional[SwapStatus] = None) -> Optional[Dict]:
        filters = {"id": swap_id}
        if required_status:
            filters["status"] = required_status.value

        swaps = await execute_query(
            self.client,
            table="swap_requests",
            query_type="select",
            filters=filters,
            any_of={"requester_id": user_id, "responder_id": user_id},
            limit=1
        )
        return swaps[0] if swaps else None

    async def _with_names(self, swaps: List[Dict]) -> List[Dict]:
        """Attach user and skill names to swap rows."""
        if not swaps:
            return []

        user_ids = {s["requester_id"] for s in swaps} | {s["responder_id"] for s in swaps}
        user_skill_ids = {s["skill_offered_id"] for s in swaps} | {s["skill_wanted_id"] for s in swaps}

        users = await execute_query(
            self.client,
            table="users",
            query_type="select",
            select="id, name",
            filters={"id": sorted(user_ids)}
        )
        user_skills = await execute_query(
            self.client,
            table="user_skills",
            query_type="select",
            select="id, skill_id",
            filters={"id": sorted(user_skill_ids)}
        )

        skill_names = {}
        skill_ids = sorted({us["skill_id"] for us in user_skills})
        if skill_ids:
            skills = await execute_query(
                self.client,
                table="skills",
                query_type="select",
                select="id, name",
                filters={"id": skill_ids}
            )
            skill_names = {s["id"]: s["name"] for s in skills}

        user_names = {u["id"]: u["name"] for u in users}
        user_skill_names = {us["id"]: skill_names.get(us["skill_id"]) for us in user_skills}

        return [
            {
                **swap,
                "requester_name": user_names.get(swap["requester_id"]),
                "responder_name": user_names.get(swap["responder_id"]),
                "skill_offered_name": user_skill_names.get(swap["skill_offered_id"]),
                "skill_wanted_name": user_skill_names.get(swap["skill_wanted_id"]),
            }
            for swap in swaps
        ]

    async def get_swap(self, swap_id: int, user_id: int) -> Dict:
        swap = await self._participant_swap(swap_id, user_id)

        if not swap:
            raise NotFoundError(detail=SWAP_NOT_FOUND)

        return (await self._with_names([swap]))[0]

    async def list_swaps(self, user_id: int, swap_status: Optional[SwapStatus] = None) -> List[Dict]:
        """Swaps where the user is requester or responder, newest first."""
        filters = {}
        if swap_status:
            filters["status"] = swap_status.value

        swaps = await execute_query(
            self.client,
            table="swap_requests",
            query_type="select",
            filters=filters,
            any_of={"requester_id": user_id, "responder_id": user_id},
            order_by={"created_at": "desc"}
        )

        return await self._with_names(swaps)

    async def rate_swap(self, swap_id: int, rater_id: int, rating: RatingCreate) -> Dict:
        """
        Rate the other participant of an accepted swap and refresh their rating.

        Each participant may rate a swap once. The rating row and the rated
        user's new average are written in one transaction.
        """
        swap = await self._participant_swap(swap_id, rater_id, SwapStatus.ACCEPTED)

        if not swap:
            raise NotFoundError(detail="Swap request not found or not completed")

        existing_rating = await execute_query(
            self.client,
            table="user_ratings",
            query_type="select",
            select="id",
            filters={"swap_id": swap_id, "rater_user_id": rater_id},
            limit=1
        )

        if existing_rating:
            raise ConflictError(detail=ALREADY_RATED)

        feedback = rating.feedback.strip() if rating.feedback else None

        try:
            result = await self.ratings.submit_rating(swap_id, rater_id, rating.rating, feedback or None)
        except DuplicateRecordError:
            raise ConflictError(detail=ALREADY_RATED)

        return {
            "message": "Rating submitted successfully",
            "rating": result["rating"],
            "rated_user_id": result["rating"]["rated_user_id"],
            "user_rating": result["user_rating"],
        }

    async def list_swap_ratings(self, swap_id: int, user_id: int) -> List[Dict]:
        swap = await self._participant_swap(swap_id, user_id)

        if not swap:
            raise NotFoundError(detail=SWAP_NOT_FOUND)

        return await execute_query(
            self.client,
            table="user_ratings",
            query_type="select",
            filters={"swap_id": swap_id},
            order_by={"created_at": "desc"}
        )
