import logging
from typing import Optional, List, Dict
from fastapi import HTTPException, status
from supabase import Client
from ..core.supabase import execute_query, execute_rpc
from ..core.exceptions import NotFoundError

logger = logging.getLogger(__name__)

class RatingService:
    def __init__(self, client: Client):
        self.client = client

    async def get_ratings_for_user(
        self,
        user_id: int,
        skip: int = 0,
        limit: Optional[int] = None
    ) -> List[Dict]:
        return await execute_query(
            self.client,
            table="user_ratings",
            query_type="select",
            filters={"rated_user_id": user_id},
            order_by={"created_at": "desc"},
            limit=limit,
            offset=skip
        )

    async def submit_rating(
        self,
        swap_id: int,
        rater_id: int,
        rating: int,
        feedback: Optional[str] = None
    ) -> Dict:
        """
        Store a rating and refresh the rated user's displayed rating.

        Both writes happen inside the ``submit_swap_rating`` database function,
        which averages every rating the user has received (rounded half-up to
        one decimal). A failure keeps neither write.
        """
        result = await execute_rpc(
            self.client,
            "submit_swap_rating",
            {
                "p_swap_id": swap_id,
                "p_rater_user_id": rater_id,
                "p_rating": rating,
                "p_feedback": feedback,
            }
        )

        if not result:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to create rating"
            )

        stored = result["rating"]
        logger.info(
            f"Swap {swap_id} rated {rating} by user {rater_id}; "
            f"user {stored['rated_user_id']} now rated {result['user_rating']}"
        )
        return result

    async def get_user_rating_summary(self, user_id: int) -> Dict:
        users = await execute_query(
            self.client,
            table="users",
            query_type="select",
            select="id, rating",
            filters={"id": user_id},
            limit=1
        )

        if not users:
            raise NotFoundError(detail="User not found")

        ratings = await self.get_ratings_for_user(user_id)

        return {
            "user_id": user_id,
            "rating": users[0].get("rating"),
            "rating_count": len(ratings),
        }
