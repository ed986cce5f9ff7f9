import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from supabase import Client
from .config import get_settings
from .exceptions import CredentialsError
from .supabase import get_supabase_client, execute_query

logger = logging.getLogger(__name__)

# auto_error is off so a missing header gives 401 like every other failure
bearer_scheme = HTTPBearer(
    auto_error=False,
    scheme_name="JWT",
    description="Enter the access token directly (without 'Bearer' prefix)",
)

def create_access_token(
    user_id: int,
    email: Optional[str] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Create a JWT access token for a user."""
    settings = get_settings()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode = {
        "sub": str(user_id),
        "jti": uuid.uuid4().hex,
        "exp": expire,
    }
    if email:
        to_encode["email"] = email
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)

def decode_access_token(token: str) -> Dict[str, Any]:
    """
    Validate a token's signature and expiry and return its claims.

    Raises:
        CredentialsError: If the token is invalid, expired, or has no usable subject
    """
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError as e:
        logger.info(f"Rejected token: {e}")
        raise CredentialsError("Invalid token.")

    subject = payload.get("sub")
    if subject is None or not str(subject).isdigit():
        raise CredentialsError("Invalid token.")

    if not payload.get("jti"):
        raise CredentialsError("Invalid token.")

    return payload

async def is_token_revoked(client: Client, jti: str) -> bool:
    revoked = await execute_query(
        client,
        table="revoked_tokens",
        query_type="select",
        filters={"jti": jti},
        limit=1
    )
    return bool(revoked)

async def revoke_token(client: Client, claims: Dict[str, Any]) -> None:
    """Record a token's jti so it is refused until it would have expired anyway."""
    expires_at = datetime.fromtimestamp(claims["exp"], tz=timezone.utc)
    await execute_query(
        client,
        table="revoked_tokens",
        query_type="insert",
        data={
            "jti": claims["jti"],
            "user_id": int(claims["sub"]),
            "expires_at": expires_at.isoformat(),
            "revoked_at": datetime.now(timezone.utc).isoformat(),
        }
    )
    logger.info(f"Revoked token {claims['jti']} for user {claims['sub']}")

async def get_token_claims(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    client: Client = Depends(get_supabase_client),
) -> Dict[str, Any]:
    if credentials is None or not credentials.credentials:
        raise CredentialsError("Access denied. No token provided.")

    claims = decode_access_token(credentials.credentials)

    if await is_token_revoked(client, claims["jti"]):
        raise CredentialsError("Token has been revoked.")

    return claims

async def get_current_user_id(claims: Dict[str, Any] = Depends(get_token_claims)) -> int:
    """Resolve the caller's user id from the bearer token."""
    return int(claims["sub"])
