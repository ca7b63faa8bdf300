import json
import logging
import time
from typing import Any, Dict, List
import urllib.request

from fastapi import Depends, HTTPException, status, Request
from jose import jwt
from jose.exceptions import JWTError
from sqlalchemy.orm import Session

from crud.users import get_or_create_user
from database import get_db

# === Cognito Configuration ===
# Values come from the environment (.env is loaded below).
import os
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

COGNITO_REGION = os.getenv("COGNITO_REGION", "ap-south-1")
COGNITO_USER_POOL_ID = os.getenv("COGNITO_USER_POOL_ID")
COGNITO_APP_CLIENT_ID = os.getenv("COGNITO_APP_CLIENT_ID")

# --- Advanced Configuration ---
# These are constructed from the settings above.
COGNITO_ISSUER = f"https://cognito-idp.{COGNITO_REGION}.amazonaws.com/{COGNITO_USER_POOL_ID}"
COGNITO_JWKS_URL = f"{COGNITO_ISSUER}/.well-known/jwks.json"

# Group whose members may run stock settlements and delete materials
ADMIN_GROUP = os.getenv("ADMIN_GROUP", "admin")

# =================================================================

# Cache for Cognito's public keys (JWKS)
# This avoids fetching the keys on every single request.
jwks_cache = {
    "keys": [],
    "expiration_time": 0,
}

def get_jwks():
    """
    Retrieves the JSON Web Key Set (JWKS) from Cognito.
    Caches the keys for 24 hours.
    """
    global jwks_cache
    if jwks_cache["keys"] and jwks_cache["expiration_time"] > time.time():
        return jwks_cache["keys"]

    logger.info(f"Fetching JWKS from: {COGNITO_JWKS_URL}")
    try:
        with urllib.request.urlopen(COGNITO_JWKS_URL) as response:
            jwks_data = json.loads(response.read().decode("utf-8"))

        jwks_cache = {
            "keys": jwks_data["keys"],
            "expiration_time": time.time() + (60 * 60 * 24)
        }
        return jwks_cache["keys"]
    except Exception as e:
        logger.error(f"Error fetching JWKS: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Could not fetch Cognito public keys for token validation."
        )


def get_current_user(request: Request) -> Dict[str, Any]:
    """
    FastAPI dependency to validate the Cognito JWT from the Authorization header.

    Usage:
        @router.get("/stock-levels", dependencies=[Depends(get_current_user)])
        def stock_levels():
            ...
    """
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header is missing",
        )

    # The token is expected to be in the format "Bearer <token>"
    parts = auth_header.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header format",
        )

    token = parts[1]
    jwks = get_jwks()

    # Find the right key to use for decoding
    try:
        unverified_header = jwt.get_unverified_header(token)
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token header"
        )

    rsa_key = {}
    for key in jwks:
        if key["kid"] == unverified_header.get("kid"):
            rsa_key = {
                "kty": key["kty"],
                "kid": key["kid"],
                "use": key["use"],
                "n": key["n"],
                "e": key["e"],
            }
            break

    if not rsa_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unable to find a matching public key to verify the token",
        )

    # Decode and validate the token
    try:
        payload = jwt.decode(
            token,
            rsa_key,
            algorithms=["RS256"],
            audience=COGNITO_APP_CLIENT_ID,
            issuer=COGNITO_ISSUER,
        )
        return payload
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired"
        )
    except jwt.JWTClaimsError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid token claims: {e}"
        )
    except JWTError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Token validation failed: {e}"
        )


def get_user_identifier(user: Dict[str, Any]) -> str:
    """Stable identifier for audit columns: Cognito username, then email, then sub."""
    return (
        user.get("cognito:username")
        or user.get("username")
        or user.get("email")
        or user.get("sub")
        or "unknown"
    )


def require_group(groups: List[str]):
    """Dependency factory: the token must carry at least one of `groups` in cognito:groups."""
    def _checker(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
        user_groups = user.get("cognito:groups") or []
        if not any(group in user_groups for group in groups):
            logger.warning(f"User {get_user_identifier(user)} denied; requires one of {groups}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You do not have permission to perform this action",
            )
        return user
    return _checker


def get_acting_user(
    user: Dict[str, Any] = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Local User row for the authenticated caller, used as performed_by on ledger rows."""
    db_user = get_or_create_user(
        db,
        username=get_user_identifier(user),
        full_name=user.get("name"),
        email=user.get("email"),
    )
    if not db_user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User account is inactive")
    return db_user
