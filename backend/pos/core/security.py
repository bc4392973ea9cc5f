"""
# `pos/core/security.py` - Authentication & role checks

FastAPI dependencies that verify the **Firebase ID token** sent as
`Authorization: Bearer <token>` and turn it into a `Principal`.

## Roles

Roles come from custom claims set with the Admin SDK:

- `admin: true` → `admin`
- `role: "manager" | "cashier"` → that role
- no `storeId` claim → the user owns the store → `manager`
- otherwise → `cashier`

`storeId` points a cashier at the owner whose inventory and sales they work on.

## Dependencies

- `get_principal`: token required, any role.
- `require_manager`: manager or admin (inventory changes, reports).

> `verify_id_token(..., check_revoked=True)`: tokens are rejected after sign-out.
"""
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from firebase_admin import auth as firebase_auth

from pos.config import init_firebase
from pos.schemas.principal import Principal

# HTTPBearer is a FastAPI provided security scheme for "Authorization: Bearer <token>" header
oauth2_scheme = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _decode_id_token(id_token: str) -> dict:
    init_firebase()
    try:
        return firebase_auth.verify_id_token(id_token, check_revoked=True)
    except firebase_auth.ExpiredIdTokenError:
        raise _unauthorized("Token expired")
    except firebase_auth.RevokedIdTokenError:
        raise _unauthorized("Session revoked")
    except firebase_auth.UserDisabledError:
        raise _unauthorized("User disabled")
    except firebase_auth.CertificateFetchError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Could not verify the token, try again",
        )
    except (firebase_auth.InvalidIdTokenError, ValueError):
        raise _unauthorized("Invalid authentication token")


def token_to_principal(decoded: dict) -> Principal:
    uid = decoded.get("uid") or decoded.get("user_id")
    if not uid:
        raise _unauthorized("Invalid token payload")

    store_id = decoded.get("storeId")
    claimed = decoded.get("role")
    if decoded.get("admin") is True:
        role = "admin"
    elif claimed in ("manager", "cashier"):
        role = claimed
    elif not store_id:
        role = "manager"
    else:
        role = "cashier"

    return Principal(
        uid=uid,
        role=role,
        email=decoded.get("email"),
        display_name=decoded.get("name"),
        store_id=store_id,
    )


# --------- FastAPI Dependencies --------- #

def get_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(oauth2_scheme),
) -> Principal:
    if not credentials or not credentials.scheme or not credentials.credentials:
        raise _unauthorized("Authentication credentials were not provided")
    return token_to_principal(_decode_id_token(credentials.credentials))


def require_manager(principal: Principal = Depends(get_principal)) -> Principal:
    if not principal.is_manager:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Manager privilege required.",
        )
    return principal
