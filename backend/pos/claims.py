#!/usr/bin/env python3
"""
Sets the POS custom claims (role, storeId) on a Firebase user with the Admin SDK.

    python -m pos.claims <user_email> <cashier|manager|admin> [store_owner_email]

Cashiers and managers working for someone else's store need the owner's email
so their `storeId` points at the owner's inventory and sales.
"""
import sys
from typing import Dict, Optional

from firebase_admin import auth

from pos.config import init_firebase

ROLES = ("cashier", "manager", "admin")


def build_claims(role: str, store_id: Optional[str] = None) -> Dict[str, object]:
    if role not in ROLES:
        raise ValueError(f"role must be one of {', '.join(ROLES)}")
    claims: Dict[str, object] = {"role": role}
    if role == "admin":
        claims["admin"] = True
    if store_id:
        claims["storeId"] = store_id
    return claims


def set_role_claim(user_email: str, role: str, owner_email: Optional[str] = None) -> Dict[str, object]:
    init_firebase()
    store_id = auth.get_user_by_email(owner_email).uid if owner_email else None
    user = auth.get_user_by_email(user_email)
    claims = build_claims(role, store_id)
    auth.set_custom_user_claims(user.uid, claims)
    return auth.get_user(user.uid).custom_claims or {}


def main(argv) -> int:
    if len(argv) not in (3, 4):
        print("Usage: python -m pos.claims <user_email> <cashier|manager|admin> [store_owner_email]")
        return 1
    user_email, role = argv[1], argv[2]
    owner_email = argv[3] if len(argv) == 4 else None
    try:
        claims = set_role_claim(user_email, role, owner_email)
    except auth.UserNotFoundError as e:
        print(f"User not found: {e}")
        return 1
    except ValueError as e:
        print(f"Error setting claims: {e}")
        return 1
    print(f"Custom claims for {user_email}: {claims}")
    print("The user will need to sign out and sign in again for the changes to take effect.")
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv))
