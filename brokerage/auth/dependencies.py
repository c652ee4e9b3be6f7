from __future__ import annotations

from fastapi import HTTPException, Request


def require_user(request: Request) -> dict:
    """Raise 401 if no user is logged in."""
    user = request.session.get("user")
    if not user:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user


def _require_role(request: Request, role: str, detail: str) -> dict:
    user = require_user(request)
    if user.get("role") != role:
        raise HTTPException(status_code=403, detail=detail)
    return user


def require_buyer(request: Request) -> dict:
    """Raise 401 if not logged in, 403 if not a buyer."""
    return _require_role(request, "buyer", "Buyer access required")


def require_property_owner(request: Request) -> dict:
    """Raise 401 if not logged in, 403 if not a property owner."""
    return _require_role(request, "property_owner", "Property owner access required")
