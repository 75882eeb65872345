from collections.abc import Callable

import jwt
from fastapi import Depends, Header, Request

from app.core.exceptions import ForbiddenError, UnauthorizedError
from app.core.security import decode_token
from app.delivery.aggregator import DeliveryQuoteAggregator
from app.gateway.service import AiService

# Role hierarchy: higher index = more privileges
ROLE_HIERARCHY: dict[str, int] = {
    "customer": 0,
    "manager": 1,
    "admin": 2,
}


def _claims_from_header(authorization: str) -> dict:
    if not authorization.startswith("Bearer "):
        raise UnauthorizedError("Invalid authorization header")

    token = authorization[7:]
    try:
        payload = decode_token(token)
    except jwt.PyJWTError:
        raise UnauthorizedError("Invalid or expired token")

    if payload.get("type") != "access":
        raise UnauthorizedError("Invalid token type")

    if not payload.get("sub"):
        raise UnauthorizedError("Invalid token payload")

    return payload


async def get_current_user(
    authorization: str | None = Header(None, description="Bearer <token>"),
) -> dict:
    """Token claims of the caller (``sub``, ``role``)."""
    if not authorization:
        raise UnauthorizedError()
    return _claims_from_header(authorization)


async def get_optional_user(
    authorization: str | None = Header(None, description="Bearer <token>"),
) -> dict | None:
    """Same as get_current_user, but anonymous callers get None."""
    if not authorization:
        return None
    return _claims_from_header(authorization)


def require_role(min_role: str) -> Callable:
    """Dependency factory: require user to have at least `min_role` privileges.

    Usage:
        @router.post("/generate-blog", dependencies=[Depends(require_role("manager"))])
    """
    min_level = ROLE_HIERARCHY.get(min_role, 0)

    async def _check(user: dict = Depends(get_current_user)) -> dict:
        user_level = ROLE_HIERARCHY.get(user.get("role", "customer"), 0)
        if user_level < min_level:
            raise ForbiddenError(f"Requires at least '{min_role}' role")
        return user

    return _check


def get_ai_service(request: Request) -> AiService:
    return request.app.state.ai_service


def get_delivery_aggregator(request: Request) -> DeliveryQuoteAggregator:
    return request.app.state.delivery_aggregator
