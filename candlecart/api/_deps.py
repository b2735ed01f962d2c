"""
Request dependencies: the shop, who is asking, admin access.
"""

import hmac
from typing import Annotated

from fastapi import Depends, Header, Request

from candlecart._errors import ForbiddenError, ValidationError
from candlecart.app import Shop
from candlecart.cart import CartOwner


def get_shop(request: Request) -> Shop:
    return request.app.state.shop


def get_owner(
    x_user_id: Annotated[str | None, Header()] = None,
    x_guest_id: Annotated[str | None, Header()] = None,
) -> CartOwner:
    """Signed-in users win over a guest id sent alongside."""
    if x_user_id:
        return CartOwner.user(x_user_id)
    if x_guest_id:
        return CartOwner.guest(x_guest_id)
    raise ValidationError(
        "send X-User-Id or X-Guest-Id",
        {"owner": "a user or guest id is required"},
    )


def get_user_id(x_user_id: Annotated[str | None, Header()] = None) -> str:
    if not x_user_id:
        raise ValidationError("sign in first", {"owner": "a user id is required"})
    return x_user_id


def require_admin(
    shop: Annotated[Shop, Depends(get_shop)],
    x_admin_token: Annotated[str | None, Header()] = None,
) -> None:
    if not x_admin_token or not hmac.compare_digest(x_admin_token, shop.settings.admin_token):
        raise ForbiddenError("admin access required")


ShopDep = Annotated[Shop, Depends(get_shop)]
OwnerDep = Annotated[CartOwner, Depends(get_owner)]
UserIdDep = Annotated[str, Depends(get_user_id)]
AdminDep = Depends(require_admin)


__all__ = (
    "get_shop",
    "get_owner",
    "get_user_id",
    "require_admin",
    "ShopDep",
    "OwnerDep",
    "UserIdDep",
    "AdminDep",
)
