"""Identity collaborator: who owns the cart snapshot."""
from __future__ import annotations

from typing import Protocol

from cartengine.core.constants import GUEST_USER_ID

try:
    from logging_config import logger
except ImportError:
    import logging

    logger = logging.getLogger(__name__)


class IdentityProvider(Protocol):
    def current_user_id(self) -> str | None: ...


class StaticIdentity:
    """Identity holder updated by the auth layer on sign-in / sign-out."""

    def __init__(self, user_id: str | None = None) -> None:
        self._user_id = user_id

    def current_user_id(self) -> str | None:
        return self._user_id

    def sign_in(self, user_id: str) -> None:
        self._user_id = user_id

    def sign_out(self) -> None:
        self._user_id = None


def resolve_user_id(identity: IdentityProvider | None) -> str:
    """Current user id, or the guest sentinel when unknown or the lookup fails."""
    if identity is None:
        return GUEST_USER_ID
    try:
        user_id = identity.current_user_id()
    except Exception as exc:
        logger.warning("Identity lookup failed, using guest cart: %s", exc)
        return GUEST_USER_ID
    return str(user_id) if user_id else GUEST_USER_ID
