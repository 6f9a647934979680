"""
auth/delivery.py -- Hand-off point for one-time tokens (email verification, password reset).

Folio does not send email. The routes call a TokenDelivery after a token is
issued; the application installs one on app.state.token_delivery at startup.

LogTokenDelivery is the default. With reveal_links=True (DEBUG) it logs the
frontend link so a developer can complete the flow locally; otherwise it logs
only that a token was issued, never the token itself.
"""

from __future__ import annotations

import logging

from auth.models import User

logger = logging.getLogger("folio.auth.delivery")


class TokenDelivery:
    """Interface: deliver a one-time token to the account holder."""

    async def send_verification(self, user: User, token: str) -> None:
        raise NotImplementedError

    async def send_password_reset(self, user: User, token: str) -> None:
        raise NotImplementedError


class LogTokenDelivery(TokenDelivery):
    def __init__(self, frontend_url: str, reveal_links: bool = False) -> None:
        self.frontend_url = frontend_url.rstrip("/")
        self.reveal_links = reveal_links

    async def send_verification(self, user: User, token: str) -> None:
        if self.reveal_links:
            logger.info("Verification link for user_id=%s: %s/verify-email/%s", user.id, self.frontend_url, token)
        else:
            logger.info("Verification token issued for user_id=%s (no delivery configured)", user.id)

    async def send_password_reset(self, user: User, token: str) -> None:
        if self.reveal_links:
            logger.info("Password reset link for user_id=%s: %s/reset-password/%s", user.id, self.frontend_url, token)
        else:
            logger.info("Password reset token issued for user_id=%s (no delivery configured)", user.id)
