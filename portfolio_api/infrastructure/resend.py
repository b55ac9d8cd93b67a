"""Invitation emails through the Resend REST API."""
from __future__ import annotations

import logging
from datetime import datetime
from html import escape

import httpx

logger = logging.getLogger("portfolio.notifications")

RESEND_API_URL = "https://api.resend.com/emails"


def render_invite_email(link: str, inviter_email: str, expires_at: datetime) -> str:
    return (
        "<p>You have been invited by "
        f"{escape(inviter_email)} to help manage the portfolio admin panel.</p>"
        f'<p><a href="{escape(link, quote=True)}">Accept the invitation</a></p>'
        f"<p>This invitation expires on {expires_at:%B %d, %Y}.</p>"
    )


class ResendInviteNotifier:
    def __init__(
        self,
        *,
        api_key: str,
        sender: str,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._sender = sender
        self._timeout_seconds = timeout_seconds
        self._transport = transport

    async def send_invite_notification(
        self,
        *,
        to: str,
        link: str,
        inviter_email: str,
        expires_at: datetime,
    ) -> None:
        async with httpx.AsyncClient(
            timeout=self._timeout_seconds,
            transport=self._transport,
            headers={"Authorization": f"Bearer {self._api_key}"},
        ) as client:
            response = await client.post(
                RESEND_API_URL,
                json={
                    "from": self._sender,
                    "to": [to],
                    "subject": "You've been invited to the portfolio admin panel",
                    "html": render_invite_email(link, inviter_email, expires_at),
                },
            )
            response.raise_for_status()
        logger.info("Invitation email sent to %s", to)


class DisabledInviteNotifier:
    """Used when no email provider is configured; the link is only logged."""

    async def send_invite_notification(
        self,
        *,
        to: str,
        link: str,
        inviter_email: str,
        expires_at: datetime,
    ) -> None:
        logger.info("Email delivery disabled; invitation for %s not sent", to)
