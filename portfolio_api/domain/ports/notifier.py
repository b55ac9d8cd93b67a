from __future__ import annotations

from datetime import datetime
from typing import Protocol


class InviteNotifier(Protocol):
    async def send_invite_notification(
        self,
        *,
        to: str,
        link: str,
        inviter_email: str,
        expires_at: datetime,
    ) -> None:
        ...
