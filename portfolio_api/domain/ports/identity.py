from __future__ import annotations

from typing import Protocol

from ..roles import Identity


class IdentityVerifier(Protocol):
    async def verify(self, token: str) -> Identity:
        """Raises InvalidCredentialError when the token is rejected."""
        ...
