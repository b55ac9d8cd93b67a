"""Verification of identity-provider ID tokens with PyJWT."""
from __future__ import annotations

import asyncio
import logging
from typing import Any

import jwt
from jwt import PyJWKClient

from ..domain.errors import InvalidCredentialError
from ..domain.roles import Identity

logger = logging.getLogger("portfolio.auth")


class JwtIdentityVerifier:
    """Validates bearer tokens issued by the external identity provider.

    With a JWKS URL the signing key is looked up by the token's ``kid``;
    otherwise a shared secret is used (local development and tests).
    """

    def __init__(
        self,
        *,
        algorithm: str,
        secret: str | None = None,
        jwks_url: str | None = None,
        audience: str | None = None,
        issuer: str | None = None,
    ) -> None:
        if secret is None and jwks_url is None:
            raise ValueError("JwtIdentityVerifier needs a secret or a JWKS URL")
        self._algorithm = algorithm
        self._secret = secret
        self._audience = audience
        self._issuer = issuer
        self._jwks_client = PyJWKClient(jwks_url) if jwks_url else None

    async def _signing_key(self, token: str) -> Any:
        if self._jwks_client is None:
            return self._secret
        # PyJWKClient fetches over blocking urllib
        signing_key = await asyncio.to_thread(
            self._jwks_client.get_signing_key_from_jwt, token
        )
        return signing_key.key

    async def verify(self, token: str) -> Identity:
        try:
            key = await self._signing_key(token)
            payload = jwt.decode(
                token,
                key,
                algorithms=[self._algorithm],
                audience=self._audience,
                issuer=self._issuer,
                options={"verify_aud": self._audience is not None},
            )
        except jwt.ExpiredSignatureError:
            raise InvalidCredentialError("Unauthorized. Token has expired.") from None
        except jwt.PyJWTError as exc:
            logger.info("Rejected identity token: %s", exc)
            raise InvalidCredentialError() from None

        subject = payload.get("sub")
        if not isinstance(subject, str) or not subject:
            raise InvalidCredentialError()

        email = payload.get("email")
        return Identity(
            subject_id=subject,
            email=email.strip().lower() if isinstance(email, str) else None,
            name=payload.get("name"),
            picture=payload.get("picture"),
        )
