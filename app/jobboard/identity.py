"""
Verification of ID tokens issued by the external identity provider.

Tokens are RS256 JWTs signed with keys published as a JWKS document
(Firebase by default). Signature, expiry, issuer and audience are all checked.
"""
from __future__ import annotations

import logging
from typing import Any

import jwt
from jwt import PyJWKClient
from jwt.exceptions import InvalidTokenError, PyJWKClientError

logger = logging.getLogger(__name__)


class TokenVerificationError(Exception):
    pass


class IdentityProvider:
    def __init__(self, *, project_id: str, issuer: str, jwks_url: str, leeway: int = 0):
        self.project_id = project_id
        self.issuer = issuer
        self.jwks_url = jwks_url
        self.leeway = leeway
        self._jwks_client: PyJWKClient | None = None

    def _client(self) -> PyJWKClient:
        if self._jwks_client is None:
            self._jwks_client = PyJWKClient(self.jwks_url, cache_keys=True)
        return self._jwks_client

    def verify_id_token(self, token: str) -> dict[str, Any]:
        """Return the decoded claims of a valid ID token, raise TokenVerificationError otherwise."""
        if not token:
            raise TokenVerificationError("empty token")
        if not self.project_id:
            raise TokenVerificationError("identity provider project id is not configured")
        try:
            signing_key = self._client().get_signing_key_from_jwt(token)
            claims = jwt.decode(
                token,
                signing_key.key,
                algorithms=["RS256"],
                audience=self.project_id,
                issuer=self.issuer,
                leeway=self.leeway,
                options={"require": ["exp", "iat", "sub"]},
            )
        except (InvalidTokenError, PyJWKClientError) as e:
            logger.info("ID token verification failed: %s", e)
            raise TokenVerificationError(str(e)) from e
        if not claims.get("sub"):
            raise TokenVerificationError("token has an empty subject")
        return claims


def identity_provider_from_config(config: dict) -> IdentityProvider:
    return IdentityProvider(
        project_id=config.get("IDENTITY_PROJECT_ID") or "",
        issuer=config.get("IDENTITY_ISSUER") or "",
        jwks_url=config.get("IDENTITY_JWKS_URL") or "",
    )
