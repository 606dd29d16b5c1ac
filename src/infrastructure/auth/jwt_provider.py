"""JWT authentication provider implementation.

Accepts two kinds of token:

* asymmetric (RS256/ES256) tokens from an identity provider, verified with
  the public key whose ``kid`` matches in the provider's JWKS document
* HS256 tokens signed with the shared secret (local development and tests)

The only required claim is ``sub``, which becomes the user ID.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import httpx
import structlog
from jose import JWTError, jwk, jwt

from core.config import settings
from infrastructure.auth.provider import TokenUser

logger = structlog.get_logger()

ASYMMETRIC_ALGORITHMS = frozenset({"RS256", "ES256"})


class JWKSCache:
    """kid -> JWK mapping fetched once and refetched on an unknown kid."""

    def __init__(self, url: str, timeout: float = 10.0) -> None:
        self._url = url
        self._timeout = timeout
        self._keys: dict[str, dict[str, Any]] | None = None

    async def get(self, kid: str) -> Optional[dict[str, Any]]:
        keys = await self._load()
        if kid in keys:
            return keys[kid]
        # Unknown kid: the provider may have rotated keys
        self._keys = None
        return (await self._load()).get(kid)

    async def _load(self) -> dict[str, dict[str, Any]]:
        if self._keys is not None:
            return self._keys
        if not self._url:
            return {}

        try:
            async with httpx.AsyncClient() as client:
                response = await client.get(self._url, timeout=self._timeout)
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("jwks_fetch_failed", url=self._url, error=str(e))
            return {}

        self._keys = {k["kid"]: k for k in data.get("keys", []) if k.get("kid")}
        logger.info("jwks_fetched", url=self._url, keys=len(self._keys))
        return self._keys


class JWTAuthProvider:
    """JWT-based authentication provider."""

    def __init__(
        self,
        secret_key: str = settings.jwt_secret_key,
        algorithm: str = settings.jwt_algorithm,
        expire_minutes: int = settings.jwt_expire_minutes,
        jwks_url: str = settings.jwks_url,
        audience: str = settings.jwt_audience,
    ) -> None:
        self._secret_key = secret_key
        self._algorithm = algorithm
        self._expire_minutes = expire_minutes
        self._audience = audience or None
        self._jwks = JWKSCache(jwks_url)

    async def validate_token(self, token: str) -> Optional[TokenUser]:
        """
        Validate a JWT and extract user info.

        Returns:
            TokenUser if valid, None if invalid or expired
        """
        try:
            header = jwt.get_unverified_header(token)
            alg = header.get("alg", self._algorithm)

            if alg in ASYMMETRIC_ALGORITHMS:
                payload = await self._decode_asymmetric(token, header, alg)
            else:
                payload = jwt.decode(
                    token,
                    self._secret_key,
                    algorithms=[self._algorithm],
                    audience=self._audience,
                    options={"verify_aud": self._audience is not None},
                )
        except JWTError:
            return None

        if not payload:
            return None

        user_id = payload.get("sub")
        if not user_id:
            return None

        metadata = payload.get("user_metadata") or {}
        return TokenUser(
            id=str(user_id),
            email=payload.get("email"),
            display_name=metadata.get("display_name") or payload.get("name"),
            role=payload.get("role"),
        )

    async def _decode_asymmetric(
        self, token: str, header: dict, alg: str
    ) -> Optional[dict]:
        kid = header.get("kid")
        if not kid:
            return None

        key_data = await self._jwks.get(kid)
        if not key_data:
            logger.warning("jwks_key_not_found", kid=kid)
            return None

        return jwt.decode(
            token,
            jwk.construct(key_data, algorithm=alg),
            algorithms=[alg],
            audience=self._audience,
            options={"verify_aud": self._audience is not None},
        )

    def create_token(self, user: TokenUser) -> str:
        """Create an HS256 token for a user (local development and tests)."""
        expire = datetime.now(timezone.utc) + timedelta(minutes=self._expire_minutes)

        payload: dict[str, Any] = {
            "sub": user.id,
            "exp": expire,
            "user_metadata": {"display_name": user.display_name},
        }
        if user.email:
            payload["email"] = user.email
        if user.role:
            payload["role"] = user.role
        if self._audience:
            payload["aud"] = self._audience

        return jwt.encode(payload, self._secret_key, algorithm=self._algorithm)
