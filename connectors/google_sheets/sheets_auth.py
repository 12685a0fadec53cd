"""Google service-account authentication.

Implements the OAuth2 JWT bearer flow: a claim set is signed (RS256) with
the service account's private key and exchanged at the token URI for an
access token. Tokens are cached and refreshed five minutes before expiry.
"""

import json
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional

import aiohttp
import jwt

from core.config import GoogleCredentials
from core.observability.logging import get_logger


logger = get_logger(__name__)

SHEETS_SCOPE = "https://www.googleapis.com/auth/spreadsheets"
JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"
ASSERTION_LIFETIME_SECONDS = 3600


class GoogleAuthError(Exception):
    """Token exchange failed."""
    def __init__(self, message: str, status_code: int = 0, response_body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class GoogleToken:
    """OAuth2 access token with expiration tracking."""
    access_token: str
    token_type: str
    expires_in: int
    obtained_at: datetime = field(default_factory=_utcnow)

    @property
    def expires_at(self) -> datetime:
        return self.obtained_at + timedelta(seconds=self.expires_in)

    @property
    def is_expired(self) -> bool:
        """Check if token is expired (with 5-minute buffer)."""
        buffer = timedelta(minutes=5)
        return _utcnow() >= (self.expires_at - buffer)

    @property
    def authorization_header(self) -> str:
        return f"{self.token_type} {self.access_token}"


def build_signed_assertion(
    credentials: GoogleCredentials,
    scope: str = SHEETS_SCOPE,
    issued_at: Optional[int] = None,
) -> str:
    """Signed JWT assertion for the service account."""
    issued_at = int(time.time()) if issued_at is None else issued_at
    claims = {
        "iss": credentials.client_email,
        "scope": scope,
        "aud": credentials.token_uri,
        "iat": issued_at,
        "exp": issued_at + ASSERTION_LIFETIME_SECONDS,
    }
    headers = {"kid": credentials.private_key_id} if credentials.private_key_id else None
    return jwt.encode(claims, credentials.private_key, algorithm="RS256", headers=headers)


class GoogleServiceAccountAuth:
    """Access-token provider for a Google service account.

    Usage:
        auth = GoogleServiceAccountAuth(config.google_credentials)
        header = await auth.get_authorization_header()
    """

    def __init__(self, credentials: GoogleCredentials, scope: str = SHEETS_SCOPE):
        self.credentials = credentials
        self.scope = scope
        self._token: Optional[GoogleToken] = None

    async def _fetch_token(self, session: aiohttp.ClientSession) -> GoogleToken:
        data = {
            "grant_type": JWT_BEARER_GRANT,
            "assertion": build_signed_assertion(self.credentials, self.scope),
        }
        async with session.post(self.credentials.token_uri, data=data) as response:
            body = await response.text()
            if response.status != 200:
                raise GoogleAuthError(
                    f"Token request failed: {response.status} - {body}",
                    response.status,
                    body,
                )
            token_data = json.loads(body)

        logger.info(
            "Obtained Google access token",
            extra_fields={"client_email": self.credentials.client_email},
        )
        return GoogleToken(
            access_token=token_data["access_token"],
            token_type=token_data.get("token_type", "Bearer"),
            expires_in=int(token_data.get("expires_in", 3600)),
        )

    async def ensure_valid_token(self, session: aiohttp.ClientSession) -> GoogleToken:
        """Return a non-expired token, fetching a new one when needed."""
        if self._token is None or self._token.is_expired:
            self._token = await self._fetch_token(session)
        return self._token

    async def get_authorization_header(self, session: aiohttp.ClientSession) -> str:
        token = await self.ensure_valid_token(session)
        return token.authorization_header

    def invalidate(self) -> None:
        self._token = None
