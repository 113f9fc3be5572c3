"""OAuth2 authorization-code primitives shared by drivers."""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Mapping, Optional
from urllib.parse import parse_qsl, quote, urlencode

import httpx

from .config import OAUTH_HTTP_TIMEOUT
from .errors import TokenExchangeError

logger = logging.getLogger(__name__)

# Characters encodeURIComponent leaves alone, so URLs match other ally drivers
_URI_SAFE = "!*'()"


@dataclass(frozen=True)
class AccessTokenResult:
    """Tokens issued by a successful code exchange."""

    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_response(cls, payload: Mapping[str, Any]) -> "AccessTokenResult":
        """Build from a provider token response, tolerating missing fields."""
        access_token = payload.get("access_token")
        if not access_token:
            raise TokenExchangeError(
                "Token response did not contain an access token",
                provider_message=_provider_error(payload),
            )

        expires_in = payload.get("expires_in")
        try:
            expires_in = int(expires_in) if expires_in is not None else None
        except (TypeError, ValueError):
            expires_in = None

        return cls(
            access_token=access_token,
            refresh_token=payload.get("refresh_token"),
            expires_in=expires_in,
            raw=dict(payload),
        )


def _provider_error(payload: Mapping[str, Any]) -> Optional[str]:
    return payload.get("error_description") or payload.get("error")


class OAuth2Client:
    """
    Builds authorization URLs and exchanges codes for tokens.

    Drivers compose one of these instead of inheriting from it.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        base_url: str,
        authorize_path: str,
        access_token_path: str,
        headers: Optional[Mapping[str, str]] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.base_url = base_url
        self.authorize_path = authorize_path
        self.access_token_path = access_token_path
        self.headers = dict(headers or {})
        self._http_client = http_client

    @property
    def authorize_endpoint(self) -> str:
        return f"{self.base_url}{self.authorize_path}"

    @property
    def token_endpoint(self) -> str:
        return f"{self.base_url}{self.access_token_path}"

    def build_authorization_url(
        self,
        redirect_uri: str,
        scopes: Iterable[str],
        scope_separator: str,
        options: Optional[Mapping[str, Any]] = None,
    ) -> str:
        """
        Generate the provider authorization URL.

        Query order is redirect_uri, scope, the extra options in insertion
        order, then client_id. Spaces encode as %20.
        """
        params: Dict[str, Any] = {
            "redirect_uri": redirect_uri,
            "scope": scope_separator.join(scopes),
        }
        params.update(options or {})
        params["client_id"] = self.client_id
        query = urlencode(params, quote_via=quote, safe=_URI_SAFE)
        return f"{self.authorize_endpoint}?{query}"

    async def exchange_code_for_token(
        self,
        code: str,
        redirect_uri: str,
        extra_params: Optional[Mapping[str, Any]] = None,
    ) -> AccessTokenResult:
        """
        Exchange an authorization code for tokens.

        Raises:
            TokenExchangeError: On transport failure, non-2xx status or an
                unusable token response
        """
        data = {
            "code": code,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "redirect_uri": redirect_uri,
        }
        data.update(extra_params or {})
        headers = {"Accept": "application/json", **self.headers}

        try:
            if self._http_client is not None:
                response = await self._http_client.post(
                    self.token_endpoint, data=data, headers=headers
                )
            else:
                async with httpx.AsyncClient(timeout=OAUTH_HTTP_TIMEOUT) as client:
                    response = await client.post(
                        self.token_endpoint, data=data, headers=headers
                    )
        except httpx.HTTPError as e:
            logger.warning(f"Token exchange request to {self.token_endpoint} failed: {e}")
            raise TokenExchangeError(f"Token exchange failed: {e}") from e

        payload = self._parse_token_body(response)

        if response.is_error:
            provider_message = _provider_error(payload)
            logger.warning(
                f"Token exchange rejected with status {response.status_code}: {provider_message}"
            )
            raise TokenExchangeError(
                provider_message or f"Token exchange failed with status {response.status_code}",
                provider_message=provider_message,
            )

        return AccessTokenResult.from_response(payload)

    @staticmethod
    def _parse_token_body(response: httpx.Response) -> Dict[str, Any]:
        """Token endpoints answer with JSON or, for some providers, a form body."""
        try:
            body = response.json()
        except ValueError:
            return dict(parse_qsl(response.text))
        return body if isinstance(body, dict) else {}
