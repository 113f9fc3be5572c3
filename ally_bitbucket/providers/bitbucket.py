"""Bitbucket OAuth 2.0 driver."""

import asyncio
import logging
from dataclasses import asdict
from typing import Any, Dict, List, Mapping, Optional, Union

import httpx

from ..config import (
    CONFIG_KEY,
    OAUTH_HTTP_TIMEOUT,
    ConfigAccessor,
    DriverConfig,
    validate_driver_config,
)
from ..errors import InvalidStateError, ProfileFetchError, TokenExchangeError
from ..oauth2 import AccessTokenResult, OAuth2Client
from ..user import AllyUser, UserEmail
from .base import OAuthProvider

logger = logging.getLogger(__name__)


def normalize_emails(raw_emails: Mapping[str, Any]) -> List[Dict[str, Any]]:
    """Map Bitbucket's paginated email list to {value, primary, verified} entries."""
    return [
        asdict(
            UserEmail(
                value=entry.get("email"),
                primary=bool(entry.get("is_primary")),
                verified=bool(entry.get("is_confirmed")),
            )
        )
        for entry in raw_emails.get("values") or []
    ]


class BitbucketProvider(OAuthProvider):
    """
    Bitbucket OAuth 2.0 driver.

    Holds only static config, so one instance can serve many concurrent
    logins. Pass `http_client` to reuse a connection pool (or to fake the
    provider in tests); otherwise each call opens its own client.
    """

    BASE_URL = "https://bitbucket.org/"
    AUTHORIZE_URL = "site/oauth2/authorize"
    ACCESS_TOKEN_URL = "site/oauth2/access_token"
    USER_URL = "api/2.0/user"
    EMAILS_URL = "api/2.0/user/emails"
    DEFAULT_SCOPES = ["account", "email"]

    def __init__(
        self,
        config: Union[ConfigAccessor, DriverConfig, Mapping[str, Any]],
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        raw = config(CONFIG_KEY) if callable(config) else config
        self.config = validate_driver_config(self.name, raw)
        logger.debug(f"Configured {self.name} driver for client {self.config.client_id}")

        self._redirect_uri = self.config.redirect_uri
        self._redirect_uri_options = {"response_type": "code", **self.config.options}
        self.scope = list(self.config.scope) if self.config.scope else list(self.DEFAULT_SCOPES)

        self._http_client = http_client
        self._oauth = OAuth2Client(
            client_id=self.config.client_id,
            client_secret=self.config.client_secret,
            base_url=self.base_url,
            authorize_path=self.authorize_url,
            access_token_path=self.access_token_url,
            headers=self.config.headers,
            http_client=http_client,
        )

    @property
    def name(self) -> str:
        return "bitbucket"

    @property
    def base_url(self) -> str:
        return self.BASE_URL

    @property
    def authorize_url(self) -> str:
        return self.AUTHORIZE_URL

    @property
    def access_token_url(self) -> str:
        return self.ACCESS_TOKEN_URL

    def get_redirect_url(self, state: Optional[str] = None) -> str:
        """Generate Bitbucket authorization URL."""
        options = dict(self._redirect_uri_options)
        if state:
            options["state"] = state
        return self._oauth.build_authorization_url(
            self._redirect_uri, self.scope, self.scope_separator, options
        )

    async def get_user(
        self, query_params: Mapping[str, Any], original_state: Optional[str] = None
    ) -> AllyUser:
        """Exchange the redirect code and fetch the Bitbucket user."""
        code = query_params.get("code")
        state = query_params.get("state")

        if not code:
            message = self.parse_redirect_error(query_params)
            raise TokenExchangeError(message, provider_message=message)

        if state and original_state != state:
            logger.warning(f"{self.name} login rejected: state mismatch")
            raise InvalidStateError()

        token = await self._oauth.exchange_code_for_token(
            code, self._redirect_uri, {"grant_type": "authorization_code"}
        )
        profile = await self._get_user_detail(token.access_token)
        user = self.build_user(profile, token)
        logger.info(f"{self.name} login succeeded for {user.nickname}")
        return user

    async def get_user_by_token(self, access_token: str) -> AllyUser:
        """Fetch the Bitbucket user for an existing access token."""
        profile = await self._get_user_detail(access_token)
        return self.build_user(profile, AccessTokenResult(access_token=access_token))

    def build_user(self, profile: Mapping[str, Any], token: AccessTokenResult) -> AllyUser:
        """Normalize a merged Bitbucket profile into an AllyUser."""
        user_id = profile.get("uuid")
        if not user_id:
            raise ProfileFetchError("Bitbucket profile did not contain a uuid")

        # First merged entry, not necessarily the one flagged primary
        emails = profile.get("emails") or []
        email = emails[0]["value"] if emails else None

        avatar = ((profile.get("links") or {}).get("avatar") or {}).get("href")

        return AllyUser(
            id=user_id,
            name=profile.get("display_name"),
            email=email,
            nickname=profile.get("username"),
            avatar=avatar,
            original=dict(profile),
            access_token=token.access_token,
            refresh_token=token.refresh_token,
            expires_in=token.expires_in,
        )

    async def _get_user_detail(self, access_token: str) -> Dict[str, Any]:
        """Fetch profile and emails concurrently and merge them."""
        if self._http_client is not None:
            profile, emails = await self._fetch_both(self._http_client, access_token)
        else:
            async with httpx.AsyncClient(timeout=OAUTH_HTTP_TIMEOUT) as client:
                profile, emails = await self._fetch_both(client, access_token)

        profile = dict(profile)
        profile["emails"] = normalize_emails(emails)
        return profile

    async def _fetch_both(self, client: httpx.AsyncClient, access_token: str):
        tasks = [
            asyncio.ensure_future(
                self._get_json(client, f"{self.base_url}{self.USER_URL}", access_token)
            ),
            asyncio.ensure_future(
                self._get_json(client, f"{self.base_url}{self.EMAILS_URL}", access_token)
            ),
        ]
        try:
            return await asyncio.gather(*tasks)
        except BaseException:
            # The sibling request must not outlive the caller's client
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def _get_json(
        self, client: httpx.AsyncClient, url: str, access_token: str
    ) -> Dict[str, Any]:
        try:
            response = await client.get(
                url,
                params={"access_token": access_token},
                headers={"Accept": "application/json"},
            )
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as e:
            logger.warning(f"{self.name} request to {url} returned {e.response.status_code}")
            raise ProfileFetchError(
                f"Failed to fetch {url}: {e.response.text}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            logger.warning(f"{self.name} request to {url} failed: {e}")
            raise ProfileFetchError(f"Failed to fetch {url}: {e}") from e
        except ValueError as e:
            raise ProfileFetchError(f"Invalid JSON from {url}") from e

        if not isinstance(body, dict):
            raise ProfileFetchError(f"Unexpected response shape from {url}")
        return body
