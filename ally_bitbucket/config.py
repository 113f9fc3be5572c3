"""
Central configuration for the Bitbucket OAuth driver.

Settings are loaded from a .env file or environment variables.
See .env.example for available options.
"""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from dotenv import load_dotenv

from .errors import MissingConfigError

# Load .env file from the project root
load_dotenv(Path(__file__).parent.parent / ".env")

# Key the driver reads from its config accessor
CONFIG_KEY = "services.ally.bitbucket"

# Bitbucket OAuth consumer credentials
BITBUCKET_CLIENT_ID = os.getenv("BITBUCKET_CLIENT_ID", "")
BITBUCKET_CLIENT_SECRET = os.getenv("BITBUCKET_CLIENT_SECRET", "")
BITBUCKET_REDIRECT_URI = os.getenv(
    "BITBUCKET_REDIRECT_URI", "http://localhost:8000/auth/bitbucket/callback"
)

# Comma-separated scopes; empty means the driver default (account, email)
BITBUCKET_SCOPES = [
    s.strip() for s in os.getenv("BITBUCKET_SCOPES", "").split(",") if s.strip()
]

# Seconds before an outgoing provider request is abandoned
OAUTH_HTTP_TIMEOUT = float(os.getenv("OAUTH_HTTP_TIMEOUT", "10"))

# Browser origins allowed to call the login routes with credentials
CORS_ORIGINS = [
    o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:5173").split(",") if o.strip()
]

# Send the state cookie over HTTPS only; disable for plain-http local setups
OAUTH_COOKIE_SECURE = os.getenv("OAUTH_COOKIE_SECURE", "true").lower() in ("1", "true", "yes")


@dataclass(frozen=True)
class DriverConfig:
    """Validated settings for a single OAuth driver."""

    client_id: str
    client_secret: str
    redirect_uri: str
    scope: List[str] = field(default_factory=list)
    options: Dict[str, Any] = field(default_factory=dict)
    headers: Dict[str, str] = field(default_factory=dict)


ConfigAccessor = Callable[[str], Union[Mapping[str, Any], DriverConfig, None]]


def _pick(raw: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = raw.get(key)
        if value is not None:
            return value
    return None


def _scope_list(scope: Any) -> List[str]:
    # A single string may hold several scopes ("account email" or "account,email")
    if isinstance(scope, str):
        return scope.replace(",", " ").split()
    return list(scope or [])


def validate_driver_config(
    driver: str, raw: Union[Mapping[str, Any], DriverConfig, None]
) -> DriverConfig:
    """
    Turn a raw config mapping into a DriverConfig.

    Accepts both camelCase (clientId) and snake_case (client_id) keys.

    Raises:
        MissingConfigError: If the config is absent or a required key is empty
    """
    if isinstance(raw, DriverConfig):
        raw = {
            "client_id": raw.client_id,
            "client_secret": raw.client_secret,
            "redirect_uri": raw.redirect_uri,
            "scope": raw.scope,
            "options": raw.options,
            "headers": raw.headers,
        }
    if not raw:
        raise MissingConfigError(driver)

    client_id = _pick(raw, "clientId", "client_id")
    client_secret = _pick(raw, "clientSecret", "client_secret")
    redirect_uri = _pick(raw, "redirectUri", "redirect_uri")

    # Numeric client ids are valid; only None and empty strings are rejected
    for value in (client_id, client_secret, redirect_uri):
        if value is None or str(value) == "":
            raise MissingConfigError(driver)

    return DriverConfig(
        client_id=str(client_id),
        client_secret=str(client_secret),
        redirect_uri=str(redirect_uri),
        scope=_scope_list(raw.get("scope")),
        options=dict(raw.get("options") or {}),
        headers=dict(raw.get("headers") or {}),
    )


def env_config(key: str) -> Optional[Dict[str, Any]]:
    """Config accessor backed by environment variables."""
    if key != CONFIG_KEY or not BITBUCKET_CLIENT_ID:
        return None
    return {
        "clientId": BITBUCKET_CLIENT_ID,
        "clientSecret": BITBUCKET_CLIENT_SECRET,
        "redirectUri": BITBUCKET_REDIRECT_URI,
        "scope": BITBUCKET_SCOPES,
    }
