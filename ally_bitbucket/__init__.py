"""Bitbucket OAuth2 driver producing normalized users."""

from .config import DriverConfig, env_config, validate_driver_config
from .errors import (
    InvalidStateError,
    MissingConfigError,
    OAuthError,
    ProfileFetchError,
    TokenExchangeError,
)
from .oauth2 import AccessTokenResult, OAuth2Client
from .providers import BitbucketProvider, OAuthProvider
from .user import AllyUser, UserEmail

__all__ = [
    "AccessTokenResult",
    "AllyUser",
    "BitbucketProvider",
    "DriverConfig",
    "InvalidStateError",
    "MissingConfigError",
    "OAuth2Client",
    "OAuthError",
    "OAuthProvider",
    "ProfileFetchError",
    "TokenExchangeError",
    "UserEmail",
    "env_config",
    "validate_driver_config",
]
