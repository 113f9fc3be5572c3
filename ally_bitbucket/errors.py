"""Exceptions raised by OAuth drivers."""

from typing import Optional


class OAuthError(Exception):
    """Base exception for OAuth driver failures."""

    code = "E_OAUTH"

    def __init__(self, message: str):
        super().__init__(f"{self.code}: {message}")
        self.message = message


class MissingConfigError(OAuthError):
    """Raised when a driver is constructed without its required config."""

    code = "E_MISSING_CONFIG"

    def __init__(self, driver: str):
        super().__init__(f"{driver} is not defined inside the services.ally config")
        self.driver = driver


class TokenExchangeError(OAuthError):
    """Raised when there is no code to exchange or the provider rejects it."""

    code = "E_OAUTH_TOKEN_EXCHANGE"

    def __init__(self, message: str, provider_message: Optional[str] = None):
        super().__init__(message)
        self.provider_message = provider_message


class InvalidStateError(OAuthError):
    """Raised when the state returned by the provider does not match ours."""

    code = "E_OAUTH_STATE_MISMATCH"

    def __init__(self, message: str = "Oauth state mis-match"):
        super().__init__(message)


class ProfileFetchError(OAuthError):
    """Raised when the profile or email endpoint fails after a token was issued."""

    code = "E_OAUTH_PROFILE_FETCH"

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
