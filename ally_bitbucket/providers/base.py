"""Base class for OAuth drivers."""

from abc import ABC, abstractmethod
from typing import Any, Mapping, Optional

from ..user import AllyUser


class OAuthProvider(ABC):
    """Abstract base class for OAuth drivers."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Driver identifier (e.g., 'bitbucket')."""
        pass

    @property
    def scope_separator(self) -> str:
        return " "

    @property
    def supports_state(self) -> bool:
        return True

    @abstractmethod
    def get_redirect_url(self, state: Optional[str] = None) -> str:
        """
        Generate authorization URL.

        Args:
            state: CSRF protection state parameter

        Returns:
            Full authorization URL to redirect user to
        """
        pass

    def parse_redirect_error(self, query_params: Mapping[str, Any]) -> str:
        """Extract a readable message from an error redirect."""
        return (
            query_params.get("error_description")
            or query_params.get("error")
            or "Oauth failed during redirect"
        )

    @abstractmethod
    async def get_user(
        self, query_params: Mapping[str, Any], original_state: Optional[str] = None
    ) -> AllyUser:
        """
        Complete the authorization-code flow.

        Args:
            query_params: Query string the provider redirected back with
            original_state: State issued with the redirect URL, if any

        Returns:
            Normalized user with tokens
        """
        pass

    @abstractmethod
    async def get_user_by_token(self, access_token: str) -> AllyUser:
        """
        Fetch the user for an access token obtained elsewhere.

        Args:
            access_token: OAuth access token

        Returns:
            Normalized user without a refresh token
        """
        pass
