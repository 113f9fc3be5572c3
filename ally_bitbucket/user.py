"""Normalized user returned by every OAuth driver."""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class UserEmail:
    """One address from the provider's email list."""

    value: str
    primary: bool = False
    verified: bool = False


@dataclass(frozen=True)
class AllyUser:
    """
    Standardized user profile plus the tokens it was fetched with.

    `original` keeps the provider payload untouched (after email merging)
    so callers can read fields we do not normalize.
    """

    id: str
    name: Optional[str]
    email: Optional[str]
    nickname: Optional[str]
    avatar: Optional[str]
    original: Dict[str, Any] = field(default_factory=dict)
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    token_secret: Optional[str] = None  # OAuth1 only, always None here
    expires_in: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
