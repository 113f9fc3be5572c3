"""OAuth driver implementations."""

from .base import OAuthProvider
from .bitbucket import BitbucketProvider, normalize_emails

__all__ = ["OAuthProvider", "BitbucketProvider", "normalize_emails"]
