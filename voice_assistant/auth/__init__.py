"""OAuth clients used to refresh stored credentials."""

from .amazon import AmazonOAuth
from .google import GoogleOAuth, TokenData

__all__ = ["AmazonOAuth", "GoogleOAuth", "TokenData"]
