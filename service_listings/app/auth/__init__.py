"""
Authentication for Listings Service.
"""

from .jwt_auth import JWTAuthenticator, UserContext

__all__ = ["JWTAuthenticator", "UserContext"]
