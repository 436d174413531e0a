"""
Bearer token authentication for Listings Service.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import jwt
from fastapi import Request

from shared.errors import AuthenticationError
from shared.logging import get_logger


@dataclass(frozen=True)
class UserContext:
    """Authenticated caller derived from a verified token."""

    user_id: str
    email: Optional[str] = None
    name: Optional[str] = None
    roles: List[str] = field(default_factory=list)


class JWTAuthenticator:
    """Verifies HS256-signed bearer tokens issued by the identity provider."""

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        audience: Optional[str] = None,
        issuer: Optional[str] = None,
    ):
        self.secret = secret
        self.algorithm = algorithm
        self.audience = audience
        self.issuer = issuer
        self.logger = get_logger("listings.auth")

    def decode(self, token: str) -> Dict[str, Any]:
        """Validate the token signature and standard claims."""
        try:
            return jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                audience=self.audience,
                issuer=self.issuer,
                options={"require": ["sub", "exp"], "verify_aud": self.audience is not None},
            )
        except jwt.ExpiredSignatureError as e:
            raise AuthenticationError("Token has expired") from e
        except jwt.InvalidTokenError as e:
            raise AuthenticationError("Invalid token", {"error": str(e)}) from e

    def authenticate(self, request: Request) -> UserContext:
        """Authenticate the request from its Authorization header."""
        authorization = request.headers.get("Authorization")
        if not authorization or not authorization.startswith("Bearer "):
            raise AuthenticationError("Missing or invalid Authorization header")

        token = authorization[7:].strip()
        if not token:
            raise AuthenticationError("Authorization header contained empty bearer token")

        claims = self.decode(token)
        subject = claims.get("sub")
        if not isinstance(subject, str) or not subject:
            raise AuthenticationError("Token missing subject claim")

        roles = claims.get("roles") or []
        context = UserContext(
            user_id=subject,
            email=claims.get("email"),
            name=claims.get("name"),
            roles=list(roles) if isinstance(roles, (list, tuple)) else [str(roles)],
        )
        request.state.user = context
        return context

    def authenticate_optional(self, request: Request) -> Optional[UserContext]:
        """Like authenticate, but anonymous and unverifiable callers get None."""
        if not request.headers.get("Authorization"):
            return None
        try:
            return self.authenticate(request)
        except AuthenticationError as e:
            self.logger.debug("Ignoring invalid credentials on public route", error=e.message)
            return None
