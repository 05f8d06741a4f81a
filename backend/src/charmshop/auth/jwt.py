"""JWT authentication for admin endpoints.

Admin tokens are signed with the shared secret from settings (HS256 by default).
The token subject identifies the admin and is recorded as the actor of analytics
refreshes.
"""
from datetime import datetime, timedelta
from typing import Dict, Optional

import jwt

from charmshop.config import settings


class JWTAuth:
    """JWT authentication handler using a shared signing secret."""

    def __init__(
        self,
        secret_key: Optional[str] = None,
        algorithm: Optional[str] = None,
        access_token_expire_minutes: Optional[int] = None,
    ):
        self.secret_key = secret_key or settings.jwt_secret_key
        self.algorithm = algorithm or settings.jwt_algorithm
        self.access_token_expire_minutes = access_token_expire_minutes or settings.access_token_expire_minutes

    def create_access_token(
        self,
        subject: str,
        email: Optional[str] = None,
        role: str = "admin",
        additional_claims: Optional[Dict] = None,
    ) -> str:
        """
        Create JWT access token.

        Args:
            subject: Admin identifier
            email: Admin email
            role: Admin role
            additional_claims: Additional JWT claims

        Returns:
            Encoded JWT token
        """
        now = datetime.utcnow()
        claims = {
            "sub": subject,
            "email": email,
            "role": role,
            "iat": now,
            "exp": now + timedelta(minutes=self.access_token_expire_minutes),
            "type": "access",
        }
        if additional_claims:
            claims.update(additional_claims)

        return jwt.encode(claims, self.secret_key, algorithm=self.algorithm)

    def verify_access_token(self, token: str) -> Dict:
        """
        Verify and decode an access token.

        Raises:
            jwt.ExpiredSignatureError: If token is expired
            jwt.InvalidTokenError: If token is invalid or not an access token
        """
        payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])

        if payload.get("type") != "access":
            raise jwt.InvalidTokenError("Not an access token")

        return payload


# Global JWT auth instance
jwt_auth = JWTAuth()
