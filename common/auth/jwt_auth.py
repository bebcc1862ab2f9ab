"""
JWT verification provider.

Verifies bearer tokens signed with a shared secret. Token issuance lives in
the identity service.

Example:
    auth = JWTAuth(secret="your-secret-key")

    claims = await auth.verify_token(token)
    print(claims["sub"])  # user_id
"""

from typing import Dict, Any

from jose import jwt, JWTError, ExpiredSignatureError

from common.auth.base import AuthProvider


class JWTAuth(AuthProvider):
    """JWT verification against a shared HMAC secret."""

    def __init__(self, secret: str, algorithm: str = "HS256"):
        """
        Initialize JWT auth provider.

        Args:
            secret: Secret key the tokens are signed with
            algorithm: JWT algorithm (default: HS256)
        """
        if not secret:
            raise ValueError("JWT secret must not be empty")

        self.secret = secret
        self.algorithm = algorithm

    async def verify_token(self, token: str) -> Dict[str, Any]:
        """Decode and validate a token, returning its claims."""
        try:
            payload = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except ExpiredSignatureError:
            raise ValueError("Token has expired")
        except JWTError:
            raise ValueError("Invalid token")

        if not payload.get("sub"):
            raise ValueError("Token missing subject")

        return payload
