from datetime import datetime, timedelta, timezone
from typing import Callable, Optional
from uuid import UUID
from jose import jwt, JWTError
from passlib.context import CryptContext
import hashlib

from domain.auth import TokenClaims
from domain.enums import Role
from domain.errors import TokenExpiredError, TokenMalformedError

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__ident="2b"
)

def _prepare_password(password: str) -> str:
    """
    Prepare password for bcrypt to handle strings > 72 bytes.
    bcrypt has a 72-byte password limit. If password is longer,
    we pre-hash it with SHA256 to get a safe length string.
    """
    password_bytes = password.encode('utf-8')
    if len(password_bytes) > 72:
        return hashlib.sha256(password_bytes).hexdigest()
    return password

def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify password against hash"""
    return pwd_context.verify(_prepare_password(plain_password), hashed_password)

def get_password_hash(password: str) -> str:
    """Generate password hash"""
    return pwd_context.hash(_prepare_password(password))


class TokenService:
    """Issues and verifies signed, time-limited access tokens.

    Tokens are stateless: nothing is stored server side, so expiry is the
    only way a token stops verifying. Account state is re-checked by the
    authentication gate on every use.
    """

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        expires_delta: timedelta = timedelta(hours=24),
        clock: Optional[Clock] = None
    ):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.expires_delta = expires_delta
        self.clock = clock or utcnow

    def issue(self, subject_id: UUID, role: Role) -> str:
        """Create JWT access token"""
        issued_at = self.clock().replace(microsecond=0)
        expires_at = issued_at + self.expires_delta
        to_encode = {
            "sub": str(subject_id),
            "role": Role(role).value,
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
        }
        return jwt.encode(to_encode, self.secret_key, algorithm=self.algorithm)

    def verify(self, token: str) -> TokenClaims:
        """Decode a token, raising TokenExpiredError or TokenMalformedError"""
        try:
            # expiry is checked below against our own clock
            payload = jwt.decode(
                token, self.secret_key, algorithms=[self.algorithm],
                options={"verify_exp": False}
            )
        except JWTError as e:
            raise TokenMalformedError(f"Invalid token: {e}")

        try:
            claims = TokenClaims(
                subject_id=UUID(payload["sub"]),
                role=Role(payload["role"]),
                issued_at=datetime.fromtimestamp(int(payload["iat"]), tz=timezone.utc),
                expires_at=datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise TokenMalformedError(f"Invalid token payload: {e}")

        if self.clock() >= claims.expires_at:
            raise TokenExpiredError()
        return claims
