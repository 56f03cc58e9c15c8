"""Stateless bearer tokens."""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import hashlib
import uuid

from jose import ExpiredSignatureError, JWTError, jwt

from crm_auth.database import utcnow
from crm_auth.errors import ExpiredToken, InvalidToken, MalformedToken
from crm_auth.models.user import Role, User

TOKEN_TYPE = "access"


def hash_token(token: str) -> str:
    """Hash a token before persisting it."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class TokenClaims:
    user_id: str
    role: Role
    email: str
    issued_at: datetime
    expires_at: datetime
    token_id: str

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN


@dataclass(frozen=True)
class IssuedToken:
    token: str
    expires_at: datetime


class TokenService:
    """Mints and verifies signed access tokens.

    Verification only needs the secret and the clock; it never consults the
    session ledger.
    """

    def __init__(self, secret_key: str, algorithm: str = "HS256", expire_days: int = 7):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.ttl = timedelta(days=expire_days)

    def mint(self, user: User) -> IssuedToken:
        issued_at = utcnow()
        expires_at = issued_at + self.ttl
        claims = {
            "sub": user.id,
            "role": Role.parse(user.role).value,
            "email": user.email,
            "iat": issued_at,
            "exp": expires_at,
            "jti": str(uuid.uuid4()),
            "type": TOKEN_TYPE,
        }
        token = jwt.encode(claims, self.secret_key, algorithm=self.algorithm)
        return IssuedToken(token=token, expires_at=expires_at)

    def issue(self, user: User) -> str:
        return self.mint(user).token

    def verify(self, token: str) -> TokenClaims:
        if not token or not isinstance(token, str):
            raise MalformedToken()

        try:
            jwt.get_unverified_claims(token)
        except JWTError as exc:
            raise MalformedToken() from exc

        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except ExpiredSignatureError as exc:
            raise ExpiredToken() from exc
        except JWTError as exc:
            raise InvalidToken() from exc

        if payload.get("type") != TOKEN_TYPE:
            raise InvalidToken("Invalid token type")

        try:
            return TokenClaims(
                user_id=str(payload["sub"]),
                role=Role.parse(payload["role"]),
                email=str(payload.get("email", "")),
                issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
                expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
                token_id=str(payload.get("jti", "")),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise MalformedToken() from exc
