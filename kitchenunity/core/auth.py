from dataclasses import dataclass, field

from jose import JWTError, jwt
from starlette.requests import Request

from kitchenunity.core.config import get_settings

ANONYMOUS = "anonymous"


@dataclass
class AuthUser:
    sub: str
    roles: list[str] = field(default_factory=list)
    email: str | None = None
    store_id: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.sub != ANONYMOUS


def decode_token(token: str) -> AuthUser:
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return AuthUser(sub=ANONYMOUS, roles=["guest"])

    subject = payload.get("sub")
    if not subject:
        return AuthUser(sub=ANONYMOUS, roles=["guest"])
    roles = payload.get("roles", ["user"])
    if not isinstance(roles, list):
        roles = ["user"]
    store_id = payload.get("store_id")
    email = payload.get("email")
    return AuthUser(
        sub=str(subject),
        roles=[str(role) for role in roles],
        email=str(email) if email else None,
        store_id=str(store_id) if store_id else None,
    )


def bearer_token(request: Request) -> str:
    auth_header = request.headers.get("authorization", "")
    return auth_header.replace("Bearer ", "") if auth_header.startswith("Bearer ") else ""


async def get_current_user(request: Request) -> AuthUser:
    token = bearer_token(request)
    if not token:
        return AuthUser(sub=ANONYMOUS, roles=["guest"])
    return decode_token(token)


def issue_token(sub: str, *, email: str | None = None, store_id: str | None = None, roles: list[str] | None = None) -> str:
    """Sign a session token; used by local tooling and tests."""

    settings = get_settings()
    claims: dict[str, object] = {"sub": sub, "roles": roles or ["user"]}
    if email:
        claims["email"] = email
    if store_id:
        claims["store_id"] = store_id
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)
