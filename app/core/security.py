from dataclasses import dataclass

from app.core.cache_keys import ANONYMOUS


@dataclass(frozen=True)
class Caller:
    user_id: int | None = None
    role: str = "USER"

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    @property
    def is_admin(self) -> bool:
        return self.is_authenticated and self.role == "ADMIN"

    @property
    def identity(self) -> str:
        return str(self.user_id) if self.user_id is not None else ANONYMOUS


ANONYMOUS_CALLER = Caller()


def parse_bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()
