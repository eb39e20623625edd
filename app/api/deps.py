from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from app.core.cache import QueryCache
from app.core.security import ANONYMOUS_CALLER, Caller, parse_bearer_token
from app.db.session import get_db
from app.repositories.user_repository import UserRepository


def get_query_cache(request: Request) -> QueryCache:
    return request.app.state.query_cache


def get_caller(authorization: str | None = Header(default=None), db: Session = Depends(get_db)) -> Caller:
    token = parse_bearer_token(authorization)
    if not token:
        return ANONYMOUS_CALLER
    user = UserRepository(db).get_by_token(token)
    if not user:
        return ANONYMOUS_CALLER
    return Caller(user_id=user.id, role=user.role)


def require_user(caller: Caller = Depends(get_caller)) -> Caller:
    if not caller.is_authenticated:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return caller


def require_admin(caller: Caller = Depends(get_caller)) -> Caller:
    if not caller.is_admin:
        raise HTTPException(status_code=403, detail="Unauthorized - Admin access required")
    return caller
