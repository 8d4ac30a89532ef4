from typing import Generator, List

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.core.security import Principal, decode_access_token
from app.db.session import SessionLocal
from app.services.domain_registry import DomainRegistry
from app.services.entitlement import get_entitlement_gate
from app.services.verification import get_verification_checker

bearer_scheme = HTTPBearer(auto_error=False)


def get_db() -> Generator:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_principal(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
) -> Principal:
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        return decode_access_token(credentials.credentials)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )


class RoleChecker:
    """
    Role gate for store settings.
        @router.post("/")
        def endpoint(principal: Principal = Depends(deps.require_domain_manager)):
            ...
    """

    def __init__(self, allowed_roles: List[str]):
        self.allowed_roles = allowed_roles

    def __call__(self, principal: Principal = Depends(get_current_principal)) -> Principal:
        if principal.is_superuser:
            return principal
        if principal.role not in self.allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"This action requires one of the roles: {', '.join(self.allowed_roles)}",
            )
        return principal


require_domain_manager = RoleChecker(["owner", "admin"])


def get_registry(
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_domain_manager),
) -> DomainRegistry:
    return DomainRegistry(
        db,
        get_entitlement_gate(db),
        get_verification_checker(),
        actor=principal.user_id,
    )
