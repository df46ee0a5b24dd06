from fastapi import Depends, HTTPException, Request, status

from servicedesk.domain.users.identity import Requester
from servicedesk.services import AppServices, resolve_services


def get_services(request: Request) -> AppServices:
    services = resolve_services(request.app)
    if services is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Services not ready")
    return services


def get_optional_requester(request: Request) -> Requester | None:
    user_id = (request.headers.get("X-User-Id") or "").strip()
    if not user_id:
        return None
    email = (request.headers.get("X-User-Email") or "").strip() or None
    role = (request.headers.get("X-User-Role") or "customer").strip().lower() or "customer"
    return Requester(user_id=user_id, email=email, role=role)


def require_requester(requester: Requester | None = Depends(get_optional_requester)) -> Requester:
    if requester is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    return requester


def require_privileged(requester: Requester = Depends(require_requester)) -> Requester:
    if not requester.is_privileged:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    return requester
