from fastapi import APIRouter

from ..routers import content, delegates, files, invitations, pending_requests

router = APIRouter(prefix="/api")

_admin_routers = [
    invitations.router,
    delegates.router,
    delegates.permissions_router,
    pending_requests.router,
]

_content_routers = [
    *content.routers,
    files.router,
]

for _router in [*_admin_routers, *_content_routers]:
    router.include_router(_router)
