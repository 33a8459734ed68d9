# routes.py

from fastapi import APIRouter

from geoaccess.api import routes_audit, routes_auth, routes_groups, routes_resources, routes_users

router = APIRouter()

router.include_router(routes_auth.router)
router.include_router(routes_users.router)
router.include_router(routes_groups.router)
router.include_router(routes_audit.router)
# last: its /{collection}/... patterns are the most generic
router.include_router(routes_resources.router)
