import pytest
from fastapi import APIRouter, FastAPI

from costboard.shared.core.app_routes import (
    _validate_router_registry,
    register_api_routers,
    register_frontend_routes,
)


def _router() -> APIRouter:
    router = APIRouter()

    @router.get("")
    async def _index() -> dict:
        return {}

    return router


def test_registry_requires_costs_prefix():
    with pytest.raises(RuntimeError, match="missing required API prefixes"):
        _validate_router_registry([(_router(), "/api/other")])


def test_registry_rejects_duplicates_and_bad_prefixes():
    with pytest.raises(RuntimeError, match="Duplicate router prefix"):
        _validate_router_registry([(_router(), "/api/costs"), (_router(), "/api/costs")])
    with pytest.raises(RuntimeError, match="must start with"):
        _validate_router_registry([(_router(), "api/costs")])


def test_registry_rejects_empty_router():
    with pytest.raises(RuntimeError, match="empty router"):
        _validate_router_registry([(APIRouter(), "/api/costs")])


def test_register_api_routers_mounts_cost_routes():
    app = FastAPI()
    register_api_routers(app)
    paths = {route.path for route in app.routes}
    assert {"/api/costs", "/api/costs/trend", "/api/costs/export"} <= paths


def test_frontend_not_registered_without_index(tmp_path):
    app = FastAPI()
    assert register_frontend_routes(app, str(tmp_path)) is False
    assert all(getattr(r, "path", "") != "/{full_path:path}" for r in app.routes)
