"""Tests for the app factory, lifespan and health endpoints."""

from unittest.mock import AsyncMock, MagicMock, patch

from httpx import ASGITransport, AsyncClient

from configmap_backend.api.app import create_app, lifespan


class TestHealth:
    async def test_health(self, context):
        app = create_app(context=context)

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    async def test_health_needs_no_credentials(self, settings):
        app = create_app(settings)

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.get("/health")

        assert response.status_code == 200

    async def test_ready_with_context(self, context):
        app = create_app(context=context)

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.get("/ready")

        assert response.status_code == 200
        assert response.json()["checks"] == {"kubernetes": "healthy"}

    async def test_not_ready_before_startup(self, settings):
        app = create_app(settings)

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.get("/ready")

        assert response.status_code == 503
        assert response.json()["status"] == "not ready"


class TestCreateApp:
    def test_settings_taken_from_context(self, context):
        app = create_app(context=context)

        assert app.state.settings is context.settings
        assert app.state.backend is context

    def test_no_openapi_routes(self, settings):
        app = create_app(settings)
        assert app.openapi_url is None


class TestLifespan:
    @patch("configmap_backend.api.app.init_context")
    async def test_builds_and_closes_context(self, mock_init_context, settings):
        backend = MagicMock()
        backend.close = AsyncMock()
        mock_init_context.return_value = backend
        app = create_app(settings)

        async with lifespan(app):
            assert app.state.backend is backend

        mock_init_context.assert_called_once_with(settings)
        backend.close.assert_awaited_once()
        assert app.state.backend is None

    @patch("configmap_backend.api.app.init_context")
    async def test_injected_context_is_kept(self, mock_init_context, context, store):
        app = create_app(context=context)

        async with lifespan(app):
            assert app.state.backend is context

        mock_init_context.assert_not_called()
        assert store.closed
