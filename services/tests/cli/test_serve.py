"""Tests for the uvicorn entrypoint."""

from unittest.mock import patch

from configmap_backend.cli.serve import main, uvicorn_options
from configmap_backend.config import ServerConfig, Settings


class TestUvicornOptions:
    def test_plain_http_defaults(self) -> None:
        options = uvicorn_options(Settings())

        assert options["host"] == "0.0.0.0"
        assert options["port"] == 8443
        assert options["timeout_graceful_shutdown"] == 60
        assert options["lifespan"] == "on"
        assert "ssl_certfile" not in options

    def test_tls(self) -> None:
        settings = Settings(
            server=ServerConfig(tls_cert_file="/certs/tls.crt", tls_key_file="/certs/tls.key")
        )

        options = uvicorn_options(settings)

        assert options["ssl_certfile"] == "/certs/tls.crt"
        assert options["ssl_keyfile"] == "/certs/tls.key"


class TestMain:
    @patch("configmap_backend.cli.serve.configure_logging")
    @patch("configmap_backend.cli.serve.uvicorn")
    def test_runs_app(self, mock_uvicorn, mock_configure_logging, monkeypatch) -> None:
        monkeypatch.setenv("CONFIGMAP_BACKEND_SERVER__BIND_PORT", "9443")

        main()

        app = mock_uvicorn.run.call_args.args[0]
        assert app.state.settings.server.bind_port == 9443
        assert mock_uvicorn.run.call_args.kwargs["port"] == 9443
        mock_configure_logging.assert_called_once()
