"""
Run the state backend under uvicorn.

Run via: python -m configmap_backend.cli.serve

All options come from Settings (CONFIGMAP_BACKEND_* environment variables or
the YAML config file). Shutdown stops accepting connections and waits up to
server.shutdown_timeout_seconds for in-flight requests to drain.
"""

import uvicorn

from configmap_backend.api.app import create_app
from configmap_backend.config import Settings
from configmap_backend.logging_config import configure_logging


def uvicorn_options(settings: Settings) -> dict:
    server = settings.server
    options: dict = {
        "host": server.bind_address,
        "port": server.bind_port,
        "timeout_graceful_shutdown": server.shutdown_timeout_seconds,
        "lifespan": "on",
        # structlog owns logging configuration
        "log_config": None,
    }
    if server.tls_cert_file:
        options["ssl_certfile"] = server.tls_cert_file
        options["ssl_keyfile"] = server.tls_key_file or None
    return options


def main() -> None:
    settings = Settings()
    configure_logging(json_logs=settings.json_logs, log_level=settings.log_level)
    uvicorn.run(create_app(settings), **uvicorn_options(settings))


if __name__ == "__main__":
    main()
