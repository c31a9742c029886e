"""
Generate a Terraform http backend config file for use inside a pod.

Run via: python -m configmap_backend.cli.generate_backend_config

The pod's service account token becomes the backend password, so Terraform
running in the pod authenticates as that service account. Reads configuration
from environment variables:
  CONFIGMAP_BACKEND_GENERATOR_OUTPUT_FILE          - Path to write (required)
  CONFIGMAP_BACKEND_GENERATOR_HTTP_BACKEND_ADDRESS - Backend URL (required)
  CONFIGMAP_BACKEND_GENERATOR_TOKEN_FILE           - Service account token path
"""

import logging
import os
import sys
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Use stdlib logging: this runs as a one-shot init container step
logger = logging.getLogger("configmap_backend.generate_backend_config")

SERVICE_ACCOUNT_TOKEN_FILE = "/var/run/secrets/kubernetes.io/serviceaccount/token"


class GeneratorSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="CONFIGMAP_BACKEND_GENERATOR_", extra="ignore")

    output_file: str = Field(default="", description="Path to generated output file")
    http_backend_address: str = Field(
        default="", description="The address of the Terraform backend REST endpoint"
    )
    token_file: str = Field(default=SERVICE_ACCOUNT_TOKEN_FILE)


def render_backend_config(address: str, token: str) -> str:
    # Username is unused, only password (token) is used for authentication
    return (
        f'address = "{address}"\n'
        'username = "terraform"\n'
        f'password = "{token}"\n'
        'skip_cert_verification = "true"\n'
    )


def generate(settings: GeneratorSettings) -> None:
    token = Path(settings.token_file).read_text().strip()
    output = Path(settings.output_file)
    if output.exists():
        os.chmod(output, 0o644)
    output.write_text(render_backend_config(settings.http_backend_address.strip(), token))
    os.chmod(output, 0o444)


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    settings = GeneratorSettings()

    if not settings.output_file:
        logger.error("CONFIGMAP_BACKEND_GENERATOR_OUTPUT_FILE is required")
        sys.exit(1)
    if not settings.http_backend_address.strip():
        logger.error("CONFIGMAP_BACKEND_GENERATOR_HTTP_BACKEND_ADDRESS is required")
        sys.exit(1)

    try:
        generate(settings)
    except OSError as e:
        logger.error("Failed to generate backend config: %s", e)
        sys.exit(1)

    logger.info("Wrote backend config to %s", settings.output_file)


if __name__ == "__main__":
    main()
