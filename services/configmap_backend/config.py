"""
Configuration management for the ConfigMap state backend.

Non-secret configuration loaded from YAML file, overridden by environment
variables. The Settings object is built once at startup and passed to the
application factory.
"""

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CONFIG_FILE = "/etc/tf-configmap-backend/config.yaml"
DEFAULT_ANNOTATION_PREFIX = "tf-kubernetes-configmap-backend.jimmidyson.github.com/"


def yaml_config_settings_source() -> dict[str, Any]:
    """Load configuration from YAML file."""
    config_path = Path(os.environ.get("CONFIGMAP_BACKEND_CONFIG_FILE", DEFAULT_CONFIG_FILE))
    if config_path.exists():
        with open(config_path) as f:
            return yaml.safe_load(f) or {}
    return {}


# --- State Encoding ---


class StateConfig(BaseModel):
    """How state is laid out inside a ConfigMap.

    Encoding is not self-describing: every instance reading a ConfigMap must
    use the same compress/minify settings as the instance that wrote it.
    """

    compress: bool = Field(default=True, description="Gzip state before storing it")
    minify: bool = Field(
        default=False,
        description="Strip insignificant JSON whitespace before storing state",
    )
    data_key: str = Field(default="tfstate", description="binaryData key holding the state")
    annotation_prefix: str = Field(
        default=DEFAULT_ANNOTATION_PREFIX,
        description="Prefix of the annotations carrying lock metadata",
    )


# --- Kubernetes ---


class KubernetesConfig(BaseModel):
    """Kubeconfig locations for each collaborator.

    Empty values use in-cluster config, falling back to the default kubeconfig.
    """

    kubeconfig: str = Field(default="", description="Kubeconfig for ConfigMap access")
    authentication_kubeconfig: str = Field(
        default="", description="Kubeconfig used to create TokenReviews"
    )
    authorization_kubeconfig: str = Field(
        default="", description="Kubeconfig used to create SubjectAccessReviews"
    )


# --- Server ---


class ServerConfig(BaseModel):
    """Listener configuration for the uvicorn server."""

    bind_address: str = Field(default="0.0.0.0")  # noqa: S104
    bind_port: int = Field(default=8443)
    tls_cert_file: str = Field(default="", description="PEM certificate; plain HTTP if empty")
    tls_key_file: str = Field(default="", description="PEM private key for tls_cert_file")
    shutdown_timeout_seconds: int = Field(
        default=60,
        description="How long to wait for in-flight requests to drain on shutdown",
    )


# --- Main Settings ---


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="CONFIGMAP_BACKEND_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="tf-kubernetes-configmap-backend")
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")
    json_logs: bool = Field(default=True, description="JSON logging in production")

    state: StateConfig = Field(default_factory=StateConfig)
    kubernetes: KubernetesConfig = Field(default_factory=KubernetesConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: Any,
        env_settings: Any,
        dotenv_settings: Any,
        file_secret_settings: Any,
    ) -> tuple[Any, ...]:
        """Customize settings sources: env vars override YAML config."""
        return (
            init_settings,
            env_settings,
            yaml_config_settings_source,
            dotenv_settings,
            file_secret_settings,
        )
