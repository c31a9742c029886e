"""Kubernetes API client construction and blocking-call helpers.

Uses the kubernetes Python client. Every call is made from the default
executor so the event loop is never blocked on the API server.
"""

import asyncio
import functools
import json
from collections.abc import Callable
from typing import Any, TypeVar

from kubernetes import client, config
from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError

from configmap_backend.logging_config import get_logger
from configmap_backend.protocol import CollaboratorError

logger = get_logger(__name__)

T = TypeVar("T")


def api_client(kubeconfig: str = "") -> client.ApiClient:
    """Build an ApiClient.

    An explicit kubeconfig wins; otherwise use in-cluster config when running
    in K8s, falling back to the default kubeconfig for local dev.
    """
    if kubeconfig:
        logger.info("Loading kubeconfig", path=kubeconfig)
        return config.new_client_from_config(config_file=kubeconfig)

    configuration = client.Configuration()
    try:
        config.load_incluster_config(client_configuration=configuration)
        logger.info("Loaded in-cluster K8s config")
    except config.ConfigException:
        try:
            config.load_kube_config(client_configuration=configuration)
            logger.info("Loaded kubeconfig")
        except config.ConfigException:
            logger.error("Failed to load K8s config")
            raise
    return client.ApiClient(configuration)


def collaborator_error(e: ApiException) -> CollaboratorError:
    """Translate an ApiException, keeping the K8s Status message and code."""
    message = e.reason or str(e)
    if e.body:
        try:
            message = json.loads(e.body).get("message") or message
        except (ValueError, AttributeError):
            pass
    return CollaboratorError(message, status_code=e.status or None)


async def call_api(func: Callable[..., T], /, *args: Any, **kwargs: Any) -> T:
    """Run a blocking client call in the executor, raising CollaboratorError on failure."""
    loop = asyncio.get_event_loop()
    try:
        return await loop.run_in_executor(None, functools.partial(func, *args, **kwargs))
    except ApiException as e:
        raise collaborator_error(e) from e
    except (HTTPError, OSError) as e:
        raise CollaboratorError(str(e)) from e
