"""ConfigMap-backed state store."""

import base64
import copy

from kubernetes import client

from configmap_backend.kube.client import call_api
from configmap_backend.logging_config import get_logger
from configmap_backend.protocol import CollaboratorError, StateNotFoundError, StateObject

logger = get_logger(__name__)


class ConfigMapStore:
    """Stores each state as one ConfigMap.

    The encoded state lives under `binaryData[data_key]`, lock metadata in the
    ConfigMap's annotations.
    """

    def __init__(self, api: client.ApiClient, data_key: str = "tfstate") -> None:
        self._api_client = api
        self._core = client.CoreV1Api(api)
        self._data_key = data_key

    def _to_state(self, cm: client.V1ConfigMap) -> StateObject:
        payload = None
        encoded = (cm.binary_data or {}).get(self._data_key)
        if encoded is not None:
            payload = base64.b64decode(encoded)
        return StateObject(
            namespace=cm.metadata.namespace,
            name=cm.metadata.name,
            payload=payload,
            annotations=dict(cm.metadata.annotations or {}),
            resource_version=cm.metadata.resource_version,
            source=cm,
        )

    def _to_configmap(self, obj: StateObject) -> client.V1ConfigMap:
        # Start from the fetched ConfigMap so labels and other keys survive
        if obj.source is not None:
            cm = copy.deepcopy(obj.source)
        else:
            cm = client.V1ConfigMap(metadata=client.V1ObjectMeta())

        cm.metadata.name = obj.name
        cm.metadata.namespace = obj.namespace
        cm.metadata.annotations = dict(obj.annotations)
        cm.metadata.resource_version = obj.resource_version

        binary_data = dict(cm.binary_data or {})
        if obj.payload is not None:
            binary_data[self._data_key] = base64.b64encode(obj.payload).decode("ascii")
        cm.binary_data = binary_data or None
        return cm

    async def get(self, namespace: str, name: str) -> StateObject:
        try:
            cm = await call_api(self._core.read_namespaced_config_map, name, namespace)
        except CollaboratorError as e:
            if e.status_code == 404:
                raise StateNotFoundError(namespace, name) from e
            raise
        return self._to_state(cm)

    async def create(self, obj: StateObject) -> StateObject:
        cm = await call_api(
            self._core.create_namespaced_config_map, obj.namespace, self._to_configmap(obj)
        )
        logger.debug("Created ConfigMap", namespace=obj.namespace, name=obj.name)
        return self._to_state(cm)

    async def update(self, obj: StateObject) -> StateObject:
        cm = await call_api(
            self._core.replace_namespaced_config_map,
            obj.name,
            obj.namespace,
            self._to_configmap(obj),
        )
        logger.debug("Replaced ConfigMap", namespace=obj.namespace, name=obj.name)
        return self._to_state(cm)

    async def delete(self, namespace: str, name: str) -> None:
        try:
            await call_api(self._core.delete_namespaced_config_map, name, namespace)
        except CollaboratorError as e:
            if e.status_code == 404:
                raise StateNotFoundError(namespace, name) from e
            raise

    async def close(self) -> None:
        self._api_client.close()
