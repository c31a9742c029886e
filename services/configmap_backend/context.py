"""
Per-process backend context.

Bundles the static configuration and the collaborator clients the request
handler needs. Built once at startup and shared read-only by every request.
"""

from dataclasses import dataclass

from configmap_backend.config import Settings
from configmap_backend.logging_config import get_logger
from configmap_backend.protocol import Authorizer, IdentityProvider, StateStore
from configmap_backend.state import LockAnnotations, StateCodec

logger = get_logger(__name__)


@dataclass
class BackendContext:
    settings: Settings
    codec: StateCodec
    locks: LockAnnotations
    store: StateStore
    identity_provider: IdentityProvider
    authorizer: Authorizer

    async def close(self) -> None:
        await self.store.close()
        await self.identity_provider.close()
        await self.authorizer.close()
        logger.info("Kubernetes clients closed")


def build_context(
    settings: Settings,
    store: StateStore,
    identity_provider: IdentityProvider,
    authorizer: Authorizer,
) -> BackendContext:
    """Assemble a context from already-constructed collaborators."""
    return BackendContext(
        settings=settings,
        codec=StateCodec(compress=settings.state.compress, minify=settings.state.minify),
        locks=LockAnnotations(settings.state.annotation_prefix),
        store=store,
        identity_provider=identity_provider,
        authorizer=authorizer,
    )


def init_context(settings: Settings) -> BackendContext:
    """Build a context backed by the Kubernetes API.

    Called during app startup (lifespan). Raises if any kubeconfig cannot be
    loaded.
    """
    from configmap_backend.kube.client import api_client
    from configmap_backend.kube.configmaps import ConfigMapStore
    from configmap_backend.kube.reviews import (
        SubjectAccessReviewAuthorizer,
        TokenReviewIdentityProvider,
    )

    k8s = settings.kubernetes
    context = build_context(
        settings,
        store=ConfigMapStore(api_client(k8s.kubeconfig), data_key=settings.state.data_key),
        identity_provider=TokenReviewIdentityProvider(api_client(k8s.authentication_kubeconfig)),
        authorizer=SubjectAccessReviewAuthorizer(api_client(k8s.authorization_kubeconfig)),
    )
    logger.info(
        "Backend initialized",
        compress=settings.state.compress,
        minify=settings.state.minify,
    )
    return context
