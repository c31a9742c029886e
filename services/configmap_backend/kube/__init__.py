"""Kubernetes collaborators: ConfigMap storage, TokenReview and SubjectAccessReview."""
