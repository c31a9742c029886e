"""State encoding and lock handling."""

from configmap_backend.state.codec import StateCodec
from configmap_backend.state.lock import (
    Conflict,
    LockAnnotations,
    LockInfo,
    Locked,
    LockState,
    Unlocked,
    acquire,
    guard_write,
    release,
)

__all__ = [
    "Conflict",
    "LockAnnotations",
    "LockInfo",
    "LockState",
    "Locked",
    "StateCodec",
    "Unlocked",
    "acquire",
    "guard_write",
    "release",
]
