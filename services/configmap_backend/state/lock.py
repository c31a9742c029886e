"""
Advisory state locking carried in ConfigMap annotations.

A ConfigMap is locked when its lock-id annotation is present and non-empty.
The transitions below are pure: they take the lock state read from the
fetched object and return the next state or a Conflict carrying the current
holder, leaving persistence to the caller.
"""

from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field

# --- Wire Model ---


class LockInfo(BaseModel):
    """Terraform lock metadata, as sent in LOCK/UNLOCK bodies and 423 replies.

    Terraform also sends Version, Created and Path; those are ignored.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(default="", alias="ID")
    operation: str = Field(default="", alias="Operation")
    info: str = Field(default="", alias="Info")
    who: str = Field(default="", alias="Who")

    def to_wire(self) -> dict[str, str]:
        return self.model_dump(by_alias=True)


# --- States ---


@dataclass(frozen=True)
class Unlocked:
    pass


@dataclass(frozen=True)
class Locked:
    lock: LockInfo


LockState = Unlocked | Locked


@dataclass(frozen=True)
class Conflict:
    """The request does not hold the lock. `current` is returned to the client."""

    current: LockInfo


def current_lock(state: LockState) -> LockInfo:
    """Lock record for a state; all fields empty when unlocked."""
    if isinstance(state, Locked):
        return state.lock
    return LockInfo()


# --- Transitions ---


def acquire(requested: LockInfo, state: LockState) -> Locked | Conflict:
    """Take the lock, or refresh it when the caller already holds it."""
    if isinstance(state, Locked) and state.lock.id != requested.id:
        return Conflict(current=state.lock)
    return Locked(lock=requested)


def release(requested: LockInfo | None, state: LockState) -> Unlocked | Conflict:
    """Drop the lock.

    With no lock record supplied the lock is dropped whoever holds it.
    """
    if requested is not None and isinstance(state, Locked) and state.lock.id != requested.id:
        return Conflict(current=state.lock)
    return Unlocked()


def guard_write(token: str | None, state: LockState) -> Conflict | None:
    """Check a write's lock token against the current holder.

    A missing token equals the empty string, so unlocked objects accept
    writes that carry no token. Returns None when the write may proceed.
    """
    current = current_lock(state)
    if current.id != (token or ""):
        return Conflict(current=current)
    return None


# --- Annotation Projection ---


class LockAnnotations:
    """Reads and writes the four lock annotations under a key prefix."""

    def __init__(self, prefix: str) -> None:
        self.id_key = prefix + "lock-id"
        self.operation_key = prefix + "lock-operation"
        self.info_key = prefix + "lock-info"
        self.who_key = prefix + "lock-who"

    @property
    def keys(self) -> tuple[str, str, str, str]:
        return (self.id_key, self.operation_key, self.info_key, self.who_key)

    def read(self, annotations: dict[str, str]) -> LockState:
        lock_id = annotations.get(self.id_key, "")
        if not lock_id:
            return Unlocked()
        return Locked(
            lock=LockInfo(
                id=lock_id,
                operation=annotations.get(self.operation_key, ""),
                info=annotations.get(self.info_key, ""),
                who=annotations.get(self.who_key, ""),
            )
        )

    def write(self, annotations: dict[str, str], state: LockState) -> dict[str, str]:
        """Return a copy of `annotations` reflecting `state`."""
        updated = {k: v for k, v in annotations.items() if k not in self.keys}
        if isinstance(state, Locked):
            updated[self.id_key] = state.lock.id
            updated[self.operation_key] = state.lock.operation
            updated[self.info_key] = state.lock.info
            updated[self.who_key] = state.lock.who
        return updated
