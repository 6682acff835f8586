from datetime import datetime, timedelta

from .checkpoints import CheckpointStore
from .errors import JobBusy
from .models import JobKey


def acquire_lease(store: CheckpointStore, key: JobKey, owner: str, ttl_sec: int, now: datetime) -> None:
    """
    Claim ``key`` for ``owner`` until now + ttl. A live lease held by someone
    else raises JobBusy; an expired one is taken over.
    """
    held = store.get(key.lease_slot)
    if held and held.get("owner") != owner:
        if datetime.fromisoformat(held["expires_at"]) > now:
            raise JobBusy(str(key), held["owner"])
    expires = now + timedelta(seconds=ttl_sec)
    store.put(key.lease_slot, {"owner": owner, "expires_at": expires.isoformat()}, ttl_seconds=ttl_sec)


def release_lease(store: CheckpointStore, key: JobKey, owner: str) -> bool:
    held = store.get(key.lease_slot)
    if not held or held.get("owner") != owner:
        return False
    store.delete(key.lease_slot)
    return True
