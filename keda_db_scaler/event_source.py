"""List-then-watch delivery of Kubernetes Events, one worker thread per scope.

A scope is a namespace, or the whole cluster when no namespace is given.
Each worker lists the existing events, hands every one of them to the
handler as an ADDED notification, marks itself synced and then follows a
watch stream from the list's resourceVersion. A 410 Gone re-lists and
delivers only the events that are new or changed since they were last
seen, other errors back off with jitter. A 401/403 on the initial list
fails the sync; once synced, it is retried like any other watch error.
"""

import random
import threading
import time
from typing import Any, Callable

from kubernetes import client, watch
from kubernetes.client.rest import ApiException

from .errors import SyncError
from .reconciler import NOTIFICATION_ADDED, NOTIFICATION_DELETED, NOTIFICATION_MODIFIED
from .scaler_logger import ScalerLogger


Handler = Callable[[str, Any], Any]

MAX_BACKOFF_SECONDS = 30
WATCH_TIMEOUT_SECONDS = 300


logger = ScalerLogger("event_source").logger


class ScopeWatcher:
    def __init__(
        self,
        core: client.CoreV1Api,
        namespace: str | None,
        handler: Handler,
        watch_timeout: int = WATCH_TIMEOUT_SECONDS,
    ):
        self.core = core
        self.namespace = namespace
        self.handler = handler
        self.watch_timeout = watch_timeout

        self.synced = threading.Event()
        self.failed = threading.Event()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._active_watcher: watch.Watch | None = None
        self._watcher_lock = threading.Lock()
        # uid -> resourceVersion of every event delivered so far
        self._seen: dict[str, str | None] = {}

    @property
    def scope(self) -> str:
        return self.namespace or "all namespaces"

    def _list_fn(self):
        if self.namespace:
            return self.core.list_namespaced_event
        return self.core.list_event_for_all_namespaces

    def _scope_kwargs(self) -> dict[str, Any]:
        return {"namespace": self.namespace} if self.namespace else {}

    def _list(self):
        return self._list_fn()(**self._scope_kwargs())

    @staticmethod
    def _key(obj: Any) -> str | None:
        metadata = getattr(obj, "metadata", None)
        if metadata is None:
            return None
        uid = getattr(metadata, "uid", None)
        if uid:
            return uid
        name = getattr(metadata, "name", None)
        return f"{getattr(metadata, 'namespace', None) or ''}/{name}" if name else None

    def _remember(self, notification_type: str, obj: Any):
        key = self._key(obj)
        if key is None:
            return
        if notification_type == NOTIFICATION_DELETED:
            self._seen.pop(key, None)
        else:
            self._seen[key] = getattr(obj.metadata, "resource_version", None)

    def _deliver(self, notification_type: str, obj: Any):
        self._remember(notification_type, obj)
        try:
            self.handler(notification_type, obj)
        except Exception:
            logger.exception(f"Failed to handle {notification_type} event in {self.scope}")

    def _backoff(self, seconds: int) -> int:
        self._stop.wait(timeout=seconds * (0.5 + random.random()))
        return min(seconds * 2, MAX_BACKOFF_SECONDS)

    def start(self):
        self._thread = threading.Thread(target=self.run, name=f"watch-{self.scope}", daemon=True)
        self._thread.start()

    def stop(self):
        self._stop.set()
        with self._watcher_lock:
            active = self._active_watcher
        if active is not None:
            active.stop()

    def join(self, timeout: float | None = None):
        if self._thread is not None:
            self._thread.join(timeout)

    def wait_for_sync(self, timeout: float) -> bool:
        """Block until the initial listing was delivered. False on failure or timeout."""
        deadline = time.monotonic() + timeout
        while not self.synced.is_set():
            if self.failed.is_set():
                return False
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return False
            self.synced.wait(min(remaining, 0.5))
        return True

    def initial_list(self) -> str | None:
        """List until it works, deliver the items and return the resourceVersion.

        Returns None when stopped or when the API denies access.
        """
        backoff = 1
        while not self._stop.is_set():
            try:
                initial = self._list()
            except ApiException as e:
                if e.status in (401, 403):
                    logger.error(
                        f"Access denied listing events in {self.scope} (status={e.status}), "
                        "check the service account permissions"
                    )
                    self.failed.set()
                    return None
                logger.warning(f"Initial event list in {self.scope} failed: {e.status} {e.reason}")
            except Exception as e:
                logger.warning(f"Initial event list in {self.scope} failed: {e}")
            else:
                for item in initial.items or []:
                    self._deliver(NOTIFICATION_ADDED, item)
                self.synced.set()
                resource_version = getattr(getattr(initial, "metadata", None), "resource_version", None)
                logger.info(f"Synced {len(initial.items or [])} events in {self.scope}")
                return resource_version or ""
            backoff = self._backoff(backoff)
        return None

    def relist(self) -> str | None:
        """List again after a 410 and deliver what changed while the watch was gone."""
        fresh = self._list()
        for item in fresh.items or []:
            key = self._key(item)
            if key is not None and key not in self._seen:
                self._deliver(NOTIFICATION_ADDED, item)
            elif key is not None and self._seen[key] != getattr(item.metadata, "resource_version", None):
                self._deliver(NOTIFICATION_MODIFIED, item)
        return getattr(getattr(fresh, "metadata", None), "resource_version", None)

    def run(self):
        resource_version = self.initial_list()
        if resource_version is None:
            return

        backoff = 1
        while not self._stop.is_set():
            watcher = watch.Watch()
            with self._watcher_lock:
                self._active_watcher = watcher
            try:
                stream = watcher.stream(
                    self._list_fn(),
                    resource_version=resource_version or None,
                    timeout_seconds=self.watch_timeout,
                    **self._scope_kwargs(),
                )
                for event in stream:
                    if self._stop.is_set():
                        break
                    obj = event.get("object")
                    if obj is None:
                        continue
                    metadata = getattr(obj, "metadata", None)
                    if metadata is not None and getattr(metadata, "resource_version", None):
                        resource_version = metadata.resource_version
                    self._deliver(str(event.get("type", "")), obj)
                backoff = 1
            except ApiException as e:
                if e.status == 410:
                    logger.warning(f"Watch in {self.scope} expired, re-listing")
                    try:
                        resource_version = self.relist()
                    except Exception as relist_e:
                        logger.error(f"Re-list in {self.scope} failed: {relist_e}")
                        resource_version = None
                        backoff = self._backoff(backoff)
                    continue
                logger.error(f"Watch in {self.scope} failed: {e.status} {e.reason}")
                backoff = self._backoff(backoff)
            except Exception as e:
                logger.error(f"Watch in {self.scope} failed: {e}")
                backoff = self._backoff(backoff)
            finally:
                watcher.stop()
                with self._watcher_lock:
                    if self._active_watcher is watcher:
                        self._active_watcher = None


class EventSource:
    """All scope watchers of the process."""

    def __init__(self, core: client.CoreV1Api, namespaces: list[str], handler: Handler):
        scopes: list[str | None] = list(namespaces) if namespaces else [None]
        self.watchers = [ScopeWatcher(core, ns, handler) for ns in scopes]

    def start(self):
        for w in self.watchers:
            w.start()

    def stop(self):
        for w in self.watchers:
            w.stop()

    def wait_for_sync(self, timeout: float):
        """Wait for every scope's initial listing, raise SyncError if one doesn't finish."""
        deadline = time.monotonic() + timeout
        for w in self.watchers:
            remaining = max(deadline - time.monotonic(), 0)
            if not w.wait_for_sync(remaining):
                raise SyncError(f"failed to sync event cache for {w.scope}")
