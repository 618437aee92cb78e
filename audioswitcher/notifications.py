# audioswitcher/notifications.py
"""
Bridge from OS default-device notifications to the button registry.

Core Audio calls IMMNotificationClient on one of its own worker threads, and
doing real work (more COM calls, websocket sends) inside that callback is
asking for trouble. The callback here only enqueues; one long-lived thread
drains the queue in order and applies each change under the registry lock.
"""
import queue
import threading

from .logging_setup import _log, _log_exc, _dbg


class NotificationBridge:
    def __init__(self, backend, registry):
        self._backend = backend
        self._registry = registry
        self._queue = queue.Queue()
        self._thread = None
        self._handle = None
        self._state_lock = threading.Lock()

    @property
    def running(self):
        return self._handle is not None

    def start(self):
        """Subscribe once; calling start() again while running does nothing."""
        with self._state_lock:
            if self._handle is not None:
                return
            self._thread = threading.Thread(target=self._run, name="default-device-changes", daemon=True)
            self._thread.start()
            try:
                self._handle = self._backend.subscribe_default_device_changed(self._on_default_device_changed)
            except Exception:
                self._queue.put(None)
                self._thread.join(timeout=2.0)
                self._thread = None
                raise
            _log("subscribed to default device changes")

    def stop(self, timeout=2.0):
        with self._state_lock:
            if self._handle is None:
                return
            handle, self._handle = self._handle, None
            try:
                self._backend.unsubscribe_default_device_changed(handle)
            except Exception:
                _log_exc("unsubscribe from default device changes failed")
            self._queue.put(None)
            self._thread.join(timeout=timeout)
            self._thread = None
            _log("unsubscribed from default device changes")

    def flush(self):
        """Block until every notification received so far has been applied."""
        self._queue.join()

    def _on_default_device_changed(self, direction, role, device_id):
        # Any thread. Keep it trivial.
        self._queue.put((direction, role, device_id))

    def _run(self):
        while True:
            item = self._queue.get()
            try:
                if item is None:
                    return
                direction, role, device_id = item
                _dbg(f"default device changed: {direction.value}/{role.value} -> {device_id}")
                self._registry.on_default_device_changed(direction, role, device_id)
            except Exception:
                _log_exc("applying default device change failed")
            finally:
                self._queue.task_done()
