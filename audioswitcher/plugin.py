# audioswitcher/plugin.py
"""
One plugin instance: owns the registry and the notification bridge for the
lifetime of the process, and turns host messages into registry calls.
"""
from .compat import Direction
from .logging_setup import _log_exc, _dbg
from .notifications import NotificationBridge
from .registry import ButtonRegistry


class AudioSwitcherPlugin:
    def __init__(self, backend, host, injector=None):
        self.backend = backend
        self.host = host
        self.injector = injector
        self.registry = ButtonRegistry(backend, host, injector)
        self.bridge = NotificationBridge(backend, self.registry)
        self.bridge.start()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def close(self):
        self.bridge.stop()
        if self.injector is not None:
            self.injector.close()

    def handle_event(self, message):
        """
        Dispatch one decoded host message. Never raises: a failure on one key
        must not stop the plugin.
        """
        event = message.get("event")
        action = message.get("action", "")
        context = message.get("context", "")
        payload = message.get("payload") or {}
        try:
            if event == "willAppear":
                self.registry.on_will_appear(context, action, payload)
            elif event == "willDisappear":
                self.registry.on_will_disappear(context)
            elif event == "didReceiveSettings":
                self.registry.on_settings_changed(context, action, payload)
            elif event == "keyDown":
                self.registry.on_key_down(context, action, payload)
            elif event == "keyUp":
                self.registry.on_key_up(context, action, payload)
            elif event == "sendToPlugin":
                self._on_send_to_plugin(action, context, payload)
            else:
                _dbg(f"ignoring event {event!r}")
        except Exception:
            _log_exc(f"handling {event!r} for {context!r} failed")

    def _on_send_to_plugin(self, action, context, payload):
        event = payload.get("event")
        _dbg(f"property inspector event {event!r}")
        if event != "getDeviceList":
            return
        self.host.send_to_property_inspector(action, context, {
            "event": event,
            "outputDevices": self.device_list(Direction.OUTPUT),
            "inputDevices": self.device_list(Direction.INPUT),
        })

    def device_list(self, direction):
        return {dev_id: info.to_json() for dev_id, info in self.backend.list_devices(direction).items()}
