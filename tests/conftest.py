import os
import sys
import tempfile
import threading
from pathlib import Path

import pytest

# Add the project root directory to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# Keep test runs from writing audioswitcher.log into the package directory.
os.environ.setdefault("AUDIOSWITCHER_LOG_DIR", tempfile.mkdtemp(prefix="audioswitcher-tests-"))

from audioswitcher.backend import AudioBackend, DeviceInfo
from audioswitcher.compat import ConnectionState, Direction, Role
from audioswitcher.connection import HostConnection


class FakeAudioBackend(AudioBackend):
    """In-memory device inventory with a settable default per (direction, role)."""

    def __init__(self):
        self.devices = {}
        self.defaults = {}
        self.set_calls = []
        self.set_result = True
        self.subscribers = {}
        self.unsubscribed = []
        self._next_handle = 0

    def add_device(self, identifier, direction=Direction.OUTPUT, display_name=None,
                   interface_name="", endpoint_name="", state=ConnectionState.CONNECTED):
        self.devices[identifier] = DeviceInfo(
            identifier=identifier,
            display_name=identifier.upper() if display_name is None else display_name,
            interface_name=interface_name,
            endpoint_name=endpoint_name,
            direction=direction,
            state=state,
        )
        return self.devices[identifier]

    def list_devices(self, direction):
        return {k: v for k, v in self.devices.items() if v.direction == direction}

    def get_connection_state(self, device_id):
        info = self.devices.get(device_id)
        return info.state if info else ConnectionState.DISCONNECTED

    def get_default_device_id(self, direction, role):
        return self.defaults.get((direction, role), "")

    def set_default_device_id(self, direction, role, device_id):
        self.set_calls.append((direction, role, device_id))
        if self.set_result:
            self.defaults[(direction, role)] = device_id
        return self.set_result

    def subscribe_default_device_changed(self, callback):
        self._next_handle += 1
        self.subscribers[self._next_handle] = callback
        return self._next_handle

    def unsubscribe_default_device_changed(self, handle):
        self.subscribers.pop(handle)
        self.unsubscribed.append(handle)

    def fire_default_changed(self, direction, role, device_id, from_thread=False):
        """Simulate the OS notification, optionally from a foreign thread."""
        self.defaults[(direction, role)] = device_id
        for callback in list(self.subscribers.values()):
            if from_thread:
                t = threading.Thread(target=callback, args=(direction, role, device_id))
                t.start()
                t.join()
            else:
                callback(direction, role, device_id)


class RecordingHost(HostConnection):
    def __init__(self):
        self.calls = []

    def set_state(self, context, state):
        self.calls.append(("setState", context, state))

    def show_alert(self, context):
        self.calls.append(("showAlert", context))

    def set_settings(self, context, settings):
        self.calls.append(("setSettings", context, settings))

    def send_to_property_inspector(self, action, context, payload):
        self.calls.append(("sendToPropertyInspector", action, context, payload))

    def states(self, context):
        return [c[2] for c in self.calls if c[0] == "setState" and c[1] == context]

    def alerts(self, context):
        return [c for c in self.calls if c[0] == "showAlert" and c[1] == context]

    def saved_settings(self, context):
        return [c[2] for c in self.calls if c[0] == "setSettings" and c[1] == context]


class RecordingInjector:
    def __init__(self):
        self.injected = []

    def inject(self, binding):
        self.injected.append(binding)

    def close(self):
        pass


@pytest.fixture
def backend():
    return FakeAudioBackend()


@pytest.fixture
def host():
    return RecordingHost()


@pytest.fixture
def injector():
    return RecordingInjector()


def device_json(identifier, display_name="", interface_name="", endpoint_name=""):
    return {
        "id": identifier,
        "displayName": display_name,
        "interfaceName": interface_name,
        "endpointName": endpoint_name,
    }


@pytest.fixture
def make_settings():
    """Build a host settings payload; keyword overrides win."""
    def _make(primary="spk", secondary="hp", direction="output", role="default", **overrides):
        settings = {
            "direction": direction,
            "role": role,
            "primary": device_json(primary, primary.upper()) if isinstance(primary, str) else primary,
            "secondary": device_json(secondary, secondary.upper()) if isinstance(secondary, str) else secondary,
            "matchStrategy": "ID",
        }
        settings.update(overrides)
        return settings
    return _make
