# audioswitcher/backend.py
"""
Device collaborator contract.

The registry and resolver only talk to an AudioBackend: enumerate endpoints,
query/set the default endpoint, and subscribe to default-device changes. The
Windows implementation lives in devices.py; tests use an in-memory one.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict

from .compat import ConnectionState, Direction, Role, is_windows
from .errors import BackendNotAvailableError
from .settings import DeviceReference

# callback(direction, role, device_id); may be invoked on any thread.
DefaultDeviceCallback = Callable[[Direction, Role, str], None]


@dataclass
class DeviceInfo:
    """Live record for one endpoint, as the OS reports it right now."""
    identifier: str
    display_name: str = ""
    interface_name: str = ""
    endpoint_name: str = ""
    direction: Direction = Direction.OUTPUT
    state: ConnectionState = ConnectionState.UNKNOWN

    @property
    def is_connected(self):
        return self.state is ConnectionState.CONNECTED

    def to_reference(self):
        return DeviceReference(
            identifier=self.identifier,
            display_name=self.display_name,
            interface_name=self.interface_name,
            endpoint_name=self.endpoint_name,
        )

    def to_json(self):
        return {
            "id": self.identifier,
            "displayName": self.display_name,
            "interfaceName": self.interface_name,
            "endpointName": self.endpoint_name,
            "direction": self.direction.value,
            "state": self.state.value,
        }


class AudioBackend(ABC):
    """Abstract base class for OS audio device access."""

    @abstractmethod
    def list_devices(self, direction: Direction) -> Dict[str, DeviceInfo]:
        """All endpoints for a direction, any state, keyed by identifier."""
        pass

    @abstractmethod
    def get_connection_state(self, device_id: str) -> ConnectionState:
        pass

    @abstractmethod
    def get_default_device_id(self, direction: Direction, role: Role) -> str:
        """Current default endpoint id, or "" if there is none."""
        pass

    @abstractmethod
    def set_default_device_id(self, direction: Direction, role: Role, device_id: str) -> bool:
        """Make device_id the default for (direction, role). Returns success."""
        pass

    @abstractmethod
    def subscribe_default_device_changed(self, callback: DefaultDeviceCallback):
        """Register callback; returns an opaque handle for unsubscribe."""
        pass

    @abstractmethod
    def unsubscribe_default_device_changed(self, handle) -> None:
        pass


def get_backend() -> AudioBackend:
    """Return the backend for the running platform."""
    if is_windows():
        # Imported lazily: devices.py pulls in comtypes/pycaw.
        from .devices import WindowsAudioBackend
        return WindowsAudioBackend()
    raise BackendNotAvailableError("no audio device backend for this platform (Windows only)")
