# audioswitcher/compat.py
"""
Shared vocabulary: directions, roles and connection states, plus the Windows
Core Audio constants they map onto.

Nothing in here imports comtypes/pycaw, so the settings model, the resolver
and the registry stay importable on any platform. The COM side lives in
devices.py.
"""
import sys
import threading
from enum import Enum

from .logging_setup import _dbg


class Direction(Enum):
    OUTPUT = "output"
    INPUT = "input"


class Role(Enum):
    DEFAULT = "default"
    COMMUNICATION = "communication"


class ConnectionState(Enum):
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    UNKNOWN = "unknown"


def is_windows():
    return sys.platform == "win32"


# Endpoint flows & roles
E_RENDER = 0   # Playback
E_CAPTURE = 1  # Recording
E_CONSOLE = 0
E_MULTIMEDIA = 1
E_COMMUNICATIONS = 2

FLOWS = {
    Direction.OUTPUT: E_RENDER,
    Direction.INPUT: E_CAPTURE,
}
DIRECTIONS_BY_FLOW = {flow: direction for direction, flow in FLOWS.items()}

# Roles written when switching. "default" covers both console and multimedia,
# matching what the Windows sound control panel does.
ROLES = {
    Role.DEFAULT: (E_CONSOLE, E_MULTIMEDIA),
    Role.COMMUNICATION: (E_COMMUNICATIONS,),
}

# Role read back when querying / receiving notifications. eMultimedia changes
# always arrive together with eConsole ones and are ignored.
QUERY_ROLES = {
    Role.DEFAULT: E_CONSOLE,
    Role.COMMUNICATION: E_COMMUNICATIONS,
}
ROLES_BY_EROLE = {erole: role for role, erole in QUERY_ROLES.items()}

# Device state flags
DEVICE_STATE_ACTIVE = 0x00000001
DEVICE_STATE_ALL    = 0x0000000F  # active | disabled | notpresent | unplugged

DEVICE_STATES = {
    0x00000001: "active",
    0x00000002: "disabled",
    0x00000004: "notpresent",
    0x00000008: "unplugged",
}


def connection_state_from_flags(state_flags):
    """Collapse an IMMDevice state bitmask into a ConnectionState."""
    if state_flags is None:
        return ConnectionState.UNKNOWN
    if state_flags & DEVICE_STATE_ACTIVE:
        return ConnectionState.CONNECTED
    if state_flags & DEVICE_STATE_ALL:
        return ConnectionState.DISCONNECTED
    return ConnectionState.UNKNOWN


def _guid_from_parts(*parts: str) -> str:
    """
    Assemble a GUID string from parts to avoid embedding exact literals.
    Example: _guid_from_parts("870AF99C", "-171D-4F9E-", "AF0D-", "E63DF40C2BC9")
    """
    return "{" + "".join(parts) + "}"


class ThreadApartment:
    """
    Per-thread nesting count around CoInitialize/CoUninitialize.

    The outermost enter() on a thread initializes; the matching exit()
    uninitializes, but only if that initialize succeeded. When the thread is
    already in another apartment mode (RPC_E_CHANGED_MODE) COM is usable as is
    and belongs to someone else.
    """

    def __init__(self, initialize, uninitialize):
        self._initialize = initialize
        self._uninitialize = uninitialize
        self._tls = threading.local()

    def enter(self):
        tls = self._tls
        cnt = getattr(tls, "count", 0)
        if cnt == 0:
            try:
                self._initialize()
                tls.owned = True
            except OSError:
                _dbg("CoInitialize failed; using the thread's existing COM apartment")
                tls.owned = False
        tls.count = cnt + 1

    def exit(self):
        tls = self._tls
        cnt = getattr(tls, "count", 0)
        if cnt <= 0:
            _dbg("COM exit without matching enter; ignored")
            return
        tls.count = cnt - 1
        if tls.count or not tls.owned:
            return
        tls.owned = False
        try:
            self._uninitialize()
        except OSError:
            # COM may already be down at interpreter exit.
            _dbg("CoUninitialize failed")

    @property
    def depth(self):
        return getattr(self._tls, "count", 0)
