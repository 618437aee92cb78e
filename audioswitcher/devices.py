# audioswitcher/devices.py
#
# Windows implementation of AudioBackend: the COM plumbing (pycaw + comtypes)
# the rest of the plugin builds on.
#
# Responsibilities:
# - Enumerate Render (output) and Capture (input) endpoints with the three
#   names the resolver needs: friendly name, interface name, endpoint name.
# - Read/set the default endpoint per role (PolicyConfig, undocumented-ish).
# - Deliver IMMNotificationClient::OnDefaultDeviceChanged to a callback.
#
# Stability rules:
# - Every helper manages its own COM init/teardown via _com_context(); the
#   notification subscription holds one extra reference until unsubscribe.
# - No COM object singletons; interface *definitions* are built once at import.
# - COM failures are logged and turned into "", False or DISCONNECTED. The
#   registry turns those into key alerts.

# --- comtypes compatibility shim (MUST run before pycaw is imported) ---
import comtypes.automation as _automation

# Ensure PROPVARIANT alias exists, using tagPROPVARIANT as a common fallback.
if not hasattr(_automation, "PROPVARIANT") and hasattr(_automation, "tagPROPVARIANT"):
    _automation.PROPVARIANT = _automation.tagPROPVARIANT
if not hasattr(_automation, "VT_LPWSTR"):
    _automation.VT_LPWSTR = 31

import ctypes
import threading
import warnings
from contextlib import contextmanager
from ctypes import wintypes

import comtypes
from comtypes import CLSCTX_ALL, CoCreateInstance, GUID, IUnknown, COMMETHOD, HRESULT
from pycaw.callbacks import MMNotificationClient
from pycaw.constants import CLSID_MMDeviceEnumerator
from pycaw.pycaw import AudioUtilities, IMMDeviceEnumerator

from .backend import AudioBackend, DeviceInfo
from .compat import (
    ConnectionState, ThreadApartment,
    DEVICE_STATE_ACTIVE, DEVICE_STATE_ALL, DEVICE_STATES,
    DIRECTIONS_BY_FLOW, FLOWS, QUERY_ROLES, ROLES, ROLES_BY_EROLE,
    _guid_from_parts, connection_state_from_flags,
)
from .logging_setup import _log, _log_exc, _dbg

# Property keys, as pycaw renders them ("{fmtid} pid").
PKEY_DEVICE_FRIENDLY_NAME = "{A45C254E-DF1C-4EFD-8020-67D146A850E0} 14"
PKEY_DEVICE_DESC = "{A45C254E-DF1C-4EFD-8020-67D146A850E0} 2"
PKEY_DEVICE_INTERFACE_FRIENDLY_NAME = "{026E516E-B814-414B-83CD-856D6FEF4822} 2"

# ---- COM lifecycle management ------------------------------------------------
# COM must be initialized per-thread, and helpers nest (list_devices ->
# _read_properties ...). ThreadApartment keeps the per-thread count and only
# undoes an initialize that succeeded.
_apartment = ThreadApartment(comtypes.CoInitialize, comtypes.CoUninitialize)


def _com_enter():
    _apartment.enter()


def _com_exit():
    _apartment.exit()


@contextmanager
def _com_context():
    _com_enter()
    try:
        yield
    finally:
        _com_exit()


# ---- PolicyConfig (SetDefaultEndpoint) ---------------------------------------
# Defined once at import: building COMMETHOD classes lazily in the middle of
# other COM work has historically been GC-sensitive.

def _define_policy_config():
    CLSID_PolicyConfigClient = GUID(_guid_from_parts("870AF99C", "-171D-4F9E-", "AF0D-", "E63DF40C2BC9"))

    class IPolicyConfig(IUnknown):
        _iid_ = GUID(_guid_from_parts("F8679F50", "-850A-41CF-", "9C72-", "430F290290C8"))
        _methods_ = (
            COMMETHOD([], HRESULT, 'GetMixFormat', (['in'], wintypes.LPCWSTR, 'wszDeviceId'), (['out'], ctypes.POINTER(ctypes.c_void_p), 'ppFormat')),
            COMMETHOD([], HRESULT, 'GetDeviceFormat', (['in'], wintypes.LPCWSTR, 'wszDeviceId'), (['in'], wintypes.BOOL, 'bDefault'), (['out'], ctypes.POINTER(ctypes.c_void_p), 'ppFormat')),
            COMMETHOD([], HRESULT, 'ResetDeviceFormat', (['in'], wintypes.LPCWSTR, 'wszDeviceId')),
            COMMETHOD([], HRESULT, 'SetDeviceFormat', (['in'], wintypes.LPCWSTR, 'wszDeviceId'), (['in'], ctypes.c_void_p, 'pEndpointFormat'), (['in'], ctypes.c_void_p, 'mixFormat')),
            COMMETHOD([], HRESULT, 'GetProcessingPeriod', (['in'], wintypes.LPCWSTR, 'wszDeviceId'), (['in'], wintypes.BOOL, 'bDefault'), (['out'], ctypes.POINTER(ctypes.c_longlong), 'pmftDefaultPeriod'), (['out'], ctypes.POINTER(ctypes.c_longlong), 'pmftMinimumPeriod')),
            COMMETHOD([], HRESULT, 'SetProcessingPeriod', (['in'], wintypes.LPCWSTR, 'wszDeviceId'), (['in'], ctypes.POINTER(ctypes.c_longlong), 'pmftPeriod')),
            COMMETHOD([], HRESULT, 'GetShareMode', (['in'], wintypes.LPCWSTR, 'wszDeviceId'), (['out'], ctypes.POINTER(ctypes.c_void_p), 'pMode')),
            COMMETHOD([], HRESULT, 'SetShareMode', (['in'], wintypes.LPCWSTR, 'wszDeviceId'), (['in'], ctypes.c_void_p, 'mode')),
            COMMETHOD([], HRESULT, 'GetPropertyValue', (['in'], wintypes.LPCWSTR, 'wszDeviceId'), (['in'], wintypes.BOOL, 'bFxStore'), (['in'], ctypes.c_void_p, 'key'), (['out'], ctypes.POINTER(ctypes.c_void_p), 'pv')),
            COMMETHOD([], HRESULT, 'SetPropertyValue', (['in'], wintypes.LPCWSTR, 'wszDeviceId'), (['in'], wintypes.BOOL, 'bFxStore'), (['in'], ctypes.c_void_p, 'key'), (['in'], ctypes.c_void_p, 'pv')),
            COMMETHOD([], HRESULT, 'SetDefaultEndpoint', (['in'], wintypes.LPCWSTR, 'wszDeviceId'), (['in'], wintypes.DWORD, 'role')),
            COMMETHOD([], HRESULT, 'SetEndpointVisibility', (['in'], wintypes.LPCWSTR, 'wszDeviceId'), (['in'], wintypes.BOOL, 'bVisible')),
        )

    return IPolicyConfig, CLSID_PolicyConfigClient


_IPolicyConfig, _CLSID_PolicyConfigClient = _define_policy_config()


def _get_policy_config():
    # Fresh instance per operation; never cached across calls/threads.
    return CoCreateInstance(_CLSID_PolicyConfigClient, interface=_IPolicyConfig, clsctx=CLSCTX_ALL)


def _get_enumerator():
    return CoCreateInstance(CLSID_MMDeviceEnumerator, IMMDeviceEnumerator, CLSCTX_ALL)


# ---- property reads ------------------------------------------------------------

def _prop(properties, key):
    """pycaw GUID casing differs between versions; compare case-insensitively."""
    wanted = key.upper()
    for name, value in properties.items():
        if str(name).upper() == wanted:
            return "" if value is None else str(value).strip("\x00 ").strip()
    return ""


def _read_properties(dev):
    """All property-store values of an IMMDevice via pycaw, or {} if unreadable."""
    try:
        with warnings.catch_warnings():
            # pycaw warns about properties it cannot convert; they are not ours.
            warnings.simplefilter("ignore", UserWarning)
            return AudioUtilities.CreateDevice(dev).properties or {}
    except Exception:
        _log_exc("reading endpoint properties failed")
        return {}


def _device_info(dev, direction):
    dev_id = dev.GetId()
    try:
        state_flags = dev.GetState()
    except Exception:
        state_flags = None
    props = _read_properties(dev)
    state = connection_state_from_flags(state_flags)
    if state_flags is not None and not state_flags & DEVICE_STATE_ACTIVE:
        parts = [label for bit, label in DEVICE_STATES.items() if state_flags & bit]
        _dbg(f"endpoint {dev_id} is {','.join(parts) or 'unknown'}")
    return DeviceInfo(
        identifier=dev_id,
        display_name=_prop(props, PKEY_DEVICE_FRIENDLY_NAME) or dev_id,
        interface_name=_prop(props, PKEY_DEVICE_INTERFACE_FRIENDLY_NAME),
        endpoint_name=_prop(props, PKEY_DEVICE_DESC),
        direction=direction,
        state=state,
    )


# ---- notifications -------------------------------------------------------------

class _DefaultDeviceClient(MMNotificationClient):
    """
    IMMNotificationClient that forwards default-device changes.

    Runs on a Core Audio worker thread: translate and hand off, nothing more.
    """

    def __init__(self, callback):
        super().__init__()
        self._callback = callback

    def OnDefaultDeviceChanged(self, flow, role, pwstrDefaultDeviceId):
        direction = DIRECTIONS_BY_FLOW.get(flow)
        our_role = ROLES_BY_EROLE.get(role)
        # eMultimedia changes shadow eConsole ones; only report the latter.
        if direction is None or our_role is None:
            return 0
        try:
            self._callback(direction, our_role, pwstrDefaultDeviceId or "")
        except Exception:
            _log_exc("default device change callback failed")
        return 0


class _Subscription:
    def __init__(self, enumerator, client):
        self.enumerator = enumerator
        self.client = client
        self.thread_id = threading.get_ident()


class WindowsAudioBackend(AudioBackend):
    """Core Audio backend (pycaw/comtypes)."""

    def list_devices(self, direction):
        _dbg(f"list_devices: {direction.value}")
        out = {}
        try:
            with _com_context():
                enumerator = _get_enumerator()
                coll = enumerator.EnumAudioEndpoints(FLOWS[direction], DEVICE_STATE_ALL)
                for i in range(coll.GetCount()):
                    try:
                        info = _device_info(coll.Item(i), direction)
                    except Exception:
                        _log_exc(f"skipping unreadable {direction.value} endpoint #{i}")
                        continue
                    out[info.identifier] = info
        except Exception:
            _log_exc(f"enumerating {direction.value} endpoints failed")
        _dbg(f"list_devices: {direction.value} total={len(out)}")
        return out

    def get_connection_state(self, device_id):
        try:
            with _com_context():
                dev = _get_enumerator().GetDevice(device_id)
                return connection_state_from_flags(dev.GetState())
        except Exception:
            # GetDevice fails for endpoints Windows no longer knows about.
            _dbg(f"get_connection_state: {device_id} not found")
            return ConnectionState.DISCONNECTED

    def get_default_device_id(self, direction, role):
        try:
            with _com_context():
                dev = _get_enumerator().GetDefaultAudioEndpoint(FLOWS[direction], QUERY_ROLES[role])
                return dev.GetId() or ""
        except Exception:
            # E_NOTFOUND when there is no endpoint for this flow at all.
            _dbg(f"get_default_device_id: no default for {direction.value}/{role.value}")
            return ""

    def set_default_device_id(self, direction, role, device_id):
        """
        Set the system default endpoint for every Windows role behind `role`.

        Refuses inactive endpoints: some PolicyConfig implementations misbehave
        when asked to default to an unplugged device.
        """
        _dbg(f"SetDefaultEndpoint start: id={device_id} role={role.value}")
        if self.get_connection_state(device_id) is not ConnectionState.CONNECTED:
            _log(f"SetDefaultEndpoint refused: {device_id} is not active")
            return False
        failed = []
        try:
            with _com_context():
                policy = _get_policy_config()
                for erole in ROLES[role]:
                    try:
                        policy.SetDefaultEndpoint(device_id, erole)
                    except Exception:
                        _log_exc(f"SetDefaultEndpoint failed for erole={erole}")
                        failed.append(erole)
        except Exception:
            _log_exc("PolicyConfig unavailable")
            return False
        if failed:
            return False
        _dbg("SetDefaultEndpoint done")
        return True

    def subscribe_default_device_changed(self, callback):
        # The enumerator must outlive the registration, and COM must stay
        # initialized on this thread until unsubscribe: hold one COM reference.
        _com_enter()
        try:
            enumerator = _get_enumerator()
            client = _DefaultDeviceClient(callback)
            enumerator.RegisterEndpointNotificationCallback(client)
        except Exception:
            _com_exit()
            raise
        return _Subscription(enumerator, client)

    def unsubscribe_default_device_changed(self, handle):
        if handle.thread_id != threading.get_ident():
            _log("unsubscribe called from a different thread than subscribe")
        try:
            handle.enumerator.UnregisterEndpointNotificationCallback(handle.client)
        finally:
            handle.enumerator = None
            handle.client = None
            _com_exit()
