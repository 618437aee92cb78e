# audioswitcher/resolver.py
"""
Device identity resolution.

Windows re-enumerates some devices (USB headsets moved between ports, driver
reinstalls) under a new endpoint id, and sometimes renames the interface
from "Headset" to "2- Headset". A key configured for the old id would then
point at nothing. In fuzzy mode we fall back to matching the
(interface name, endpoint name) pair, ignoring that numeric prefix.

Everything here is pure: callers pass the live inventory for the key's
direction (AudioBackend.list_devices()).
"""
import re
from typing import Mapping, Tuple

from .backend import DeviceInfo
from .logging_setup import _dbg
from .settings import DeviceReference, MatchStrategy

# "2- Headset" -> "Headset"; the prefix is optional.
_NUMBERED_INTERFACE = re.compile(r"^([0-9]+- )?(.+)$", re.DOTALL)


def fuzzify_interface(name: str) -> str:
    m = _NUMBERED_INTERFACE.match(name or "")
    if not m:
        return name or ""
    return m.group(2)


def resolve_volatile_id(ref: DeviceReference, strategy: MatchStrategy,
                        inventory: Mapping[str, DeviceInfo]) -> str:
    """
    Return the id that should currently be treated as "the same device" as ref.

    - no identifier: "" (nothing configured)
    - ID strategy: ref.identifier, no liveness check
    - Fuzzy strategy: ref.identifier if it is still connected, else the first
      connected device with the same fuzzified interface name and endpoint
      name, else ref.identifier (stale, but never a hard failure)
    """
    if not ref.identifier:
        return ""

    if strategy is MatchStrategy.ID:
        return ref.identifier

    current = inventory.get(ref.identifier)
    if current is not None and current.is_connected:
        return ref.identifier

    wanted = fuzzify_interface(ref.interface_name)
    _dbg(f"fuzzy: looking for {ref.interface_name!r} -> {wanted!r} / {ref.endpoint_name!r}")

    for other_id, other in inventory.items():
        if not other.is_connected:
            continue
        if fuzzify_interface(other.interface_name) == wanted and other.endpoint_name == ref.endpoint_name:
            _dbg(f"fuzzy: {ref.identifier} matched {other_id}")
            return other_id

    _dbg(f"fuzzy: no match for {ref.interface_name!r}/{ref.endpoint_name!r}, keeping {ref.identifier}")
    return ref.identifier


def fill_device_info(ref: DeviceReference,
                     inventory: Mapping[str, DeviceInfo]) -> Tuple[DeviceReference, bool]:
    """
    Hydrate a reference that only has an id (old settings) from the live record.

    Returns (reference, filled). A reference that already has a display name
    is never touched.
    """
    if not ref.needs_backfill:
        return ref, False
    live = inventory.get(ref.identifier)
    if live is None:
        return ref, False
    return live.to_reference(), True
