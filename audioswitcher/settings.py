# audioswitcher/settings.py
"""
Per-key settings as stored by the Stream Deck host.

Decoding is lenient and field-by-field: older property inspectors wrote
hotkeys under "hotkeyXxx" names, a single "hotkey" object instead of
"primaryHotkey", and bare id strings instead of device objects. Encoding only
ever writes current names, so settings migrate forward the first time they
are saved back (see ButtonRegistry.backfill_device_info).

'direction' is the one mandatory field; everything else has a default.
"""
from dataclasses import dataclass, field, replace
from enum import Enum

from .compat import Direction, Role
from .errors import ConfigurationAbsent
from .logging_setup import _dbg


class MatchStrategy(Enum):
    ID = "ID"
    FUZZY = "Fuzzy"


def _as_bool(value):
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def _as_str(value):
    if value is None:
        return ""
    return str(value)


def _enum_value(enum_cls, raw, default, label):
    try:
        return enum_cls(raw)
    except ValueError:
        _dbg(f"settings: unknown {label} {raw!r}, keeping {default.value!r}")
        return default


@dataclass
class DeviceReference:
    """What a key remembers about a device. Empty identifier: nothing configured."""
    identifier: str = ""
    display_name: str = ""
    interface_name: str = ""
    endpoint_name: str = ""

    @property
    def is_configured(self):
        return bool(self.identifier)

    @property
    def needs_backfill(self):
        return bool(self.identifier) and not self.display_name

    @classmethod
    def from_json(cls, raw):
        # Old settings stored just the id string.
        if isinstance(raw, str):
            return cls(identifier=raw)
        if not isinstance(raw, dict):
            return cls()
        return cls(
            identifier=_as_str(raw.get("id")),
            display_name=_as_str(raw.get("displayName")),
            interface_name=_as_str(raw.get("interfaceName")),
            endpoint_name=_as_str(raw.get("endpointName")),
        )

    def to_json(self):
        return {
            "id": self.identifier,
            "displayName": self.display_name,
            "interfaceName": self.interface_name,
            "endpointName": self.endpoint_name,
        }


# (attribute, current JSON name, legacy JSON name)
_HOTKEY_FIELDS = (
    ("enabled", "enabled", "hotkeyEnabled"),
    ("ctrl", "ctrl", "hotkeyCtrl"),
    ("alt", "alt", "hotkeyAlt"),
    ("shift", "shift", "hotkeyShift"),
    ("meta", "win", "hotkeyWin"),
    ("key_code", "keyCode", "hotkeyKey"),
)


@dataclass
class HotkeyBinding:
    """Key chord sent after a successful switch. 'meta' is Win on Windows, Command on macOS."""
    enabled: bool = False
    ctrl: bool = False
    alt: bool = False
    shift: bool = False
    meta: bool = False
    key_code: str = ""

    @property
    def is_active(self):
        return self.enabled and bool(self.key_code)

    @classmethod
    def from_json(cls, raw, base=None):
        """
        Resolve each field on its own: current name, then legacy name, then
        whatever 'base' (or the default) already holds.
        """
        binding = replace(base) if base is not None else cls()
        if not isinstance(raw, dict):
            return binding
        for attr, current, legacy in _HOTKEY_FIELDS:
            if current in raw:
                value = raw[current]
            elif legacy in raw:
                value = raw[legacy]
            else:
                continue
            setattr(binding, attr, _as_str(value) if attr == "key_code" else _as_bool(value))
        return binding

    def to_json(self):
        return {
            "enabled": self.enabled,
            "ctrl": self.ctrl,
            "alt": self.alt,
            "shift": self.shift,
            "win": self.meta,
            "keyCode": self.key_code,
        }


@dataclass
class ButtonSettings:
    direction: Direction = Direction.INPUT
    role: Role = Role.DEFAULT
    primary_device: DeviceReference = field(default_factory=DeviceReference)
    secondary_device: DeviceReference = field(default_factory=DeviceReference)
    match_strategy: MatchStrategy = MatchStrategy.ID
    primary_hotkey: HotkeyBinding = field(default_factory=HotkeyBinding)
    secondary_hotkey: HotkeyBinding = field(default_factory=HotkeyBinding)

    @classmethod
    def from_json(cls, raw):
        """
        Decode host settings. Raises ConfigurationAbsent if there is no
        recognizable 'direction'; every other field falls back to its default.
        """
        if not isinstance(raw, dict) or "direction" not in raw:
            raise ConfigurationAbsent("settings have no 'direction'")
        try:
            direction = Direction(raw["direction"])
        except ValueError:
            raise ConfigurationAbsent(f"unknown direction {raw['direction']!r}") from None

        settings = cls(direction=direction)

        if "role" in raw:
            settings.role = _enum_value(Role, raw["role"], settings.role, "role")
        if "primary" in raw:
            settings.primary_device = DeviceReference.from_json(raw["primary"])
        if "secondary" in raw:
            settings.secondary_device = DeviceReference.from_json(raw["secondary"])
        if "matchStrategy" in raw:
            settings.match_strategy = _enum_value(
                MatchStrategy, raw["matchStrategy"], settings.match_strategy, "matchStrategy")

        if "primaryHotkey" in raw:
            settings.primary_hotkey = HotkeyBinding.from_json(raw["primaryHotkey"])
        elif "hotkey" in raw:
            settings.primary_hotkey = HotkeyBinding.from_json(raw["hotkey"])

        if "secondaryHotkey" in raw:
            settings.secondary_hotkey = HotkeyBinding.from_json(raw["secondaryHotkey"])

        return settings

    def to_json(self):
        return {
            "direction": self.direction.value,
            "role": self.role.value,
            "primary": self.primary_device.to_json(),
            "secondary": self.secondary_device.to_json(),
            "matchStrategy": self.match_strategy.value,
            "primaryHotkey": self.primary_hotkey.to_json(),
            "secondaryHotkey": self.secondary_hotkey.to_json(),
        }
