# audioswitcher/registry.py
"""
Button registry: every key the host has shown us, and the logic that keeps
each key's displayed state in line with the OS default device.

Host events (appear / disappear / key up / settings) and default-device
notifications (via NotificationBridge, on its own thread) all go through the
same re-entrant lock, so they are applied one at a time. Device queries are
made while holding the lock: they are local Core Audio calls, and re-reading
settings after dropping the lock would buy nothing for a handful of keys.

Displayed state is never stored. It is derived on demand from the resolved
active device versus the resolved primary/secondary ids:
  state 0 = primary is active, state 1 = secondary (or, for "set" keys,
  anything but primary).
"""
import copy
import threading
from dataclasses import dataclass, field
from enum import Enum

from .compat import ConnectionState
from .errors import ConfigurationAbsent
from .logging_setup import _log, _dbg
from .resolver import fill_device_info, resolve_volatile_id
from .settings import ButtonSettings, MatchStrategy

SET_ACTION_ID = "com.fredemmott.audiooutputswitch.set"
TOGGLE_ACTION_ID = "com.fredemmott.audiooutputswitch.toggle"


class ActionKind(Enum):
    SET = "set"
    TOGGLE = "toggle"

    @classmethod
    def from_action_id(cls, action):
        return cls.SET if action == SET_ACTION_ID else cls.TOGGLE


@dataclass
class ButtonState:
    action_kind: ActionKind
    context: str
    settings: ButtonSettings = field(default_factory=ButtonSettings)
    # False until the host has sent a settings payload (even an empty one)
    configured: bool = False


def _as_int(value, default=0):
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


class ButtonRegistry:
    def __init__(self, backend, host, injector=None):
        self._backend = backend
        self._host = host
        self._injector = injector
        self._lock = threading.RLock()
        self._buttons = {}
        self._visible_contexts = set()

    # ---- read accessors (copies) --------------------------------------------

    def get_button(self, context):
        with self._lock:
            button = self._buttons.get(context)
            if button is None:
                return None
            return copy.deepcopy(button)

    def contexts(self):
        with self._lock:
            return set(self._buttons)

    def visible_contexts(self):
        with self._lock:
            return set(self._visible_contexts)

    # ---- host events ---------------------------------------------------------

    def on_will_appear(self, context, action, payload):
        with self._lock:
            self._visible_contexts.add(context)
            button = ButtonState(ActionKind.from_action_id(action), context)
            self._buttons[context] = button
            if not self._apply_settings(button, payload):
                return
            self._refresh(button)
            self._backfill(button)

    def on_settings_changed(self, context, action, payload):
        # Full re-apply, exactly like a fresh appearance.
        self.on_will_appear(context, action, payload)

    def on_will_disappear(self, context):
        with self._lock:
            self._visible_contexts.discard(context)
            self._buttons.pop(context, None)

    def on_key_down(self, context, action, payload):
        # Switching happens on key up; the host flips the state itself.
        _dbg(f"keyDown {context}: state={_as_int((payload or {}).get('state'))} (no-op)")

    def on_key_up(self, context, action, payload):
        with self._lock:
            button = self._buttons.get(context)
            if button is None:
                button = ButtonState(ActionKind.from_action_id(action), context)
                self._buttons[context] = button
            if not self._apply_settings(button, payload):
                return
            self._backfill(button)

            settings = button.settings
            is_set = button.action_kind is ActionKind.SET
            previous_state = _as_int(payload.get("state"))

            # Looks inverted: state 0 means primary is showing, so the press
            # moves to secondary. "Set" keys always target primary.
            use_primary = previous_state != 0 or is_set
            target_ref = settings.primary_device if use_primary else settings.secondary_device
            device_id = self._volatile_id(settings, target_ref)

            if not device_id:
                _dbg(f"keyUp {context}: no device configured, nothing to do")
                return

            if self._backend.get_connection_state(device_id) is not ConnectionState.CONNECTED:
                _log(f"keyUp {context}: device {device_id} is not connected")
                if is_set:
                    self._host.set_state(context, 1)
                self._host.show_alert(context)
                return

            if is_set and device_id == self._backend.get_default_device_id(settings.direction, settings.role):
                # Already the default: undo the host's state flip.
                _dbg(f"keyUp {context}: {device_id} already default")
                self._host.set_state(context, previous_state)
                return

            _log(f"keyUp {context}: setting {settings.direction.value}/{settings.role.value} default to {device_id}")
            if not self._backend.set_default_device_id(settings.direction, settings.role, device_id):
                self._host.show_alert(context)
                return

            hotkey = settings.primary_hotkey if use_primary else settings.secondary_hotkey
            if hotkey.is_active and self._injector is not None:
                self._injector.inject(hotkey)

    # ---- OS events -----------------------------------------------------------

    def on_default_device_changed(self, direction, role, device_id):
        """Broadcast to every key watching (direction, role). May be called from any thread."""
        with self._lock:
            for button in list(self._buttons.values()):
                if not button.configured:
                    continue
                if button.settings.direction != direction or button.settings.role != role:
                    continue
                self._refresh(button, device_id)

    # ---- state derivation ----------------------------------------------------

    def refresh_displayed_state(self, context, active_device_id=None):
        with self._lock:
            button = self._buttons.get(context)
            if button is None or not button.configured:
                return
            self._refresh(button, active_device_id)

    def backfill_device_info(self, context):
        with self._lock:
            button = self._buttons.get(context)
            if button is None or not button.configured:
                return
            self._backfill(button)

    def _apply_settings(self, button, payload):
        """Store payload['settings'] on button. False if the payload carries none."""
        if not isinstance(payload, dict) or "settings" not in payload:
            return False
        try:
            button.settings = ButtonSettings.from_json(payload["settings"])
        except ConfigurationAbsent as e:
            # Not yet set up in the property inspector: run with defaults,
            # which resolve to no devices.
            _dbg(f"{button.context}: {e}; using default settings")
            button.settings = ButtonSettings()
        button.configured = True
        return True

    def _volatile_id(self, settings, ref, inventory=None):
        if settings.match_strategy is MatchStrategy.FUZZY and ref.identifier and inventory is None:
            inventory = self._backend.list_devices(settings.direction)
        return resolve_volatile_id(ref, settings.match_strategy, inventory or {})

    def _refresh(self, button, active_device_id=None):
        settings = button.settings
        context = button.context
        active = active_device_id or self._backend.get_default_device_id(settings.direction, settings.role)

        inventory = None
        if settings.match_strategy is MatchStrategy.FUZZY:
            inventory = self._backend.list_devices(settings.direction)
        primary_id = self._volatile_id(settings, settings.primary_device, inventory)
        secondary_id = self._volatile_id(settings, settings.secondary_device, inventory)

        if button.action_kind is ActionKind.SET:
            self._host.set_state(context, 0 if active == primary_id else 1)
            return

        if active == primary_id:
            self._host.set_state(context, 0)
            return
        if active == secondary_id:
            self._host.set_state(context, 1)
            return

        _dbg(f"{context}: active {active!r} is neither {primary_id!r} nor {secondary_id!r}")
        self._host.show_alert(context)

    def _backfill(self, button):
        settings = button.settings
        if not (settings.primary_device.needs_backfill or settings.secondary_device.needs_backfill):
            return
        inventory = self._backend.list_devices(settings.direction)
        settings.primary_device, filled_primary = fill_device_info(settings.primary_device, inventory)
        settings.secondary_device, filled_secondary = fill_device_info(settings.secondary_device, inventory)
        if filled_primary or filled_secondary:
            _dbg(f"{button.context}: backfilled device info")
            self._host.set_settings(button.context, settings.to_json())
