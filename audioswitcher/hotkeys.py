# audioswitcher/hotkeys.py
"""
Hotkey injection after a successful device switch.

Some applications (voice chat, streaming software) need a nudge to pick up a
new default device; a key can optionally send a key chord for that.

Key codes come from the property inspector as strings: a single character,
"F1".."F24", or one of SPACE / ENTER / RETURN / ESCAPE / ESC / TAB.
Injection goes through pynput on a single persistent worker thread so the
registry never waits on simulated key presses.
"""
import queue
import threading
from typing import Optional, Tuple

from .logging_setup import _log, _log_exc, _dbg
from .settings import HotkeyBinding

_NAMED_KEYS = {
    "SPACE": "space",
    "ENTER": "enter",
    "RETURN": "enter",
    "ESCAPE": "esc",
    "ESC": "esc",
    "TAB": "tab",
}

# (binding attribute, pynput Key name), pressed in this order
_MODIFIERS = (
    ("ctrl", "ctrl"),
    ("alt", "alt"),
    ("shift", "shift"),
    ("meta", "cmd"),
)


def parse_key_code(key_code: str) -> Optional[Tuple[str, str]]:
    """
    Map a stored key code to ("char", c) or ("key", pynput Key name).
    Returns None for codes we do not know how to send.
    """
    if not key_code:
        return None
    if len(key_code) == 1:
        return ("char", key_code.lower())
    upper = key_code.upper()
    if upper in _NAMED_KEYS:
        return ("key", _NAMED_KEYS[upper])
    if upper.startswith("F") and len(upper) <= 3 and upper[1:].isdigit():
        n = int(upper[1:])
        if 1 <= n <= 24:
            return ("key", f"f{n}")
    return None


def describe(binding: HotkeyBinding) -> str:
    mods = [attr for attr, _ in _MODIFIERS if getattr(binding, attr)]
    return "+".join(mods + [binding.key_code])


class HotkeyInjector:
    """
    Sends HotkeyBindings as simulated key presses.

    controller / keys default to pynput's keyboard Controller and Key enum;
    they are created lazily on the worker thread.
    """

    def __init__(self, controller=None, keys=None):
        self._controller = controller
        self._keys = keys
        self._queue = queue.Queue()
        self._thread = None
        self._start_lock = threading.Lock()

    def inject(self, binding: HotkeyBinding) -> None:
        """Fire-and-forget: queue the chord and return immediately."""
        if not binding.is_active:
            return
        self._ensure_worker()
        self._queue.put(binding)

    def flush(self):
        """Block until every queued chord has been sent."""
        self._queue.join()

    def close(self):
        with self._start_lock:
            if self._thread is None:
                return
            self._queue.put(None)
            self._thread.join(timeout=2.0)
            self._thread = None

    def _ensure_worker(self):
        with self._start_lock:
            if self._thread is None:
                self._thread = threading.Thread(target=self._run, name="hotkey-injector", daemon=True)
                self._thread.start()

    def _run(self):
        while True:
            binding = self._queue.get()
            try:
                if binding is None:
                    return
                self._send(binding)
            except Exception:
                _log_exc(f"hotkey injection failed for {describe(binding)}")
            finally:
                self._queue.task_done()

    def _backend(self):
        if self._controller is None or self._keys is None:
            from pynput.keyboard import Controller, Key
            if self._controller is None:
                self._controller = Controller()
            if self._keys is None:
                self._keys = Key
        return self._controller, self._keys

    def _send(self, binding):
        parsed = parse_key_code(binding.key_code)
        if parsed is None:
            _log(f"hotkey: unsupported key code {binding.key_code!r}; nothing sent")
            return

        controller, keys = self._backend()
        kind, name = parsed
        if kind == "char":
            target = name
        else:
            target = getattr(keys, name, None)
            if target is None:
                _log(f"hotkey: key {name!r} not available on this platform")
                return

        _dbg(f"hotkey: sending {describe(binding)}")
        pressed = []
        try:
            for attr, key_name in _MODIFIERS:
                if getattr(binding, attr):
                    modifier = getattr(keys, key_name)
                    controller.press(modifier)
                    pressed.append(modifier)
            controller.press(target)
            controller.release(target)
        finally:
            for modifier in reversed(pressed):
                controller.release(modifier)
