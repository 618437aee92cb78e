# audioswitcher/connection.py
"""
Host (Stream Deck application) side.

HostConnection is everything the registry needs to push back to the host.
StreamDeckConnection implements it over the plugin websocket that the Stream
Deck application opens for us on localhost.
"""
import json
import threading
from abc import ABC, abstractmethod

from websockets.exceptions import ConnectionClosed
from websockets.sync.client import connect

from .logging_setup import _log, _log_exc, _dbg


class HostConnection(ABC):
    """Outgoing calls to the host."""

    @abstractmethod
    def set_state(self, context: str, state: int) -> None:
        pass

    @abstractmethod
    def show_alert(self, context: str) -> None:
        pass

    @abstractmethod
    def set_settings(self, context: str, settings: dict) -> None:
        pass

    @abstractmethod
    def send_to_property_inspector(self, action: str, context: str, payload: dict) -> None:
        pass


class StreamDeckConnection(HostConnection):
    """
    Websocket link to the Stream Deck application.

    run() blocks on the receive loop; the set_*/show_*/send_* methods may be
    called from any thread while it runs (notification and registry threads).
    """

    def __init__(self, port, plugin_uuid, register_event, host="127.0.0.1"):
        self.uri = f"ws://{host}:{int(port)}"
        self.plugin_uuid = plugin_uuid
        self.register_event = register_event
        self._ws = None
        self._send_lock = threading.Lock()

    def run(self, on_message):
        """
        Connect, register, then hand every decoded message to on_message(dict)
        until the host closes the socket.
        """
        _log(f"connecting to {self.uri}")
        with connect(self.uri) as ws:
            self._ws = ws
            try:
                self._send({"event": self.register_event, "uuid": self.plugin_uuid})
                for raw in ws:
                    try:
                        message = json.loads(raw)
                    except ValueError:
                        _log(f"ignoring non-JSON message: {raw!r}")
                        continue
                    if not isinstance(message, dict):
                        _dbg(f"ignoring non-object message: {message!r}")
                        continue
                    on_message(message)
            except ConnectionClosed as e:
                _log(f"connection closed: {e}")
            finally:
                self._ws = None
        _log("host connection ended")

    def _send(self, message):
        ws = self._ws
        if ws is None:
            _dbg(f"not connected; dropping {message.get('event')}")
            return
        data = json.dumps(message)
        try:
            with self._send_lock:
                ws.send(data)
        except ConnectionClosed:
            _log(f"connection closed; dropping {message.get('event')}")
        except Exception:
            _log_exc(f"send failed for {message.get('event')}")

    def set_state(self, context, state):
        self._send({"event": "setState", "context": context, "payload": {"state": int(state)}})

    def show_alert(self, context):
        self._send({"event": "showAlert", "context": context})

    def set_settings(self, context, settings):
        self._send({"event": "setSettings", "context": context, "payload": settings})

    def send_to_property_inspector(self, action, context, payload):
        self._send({
            "event": "sendToPropertyInspector",
            "action": action,
            "context": context,
            "payload": payload,
        })
