import pytest

from audioswitcher.compat import ConnectionState, Direction, Role
from audioswitcher.plugin import AudioSwitcherPlugin
from audioswitcher.registry import SET_ACTION_ID, TOGGLE_ACTION_ID


@pytest.fixture
def plugin(backend, host, injector):
    backend.add_device("spk")
    backend.add_device("hp")
    backend.add_device("mic", direction=Direction.INPUT, state=ConnectionState.DISCONNECTED)
    backend.defaults[(Direction.OUTPUT, Role.DEFAULT)] = "spk"
    with AudioSwitcherPlugin(backend, host, injector=injector) as p:
        yield p


def _message(name, context="ctx", action=TOGGLE_ACTION_ID, **payload):
    return {"event": name, "action": action, "context": context, "payload": payload}


def test_appear_press_and_notification(plugin, backend, host, make_settings):
    plugin.handle_event(_message("willAppear", settings=make_settings()))
    plugin.handle_event(_message("keyDown", settings=make_settings(), state=0))
    plugin.handle_event(_message("keyUp", settings=make_settings(), state=0))
    assert backend.set_calls == [(Direction.OUTPUT, Role.DEFAULT, "hp")]

    backend.fire_default_changed(Direction.OUTPUT, Role.DEFAULT, "hp", from_thread=True)
    plugin.bridge.flush()
    assert host.states("ctx") == [0, 1]


def test_did_receive_settings_reapplies(plugin, host, make_settings):
    plugin.handle_event(_message("didReceiveSettings", action=SET_ACTION_ID, settings=make_settings(primary="hp")))
    assert host.states("ctx") == [1]
    assert "ctx" in plugin.registry.visible_contexts()


def test_will_disappear(plugin, make_settings):
    plugin.handle_event(_message("willAppear", settings=make_settings()))
    plugin.handle_event(_message("willDisappear"))
    assert plugin.registry.contexts() == set()


def test_device_list_request(plugin, host):
    plugin.handle_event(_message("sendToPlugin", event="getDeviceList"))
    name, action, context, payload = host.calls[-1]
    assert (name, action, context) == ("sendToPropertyInspector", TOGGLE_ACTION_ID, "ctx")
    assert payload["event"] == "getDeviceList"
    assert set(payload["outputDevices"]) == {"spk", "hp"}
    assert payload["inputDevices"]["mic"] == {
        "id": "mic",
        "displayName": "MIC",
        "interfaceName": "",
        "endpointName": "",
        "direction": "input",
        "state": "disconnected",
    }


def test_other_property_inspector_events_are_ignored(plugin, host):
    plugin.handle_event(_message("sendToPlugin", event="somethingElse"))
    assert host.calls == []


def test_unknown_events_are_ignored(plugin, host):
    plugin.handle_event({"event": "deviceDidConnect", "device": "abc"})
    plugin.handle_event({})
    assert host.calls == []


def test_handler_errors_are_contained(plugin, backend, host, make_settings):
    def broken(direction, role):
        raise RuntimeError("core audio went away")

    backend.get_default_device_id = broken
    plugin.handle_event(_message("willAppear", settings=make_settings()))
    # the plugin keeps working for later messages
    plugin.handle_event(_message("willDisappear"))
    assert plugin.registry.contexts() == set()


def test_close_stops_bridge(backend, host):
    closed = []

    class Injector:
        def inject(self, binding):
            pass

        def close(self):
            closed.append(True)

    plugin = AudioSwitcherPlugin(backend, host, injector=Injector())
    assert plugin.bridge.running
    plugin.close()
    assert not plugin.bridge.running
    assert closed == [True]
    assert backend.subscribers == {}
