import pytest

from audioswitcher.backend import DeviceInfo
from audioswitcher.compat import ConnectionState, Direction
from audioswitcher.resolver import fill_device_info, fuzzify_interface, resolve_volatile_id
from audioswitcher.settings import DeviceReference, MatchStrategy


def _device(identifier, interface_name="", endpoint_name="", state=ConnectionState.CONNECTED, display_name=None):
    return DeviceInfo(
        identifier=identifier,
        display_name=display_name if display_name is not None else identifier,
        interface_name=interface_name,
        endpoint_name=endpoint_name,
        direction=Direction.OUTPUT,
        state=state,
    )


def _inventory(*devices):
    return {d.identifier: d for d in devices}


@pytest.mark.parametrize("name,expected", [
    ("3- Headset Mic", "Headset Mic"),
    ("Headset Mic", "Headset Mic"),
    ("12- USB Audio", "USB Audio"),
    ("2-Headset", "2-Headset"),
    ("", ""),
])
def test_fuzzify_interface(name, expected):
    assert fuzzify_interface(name) == expected


def test_fuzzify_prefix_forms_compare_equal():
    assert fuzzify_interface("3- Headset Mic") == fuzzify_interface("Headset Mic")


@pytest.mark.parametrize("strategy", list(MatchStrategy))
def test_empty_identifier_resolves_to_empty(strategy):
    inventory = _inventory(_device("x", "USB Audio", "Speakers"))
    ref = DeviceReference(identifier="", interface_name="USB Audio", endpoint_name="Speakers")
    assert resolve_volatile_id(ref, strategy, inventory) == ""


def test_exact_strategy_is_identity_even_when_disconnected():
    inventory = _inventory(_device("new-id", "USB Audio", "Speakers"))
    ref = DeviceReference("old-id", "Speakers", "USB Audio", "Speakers")
    assert resolve_volatile_id(ref, MatchStrategy.ID, inventory) == "old-id"
    assert resolve_volatile_id(ref, MatchStrategy.ID, {}) == "old-id"


def test_fuzzy_fast_path_keeps_connected_identifier():
    inventory = _inventory(
        _device("other", "USB Audio", "Speakers"),
        _device("mine", "Something Else", "Entirely"),
    )
    ref = DeviceReference("mine", "", "USB Audio", "Speakers")
    assert resolve_volatile_id(ref, MatchStrategy.FUZZY, inventory) == "mine"


def test_fuzzy_matches_renumbered_interface():
    inventory = _inventory(_device("new-id", "USB Audio", "Speakers"))
    ref = DeviceReference("old-id", "", "2- USB Audio", "Speakers")
    assert resolve_volatile_id(ref, MatchStrategy.FUZZY, inventory) == "new-id"


def test_fuzzy_matches_when_live_device_gained_prefix():
    inventory = _inventory(_device("new-id", "4- USB Audio", "Speakers"))
    ref = DeviceReference("old-id", "", "USB Audio", "Speakers")
    assert resolve_volatile_id(ref, MatchStrategy.FUZZY, inventory) == "new-id"


def test_fuzzy_ignores_disconnected_original_and_candidates():
    inventory = _inventory(
        _device("old-id", "USB Audio", "Speakers", state=ConnectionState.DISCONNECTED),
        _device("unplugged", "USB Audio", "Speakers", state=ConnectionState.DISCONNECTED),
        _device("live", "1- USB Audio", "Speakers"),
    )
    ref = DeviceReference("old-id", "", "USB Audio", "Speakers")
    assert resolve_volatile_id(ref, MatchStrategy.FUZZY, inventory) == "live"


def test_fuzzy_requires_endpoint_name_match():
    inventory = _inventory(_device("new-id", "USB Audio", "Microphone"))
    ref = DeviceReference("old-id", "", "USB Audio", "Speakers")
    assert resolve_volatile_id(ref, MatchStrategy.FUZZY, inventory) == "old-id"


def test_fuzzy_falls_back_to_stale_identifier():
    ref = DeviceReference("old-id", "", "USB Audio", "Speakers")
    assert resolve_volatile_id(ref, MatchStrategy.FUZZY, {}) == "old-id"


def test_fill_device_info_hydrates_bare_reference():
    live = _device("a", "USB Audio", "Speakers", display_name="Speakers (USB Audio)")
    ref, filled = fill_device_info(DeviceReference("a"), _inventory(live))
    assert filled is True
    assert ref == DeviceReference("a", "Speakers (USB Audio)", "USB Audio", "Speakers")


def test_fill_device_info_never_overwrites_display_name():
    live = _device("a", "USB Audio", "Speakers", display_name="Live Name")
    original = DeviceReference("a", "Stored Name")
    ref, filled = fill_device_info(original, _inventory(live))
    assert filled is False
    assert ref is original


def test_fill_device_info_unknown_or_empty():
    assert fill_device_info(DeviceReference("missing"), {}) == (DeviceReference("missing"), False)
    assert fill_device_info(DeviceReference(), _inventory(_device("a"))) == (DeviceReference(), False)
