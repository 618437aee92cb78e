# audioswitcher/cli.py
#
# Process entry point. The Stream Deck application starts the plugin as
#   audioswitcher -port 28196 -pluginUUID <uuid> -registerEvent registerPlugin -info {...}
# (single-dash long options, its convention). For troubleshooting there is
#   audioswitcher --list-devices [--json]
# which prints what the resolver would see.
import argparse
import json
import sys

from .backend import get_backend
from .compat import Direction
from .errors import BackendNotAvailableError
from .logging_setup import _log, _log_exc, _log_path, init_logging_runtime, set_debug


def cmd_list_devices(backend, as_json):
    inventories = {direction: backend.list_devices(direction) for direction in (Direction.OUTPUT, Direction.INPUT)}
    if as_json:
        print(json.dumps({
            "outputDevices": {k: v.to_json() for k, v in inventories[Direction.OUTPUT].items()},
            "inputDevices": {k: v.to_json() for k, v in inventories[Direction.INPUT].items()},
        }, indent=2))
        return 0

    for title, direction in (("--- Playback (output) ---", Direction.OUTPUT), ("--- Recording (input) ---", Direction.INPUT)):
        print(title)
        for info in sorted(inventories[direction].values(), key=lambda d: d.display_name.lower()):
            print(f"{info.display_name}  [{info.state.value}]")
            print(f"    interface={info.interface_name!r} endpoint={info.endpoint_name!r}")
            print(f"    id={info.identifier}")
        print()
    return 0


def cmd_run(backend, args):
    # Imported here: the websocket/pynput stack is not needed for --list-devices.
    from .connection import StreamDeckConnection
    from .hotkeys import HotkeyInjector
    from .plugin import AudioSwitcherPlugin

    connection = StreamDeckConnection(args.port, args.plugin_uuid, args.register_event)
    with AudioSwitcherPlugin(backend, connection, injector=HotkeyInjector()) as plugin:
        connection.run(plugin.handle_event)
    return 0


def build_parser():
    p = argparse.ArgumentParser(prog="audioswitcher", description="Stream Deck audio device switcher plugin")
    p.add_argument("-port", type=int, help="Stream Deck websocket port")
    p.add_argument("-pluginUUID", dest="plugin_uuid", help="Plugin instance UUID")
    p.add_argument("-registerEvent", dest="register_event", help="Registration event name")
    p.add_argument("-info", help="Host/application info (JSON, informational)")
    p.add_argument("--debug", action="store_true", help="Write debug lines to the log")
    p.add_argument("--list-devices", action="store_true", help="Print output/input devices and exit")
    p.add_argument("--json", action="store_true", help="With --list-devices: print JSON")
    return p


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.list_devices and (args.port is None or not args.plugin_uuid or not args.register_event):
        parser.error("-port, -pluginUUID and -registerEvent are required (or use --list-devices)")

    init_logging_runtime()
    if args.debug:
        set_debug(True)

    try:
        backend = get_backend()
    except BackendNotAvailableError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 3

    if args.list_devices:
        return cmd_list_devices(backend, args.json)

    _log(f"starting plugin uuid={args.plugin_uuid} port={args.port}")
    if args.info:
        _log(f"host info: {args.info}")
    try:
        return cmd_run(backend, args)
    except KeyboardInterrupt:
        return 130
    except Exception as e:
        _log_exc("plugin terminated")
        print(f"ERROR: {e} (see {_log_path()})", file=sys.stderr)
        return 1
