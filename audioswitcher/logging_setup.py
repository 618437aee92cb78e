# audioswitcher/logging_setup.py
import datetime
import faulthandler
import os
import sys
import tempfile
import threading
import traceback

LOG_NAME = "audioswitcher.log"
# The plugin runs for as long as the Stream Deck app does; keep one old log.
LOG_MAX_BYTES = 1024 * 1024

# Debug toggle (runtime)
_DEBUG = bool(int(os.environ.get("AUDIOSWITCHER_DEBUG", "0") or "0"))

# Internal state (lazy init: no file I/O at import time)
_LOG_DIR = None
_LOG_PATH = None
_RUNTIME_INITIALIZED = False
_FH = None            # faulthandler file handle

# Registry, notification worker and hotkey worker all log; keep lines whole.
_WRITE_LOCK = threading.Lock()


def set_debug(on: bool = True):
    global _DEBUG
    _DEBUG = bool(on)
    _log(f"DEBUG {'enabled' if _DEBUG else 'disabled'}")


def is_debug():
    return _DEBUG


def _exe_dir():
    try:
        if getattr(sys, "frozen", False):  # PyInstaller
            return os.path.dirname(sys.executable)
        return os.path.dirname(os.path.abspath(__file__))
    except Exception:
        return os.getcwd()


def _resolve_log_path():
    """
    Decide where the log would live, but do not create it yet.

    Order: $AUDIOSWITCHER_LOG_DIR, the plugin directory (if writable), then
    <tmp>/audioswitcher.
    """
    override = os.environ.get("AUDIOSWITCHER_LOG_DIR")
    if override:
        return override, os.path.join(override, LOG_NAME)

    base = _exe_dir()
    try:
        # Probe writability without creating the real log
        test = os.path.join(base, ".writetest")
        with open(test, "w", encoding="utf-8") as _:
            pass
        os.remove(test)
        return base, os.path.join(base, LOG_NAME)
    except OSError:
        tdir = os.path.join(tempfile.gettempdir(), "audioswitcher")
        return tdir, os.path.join(tdir, LOG_NAME)


def _ensure_resolved():
    global _LOG_DIR, _LOG_PATH
    if _LOG_DIR is None or _LOG_PATH is None:
        _LOG_DIR, _LOG_PATH = _resolve_log_path()
        try:
            os.makedirs(_LOG_DIR, exist_ok=True)
            if os.path.getsize(_LOG_PATH) > LOG_MAX_BYTES:
                os.replace(_LOG_PATH, _LOG_PATH + ".1")
        except OSError:
            # Missing log (first run) or read-only directory; _write copes.
            pass


def _log_path():
    _ensure_resolved()
    return _LOG_PATH


def _write(line: str):
    _ensure_resolved()
    try:
        with _WRITE_LOCK:
            with open(_LOG_PATH, "a", encoding="utf-8", errors="replace") as f:
                f.write(line + "\n")
    except OSError:
        # Logging must never take the plugin down.
        pass


def _timestamp():
    return datetime.datetime.now().strftime("%Y-%m-%d %H:%M:%S")


def _log(msg: str):
    _write(f"[{_timestamp()}] {msg}")


def _log_exc(prefix: str, exc_info=None):
    if exc_info is None:
        exc_info = sys.exc_info()
    tb = "".join(traceback.format_exception(*exc_info))
    _log(f"{prefix}\n{tb}")


def _dbg(msg: str):
    if not _DEBUG:
        return
    tid = threading.get_ident()
    pid = os.getpid()
    _write(f"[{_timestamp()}] [DBG pid={pid} tid={tid}] {msg}")


def _global_excepthook(exc_type, exc_value, exc_tb):
    _log_exc("UNCAUGHT EXCEPTION", (exc_type, exc_value, exc_tb))
    sys.__excepthook__(exc_type, exc_value, exc_tb)


def _thread_excepthook(args):
    name = getattr(args.thread, "name", "?")
    _log_exc(f"UNCAUGHT EXCEPTION in thread {name}",
             (args.exc_type, args.exc_value, args.exc_traceback))


def _unraisable_hook(unraisable):
    _log(f"UNRAISABLE: {getattr(unraisable.exc_type, '__name__', str(unraisable.exc_type))}: "
         f"{unraisable.exc_value}\nObject: {unraisable.object!r}")


def _atexit_close_handles():
    global _FH
    if _FH and not _FH.closed:
        try:
            faulthandler.disable()
        except Exception:
            pass
        _FH.flush()
        _FH.close()
        _FH = None


def _atexit_normal():
    _log("atexit: process exiting normally")


def init_logging_runtime(enable_faulthandler=True):
    """
    Process-wide setup, done once by the command line entry point:
    - write the first breadcrumb (creates the log file)
    - install exception hooks (main thread, worker threads, unraisable)
    - enable faulthandler into the log (COM crashes are native)
    - register atexit handlers

    Library use (tests, embedding) never calls this; _log() works without it.
    """
    global _RUNTIME_INITIALIZED, _FH
    if _RUNTIME_INITIALIZED:
        return

    _log(f"logging to: {_log_path()}")

    sys.excepthook = _global_excepthook
    threading.excepthook = _thread_excepthook
    sys.unraisablehook = _unraisable_hook

    if enable_faulthandler and _FH is None:
        try:
            _FH = open(_log_path(), "a", buffering=1)
            faulthandler.enable(file=_FH, all_threads=True)
        except (OSError, ValueError, RuntimeError):
            try:
                # No log file: fall back to stderr (absent under pythonw).
                faulthandler.enable(all_threads=True)
            except (RuntimeError, ValueError):
                pass

    import atexit
    atexit.register(_atexit_normal)
    atexit.register(_atexit_close_handles)

    _RUNTIME_INITIALIZED = True
