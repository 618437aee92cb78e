import threading

from audioswitcher.compat import ConnectionState, ThreadApartment, connection_state_from_flags


class RecordingCom:
    def __init__(self, init_error=None):
        self.init_error = init_error
        self.calls = []

    def initialize(self):
        self.calls.append("init")
        if self.init_error is not None:
            raise self.init_error

    def uninitialize(self):
        self.calls.append("uninit")


def test_nested_enters_initialize_once():
    com = RecordingCom()
    apartment = ThreadApartment(com.initialize, com.uninitialize)
    apartment.enter()
    apartment.enter()
    apartment.exit()
    assert com.calls == ["init"]
    apartment.exit()
    assert com.calls == ["init", "uninit"]
    assert apartment.depth == 0


def test_failed_initialize_is_never_uninitialized():
    # RPC_E_CHANGED_MODE: the thread already has a different apartment
    com = RecordingCom(init_error=OSError(-2147417850, "Cannot change thread mode after it is set"))
    apartment = ThreadApartment(com.initialize, com.uninitialize)
    apartment.enter()
    apartment.enter()
    apartment.exit()
    apartment.exit()
    assert com.calls == ["init"]


def test_owned_state_resets_for_next_outer_enter():
    com = RecordingCom(init_error=OSError("changed mode"))
    apartment = ThreadApartment(com.initialize, com.uninitialize)
    apartment.enter()
    apartment.exit()
    com.init_error = None
    apartment.enter()
    apartment.exit()
    assert com.calls == ["init", "init", "uninit"]


def test_unbalanced_exit_is_ignored():
    com = RecordingCom()
    apartment = ThreadApartment(com.initialize, com.uninitialize)
    apartment.exit()
    assert com.calls == []
    assert apartment.depth == 0


def test_counts_are_per_thread():
    com = RecordingCom()
    apartment = ThreadApartment(com.initialize, com.uninitialize)
    apartment.enter()

    def worker():
        apartment.enter()
        apartment.exit()

    t = threading.Thread(target=worker)
    t.start()
    t.join()
    assert com.calls == ["init", "init", "uninit"]
    assert apartment.depth == 1
    apartment.exit()
    assert com.calls[-1] == "uninit"


def test_connection_state_from_flags():
    assert connection_state_from_flags(0x1) is ConnectionState.CONNECTED
    assert connection_state_from_flags(0x8) is ConnectionState.DISCONNECTED
    assert connection_state_from_flags(0x4) is ConnectionState.DISCONNECTED
    assert connection_state_from_flags(None) is ConnectionState.UNKNOWN
    assert connection_state_from_flags(0) is ConnectionState.UNKNOWN
