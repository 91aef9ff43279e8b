from devices import numpad
from devices.numpad import NumpadReader, decode_report, find_numpad


def test_decode_key_and_modifiers():
    ev = decode_report([0x22, 0x00, 0x5E, 0, 0, 0, 0, 0])
    assert ev.key == 0x5E
    assert ev.modifiers.l_shift
    assert ev.modifiers.r_shift
    assert not ev.modifiers.l_control
    assert not ev.idle


def test_decode_release():
    assert decode_report(bytes(8)).idle


def test_decode_short_report():
    assert decode_report([0x00, 0x00]) is None
    assert decode_report([]) is None


DEVICES = [
    {"vendor_id": 0x04D9, "product_id": 0x1203, "interface_number": 1, "path": b"if1"},
    {"vendor_id": 0x04D9, "product_id": 0x1203, "interface_number": 0, "path": b"if0"},
    {"vendor_id": 0x046D, "product_id": 0xC52B, "interface_number": 0, "path": b"other"},
]


def test_find_numpad_picks_keyboard_interface(monkeypatch):
    monkeypatch.setattr(numpad, "list_devices", lambda: DEVICES)
    assert find_numpad(0x04D9, 0x1203)["path"] == b"if0"
    assert find_numpad(0x04D9, 0x1203, interface=None)["path"] == b"if1"
    assert find_numpad(0x1234, 0x5678) is None


def test_find_numpad_needs_ids():
    assert find_numpad(None, 0x1203) is None


def test_late_attach_subscriber_is_told():
    reader = NumpadReader(0x04D9, 0x1203)
    calls = []
    reader._set_attached(True)
    reader.subscribe("attach", lambda: calls.append("attach"))
    assert calls == ["attach"]
    assert reader.is_attached()


def test_remove_notifies_once():
    reader = NumpadReader(0x04D9, 0x1203)
    calls = []
    reader.subscribe("remove", lambda: calls.append("remove"))
    reader._set_attached(True)
    reader._set_attached(False)
    reader._set_attached(False)
    assert calls == ["remove"]


def test_failing_subscriber_does_not_break_others(caplog):
    reader = NumpadReader()
    seen = []

    def boom(event):
        raise RuntimeError("boom")

    reader.subscribe("use", boom)
    reader.subscribe("use", seen.append)
    reader._emit("use", "ev")
    assert seen == ["ev"]
    assert "subscriber callback failed" in caplog.text
