import pytest

from core.keycodes import KeyCode
from core.state import KeyEvent, Modifiers
from mapper import IDLE, UNKNOWN, KeyMotionMapper


def press(key, **mods):
    return KeyEvent(key=int(key), modifiers=Modifiers(**mods))


def test_compass_keys():
    m = KeyMotionMapper()
    assert m.map(press(KeyCode.KP_6)).direction == (1.0, 0.0, 0.0)
    assert m.map(press(KeyCode.KP_4)).direction == (-1.0, 0.0, 0.0)
    assert m.map(press(KeyCode.KP_8)).direction == (0.0, 1.0, 0.0)
    assert m.map(press(KeyCode.KP_1)).direction == (-1.0, -1.0, 0.0)
    assert m.map(press(KeyCode.KP_3)).direction == (1.0, -1.0, 0.0)


def test_z_keys_use_z_factor():
    m = KeyMotionMapper(z_factor=0.5)
    up = m.map(press(KeyCode.KP_MINUS))
    down = m.map(press(KeyCode.KP_PLUS))
    assert up.kind == "move"
    assert up.direction == (0.0, 0.0, 0.5)
    assert down.direction == (0.0, 0.0, -0.5)


def test_step_keys():
    m = KeyMotionMapper()
    assert m.map(press(KeyCode.KP_DIVIDE)).step_size == pytest.approx(0.1)
    assert m.map(press(KeyCode.KP_MULTIPLY)).step_size == pytest.approx(1.0)
    assert m.map(press(KeyCode.BACKSPACE)).step_size == pytest.approx(10.0)


def test_command_keys():
    m = KeyMotionMapper()
    zero_all = m.map(press(KeyCode.TAB))
    assert zero_all.kind == "command"
    assert zero_all.commands == (
        ("zero_work_offset", ("X",)),
        ("zero_work_offset", ("Y",)),
        ("zero_work_offset", ("Z",)),
    )
    assert m.map(press(KeyCode.KP_ENTER)).commands == (("home", ()),)
    assert m.map(press(KeyCode.ESCAPE)).kind == "stop"


def test_idle_and_unknown():
    m = KeyMotionMapper()
    assert m.map(KeyEvent()) is IDLE
    assert m.map(press(0xFF)) is UNKNOWN


def test_modifiers_do_not_change_mapping():
    m = KeyMotionMapper()
    assert m.map(press(KeyCode.KP_6, l_shift=True)) == m.map(press(KeyCode.KP_6))


def test_profile_overrides_and_removes_bindings():
    profile = {"keys": {"KP_5": "command:move_to_work_origin", "0x62": None, "SPACE": "stop"}}
    m = KeyMotionMapper(profile)
    assert m.map(press(KeyCode.KP_5)).commands == (("move_to_work_origin", ()),)
    assert m.map(press(KeyCode.KP_0)) is UNKNOWN
    assert m.map(press(KeyCode.SPACE)).kind == "stop"


def test_profile_unknown_key_name_is_skipped(caplog):
    m = KeyMotionMapper({"keys": {"F13": "stop"}})
    assert "unknown key" in caplog.text
    assert m.map(press(KeyCode.KP_6)).kind == "move"


@pytest.mark.parametrize("target", ["step:5", "jog:+Q", "jog:", "command:launch", "fly"])
def test_bad_targets_raise(target):
    with pytest.raises(ValueError):
        KeyMotionMapper({"keys": {"KP_5": target}})


def test_load_profile(tmp_path):
    path = tmp_path / "pad.yaml"
    path.write_text("keys:\n  KP_5: \"jog:+X+Y+Z\"\n")
    m = KeyMotionMapper.load_profile(str(path), z_factor=1.0)
    assert m.map(press(KeyCode.KP_5)).direction == (1.0, 1.0, 1.0)
