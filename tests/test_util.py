import pytest

from appxmunge.util import _check_color, _error, program_name


@pytest.mark.parametrize(
    "env,expected",
    [
        ({"APPXMUNGE_COLORS": "always"}, (True, None)),
        ({"APPXMUNGE_COLORS": "never"}, (False, None)),
        ({"NO_COLOR": "1"}, (False, None)),
        ({"NO_COLOR": "1", "APPXMUNGE_COLORS": "always"}, (True, None)),
    ],
)
def test_check_color(monkeypatch, env, expected) -> None:
    monkeypatch.delenv("APPXMUNGE_COLORS", raising=False)
    monkeypatch.delenv("NO_COLOR", raising=False)
    for k, v in env.items():
        monkeypatch.setenv(k, v)
    assert _check_color() == expected


def test_check_color_bad_request(monkeypatch) -> None:
    monkeypatch.setenv("APPXMUNGE_COLORS", "rainbow")
    _, bad_request = _check_color()
    assert bad_request == "rainbow"


@pytest.mark.parametrize(
    "argv0,expected",
    [
        ("/usr/bin/appxmunge", "appxmunge"),
        ("/src/appxmunge/commands/appxmunge_cmd/__main__.py", "appxmunge"),
        ("tool.py", "tool"),
    ],
)
def test_program_name(monkeypatch, argv0: str, expected: str) -> None:
    monkeypatch.setattr("sys.argv", [argv0])
    assert program_name() == expected


def test_error_exits(capsys) -> None:
    with pytest.raises(SystemExit) as e_info:
        _error("something broke", prog="appxmunge")
    assert e_info.value.code == 1
    assert "appxmunge: error: something broke" in capsys.readouterr().err
