from state_watcher.handlers import ConsoleEventHandler
from state_watcher.settings import Settings, SettingsProvider


def make_handler(**overrides) -> ConsoleEventHandler:
    return ConsoleEventHandler(SettingsProvider(settings=Settings(**overrides)))


def test_notify_prints_one_line_with_preferences(capsys):
    handler = make_handler(notify_sound_uri="file:///bell.ogg", vibrate_on_notify=True)

    handler.notify(True)

    out = capsys.readouterr().out
    assert out.count("\n") == 1
    assert "OPEN" in out
    assert "Visit=http://techinc.nl/" in out
    assert "Sound=file:///bell.ogg" in out
    assert "Vibrate=on" in out
    assert handler.showing is True


def test_notify_closed_without_sound(capsys):
    handler = make_handler()

    handler.notify(False)

    out = capsys.readouterr().out
    assert "CLOSED" in out
    assert "Sound=none" in out
    assert "Vibrate=off" in out


def test_clear_only_prints_when_something_is_showing(capsys):
    handler = make_handler()

    handler.clear()
    assert capsys.readouterr().out == ""

    handler.notify(True)
    handler.clear()
    handler.clear()

    out = capsys.readouterr().out
    assert out.count("notification cleared") == 1
    assert handler.showing is None


def test_post_message_is_collapsed_and_truncated(capsys):
    handler = make_handler()

    handler.post_message("State check failed:\n   " + "x" * 300)

    line = capsys.readouterr().out.strip()
    assert "NOTICE" in line
    assert "failed: xxx" in line
    assert line.endswith("…")
