"""
A 'mock and drive' test for the application entry point.

- Patches the config file, stores and generation client onto temp/fake objects
- Starts the application
- Drives it through the prompt and exits
"""

import logging
from unittest.mock import patch

import pytest

from genchat import app
from genchat import globals as genchat_globals
from genchat.config import Config
from genchat.search_history import SearchHistoryStore
from genchat.session_store import SessionStore
from genchat.ui import GlobalPanels, UIConstructor

# 1. Configuration Tests


def test_config_defaults(tmp_path):
    """Config file location is patched to a temp dir so we don't overwrite real settings."""
    with patch("genchat.config.CONFIG_FILE", str(tmp_path / "settings.json")):
        cfg = Config()

        assert cfg.active_model == "default"
        assert cfg.language == "pt-BR"
        assert cfg.model_name == "gemini-2.5-flash"
        assert cfg.poll_interval == 10.0
        assert cfg.poll_timeout is None


def test_config_save_load(tmp_path):
    with patch("genchat.config.CONFIG_FILE", str(tmp_path / "settings.json")):
        cfg = Config()
        cfg.language = "en-US"
        cfg.save()

        cfg_loaded = Config()
        cfg_loaded.load()

        assert cfg_loaded.language == "en-US"


def test_config_rejects_unknown_language(tmp_path):
    with patch("genchat.config.CONFIG_FILE", str(tmp_path / "settings.json")):
        cfg = Config()
        cfg.language = "fr-FR"
        cfg.save()

        cfg_loaded = Config()
        cfg_loaded.load()

        assert cfg_loaded.language == "pt-BR"


# 2. Main Application Loop


@pytest.fixture
def patched_app(tmp_path, fake_client):
    """Everything main() touches on disk or over the network, redirected."""
    with (
        patch("genchat.config.CONFIG_FILE", str(tmp_path / "settings.json")),
        patch("genchat.app.init_logger"),
        patch("genchat.app.setup_keyring_backend"),
        patch("genchat.app.GenerationClient", return_value=fake_client),
        patch(
            "genchat.app.SessionStore",
            side_effect=lambda: SessionStore(str(tmp_path / "sessions.json")),
        ),
        patch(
            "genchat.app.SearchHistoryStore",
            side_effect=lambda: SearchHistoryStore(str(tmp_path / "search.json")),
        ),
        patch("genchat.app.root_prompt") as mock_prompt,
    ):
        yield mock_prompt


def test_application_startup_and_quit(patched_app):
    """Starts the app, types '!q' immediately, expects a clean exit."""
    patched_app.return_value = "!q"

    with pytest.raises(SystemExit) as exc:
        app.main()

    assert exc.value.code == 0
    patched_app.assert_called()


def test_application_sends_a_message(patched_app, fake_client, tmp_path):
    patched_app.side_effect = ["hello", "!q"]
    fake_client.fragments = ["Hi", " there"]

    with pytest.raises(SystemExit) as exc:
        app.main()

    assert exc.value.code == 0
    assert fake_client.calls["chat"][0][0] == "hello"
    sessions = SessionStore(str(tmp_path / "sessions.json")).get_all()
    assert [m.text for m in sessions[0].messages] == ["hello", "Hi there"]
    assert sessions[0].title == "Trip to Japan"
    assert SearchHistoryStore(str(tmp_path / "search.json")).get() == ["hello"]


def test_end_of_input_exits_quietly(patched_app):
    patched_app.side_effect = EOFError
    app.main()
    patched_app.assert_called_once()


# 3. Interrupts and logging


def test_interrupt_during_image_turn_lets_it_finish(config, controller, session_store):
    """Ctrl+C while an image renders: the turn still commits and the app keeps going."""
    ui = UIConstructor(config, controller)
    chat = app.Chat(config, controller, GlobalPanels(config, ui), ui)
    real_wait = app.wait
    interrupts = [KeyboardInterrupt()]

    def interrupted_wait(futures, timeout=None):
        if interrupts:
            raise interrupts.pop()
        return real_wait(futures, timeout=timeout)

    with patch("genchat.app.wait", side_effect=interrupted_wait):
        chat.generate_image("a cat")

    messages = session_store.get_all()[0].messages
    assert [m.sender for m in messages] == ["user", "model"]
    assert messages[1].image_url == "data:image/png;base64,iVBORw0KGgo="
    assert not controller.is_busy()


def test_init_logger_writes_warnings_with_thread_names(tmp_path):
    with (
        patch("genchat.globals.LOG_DIR", str(tmp_path)),
        patch("genchat.globals.logging.basicConfig") as mock_config,
    ):
        genchat_globals.init_logger()

    kwargs = mock_config.call_args.kwargs
    assert kwargs["level"] == logging.WARNING
    assert kwargs["format"] == "%(asctime)s %(threadName)s [%(levelname)s] %(message)s"
    handler = kwargs["handlers"][0]
    assert handler.baseFilename.startswith(str(tmp_path))
    handler.close()
