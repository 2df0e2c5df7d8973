"""Shared fixtures: temp-backed stores, a scripted generation client, a controller."""

import threading

import pytest

from genchat.config import Config
from genchat.controller import ConversationController
from genchat.search_history import SearchHistoryStore
from genchat.session_store import SessionStore


class FakeClient:
    """
    Scripted stand-in for GenerationClient. Never touches the network.

    - fragments: what stream_chat yields, in order
    - stream_error: raised after the fragments are yielded
    - gate: if set, stream_chat blocks on it before yielding anything
    """

    def __init__(self):
        self.fragments: list[str] = []
        self.stream_error: Exception | None = None
        self.gate: threading.Event | None = None
        self.image_result = "iVBORw0KGgo="
        self.image_error: Exception | None = None
        self.video_result = "https://video.example/v1?alt=media&key=test-key"
        self.video_error: Exception | None = None
        self.title = "Trip to Japan"
        self.title_error: Exception | None = None
        self.calls: dict[str, list] = {"chat": [], "image": [], "video": [], "title": []}

    def stream_chat(self, prompt, prior_messages, image=None, language=None, cancel=None):
        self.calls["chat"].append((prompt, list(prior_messages), image, language))
        if self.gate is not None:
            self.gate.wait(timeout=5)
        yield from self.fragments
        if self.stream_error is not None:
            raise self.stream_error

    def generate_image(self, prompt, language=None):
        self.calls["image"].append(prompt)
        if self.image_error is not None:
            raise self.image_error
        return self.image_result

    def generate_video(self, prompt, language=None, cancel=None, deadline=None):
        self.calls["video"].append(prompt)
        if self.video_error is not None:
            raise self.video_error
        return self.video_result

    def generate_title(self, first_message, language=None):
        self.calls["title"].append(first_message)
        if self.title_error is not None:
            raise self.title_error
        return self.title


@pytest.fixture
def config():
    cfg = Config()
    cfg.language = "en-US"
    return cfg


@pytest.fixture
def session_store(tmp_path):
    return SessionStore(str(tmp_path / "sessions.json"))


@pytest.fixture
def search_store(tmp_path):
    return SearchHistoryStore(str(tmp_path / "search.json"))


@pytest.fixture
def fake_client():
    return FakeClient()


@pytest.fixture
def controller(config, fake_client, session_store, search_store):
    ctrl = ConversationController(config, fake_client, session_store, search_store)
    ctrl.start()
    yield ctrl
    ctrl.close()
