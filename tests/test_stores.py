"""Tests for the two durable collections: sessions and search history."""

import json

from genchat.models import ChatSession, Message
from genchat.search_history import MAX_HISTORY_SIZE, SearchHistoryStore
from genchat.session_store import SessionStore

# 1. SessionStore


def sample_sessions() -> list[ChatSession]:
    return [
        ChatSession(
            id="b",
            title="Trip to Japan",
            messages=[
                Message("user", "Plan a trip to Japan"),
                Message("model", "Sure! Day 1: Tokyo."),
                Message("user", "Generate image: \"Fuji\""),
                Message("model", "Image generated", image_url="data:image/png;base64,AAA"),
                Message("model", "Your video", video_url="https://v.example/x?key=k"),
            ],
        ),
        ChatSession(id="a", title="Novo Chat", messages=[]),
    ]


def test_missing_file_loads_empty(session_store):
    assert session_store.get_all() == []


def test_save_load_round_trip(session_store):
    """Order and content survive a save/load cycle."""
    sessions = sample_sessions()
    session_store.save_all(sessions)
    assert session_store.get_all() == sessions


def test_save_of_load_is_a_fixed_point(session_store):
    session_store.save_all(sample_sessions())
    with open(session_store.path, encoding="utf-8") as f:
        first = f.read()
    session_store.save_all(session_store.get_all())
    with open(session_store.path, encoding="utf-8") as f:
        assert f.read() == first


def test_persisted_shape_omits_absent_media(session_store):
    session_store.save_all(sample_sessions())
    with open(session_store.path, encoding="utf-8") as f:
        data = json.load(f)
    assert data[0]["messages"][0] == {"sender": "user", "text": "Plan a trip to Japan"}
    assert data[0]["messages"][3]["imageUrl"] == "data:image/png;base64,AAA"
    assert data[0]["messages"][4]["videoUrl"] == "https://v.example/x?key=k"


def test_corrupted_file_loads_empty(session_store):
    with open(session_store.path, "w", encoding="utf-8") as f:
        f.write("{not json")
    assert session_store.get_all() == []


def test_save_failure_is_swallowed(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("a file where a directory should be")
    store = SessionStore(str(blocker / "sessions.json"))
    store.save_all(sample_sessions())
    assert store.get_all() == []


def test_create_inserts_fresh_session_at_head(session_store):
    session_store.save_all(sample_sessions())
    existing = {s.id for s in session_store.get_all()}

    created = session_store.create()

    sessions = session_store.get_all()
    assert created.id not in existing
    assert sessions[0] == created
    assert created.messages == []
    assert len(sessions) == 3


def test_create_never_reuses_ids(session_store):
    ids = {session_store.create().id for _ in range(20)}
    assert len(ids) == 20


def test_update_title(session_store):
    session_store.save_all(sample_sessions())
    history = session_store.update_title("a", "Renamed")
    assert history[1].title == "Renamed"
    assert session_store.get_all()[1].title == "Renamed"


def test_delete(session_store):
    session_store.save_all(sample_sessions())
    history = session_store.delete("b")
    assert [s.id for s in history] == ["a"]
    assert [s.id for s in session_store.get_all()] == ["a"]


def test_append_message(session_store):
    session_store.save_all(sample_sessions())
    session_store.append_message("a", Message("user", "hi"))
    assert session_store.get_all()[1].messages == [Message("user", "hi")]


def test_append_to_missing_session_is_a_noop(session_store):
    session_store.save_all(sample_sessions())
    history = session_store.append_message("gone", Message("user", "hi"))
    assert history == sample_sessions()


def test_clear(session_store):
    session_store.save_all(sample_sessions())
    session_store.clear()
    assert session_store.get_all() == []


# 2. SearchHistoryStore


def test_add_is_most_recent_first(search_store):
    search_store.add("first")
    search_store.add("second")
    assert search_store.get() == ["second", "first"]


def test_add_dedupes_case_insensitively(search_store):
    """Latest casing wins and moves to the front."""
    search_store.add("Cat")
    search_store.add("dog")
    search_store.add("cat")
    assert search_store.get() == ["cat", "dog"]


def test_add_ignores_empty_query(search_store):
    search_store.add("")
    assert search_store.get() == []


def test_history_is_capped(search_store):
    for i in range(MAX_HISTORY_SIZE + 1):
        search_store.add(f"query {i}")
    history = search_store.get()
    assert len(history) == MAX_HISTORY_SIZE
    assert history[0] == f"query {MAX_HISTORY_SIZE}"
    assert "query 0" not in history


def test_delete_is_exact_match(search_store):
    search_store.add("Cat")
    assert search_store.delete("cat") == ["Cat"]
    assert search_store.delete("Cat") == []


def test_clear_history(search_store):
    search_store.add("something")
    search_store.clear()
    assert search_store.get() == []


def test_corrupted_history_loads_empty(tmp_path):
    path = tmp_path / "search.json"
    path.write_text("[broken", encoding="utf-8")
    assert SearchHistoryStore(str(path)).get() == []
