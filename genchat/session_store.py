"""Durable storage for the chat session list."""

import json
import logging
import os
import tempfile
import uuid
from threading import RLock

from genchat.globals import SESSIONS_FILE, log_exception
from genchat.models import ChatSession, Message

DEFAULT_TITLE = "Novo Chat"


class SessionStore:
    """
    Handles session I/O.

    The whole collection is read and rewritten on every change, newest session
    first. Every mutating method returns the collection it just wrote, which
    callers should treat as the new source of truth.
    """

    def __init__(self, path: str = SESSIONS_FILE):
        self.path = path
        self._lock = RLock()

    def get_all(self) -> list[ChatSession]:
        """Load every session. Returns an empty list if the file is unreadable."""
        with self._lock:
            if not os.path.exists(self.path):
                return []
            try:
                with open(self.path, "r", encoding="utf-8") as f:
                    data = json.load(f)
                return [ChatSession.from_dict(s) for s in data]
            except Exception as e:
                log_exception(e, f"Error loading chat history from {self.path}")
                return []

    def save_all(self, sessions: list[ChatSession]):
        """Write the full collection, replacing the file in one step."""
        with self._lock:
            tmp_path = None
            try:
                payload = [s.to_dict() for s in sessions]
                directory = os.path.dirname(self.path) or "."
                os.makedirs(directory, exist_ok=True)
                with tempfile.NamedTemporaryFile(
                    "w", encoding="utf-8", dir=directory, suffix=".tmp", delete=False
                ) as f:
                    tmp_path = f.name
                    json.dump(payload, f, indent=2, ensure_ascii=False)
                os.replace(tmp_path, self.path)
            except Exception as e:
                log_exception(e, f"Error saving chat history to {self.path}")
                if tmp_path and os.path.exists(tmp_path):
                    os.remove(tmp_path)

    def create(self, title: str = DEFAULT_TITLE) -> ChatSession:
        """Insert a fresh, empty session at the head of the list."""
        with self._lock:
            history = self.get_all()
            taken = {s.id for s in history}
            session_id = uuid.uuid4().hex
            while session_id in taken:
                session_id = uuid.uuid4().hex
            session = ChatSession(id=session_id, title=title, messages=[])
            history.insert(0, session)
            self.save_all(history)
            return session

    def update_title(self, session_id: str, title: str) -> list[ChatSession]:
        with self._lock:
            history = self.get_all()
            for session in history:
                if session.id == session_id:
                    session.title = title
                    self.save_all(history)
                    break
            return history

    def append_message(self, session_id: str, message: Message) -> list[ChatSession]:
        """Append to one transcript. Unknown ids are logged and left alone."""
        with self._lock:
            history = self.get_all()
            for session in history:
                if session.id == session_id:
                    session.messages.append(message)
                    self.save_all(history)
                    break
            else:
                logging.warning(f"Dropped message for missing session {session_id}")
            return history

    def delete(self, session_id: str) -> list[ChatSession]:
        with self._lock:
            history = [s for s in self.get_all() if s.id != session_id]
            self.save_all(history)
            return history

    def clear(self) -> list[ChatSession]:
        with self._lock:
            self.save_all([])
            return []
