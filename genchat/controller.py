"""
The single orchestration point for conversations.

Drives one turn end-to-end (chat, image or video), keeps the transient
in-flight reply that a live UI renders, decides when to persist, and owns the
sticky feature-availability flags.

Per-session turn states: IDLE -> SENDING -> (STREAMING | POLLING) ->
COMMITTED | FAILED. At most one turn runs per session; a second request for a
busy session, or any request with no active session, is rejected with None.
Failures never escape as exceptions: they land in the transcript as a model
message and come back tagged in the TurnResult.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from threading import Lock, RLock
from typing import Optional

from genchat import prompts
from genchat.config import Config
from genchat.errors import (
    BillingUnavailableError,
    ClassifiedError,
    ErrorContext,
    GenerationCancelled,
    classify_error,
)
from genchat.generation import GenerationClient
from genchat.globals import log_exception
from genchat.models import (
    ChatSession,
    Feature,
    FeatureAvailability,
    ImageAttachment,
    Message,
    TurnKind,
    TurnResult,
    TurnState,
)
from genchat.search_history import SearchHistoryStore
from genchat.session_store import SessionStore

FragmentListener = Callable[[str, Message], None]
StateListener = Callable[[str, TurnState], None]

_ERROR_CONTEXTS = {
    TurnKind.CHAT: ErrorContext.CHAT,
    TurnKind.IMAGE: ErrorContext.IMAGE,
    TurnKind.VIDEO: ErrorContext.VIDEO,
}


class ConversationController:
    def __init__(
        self,
        config: Config,
        client: GenerationClient,
        store: SessionStore,
        search_history: SearchHistoryStore,
        features: FeatureAvailability | None = None,
        on_fragment: FragmentListener | None = None,
        on_state: StateListener | None = None,
    ):
        self.config: Config = config
        self.client: GenerationClient = client
        self.store: SessionStore = store
        self.search_history: SearchHistoryStore = search_history
        self.features: FeatureAvailability = features or FeatureAvailability()
        self.on_fragment = on_fragment
        self.on_state = on_state

        # Working copy of the store's collection, replaced after every write
        self.sessions: list[ChatSession] = []
        self.active_session_id: str | None = None

        self._lock = Lock()
        # Held across a store write and the install of the collection it returns
        self._write_lock = RLock()
        self._busy: set[str] = set()
        self.turn_states: dict[str, TurnState] = {}
        self.in_flight: dict[str, Message] = {}

        self._title_pool = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="genchat-title"
        )
        self._pending_titles: list[Future] = []

    @property
    def language(self) -> str:
        return self.config.language

    @property
    def active_session(self) -> ChatSession | None:
        return self.get_session(self.active_session_id)

    def get_session(self, session_id: str | None) -> ChatSession | None:
        with self._lock:
            return next((s for s in self.sessions if s.id == session_id), None)

    def _set_sessions(self, sessions: list[ChatSession]):
        with self._lock:
            self.sessions = sessions

    def _write(self, operation: Callable[..., list[ChatSession]], *args):
        """Runs a store write and installs the collection it returns in one step."""
        with self._write_lock:
            sessions = operation(*args)
            self._set_sessions(sessions)
            return sessions

    # <~~LIFECYCLE~~>
    def start(self) -> ChatSession:
        """Loads the stored sessions and activates the newest one."""
        self._write(self.store.get_all)
        if not self.sessions:
            return self.new_session()
        self.active_session_id = self.sessions[0].id
        return self.sessions[0]

    def new_session(self) -> ChatSession:
        with self._write_lock:
            session = self.store.create(prompts.fallback_title(self.language))
            self._set_sessions(self.store.get_all())
        self.active_session_id = session.id
        return session

    def select_session(self, session_id: str) -> bool:
        if self.get_session(session_id) is None:
            return False
        self.active_session_id = session_id
        return True

    def delete_session(self, session_id: str):
        """Deletes a session; the active one falls back to the new head."""
        remaining = self._write(self.store.delete, session_id)
        if self.active_session_id == session_id:
            if remaining:
                self.active_session_id = remaining[0].id
            else:
                self.new_session()

    def clear_all(self) -> ChatSession:
        """Wipes every session and starts over with one empty session."""
        self._write(self.store.clear)
        return self.new_session()

    # <~~TURN GUARD~~>
    def _claim(self, session_id: str) -> bool:
        """Atomically marks a session busy. False if a turn is already running."""
        with self._lock:
            if session_id in self._busy:
                return False
            self._busy.add(session_id)
        self._set_state(session_id, TurnState.SENDING)
        return True

    def _release(self, session_id: str):
        with self._lock:
            self._busy.discard(session_id)
            self.in_flight.pop(session_id, None)

    def is_busy(self, session_id: str | None = None) -> bool:
        session_id = session_id or self.active_session_id
        with self._lock:
            return session_id in self._busy

    def turn_state(self, session_id: str | None = None) -> TurnState:
        session_id = session_id or self.active_session_id
        with self._lock:
            return self.turn_states.get(session_id or "", TurnState.IDLE)

    def _set_state(self, session_id: str, state: TurnState):
        with self._lock:
            self.turn_states[session_id] = state
        if self.on_state:
            self.on_state(session_id, state)

    def in_flight_message(self, session_id: str | None = None) -> Message | None:
        """The partial model reply a running chat turn has streamed so far."""
        session_id = session_id or self.active_session_id
        with self._lock:
            return self.in_flight.get(session_id or "")

    def _set_in_flight(self, session_id: str, message: Message):
        with self._lock:
            self.in_flight[session_id] = message

    # <~~TRANSCRIPT~~>
    def _transcript(self, session_id: str) -> list[Message]:
        session = self.get_session(session_id)
        return list(session.messages) if session else []

    def _append(self, session_id: str, message: Message):
        self._write(self.store.append_message, session_id, message)

    def _begin(self, session_id: str, user_message: Message) -> list[Message]:
        """SENDING: persist the user message and record it as a query."""
        with self._write_lock:
            prior = self._transcript(session_id)
            self._append(session_id, user_message)
        self.search_history.add(user_message.text)
        if not prior:
            self._schedule_title(session_id, user_message.text)
        return prior

    def _commit(
        self, session_id: str, kind: TurnKind, message: Message | None
    ) -> TurnResult:
        if message is not None:
            self._append(session_id, message)
        self._set_state(session_id, TurnState.COMMITTED)
        return TurnResult(session_id, kind, TurnState.COMMITTED, message)

    def _fail(
        self, session_id: str, kind: TurnKind, error: ClassifiedError
    ) -> TurnResult:
        if isinstance(error, BillingUnavailableError):
            if kind == TurnKind.IMAGE:
                self.features.downgrade(Feature.IMAGE)
            elif kind == TurnKind.VIDEO:
                self.features.downgrade(Feature.VIDEO)
        message = Message(
            "model", prompts.text("error_prefix", self.language) + error.message
        )
        self._append(session_id, message)
        self._set_state(session_id, TurnState.FAILED)
        return TurnResult(session_id, kind, TurnState.FAILED, message, error)

    def _cancelled(self, session_id: str, kind: TurnKind) -> TurnResult:
        message = Message("model", prompts.text("cancelled", self.language))
        self._append(session_id, message)
        self._set_state(session_id, TurnState.FAILED)
        return TurnResult(
            session_id, kind, TurnState.FAILED, message, cancelled=True
        )

    def _run(self, session_id: str, kind: TurnKind, turn: Callable[[], TurnResult]):
        """Runs a claimed turn, turning any failure into a transcript entry."""
        try:
            return turn()
        except GenerationCancelled:
            return self._cancelled(session_id, kind)
        except Exception as e:
            error = classify_error(e, _ERROR_CONTEXTS[kind], self.language)
            return self._fail(session_id, kind, error)
        finally:
            self._release(session_id)

    # <~~CHAT~~>
    def send_message(
        self,
        text: str,
        image: ImageAttachment | None = None,
        cancel: threading.Event | None = None,
    ) -> Optional[TurnResult]:
        """
        Runs one chat turn on the active session and streams the reply.

        An image with no text is sent with a default describe-this-image prompt.
        Returns None when the turn was rejected.
        """
        session_id = self.active_session_id
        if session_id is None:
            return None
        prompt = text.strip()
        if image and not prompt:
            prompt = prompts.text("describe_image", self.language)
        if not prompt:
            return None
        if not self._claim(session_id):
            return None

        user_message = Message(
            "user", prompt, image_url=image.source_url if image else None
        )

        def turn() -> TurnResult:
            prior = self._begin(session_id, user_message)
            self._set_state(session_id, TurnState.STREAMING)
            accumulated = ""
            self._set_in_flight(session_id, Message("model", accumulated))
            for fragment in self.client.stream_chat(
                prompt, prior, image, self.language, cancel
            ):
                accumulated += fragment
                snapshot = Message("model", accumulated)
                self._set_in_flight(session_id, snapshot)
                if self.on_fragment:
                    self.on_fragment(session_id, snapshot)
            if not accumulated:
                return self._commit(session_id, TurnKind.CHAT, None)
            return self._commit(
                session_id, TurnKind.CHAT, Message("model", accumulated)
            )

        return self._run(session_id, TurnKind.CHAT, turn)

    def study(self, content: str, cancel: threading.Event | None = None):
        """Asks the model to study and summarize a pasted text."""
        return self.send_message(
            prompts.text("study", self.language, content=content), cancel=cancel
        )

    def learn(self, content: str, cancel: threading.Event | None = None):
        """Feeds the model a piece of information to use later in the conversation."""
        return self.send_message(
            prompts.text("learn", self.language, content=content), cancel=cancel
        )

    # <~~IMAGE~~>
    def generate_image(self, prompt: str) -> Optional[TurnResult]:
        session_id = self.active_session_id
        prompt = prompt.strip()
        if session_id is None or not prompt:
            return None
        if not self.features.image_gen_available:
            return None
        if not self._claim(session_id):
            return None

        language = self.language

        def turn() -> TurnResult:
            self._begin(
                session_id,
                Message("user", prompts.text("image_request", language, prompt=prompt)),
            )
            b64 = self.client.generate_image(prompt, language)
            message = Message(
                "model",
                prompts.text("image_result", language, prompt=prompt),
                image_url=f"data:image/png;base64,{b64}",
            )
            return self._commit(session_id, TurnKind.IMAGE, message)

        return self._run(session_id, TurnKind.IMAGE, turn)

    # <~~VIDEO~~>
    def generate_video(
        self,
        prompt: str,
        cancel: threading.Event | None = None,
        deadline: float | None = None,
    ) -> Optional[TurnResult]:
        """
        Runs a video turn: a pending message is persisted first, then the
        result (or the error) is appended after it once polling ends.
        """
        session_id = self.active_session_id
        prompt = prompt.strip()
        if session_id is None or not prompt:
            return None
        if not self.features.video_gen_available:
            return None
        if not self._claim(session_id):
            return None

        language = self.language

        def turn() -> TurnResult:
            self._begin(
                session_id,
                Message("user", prompts.text("video_request", language, prompt=prompt)),
            )
            self._append(
                session_id, Message("model", prompts.text("video_pending", language))
            )
            self._set_state(session_id, TurnState.POLLING)
            url = self.client.generate_video(prompt, language, cancel, deadline)
            message = Message(
                "model",
                prompts.text("video_result", language, prompt=prompt),
                video_url=url,
            )
            return self._commit(session_id, TurnKind.VIDEO, message)

        return self._run(session_id, TurnKind.VIDEO, turn)

    # <~~TITLES~~>
    def _schedule_title(self, session_id: str, first_message: str):
        future = self._title_pool.submit(
            self._apply_title, session_id, first_message, self.language
        )
        with self._lock:
            self._pending_titles = [f for f in self._pending_titles if not f.done()]
            self._pending_titles.append(future)

    def _apply_title(self, session_id: str, first_message: str, language: str):
        try:
            title = self.client.generate_title(first_message, language)
            self._write(self.store.update_title, session_id, title)
            return title
        except Exception as e:
            log_exception(e, f"Error applying title to session {session_id}")
            return None

    def wait_for_titles(self, timeout: float | None = None):
        """Blocks until every scheduled title has been applied."""
        with self._lock:
            pending = list(self._pending_titles)
        for future in pending:
            future.result(timeout=timeout)

    def close(self):
        self._title_pool.shutdown(wait=True)
