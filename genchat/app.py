#!/usr/bin/env python3

# <~~~~~~~~~~>
#   GENCHAT
# <~~~~~~~~~~>

import sys
import threading
import time
from concurrent.futures import ThreadPoolExecutor, wait

from rich.live import Live

from genchat.cli_controller import CLIController
from genchat.config import Config
from genchat.controller import ConversationController
from genchat.file_manager import FileManager
from genchat.generation import GenerationClient
from genchat.globals import (
    CONSOLE,
    init_logger,
    log_exception,
    root_prompt,
    setup_keyring_backend,
    spinner_constructor,
)
from genchat.models import Message, TurnResult
from genchat.search_history import SearchHistoryStore
from genchat.session_store import SessionStore
from genchat.ui import GlobalPanels, UIConstructor


class Chat:
    """Renders turns live while the controller runs them on a worker thread"""

    def __init__(self, config: Config, controller: ConversationController, panel, ui):
        self.config: Config = config
        self.controller: ConversationController = controller
        self.panel: GlobalPanels = panel
        self.ui: UIConstructor = ui

        # Placeholder for live display object
        self.live: Live | None = None
        # Baseline timer for the rendering loop
        self.last_update_time: float = time.monotonic()

        self.controller.on_fragment = self.on_fragment

    def on_fragment(self, session_id: str, message: Message):
        """Frame-limited live update, in sync with the configured refresh rate."""
        if not self.live or session_id != self.controller.active_session_id:
            return
        current_time = time.monotonic()
        if current_time - self.last_update_time >= 1 / self.config.refresh_rate:
            self.live.update(self.ui.response_panel_constructor(message.text))
            self.last_update_time = current_time

    def _await_turn(self, fn, *args, cancellable=True, **kwargs) -> TurnResult | None:
        """
        Runs a turn off the main thread so Ctrl+C can request cancellation
        instead of tearing the turn down halfway. Turns that cannot be
        canceled just run to completion.
        """
        cancel = threading.Event()
        if cancellable:
            kwargs["cancel"] = cancel
        with ThreadPoolExecutor(max_workers=1, thread_name_prefix="genchat-turn") as pool:
            future = pool.submit(fn, *args, **kwargs)
            while not future.done():
                try:
                    wait([future], timeout=0.1)
                except KeyboardInterrupt:
                    if cancellable:
                        cancel.set()
                    else:
                        CONSOLE.print("[dim]This request can't be canceled, finishing up...[/dim]")
            return future.result()

    def _print_appended(self, session_id: str, start: int):
        """Prints the messages a turn added after its user message."""
        session = self.controller.get_session(session_id)
        if session:
            for message in session.messages[start + 1 :]:
                self.panel.spawn_message_panel(message)

    def _rejected(self):
        CONSOLE.print(
            "[dim]Request skipped: a turn is already running or the feature is unavailable.[/dim]\n"
        )

    # <~~STREAMING~~>
    def stream_reply(self, fn, *args, **kwargs):
        """Drives a chat turn inside a rich live display."""
        self.live = Live(
            self.ui.response_panel_constructor(""),
            console=CONSOLE,
            screen=False,
            refresh_per_second=self.config.refresh_rate,
        )
        self.live.start()
        result = None
        try:
            result = self._await_turn(fn, *args, **kwargs)
            if result and result.message:
                # Flush whatever the frame limiter held back
                self.live.update(self.ui.model_panel_constructor(result.message))
        finally:
            self.live.stop()
            self.live = None
        CONSOLE.print()
        if result is None:
            self._rejected()
            return
        self.panel.spawn_status_panel()

    def send(self, text: str, filemanager: FileManager):
        image = filemanager.take_pending()
        self.stream_reply(self.controller.send_message, text, image)

    # <~~MEDIA~~>
    def generate_image(self, description: str):
        session = self.controller.active_session
        start = len(session.messages) if session else 0
        with CONSOLE.status(
            "[bold medium_orchid]Generating image...[/bold medium_orchid]", spinner="moon"
        ):
            result = self._await_turn(
                self.controller.generate_image, description, cancellable=False
            )
        if result is None:
            self._rejected()
            return
        self._print_appended(result.session_id, start)
        self.panel.spawn_status_panel()

    def generate_video(self, description: str):
        session = self.controller.active_session
        start = len(session.messages) if session else 0
        with CONSOLE.status(
            "[bold medium_orchid]Generating video...[/bold medium_orchid]", spinner="moon"
        ):
            result = self._await_turn(self.controller.generate_video, description)
        if result is None:
            self._rejected()
            return
        self._print_appended(result.session_id, start)
        self.panel.spawn_status_panel()

    # <~~RUN~~>
    def run(self, cli: CLIController, filemanager: FileManager):
        """Helper function for running the application"""
        self.panel.spawn_intro_panel()
        session = self.controller.active_session
        if session and session.messages:
            self.panel.spawn_transcript(session)
        while True:
            try:
                user_input = root_prompt()
            except (KeyboardInterrupt, EOFError):
                CONSOLE.print("[yellow]✨ Farewell![/yellow]\n")
                return
            if not user_input.strip() and not filemanager.pending_image:
                continue
            if cli.handle_input(user_input):
                continue
            CONSOLE.print()
            self.send(user_input, filemanager)


# <~~MAIN FLOW~~>
def main():
    controller = None
    try:
        spinner = spinner_constructor("Launching GenChat...")
        with Live(spinner, refresh_per_second=8, console=CONSOLE):
            init_logger()
            setup_keyring_backend()
            config = Config()
            try:
                config.load()
            except FileNotFoundError:
                config.save()
            controller = ConversationController(
                config,
                GenerationClient(config),
                SessionStore(),
                SearchHistoryStore(),
            )
            controller.start()
            filemanager = FileManager()
            ui = UIConstructor(config, controller)
            panel = GlobalPanels(config, ui)
            cli = CLIController(
                config, controller, controller.search_history, filemanager, panel, ui
            )
            chat = Chat(config, controller, panel, ui)
            cli.set_interface(chat)
        CONSOLE.clear()
        chat.run(cli, filemanager)
        config.save()
    except (KeyboardInterrupt, EOFError):
        CONSOLE.print("[yellow]✨ Farewell![/yellow]\n")
    except Exception as e:
        log_exception(e, "Critical startup error")
        CONSOLE.print(f"[bold red]❌ CRITICAL ERROR:[/bold red] {e}\n")
        sys.exit(1)
    finally:
        if controller:
            # Let a pending title land before the process goes away
            controller.close()


if __name__ == "__main__":
    main()
