"""Command interactivity logic lives here."""

import sys

from keyring import set_password
from keyring.errors import KeyringError
from prompt_toolkit import prompt
from prompt_toolkit.completion import PathCompleter, WordCompleter
from prompt_toolkit.formatted_text import HTML
from prompt_toolkit.history import InMemoryHistory

from genchat.config import LANGUAGES
from genchat.generation import GenerationClient
from genchat.globals import (
    COMPLETER_STYLER,
    CONSOLE,
    KEYRING_SERVICE,
    USER_NAME,
    log_exception,
    retrieve_key,
)
from genchat.models import ChatSession


class CLIController:
    """Handles and supports all command input"""

    def __init__(
        self,
        config,
        controller,
        search_history,
        filemanager,
        panel,
        ui,
    ):
        self.config = config
        self.controller = controller
        self.search_history = search_history
        self.filemanager = filemanager
        self.panel = panel
        self.ui = ui
        self.filepath_history = InMemoryHistory()
        self.interface = None

        # Command dict
        self.commands = {
            "!h": self.spawn_help_chart,
            "!help": self.spawn_help_chart,
            "!new": self.new_session,
            "!sessions": self.list_sessions,
            "!switch": self.switch_session,
            "!delete": self.delete_session,
            "!purge all": self.clear_all_sessions,
            "!clear": CONSOLE.clear,
            "!a": self.attach_image,
            "!attach": self.attach_image,
            "!detach": self.detach_image,
            "!image": self.generate_image,
            "!video": self.generate_video,
            "!study": self.study,
            "!learn": self.learn,
            "!history": self.list_search_history,
            "!history delete": self.delete_search_entry,
            "!history clear": self.clear_search_history,
            "!config": self.spawn_settings_chart,
            "!key": self.set_api_key,
            "!lang": self.set_language,
            "!profile": self.switch_profile,
            "!q": self.quit,
            "!quit": self.quit,
        }

        self.session_prompt = HTML("Enter a session number or title<seagreen>:</seagreen> ")

    # <~~HELPERS~~>
    def _prompt_wrapper(
        self, prefix, cancel_msg="Canceled.", allow_empty=False, **kwargs
    ) -> str | None:
        """Prompt_toolkit wrapper for validating input."""
        try:
            # **kwargs passes completers, styles, history, etc automatically
            user_input = prompt(prefix, **kwargs)
            stripped = user_input.strip()
            if not stripped and not allow_empty:
                CONSOLE.print("[dim]No input detected.[/dim]\n")
                return None
            return stripped
        except (KeyboardInterrupt, EOFError):
            CONSOLE.print(f"[dim]{cancel_msg}[/dim]\n")
            return None

    def _confirm(self, question: str) -> bool:
        choice = self._prompt_wrapper(
            HTML(f"{question} (<seagreen>y</seagreen>/<ansired>N</ansired>): "),
            allow_empty=True,
        )
        return bool(choice) and choice.lower() in ("y", "yes")

    def _pick_session(self) -> ChatSession | None:
        """Prompts for a session by list number or by title."""
        sessions = self.controller.sessions
        if not self.list_sessions():
            return None
        choice = self._prompt_wrapper(
            self.session_prompt,
            completer=self.filemanager.session_completer(sessions),
            style=COMPLETER_STYLER,
        )
        if not choice:
            return None
        if choice.isdigit():
            index = int(choice) - 1
            if 0 <= index < len(sessions):
                return sessions[index]
        else:
            for s in sessions:
                if s.title.lower() == choice.lower():
                    return s
        CONSOLE.print(f"[red]No session found:[/red] {choice}\n")
        return None

    def handle_input(self, user_input: str) -> bool:
        """Parse user input for a command & handle it"""
        cmd = user_input.strip().lower()
        if cmd in self.commands:
            self.commands[cmd]()
            return True
        return False  # No command detected

    def set_interface(self, chat_interface):
        """Setter to inject the Chat/Renderer instance."""
        self.interface = chat_interface

    def quit(self):
        CONSOLE.print("[yellow]✨ Farewell![/yellow]\n")
        sys.exit(0)

    # <~~CHARTS~~>
    def spawn_help_chart(self):
        """Markdown usage chart."""
        CONSOLE.print(self.ui.help_chart_constructor())
        CONSOLE.print()

    def spawn_settings_chart(self):
        """Markdown settings chart."""
        CONSOLE.print(self.ui.settings_chart_constructor())
        CONSOLE.print()

    # <~~MAIN CONFIG~~>
    def set_api_key(self):
        """Allows the user to set an API key. SAFELY stores the user's API key with keyring"""
        new_key = self._prompt_wrapper(HTML("Enter an API key<seagreen>:</seagreen> "))
        if not new_key:
            return
        try:
            set_password(KEYRING_SERVICE, USER_NAME, new_key)
            CONSOLE.print("[green]API key updated.[/green]\n")
        except (KeyringError, ValueError, RuntimeError, OSError) as e:
            self.panel.spawn_error_panel(
                "KEYRING ERROR",
                f"Could not save to your OS keychain: {e}\nUsing key for this session only.",
            )
        self.controller.client = GenerationClient(self.config, api_key=new_key)

    def set_language(self):
        """Switches the response language."""
        choice = self._prompt_wrapper(
            HTML(f"Language ({' / '.join(LANGUAGES)})<seagreen>:</seagreen> "),
            completer=WordCompleter(list(LANGUAGES), ignore_case=True),
            style=COMPLETER_STYLER,
        )
        if not choice:
            return
        match = next((lang for lang in LANGUAGES if lang.lower() == choice.lower()), None)
        if not match:
            CONSOLE.print(f"[dim]Unsupported language:[/dim] '{choice}'\n")
            return
        self.config.language = match
        self.config.save()
        CONSOLE.print(f"[green]Language set to:[/green] {match}\n")

    def switch_profile(self):
        """Lists provider profiles and switches the active one."""
        CONSOLE.print("[cyan]Configured profiles:[/cyan]")
        for m in self.config.models:
            tag = "(active)" if m["alias"] == self.config.active_model else ""
            CONSOLE.print(f"• {m['alias']} → {m['name']} [{m['endpoint']}] {tag}")
        CONSOLE.print()
        alias = self._prompt_wrapper(
            HTML("Enter a profile name<seagreen>:</seagreen> ")
        )
        if not alias:
            return

        match = next((m for m in self.config.models if m["alias"] == alias), None)
        if not match:
            CONSOLE.print(f"[dim]No profile found under alias[/dim] '{alias}'.\n")
            return

        self.config.active_model = alias
        self.config.save()
        self.controller.client = GenerationClient(self.config, api_key=retrieve_key())
        CONSOLE.print(
            f"[green]Switched to:[/green] {match['name']} "
            f"[dim]{match['endpoint']}[/dim]\n"
        )

    # <~~SESSION MANAGEMENT~~>
    def new_session(self):
        self.controller.new_session()
        CONSOLE.print("[green]New session started.[/green]")
        self.panel.spawn_status_panel()

    def list_sessions(self):
        """Displays the session list, newest first."""
        sessions = self.controller.sessions
        if not sessions:
            CONSOLE.print("[dim]No sessions found.[/dim]\n")
            return 0
        CONSOLE.print(
            self.ui.sessions_chart_constructor(
                sessions, self.controller.active_session_id
            )
        )
        CONSOLE.print()
        return 1

    def switch_session(self):
        """Activates another session and replays its transcript"""
        session = self._pick_session()
        if not session:
            return
        self.controller.select_session(session.id)
        CONSOLE.clear()
        self.panel.spawn_transcript(session)
        self.panel.spawn_status_panel()

    def delete_session(self):
        session = self._pick_session()
        if not session:
            return
        try:
            self.controller.delete_session(session.id)
            CONSOLE.print(f"[green]Session deleted:[/green] {session.title}\n")
        except Exception as e:
            log_exception(e, f"Error in delete_session() - session: {session.id}")
            self.panel.spawn_error_panel("DELETION ERROR", f"{e}")
            return
        self.panel.spawn_status_panel()

    def clear_all_sessions(self):
        if not self._confirm(
            "Delete your entire chat history? This cannot be undone."
        ):
            CONSOLE.print("[dim]Nothing was deleted.[/dim]\n")
            return
        self.controller.clear_all()
        CONSOLE.clear()
        CONSOLE.print("[green]Chat history cleared.[/green]")
        self.panel.spawn_status_panel()

    # <~~SEARCH HISTORY~~>
    def list_search_history(self):
        entries = self.search_history.get()
        if not entries:
            CONSOLE.print("[dim]No search history found.[/dim]\n")
            return
        CONSOLE.print("[cyan]Recent queries:[/cyan]")
        for entry in entries:
            CONSOLE.print(f"• {entry}", highlight=False)
        CONSOLE.print()

    def delete_search_entry(self):
        entries = self.search_history.get()
        if not entries:
            CONSOLE.print("[dim]No search history found.[/dim]\n")
            return
        query = self._prompt_wrapper(
            HTML("Enter a query to remove<seagreen>:</seagreen> "),
            completer=WordCompleter(entries, sentence=True),
            style=COMPLETER_STYLER,
        )
        if not query:
            return
        remaining = self.search_history.delete(query)
        if len(remaining) < len(entries):
            CONSOLE.print("[green]Query removed.[/green]\n")
        else:
            CONSOLE.print(f"[dim]No query matched[/dim] '{query}'.\n")

    def clear_search_history(self):
        self.search_history.clear()
        CONSOLE.print("[green]Search history cleared.[/green]\n")

    # <~~GENERATION~~>
    def attach_image(self):
        """Reads an image from disk and holds it for the next message"""
        path = self._prompt_wrapper(
            HTML("Enter image path<seagreen>:</seagreen> "),
            completer=PathCompleter(expanduser=True),
            validator=self.filemanager.path_validator(),
            validate_while_typing=False,
            style=COMPLETER_STYLER,
            history=self.filepath_history,
        )
        if not path:
            return
        try:
            self.filemanager.attach(path)
        except Exception as e:
            log_exception(e, "Error in attach_image()")
            self.panel.spawn_error_panel("ERROR READING IMAGE", f"{e}")
            return
        CONSOLE.print(
            "[green]Image attached.[/green] [dim]It will be sent with your next message.[/dim]\n"
        )

    def detach_image(self):
        if self.filemanager.take_pending():
            CONSOLE.print("[green]Pending image removed.[/green]\n")
        else:
            CONSOLE.print("[dim]No image attached.[/dim]\n")

    def generate_image(self):
        if not self.controller.features.image_gen_available:
            CONSOLE.print("[red]Image generation is unavailable for this API key.[/red]\n")
            return
        description = self._prompt_wrapper(
            HTML("Describe the image<seagreen>:</seagreen> ")
        )
        if description and self.interface:
            self.interface.generate_image(description)

    def generate_video(self):
        if not self.controller.features.video_gen_available:
            CONSOLE.print("[red]Video generation is unavailable for this API key.[/red]\n")
            return
        description = self._prompt_wrapper(
            HTML("Describe the scene<seagreen>:</seagreen> ")
        )
        if description and self.interface:
            self.interface.generate_video(description)

    def study(self):
        content = self._prompt_wrapper(
            HTML("Paste the content to study<seagreen>:</seagreen> "), multiline=True
        )
        if content and self.interface:
            self.interface.stream_reply(self.controller.study, content)

    def learn(self):
        content = self._prompt_wrapper(
            HTML("Paste the information to learn<seagreen>:</seagreen> "),
            multiline=True,
        )
        if content and self.interface:
            self.interface.stream_reply(self.controller.learn, content)
