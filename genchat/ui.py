"""Builds and spawns UI objects. UIConstructor and GlobalPanels live here."""

import textwrap

from rich import box
from rich.markdown import Markdown
from rich.panel import Panel
from rich.text import Text

from genchat import __version__
from genchat.globals import CONFIG_FILE, CONSOLE, DATA_DIR, LOG_DIR
from genchat.models import ChatSession, Message


def media_lines(message: Message) -> list[str]:
    """Short descriptions of any media attached to a message."""
    lines = []
    if message.image_url:
        if message.image_url.startswith("data:"):
            size_kb = len(message.image_url) * 3 // 4 // 1024
            lines.append(f"🖼  Generated image ({size_kb} KB)")
        else:
            lines.append(f"🖼  {message.image_url}")
    if message.video_url:
        lines.append(f"🎬 {message.video_url}")
    return lines


class UIConstructor:
    """Constructs and returns various UI objects"""

    def __init__(self, config, controller):
        self.config = config
        self.controller = controller

    def response_panel_constructor(self, content: str = "") -> Panel:
        return Panel(
            Markdown(content, code_theme=self.config.rich_code_theme),
            title=Text("💬 Response", style="bold green"),
            title_align="left",
            border_style="green",
            style="default",
            width=None,
            box=box.HORIZONTALS,
            padding=(0, 0),
        )

    def user_panel_constructor(self, message: Message) -> Panel:
        content = "\n".join([message.text, *media_lines(message)])
        return Panel(
            content,
            box=box.HORIZONTALS,
            padding=(0, 0),
            title=Text("🌐 You", style="bold blue"),
            title_align="left",
            border_style="blue",
            style="default",
        )

    def model_panel_constructor(self, message: Message) -> Panel:
        content = "\n\n".join([message.text, *media_lines(message)])
        return self.response_panel_constructor(content)

    def status_panel_constructor(self) -> Panel:
        session = self.controller.active_session
        features = self.controller.features
        status_text = Text.assemble(
            (" ", "cyan"),
            ("Session: "),
            (f"{session.title if session else '-'}", "bold"),
            (" | "),
            (f"Messages: {len(session.messages) if session else 0}"),
            (" | "),
            (f"Lang: {self.config.language}"),
        )
        if not features.image_gen_available:
            status_text.append(" | Images off", style="red")
        if not features.video_gen_available:
            status_text.append(" | Video off", style="red")
        return Panel(
            status_text,
            border_style="dim",
            style="dim",
            expand=False,
        )

    def intro_panel_constructor(self) -> Panel:
        intro_text = Text.assemble(
            ("Model: ", "bold sandy_brown"),
            (f"{self.config.model_name}"),
            ("\nProfile: ", "bold sandy_brown"),
            (f"{self.config.alias_name}"),
            ("\nLanguage: ", "bold sandy_brown"),
            (f"{self.config.language}"),
        )
        return Panel(
            intro_text,
            title=Text(f"🔮 GenChat {__version__}", "bold medium_orchid"),
            title_align="left",
            border_style="medium_orchid",
            box=box.HORIZONTALS,
            padding=(0, 0),
        )

    def error_panel_constructor(self, error: str, exception: str) -> Panel:
        return Panel(
            exception,
            title=Text(f"❌ {error}", style="bold red"),
            title_align="left",
            border_style="red",
            expand=False,
        )

    def sessions_chart_constructor(
        self, sessions: list[ChatSession], active_id: str | None
    ) -> Markdown:
        rows = ["| # | Title | Messages |", "| --- | --- | --- |"]
        for i, s in enumerate(sessions, start=1):
            title = f"**{s.title}** (active)" if s.id == active_id else s.title
            rows.append(f"| {i} | {title} | {len(s.messages)} |")
        return Markdown("\n".join(rows))

    def help_chart_constructor(self) -> Markdown:
        return Markdown(
            textwrap.dedent("""
            | **Sessions** | *Manage your conversations* |
            | --- | ----------- |
            | `!new` | Start a new session. |
            | `!sessions` | List all sessions. |
            | `!switch` | Switch to another session, with its full transcript. |
            | `!delete` | Delete a session. |
            | `!purge all` | Delete every session and start fresh. |
            | `!clear` | Clear the terminal window. |
            | `!q` or `!quit` | Exit GenChat. |

            | **Generation** | *Beyond plain chat* |
            | --- | ----------- |
            | `!a` or `!attach` | Attach an image to your next message. |
            | `!detach` | Drop the pending image. |
            | `!image` | Generate an image from a prompt. |
            | `!video` | Generate a video from a prompt. This can take minutes. |
            | `!study` | Send a text for the model to study and summarize. |
            | `!learn` | Teach the model something to use in this conversation. |
            | | |
            | `Ctrl + C` | Cancel a running reply or video generation. |

            | **Search History** | *Your past queries* |
            | --- | ----------- |
            | `!history` | List recent queries. |
            | `!history delete` | Remove one query. |
            | `!history clear` | Remove every query. |

            | **Configuration** | *Main configuration commands* |
            | --- | ----------- |
            | `!config` | Display your current settings and default directories. |
            | `!key` | Set an API key. Your API key is stored in your OS keychain. |
            | `!lang` | Switch the response language (pt-BR / en-US). |
            | `!profile` | List provider profiles and switch between them. |
            """)
        )

    def settings_chart_constructor(self) -> Markdown:
        timeout = self.config.poll_timeout or "none"
        return Markdown(
            textwrap.dedent(f"""
            | **Current Settings** | *Your current persistent settings* |
            | --- | ----------- |
            | **Profile**: | *{self.config.alias_name}* |
            | **Chat Model**: | *{self.config.model_name}* |
            | **Endpoint**: | *{self.config.endpoint}* |
            | **Image Model**: | *{self.config.image_model}* |
            | **Video Model**: | *{self.config.video_model}* |
            | **Language**: | *{self.config.language}* |
            | **Poll Interval**: | *{self.config.poll_interval}s* |
            | **Poll Timeout**: | *{timeout}* |
            | **Refresh Rate**: | *{self.config.refresh_rate}* |
            - Your configuration file is located at: `{CONFIG_FILE}`
            - Your chat data is located at:          `{DATA_DIR}`
            - Your error logs are located at:        `{LOG_DIR}`
            """)
        )


class GlobalPanels:
    """Global panel spawner"""

    def __init__(self, config, ui: UIConstructor):
        self.config = config
        self.ui: UIConstructor = ui

    def spawn_intro_panel(self):
        """Simple welcome panel, prints on application launch."""
        CONSOLE.print(self.ui.intro_panel_constructor())
        CONSOLE.print(Markdown("Type `!h` for a list of commands."))
        CONSOLE.print()

    def spawn_status_panel(self):
        CONSOLE.print(self.ui.status_panel_constructor())
        CONSOLE.print()

    def spawn_error_panel(self, error: str, exception: str):
        """Error panel template, used by the controller and main()"""
        CONSOLE.print(self.ui.error_panel_constructor(error, exception))
        CONSOLE.print()

    def spawn_message_panel(self, message: Message):
        """Prints one transcript entry."""
        if message.sender == "user":
            CONSOLE.print(self.ui.user_panel_constructor(message))
        else:
            CONSOLE.print(self.ui.model_panel_constructor(message))
        CONSOLE.print()

    def spawn_transcript(self, session: ChatSession):
        """Replays a whole session, for a scrollable history."""
        for message in session.messages:
            self.spawn_message_panel(message)
