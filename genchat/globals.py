"""Global functions and variables, used across various modules."""

import getpass
import logging
import os
import traceback
from datetime import datetime
from logging.handlers import RotatingFileHandler

import keyring
from keyring import get_password
from keyring.backends import null
from platformdirs import user_data_dir
from prompt_toolkit import prompt
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.formatted_text import HTML
from prompt_toolkit.history import InMemoryHistory
from prompt_toolkit.styles import Style
from rich.console import Console
from rich.spinner import Spinner

# Default directories and system details
APP_DIR = user_data_dir("GenChat")
CONFIG_DIR = os.path.join(APP_DIR, "config")
DATA_DIR = os.path.join(APP_DIR, "data")
LOG_DIR = os.path.join(APP_DIR, "logs")
CONFIG_FILE = os.path.join(CONFIG_DIR, "settings.json")
SESSIONS_FILE = os.path.join(DATA_DIR, "chat_history_v2.json")
SEARCH_HISTORY_FILE = os.path.join(DATA_DIR, "search_history.json")
USER_NAME = getpass.getuser()
KEYRING_SERVICE = "GenChatAPI"

os.makedirs(DATA_DIR, exist_ok=True)
os.makedirs(CONFIG_DIR, exist_ok=True)
os.makedirs(LOG_DIR, exist_ok=True)

# Image types accepted as chat attachments
IMAGE_FILES = (".png", ".jpg", ".jpeg", ".webp", ".gif", ".heic", ".heif")

# Terminal integration
CONSOLE = Console()

# Main prompt prefix
PROMPT_PREFIX = HTML("<seagreen>󰅂 </seagreen>")

# Dark style for all prompt_toolkit completers
COMPLETER_STYLER = Style.from_dict(
    {
        # Completions
        "completion-menu.completion": "bg:#202020 #ffffff",
        "completion-menu.completion.current": "bg:#024a1a #000000",  # 2E8B57
        # Tooltips
        "completion-menu.meta.completion": "bg:#202020 #aaaaaa",
        "completion-menu.meta.completion.current": "bg:#024a1a #000000",
    }
)

# Main prompt command completer
COMMAND_COMPLETER = WordCompleter(
    [
        "!a",
        "!attach",
        "!clear",
        "!config",
        "!delete",
        "!detach",
        "!h",
        "!help",
        "!history",
        "!history clear",
        "!history delete",
        "!image",
        "!key",
        "!lang",
        "!learn",
        "!new",
        "!profile",
        "!purge all",
        "!q",
        "!quit",
        "!sessions",
        "!study",
        "!switch",
        "!video",
    ],
    match_middle=True,
    WORD=True,
)

# In-memory history for the root prompt, must mutate
main_history = InMemoryHistory()


def init_logger(level: int = logging.WARNING):
    """Routes the root logger into a dated, size-capped file under LOG_DIR."""
    stamp = datetime.now().strftime("%Y%m%d")
    # e.g. genchat_20251109.log, rolled over at 1MB with 3 backups kept
    handler = RotatingFileHandler(
        os.path.join(LOG_DIR, f"genchat_{stamp}.log"),
        maxBytes=1_000_000,
        backupCount=3,
        encoding="utf-8",
    )
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(threadName)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[handler],
    )


def log_exception(e: BaseException, context: str = ""):
    """Logs an exception with its traceback, prefixed by where it was caught."""
    trace = "".join(traceback.format_exception(type(e), e, e.__traceback__))
    logging.error(f"{context}\n{trace}" if context else trace)


def setup_keyring_backend():
    """Safely detects a keyring backend."""
    try:
        keyring.get_keyring()
    except Exception as e:
        keyring.set_keyring(null.Keyring())
        logging.error(
            f"Keyring backend failed. Falling back to NullBackend. Error: {e}"
        )


def retrieve_key() -> str:
    """
    Attempts to retrieve a stored API key.\n
    Prio: GEMINI_API_KEY env variable -> OS keyring entry -> Dummy key
    """
    api_key = os.getenv("GEMINI_API_KEY") or ""
    if not api_key:
        try:
            api_key = get_password(KEYRING_SERVICE, USER_NAME) or ""
        except Exception as e:
            logging.error(f"Keyring lookup failed: {e}")
    if not api_key:
        # The provider rejects this, which surfaces as an invalid credential
        api_key = "dummy-key"
    return api_key


def spinner_constructor(content: str) -> Spinner:
    return Spinner(
        "moon",
        text=f"[bold medium_orchid]{content}[/bold medium_orchid]",
    )


def root_prompt() -> str:
    return prompt(
        PROMPT_PREFIX,
        completer=COMMAND_COMPLETER,
        style=COMPLETER_STYLER,
        complete_while_typing=False,
        history=main_history,
    )
