"""Image attachment I/O, plus the prompt_toolkit validators and completers that go with it."""

import base64
import mimetypes
import os
from pathlib import Path

from prompt_toolkit.completion import (
    WordCompleter,
)
from prompt_toolkit.validation import Validator

from genchat.globals import IMAGE_FILES
from genchat.models import ChatSession, ImageAttachment


class FileManager:
    """Handles attachment-related I/O"""

    def __init__(self):
        # At most one image waits to ride along with the next message
        self.pending_image: ImageAttachment | None = None

    def session_completer(self, sessions: list[ChatSession]) -> WordCompleter:
        """Session title completion helper"""
        return WordCompleter(
            [s.title for s in sessions],
            ignore_case=True,
            sentence=True,
        )

    def load_image(self, path: str) -> ImageAttachment:
        """Reads an image from disk and base64-encodes it for inline sending"""
        path = os.path.abspath(os.path.expanduser(path))
        if not os.path.isfile(path):
            raise FileNotFoundError(f"No image found at: {path}")
        if not path.lower().endswith(IMAGE_FILES):
            raise ValueError(f"Unsupported image type: {os.path.basename(path)}")

        mime_type = mimetypes.guess_type(path)[0] or "image/png"
        try:
            with open(path, "rb") as f:
                data = base64.b64encode(f.read()).decode("ascii")
        except PermissionError:
            raise PermissionError(f"Permission Denied: {path}")
        return ImageAttachment(
            data=data, mime_type=mime_type, source_url=Path(path).as_uri()
        )

    def attach(self, path: str) -> ImageAttachment:
        self.pending_image = self.load_image(path)
        return self.pending_image

    def take_pending(self) -> ImageAttachment | None:
        """Hands over the pending image, clearing it."""
        image, self.pending_image = self.pending_image, None
        return image

    def path_validator(self) -> Validator:
        """Prompt_toolkit image path validator"""

        def _validator(text: str) -> bool:
            """Path validation helper for path_validator()"""
            text = os.path.abspath(os.path.expanduser(text))
            return os.path.isfile(text) and text.lower().endswith(IMAGE_FILES)

        return Validator.from_callable(
            _validator,
            error_message="Not an image file.",
            move_cursor_to_end=True,
        )
