"""
Thin wrapper around the provider SDKs.

Chat, titles and images go through the OpenAI SDK against the active profile's
OpenAI-compatible endpoint. Video generation is a long-running operation that
endpoint does not offer, so it goes through google-genai and is polled until
the operation reports completion.

Every provider failure leaves this module as a ClassifiedError.
"""

from __future__ import annotations

import re
import threading
import time
from collections.abc import Iterator, Sequence
from typing import Optional

from google import genai
from google.genai import types as genai_types
from openai import OpenAI
from openai.types.chat import ChatCompletionMessageParam
from openai.types.chat.chat_completion_chunk import ChatCompletionChunk

from genchat import prompts
from genchat.config import Config
from genchat.errors import ErrorContext, GenerationCancelled, classify_error
from genchat.globals import log_exception, retrieve_key
from genchat.models import ImageAttachment, Message

TITLE_PREFIX = re.compile(r"^(título|title):?\s*", re.IGNORECASE)
TITLE_WRAPPING = re.compile(r"^[\"'*#\s]+|[\"'*#\s]+$")


def clean_title(raw: str) -> str:
    """Strips 'Title:' prefixes and surrounding quotes/markdown from a model reply."""
    title = TITLE_PREFIX.sub("", raw.strip())
    return TITLE_WRAPPING.sub("", title)


def with_credential(uri: str, api_key: str) -> str:
    """The download link only resolves with the key attached as a query parameter."""
    separator = "&" if "?" in uri else "?"
    return f"{uri}{separator}key={api_key}"


class GenerationClient:
    """Normalizes chat, image, video and title calls to the provider"""

    def __init__(
        self,
        config: Config,
        api_key: str | None = None,
        client: OpenAI | None = None,
        video_client: genai.Client | None = None,
    ):
        self.config: Config = config
        self.api_key: str = api_key or retrieve_key()
        self.client = client or OpenAI(base_url=config.endpoint, api_key=self.api_key)
        self.video_client = video_client or genai.Client(api_key=self.api_key)

    def _language(self, language: str | None) -> str:
        return language or self.config.language

    # <~~CHAT~~>
    def build_chat_messages(
        self,
        prompt: str,
        prior_messages: Sequence[Message],
        image: ImageAttachment | None,
        language: str,
    ) -> list[ChatCompletionMessageParam]:
        """Converts the transcript into provider turns, system instruction first."""
        messages: list[ChatCompletionMessageParam] = [
            {"role": "system", "content": prompts.text("chat_system", language)}
        ]
        # Past images are not re-sent; only their text survives in history
        for msg in prior_messages:
            role = "assistant" if msg.sender == "model" else "user"
            messages.append({"role": role, "content": msg.text})  # pyright: ignore

        if image:
            # Multimodal ordering matters: the image goes before the text
            messages.append(
                {
                    "role": "user",
                    "content": [
                        {
                            "type": "image_url",
                            "image_url": {
                                "url": f"data:{image.mime_type};base64,{image.data}"
                            },
                        },
                        {"type": "text", "text": prompt},
                    ],
                }
            )
        else:
            messages.append({"role": "user", "content": prompt})
        return messages

    @staticmethod
    def chunk_text(chunk: ChatCompletionChunk) -> str:
        """Extracts the text of a streamed chunk; empty chunks give ''."""
        if not chunk.choices:
            return ""
        return getattr(chunk.choices[0].delta, "content", None) or ""

    def stream_chat(
        self,
        prompt: str,
        prior_messages: Sequence[Message],
        image: ImageAttachment | None = None,
        language: str | None = None,
        cancel: threading.Event | None = None,
    ) -> Iterator[str]:
        """
        Streams a chat reply, one text fragment at a time.

        `prior_messages` must not contain the current prompt. The iterator is
        single-use; a provider failure ends it with a ClassifiedError.
        """
        language = self._language(language)
        messages = self.build_chat_messages(prompt, prior_messages, image, language)
        try:
            completion = self.client.chat.completions.create(
                model=self.config.model_name,
                messages=messages,
                stream=True,
            )
            for chunk in completion:
                if cancel is not None and cancel.is_set():
                    completion.close()
                    raise GenerationCancelled()
                fragment = self.chunk_text(chunk)
                if fragment:
                    yield fragment
        except GenerationCancelled:
            raise
        except Exception as e:
            raise classify_error(e, ErrorContext.CHAT, language) from e

    # <~~IMAGE~~>
    def generate_image(self, prompt: str, language: str | None = None) -> str:
        """Returns the base64-encoded PNG for a single generated image."""
        language = self._language(language)
        try:
            response = self.client.images.generate(
                model=self.config.image_model,
                prompt=prompt,
                n=1,
                response_format="b64_json",
            )
            data = response.data or []
            if data and data[0].b64_json:
                return data[0].b64_json
            raise RuntimeError("The API did not return a valid image.")
        except Exception as e:
            raise classify_error(e, ErrorContext.IMAGE, language) from e

    # <~~VIDEO~~>
    def _wait(self, seconds: float, cancel: threading.Event | None):
        if cancel is None:
            time.sleep(seconds)
        elif cancel.wait(seconds):
            raise GenerationCancelled()

    @staticmethod
    def _video_uri(operation) -> Optional[str]:
        response = getattr(operation, "response", None)
        videos = getattr(response, "generated_videos", None) or []
        if not videos:
            return None
        video = getattr(videos[0], "video", None)
        return getattr(video, "uri", None)

    def generate_video(
        self,
        prompt: str,
        language: str | None = None,
        cancel: threading.Event | None = None,
        deadline: float | None = None,
    ) -> str:
        """
        Starts a video generation and polls it to completion.

        Polls every `config.poll_interval` seconds with no attempt cap unless a
        `deadline` (seconds) or a `cancel` event is given. Returns the playable
        URL, credential included.
        """
        language = self._language(language)
        if deadline is None:
            deadline = self.config.poll_timeout
        expires_at = time.monotonic() + deadline if deadline is not None else None
        try:
            operation = self.video_client.models.generate_videos(
                model=self.config.video_model,
                prompt=prompt,
                config=genai_types.GenerateVideosConfig(number_of_videos=1),
            )
            while not operation.done:
                if cancel is not None and cancel.is_set():
                    raise GenerationCancelled()
                interval = self.config.poll_interval
                if expires_at is not None:
                    remaining = expires_at - time.monotonic()
                    if remaining <= 0:
                        raise TimeoutError(
                            f"Video operation still running after {deadline}s"
                        )
                    interval = min(interval, remaining)
                self._wait(interval, cancel)
                operation = self.video_client.operations.get(operation)

            uri = self._video_uri(operation)
            if uri:
                return with_credential(uri, self.api_key)
            error = getattr(operation, "error", None)
            if error:
                raise RuntimeError(str(error))
            raise RuntimeError("The API did not return a valid video link.")
        except GenerationCancelled:
            raise
        except Exception as e:
            raise classify_error(e, ErrorContext.VIDEO, language) from e

    # <~~TITLE~~>
    def generate_title(self, first_message: str, language: str | None = None) -> str:
        """Best-effort short title. Falls back to a fixed title, never raises."""
        language = self._language(language)
        fallback = prompts.fallback_title(language)
        try:
            response = self.client.chat.completions.create(
                model=self.config.title_model,
                messages=[
                    {"role": "system", "content": prompts.text("title_system", language)},
                    {"role": "user", "content": prompts.title_instruction(first_message)},
                ],
            )
            raw = response.choices[0].message.content or ""
        except Exception as e:
            log_exception(e, "Error generating chat title")
            return fallback
        return clean_title(raw) or fallback
