"""Localized instructions and transcript texts, keyed by language."""

from __future__ import annotations

_TEXTS: dict[str, dict[str, str]] = {
    "pt-BR": {
        "chat_system": "Responda em português do Brasil.",
        "title_system": (
            "Você é um gerador de títulos para chats. Sua tarefa é criar um título "
            "curto e conciso (máximo 4 palavras) para a conversa, baseado na "
            "primeira mensagem do usuário. Responda *apenas* com o título, sem "
            'formatação extra, aspas, ou palavras como "Título:".'
        ),
        "title_fallback": "Novo Chat",
        "describe_image": "Descreva esta imagem.",
        "image_request": 'Gerar imagem: "{prompt}"',
        "image_result": 'Imagem gerada para: "{prompt}"',
        "video_request": 'Gerar vídeo: "{prompt}"',
        "video_pending": (
            "Criando seu vídeo... 🎬 Isso pode levar alguns minutos. "
            "Vou te avisar assim que estiver pronto!"
        ),
        "video_result": 'Aqui está o vídeo que você pediu: "{prompt}"',
        "error_prefix": "⚠️ **Erro:** ",
        "cancelled": "A geração foi cancelada.",
        "study": (
            "Por favor, estude o seguinte texto e me diga o que você aprendeu ou "
            "resuma-o:\n\n---\n{content}\n---"
        ),
        "learn": (
            "Por favor, aprenda a seguinte informação para usar em nossa "
            "conversa:\n\n---\n{content}\n---"
        ),
    },
    "en-US": {
        "chat_system": "Respond in English.",
        "title_system": (
            "You are a chat title generator. Your task is to create a short and "
            "concise title (maximum 4 words) for the conversation, based on the "
            "user's first message. Respond with *only* the title, without extra "
            'formatting, quotes, or words like "Title:".'
        ),
        "title_fallback": "New Chat",
        "describe_image": "Describe this image.",
        "image_request": 'Generate image: "{prompt}"',
        "image_result": 'Image generated for: "{prompt}"',
        "video_request": 'Generate video: "{prompt}"',
        "video_pending": (
            "Creating your video... 🎬 This may take a few minutes. "
            "I'll let you know as soon as it's ready!"
        ),
        "video_result": 'Here is the video you asked for: "{prompt}"',
        "error_prefix": "⚠️ **Error:** ",
        "cancelled": "The generation was canceled.",
        "study": (
            "Please study the following text and tell me what you learned or "
            "summarize it:\n\n---\n{content}\n---"
        ),
        "learn": (
            "Please learn the following information to use in our "
            "conversation:\n\n---\n{content}\n---"
        ),
    },
}

DEFAULT_LANGUAGE = "pt-BR"


def text(key: str, language: str, **kwargs) -> str:
    """Look up a localized text, falling back to the default language."""
    table = _TEXTS.get(language, _TEXTS[DEFAULT_LANGUAGE])
    template = table[key]
    return template.format(**kwargs) if kwargs else template


def title_instruction(first_message: str) -> str:
    return f'Generate a title for a chat starting with: "{first_message}"'


def fallback_title(language: str) -> str:
    return text("title_fallback", language)
