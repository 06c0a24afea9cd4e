from typing import Optional

from reddit_explainer.models import Level, PostData
from reddit_explainer.prompts import LevelLike, level_value

TITLE_PREVIEW_LENGTH = 40
BODY_PREVIEW_LENGTH = 100
ELLIPSIS = "..."

FALLBACK_INTROS = {
    Level.SIMPLE.value: "Here's a super simple explanation like you're 5 years old:",
    Level.NON_TECHNICAL.value: "Here's an explanation without any technical jargon:",
    Level.BEGINNER.value: "Here's an explanation for someone new to this topic:",
    Level.ADVANCED.value: "Here's an in-depth explanation of this post:",
    Level.MORE_CONTEXT.value: "Here's an explanation with some extra background on this post:",
    Level.CUSTOM.value: "Here's an explanation tailored to the audience you described:",
}

API_KEY_NOTICE = "(Note: To get real AI explanations, please add your API key in the extension options page)"


def _preview(text: Optional[str], length: int) -> str:
    return (text or "")[:length] + ELLIPSIS


def fallback_intro(level: LevelLike) -> str:
    """Вступительная фраза заглушки для уровня, по умолчанию как для 'simple'."""
    return FALLBACK_INTROS.get(level_value(level), FALLBACK_INTROS[Level.SIMPLE.value])


def generate(post: Optional[PostData], level: LevelLike) -> str:
    """
    Формирует объяснение-заглушку без обращения к сети.
    Используется, когда ключ не настроен или провайдер вернул ошибку.
    Никогда не бросает исключений.
    """
    title = post.title if post is not None else ""
    body = post.post_content if post is not None else ""

    return f"{fallback_intro(level)}\n" \
           f"\n" \
           f"This Reddit post is about \"{_preview(title, TITLE_PREVIEW_LENGTH)}\".\n" \
           f"\n" \
           f"The main idea is {_preview(body, BODY_PREVIEW_LENGTH)}\n" \
           f"\n" \
           f"Based on the comments, people seem to be discussing various aspects of this topic. " \
           f"In a real version of this extension, this would be a thoughtful AI-generated explanation " \
           f"tailored to your selected comprehension level.\n" \
           f"\n" \
           f"A full implementation would connect to an AI service like OpenAI's GPT to provide accurate, " \
           f"helpful explanations of Reddit posts at your preferred level of detail.\n" \
           f"\n" \
           f"{API_KEY_NOTICE}"
