from typing import List, Optional, Tuple, Union

from reddit_explainer.models import Level, PostData, MAX_COMMENTS

# Описание аудитории для каждого уровня объяснения
AUDIENCE_DESCRIPTIONS = {
    Level.SIMPLE.value: "a 5-year-old (ELI5)",
    Level.NON_TECHNICAL.value: "a non-technical person",
    Level.BEGINNER.value: "a beginner in this topic",
    Level.ADVANCED.value: "someone looking for an in-depth explanation",
    Level.MORE_CONTEXT.value: "someone who needs more context",
}

LevelLike = Union[Level, str, None]


def level_value(level: LevelLike) -> str:
    """Приводит Level или произвольную строку к строковому идентификатору уровня."""
    if isinstance(level, Level):
        return level.value
    return level or ""


def describe_audience(level: LevelLike, custom_text: Optional[str] = None) -> str:
    """Возвращает описание целевой аудитории для уровня объяснения."""
    value = level_value(level)
    if value == Level.CUSTOM.value:
        if custom_text and custom_text.strip():
            return custom_text.strip()
        return AUDIENCE_DESCRIPTIONS[Level.MORE_CONTEXT.value]
    # Fallback на ELI5 для неизвестных уровней
    return AUDIENCE_DESCRIPTIONS.get(value, AUDIENCE_DESCRIPTIONS[Level.SIMPLE.value])


def format_comments(comments: List[str]) -> str:
    """Нумерованный список комментариев, не больше пяти."""
    return "\n".join(f"{i}. {comment}" for i, comment in enumerate(comments[:MAX_COMMENTS], start=1))


def build_prompt(post: PostData, level: LevelLike, custom_text: Optional[str] = None) -> str:
    """
    Собирает промпт для AI из данных поста и уровня объяснения.
    Чистая функция: одинаковые аргументы дают байт-в-байт одинаковый результат.
    """
    audience = describe_audience(level, custom_text)

    return f"Explain the following Reddit post as if I were {audience}:\n" \
           f"\n" \
           f"Title: {post.title}\n" \
           f"\n" \
           f"Post Content: {post.post_content}\n" \
           f"\n" \
           f"Top Comments:\n" \
           f"{format_comments(post.top_comments)}\n" \
           f"\n" \
           f"Please provide a clear, concise explanation that's appropriate for {audience}.\n" \
           f"Your explanation should be friendly and conversational.\n" \
           f"Simplify complex ideas but don't be condescending.\n" \
           f"Focus on the main point of the post and the key insights from comments."


def level_catalog(custom_text: Optional[str] = None) -> List[Tuple[str, str]]:
    """Список (уровень, аудитория) для выпадающего списка в popup."""
    return [(level.value, describe_audience(level, custom_text)) for level in Level]
