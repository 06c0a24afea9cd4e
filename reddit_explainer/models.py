from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List

MAX_COMMENTS = 5

DEFAULT_PROVIDER = "openai"
DEFAULT_TEMPERATURE = 0.3
DEFAULT_MAX_OUTPUT_LENGTH = 325


class Level(str, Enum):
    SIMPLE = "simple"
    NON_TECHNICAL = "non-technical"
    BEGINNER = "beginner"
    ADVANCED = "advanced"
    MORE_CONTEXT = "more-context"
    CUSTOM = "custom"


class Provider(str, Enum):
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    DEEPSEEK = "deepseek"
    GOOGLE = "google"
    CUSTOM = "custom"


# Данные поста, которые присылает content script расширения
class PostData(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    title: str = ""
    post_content: str = Field("", alias="postContent")
    top_comments: List[str] = Field(default_factory=list, alias="topComments")

    @field_validator("title", "post_content", mode="before")
    @classmethod
    def _none_to_empty(cls, value):
        return "" if value is None else value

    @field_validator("top_comments", mode="before")
    @classmethod
    def _keep_top_comments(cls, value):
        # Экстрактор берет не больше пяти комментариев, лишние отбрасываем
        if value is None:
            return []
        return list(value)[:MAX_COMMENTS]


class ProviderConfig(BaseModel):
    """Настройки провайдера на момент одного запроса объяснения."""
    model_config = ConfigDict(frozen=True)

    # Строка, а не Provider: неизвестный идентификатор должен дойти до диспетчера
    provider: str = DEFAULT_PROVIDER
    api_key: str = ""
    custom_endpoint: str = ""
    model: str = ""
    temperature: float = Field(DEFAULT_TEMPERATURE, ge=0.0, le=1.0)
    max_output_length: int = Field(DEFAULT_MAX_OUTPUT_LENGTH, ge=1, le=4096)
    custom_audience: str = ""

    @property
    def use_mock(self) -> bool:
        # Без ключа всегда работаем в режиме заглушки
        return not self.api_key


# --- Модели HTTP API ---

class ExplainRequest(BaseModel):
    post: PostData
    level: str = Level.SIMPLE.value  # неизвестный уровень трактуется как 'simple'
    custom_audience: Optional[str] = Field(None, max_length=200)


class ExplainResponse(BaseModel):
    explanation: str
    level: str
    mock: bool  # True, если вернулась заглушка: нет ключа, неизвестный провайдер или ошибка вызова


class SettingsUpdate(BaseModel):
    provider: str = DEFAULT_PROVIDER
    api_key: str = ""
    custom_endpoint: str = ""
    model: str = ""


class GenerationParams(BaseModel):
    temperature: Optional[float] = Field(None, ge=0.0, le=1.0)
    max_output_length: Optional[int] = Field(None, ge=1, le=4096)


class AudienceUpdate(BaseModel):
    text: str = Field(..., max_length=200)


class SettingsStatus(BaseModel):
    provider: str
    has_api_key: bool
    custom_endpoint: str
    model: str
    temperature: float
    max_output_length: int
    custom_audience: str


class LevelInfo(BaseModel):
    id: str
    audience: str
