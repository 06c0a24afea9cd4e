import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple, Union

import httpx

from reddit_explainer import fallback
from reddit_explainer.core.config import LOG_LEVEL, REQUEST_TIMEOUT
from reddit_explainer.models import PostData, ProviderConfig
from reddit_explainer.prompts import LevelLike, build_prompt, level_value
from reddit_explainer.providers import (
    ProviderAdapter, ProviderConfigurationError, ProviderError, ProviderStatusError,
    ProviderTransportError, ResponseShapeError, build_adapters,
)

# Настройка логирования
logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)


class FailureKind(str, Enum):
    TRANSPORT = "transport"
    STATUS = "status"
    SHAPE = "shape"
    CONFIGURATION = "configuration"
    UNEXPECTED = "unexpected"


@dataclass(frozen=True)
class ProviderSuccess:
    text: str


@dataclass(frozen=True)
class ProviderFailure:
    provider: str
    kind: FailureKind
    detail: str


ProviderResult = Union[ProviderSuccess, ProviderFailure]


def classify(error: Exception) -> FailureKind:
    if isinstance(error, ProviderTransportError):
        return FailureKind.TRANSPORT
    if isinstance(error, ProviderStatusError):
        return FailureKind.STATUS
    if isinstance(error, ResponseShapeError):
        return FailureKind.SHAPE
    if isinstance(error, ProviderConfigurationError):
        return FailureKind.CONFIGURATION
    return FailureKind.UNEXPECTED


async def attempt(adapter: ProviderAdapter, prompt: str, level: LevelLike,
                  config: ProviderConfig) -> ProviderResult:
    """Один вызов адаптера, любой исход упаковывается в ProviderResult."""
    try:
        text = await adapter.call(prompt, level, config)
    except ProviderError as e:
        detail = str(e)
        if isinstance(e, ProviderStatusError) and e.body:
            detail += f" ({e.body})"
        return ProviderFailure(adapter.name, classify(e), detail)
    except Exception as e:
        # Ошибка вне известных категорий все равно не должна дойти до пользователя
        logger.exception(f"Unexpected error in {adapter.name} adapter")
        return ProviderFailure(adapter.name, FailureKind.UNEXPECTED, f"{type(e).__name__}: {e}")

    if not isinstance(text, str):
        return ProviderFailure(adapter.name, FailureKind.SHAPE,
                               f"{adapter.name} adapter returned {type(text).__name__}, not a string")
    return ProviderSuccess(text)


class ExplanationService:
    """
    Диспетчер запросов объяснения.

    explain() всегда возвращает строку: либо ответ провайдера,
    либо объяснение-заглушку из fallback.generate().
    """

    def __init__(self, client: Optional[httpx.AsyncClient] = None,
                 adapters: Optional[Dict[str, ProviderAdapter]] = None):
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=REQUEST_TIMEOUT)
        self.adapters = adapters if adapters is not None else build_adapters(self.client)

    async def explain(self, post: PostData, level: LevelLike, config: ProviderConfig) -> str:
        text, _ = await self.explain_with_status(post, level, config)
        return text

    async def explain_with_status(self, post: PostData, level: LevelLike,
                                  config: ProviderConfig) -> Tuple[str, bool]:
        """Возвращает (текст, использована_ли_заглушка)."""
        if config.use_mock:
            logger.info("No API key configured, using fallback explanation")
            return fallback.generate(post, level), True

        prompt = build_prompt(post, level, config.custom_audience)

        adapter = self.adapters.get(config.provider)
        if adapter is None:
            logger.warning(f"Unknown provider '{config.provider}', using fallback explanation")
            return fallback.generate(post, level), True

        result = await attempt(adapter, prompt, level, config)
        if isinstance(result, ProviderFailure):
            logger.error(f"Error calling {result.provider} API: [{result.kind.value}] {result.detail}")
            return fallback.generate(post, level), True

        logger.info(f"Successfully generated explanation via {adapter.name} (level: {level_value(level)})")
        return result.text, False

    async def aclose(self):
        if self._owns_client:
            await self.client.aclose()
