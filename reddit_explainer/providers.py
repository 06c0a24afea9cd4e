"""
Адаптеры AI провайдеров.

Каждый адаптер знает формат одного HTTP API: адрес, авторизацию,
тело запроса и то, где в ответе лежит текст объяснения.
Все адаптеры делают ровно один запрос и при любой проблеме бросают
ProviderError, решение о заглушке принимает диспетчер (services.py).
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Tuple

import httpx

from reddit_explainer.models import Provider, ProviderConfig
from reddit_explainer.prompts import LevelLike, describe_audience, level_value

logger = logging.getLogger(__name__)

OPENAI_URL = "https://api.openai.com/v1/chat/completions"
ANTHROPIC_URL = "https://api.anthropic.com/v1/messages"
DEEPSEEK_URL = "https://api.deepseek.com/chat/completions"
GOOGLE_URL_TEMPLATE = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

ANTHROPIC_VERSION = "2023-06-01"

DEFAULT_MODELS = {
    Provider.OPENAI.value: "gpt-3.5-turbo",
    Provider.ANTHROPIC.value: "claude-3-haiku-20240307",
    Provider.DEEPSEEK.value: "deepseek-chat",
    Provider.GOOGLE.value: "gemini-pro",
    Provider.CUSTOM.value: "",
}

# Сколько символов тела ответа с ошибкой сохраняем для логов
ERROR_BODY_LIMIT = 500


# --- Ошибки ---

class ProviderError(Exception):
    """Базовая ошибка вызова провайдера."""

    def __init__(self, provider: str, message: str):
        super().__init__(message)
        self.provider = provider


class ProviderTransportError(ProviderError):
    """Сеть недоступна, таймаут, невалидный адрес."""


class ProviderStatusError(ProviderError):
    """Провайдер ответил статусом не из 2xx."""

    def __init__(self, provider: str, status_code: int, body: str = ""):
        super().__init__(provider, f"{provider} API error: {status_code}")
        self.status_code = status_code
        self.body = body


class ResponseShapeError(ProviderError):
    """Ответ получен, но в нем нет ожидаемых полей."""


class GoogleResponseError(ResponseShapeError):
    """Gemini вернул ответ без кандидатов или без текста в кандидате."""


class ProviderConfigurationError(ProviderError):
    """Настроек недостаточно, чтобы выполнить запрос."""


class ProviderAdapter(Protocol):
    name: str

    async def call(self, prompt: str, level: LevelLike, config: ProviderConfig) -> str: ...


# --- Общие помощники ---

async def post_json(client: httpx.AsyncClient, provider: str, url: str, payload: Dict[str, Any],
                    headers: Optional[Dict[str, str]] = None,
                    params: Optional[Dict[str, str]] = None) -> Any:
    """Отправляет JSON POST и возвращает разобранный JSON ответа."""
    try:
        response = await client.post(url, json=payload, headers=headers, params=params)
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        raise ProviderTransportError(provider, f"{type(e).__name__}: {e}") from e

    if not response.is_success:
        raise ProviderStatusError(provider, response.status_code, response.text[:ERROR_BODY_LIMIT])

    try:
        return response.json()
    except ValueError as e:
        raise ResponseShapeError(provider, f"{provider} API returned invalid JSON") from e


def bearer_headers(api_key: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {api_key}"}


def system_prompt(level: LevelLike, config: ProviderConfig) -> str:
    audience = describe_audience(level, config.custom_audience)
    return "You are a helpful assistant that explains Reddit posts in simple terms. " \
           f"When responding, use language appropriate for {audience}."


def chat_messages(prompt: str, level: LevelLike, config: ProviderConfig) -> List[Dict[str, str]]:
    return [
        {"role": "system", "content": system_prompt(level, config)},
        {"role": "user", "content": prompt},
    ]


def chat_payload(model: str, prompt: str, level: LevelLike, config: ProviderConfig) -> Dict[str, Any]:
    """Тело запроса в формате OpenAI chat completions."""
    return {
        "model": model,
        "messages": chat_messages(prompt, level, config),
        "temperature": config.temperature,
        "max_tokens": config.max_output_length,
    }


def extract_chat_text(provider: str, data: Any) -> str:
    try:
        return data["choices"][0]["message"]["content"].strip()
    except (KeyError, IndexError, TypeError, AttributeError) as e:
        raise ResponseShapeError(provider, f"unexpected {provider} response shape: {e!r}") from e


def require_text(provider: str, value: Any) -> str:
    """Проверяет, что извлеченное из ответа значение действительно строка."""
    if not isinstance(value, str):
        raise ResponseShapeError(provider, f"{provider} response text is {type(value).__name__}, not a string")
    return value


# --- Адаптеры ---

class ChatCompletionsAdapter:
    """OpenAI-совместимый API: OpenAI и DeepSeek отличаются только адресом и моделью."""

    def __init__(self, client: httpx.AsyncClient, name: str, url: str, default_model: str):
        self.client = client
        self.name = name
        self.url = url
        self.default_model = default_model

    async def call(self, prompt: str, level: LevelLike, config: ProviderConfig) -> str:
        model = config.model or self.default_model
        logger.info(f"Calling {self.name} API (model: {model})")
        data = await post_json(self.client, self.name, self.url,
                               chat_payload(model, prompt, level, config),
                               headers=bearer_headers(config.api_key))
        return extract_chat_text(self.name, data)


class AnthropicAdapter:
    name = Provider.ANTHROPIC.value

    def __init__(self, client: httpx.AsyncClient, url: str = ANTHROPIC_URL):
        self.client = client
        self.url = url

    async def call(self, prompt: str, level: LevelLike, config: ProviderConfig) -> str:
        model = config.model or DEFAULT_MODELS[self.name]
        audience = describe_audience(level, config.custom_audience)
        payload = {
            "model": model,
            "messages": [
                {
                    "role": "user",
                    "content": f"{prompt}\n\nExplain this Reddit post as if I were {audience}.",
                }
            ],
            "max_tokens": config.max_output_length,
        }
        headers = {
            "x-api-key": config.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
        }
        logger.info(f"Calling {self.name} API (model: {model})")
        data = await post_json(self.client, self.name, self.url, payload, headers=headers)
        try:
            text = data["content"][0]["text"]
        except (KeyError, IndexError, TypeError) as e:
            raise ResponseShapeError(self.name, f"unexpected {self.name} response shape: {e!r}") from e
        return require_text(self.name, text)


class GoogleAdapter:
    name = Provider.GOOGLE.value

    def __init__(self, client: httpx.AsyncClient, url_template: str = GOOGLE_URL_TEMPLATE):
        self.client = client
        self.url_template = url_template

    async def call(self, prompt: str, level: LevelLike, config: ProviderConfig) -> str:
        model = config.model or DEFAULT_MODELS[self.name]
        payload = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": config.temperature,
                "maxOutputTokens": config.max_output_length,
            },
        }
        logger.info(f"Calling {self.name} API (model: {model})")
        # Ключ передается query-параметром, заголовка авторизации нет
        data = await post_json(self.client, self.name, self.url_template.format(model=model), payload,
                               params={"key": config.api_key})

        candidates = data.get("candidates") if isinstance(data, dict) else None
        if not candidates:
            raise GoogleResponseError(self.name, "No candidates in Gemini response")
        try:
            text = candidates[0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError) as e:
            raise ResponseShapeError(self.name, f"unexpected {self.name} response shape: {e!r}") from e
        if not isinstance(text, str):
            raise GoogleResponseError(self.name, f"Gemini candidate text is {type(text).__name__}, not a string")
        return text


# --- Пользовательский endpoint ---

@dataclass(frozen=True)
class VendorProfile:
    marker: str  # подстрока адреса, по которой узнаем вендора
    vendor: str
    default_model: str


# Порядок важен: побеждает первое совпадение
CUSTOM_VENDORS: Tuple[VendorProfile, ...] = (
    VendorProfile("api.groq.com", "groq", "llama3-8b-8192"),
    VendorProfile("api.together.xyz", "together", "mistralai/Mixtral-8x7B-Instruct-v0.1"),
    VendorProfile("api.mistral.ai", "mistral", "mistral-small-latest"),
    VendorProfile("openrouter.ai", "openrouter", "openai/gpt-3.5-turbo"),
    VendorProfile("api.perplexity.ai", "perplexity", "sonar"),
    VendorProfile("api.fireworks.ai", "fireworks", "accounts/fireworks/models/llama-v3-8b-instruct"),
    VendorProfile("api.deepseek.com", "deepseek", "deepseek-chat"),
    VendorProfile("api.openai.com", "openai", "gpt-3.5-turbo"),
)

# Поля, в которых произвольные API обычно возвращают текст
FALLBACK_TEXT_FIELDS = ("explanation", "text", "content", "result", "response", "message")


def sniff_vendor(endpoint: str) -> Optional[VendorProfile]:
    """Определяет известного вендора по адресу endpoint, None для неизвестных."""
    lowered = (endpoint or "").lower()
    for profile in CUSTOM_VENDORS:
        if profile.marker in lowered:
            return profile
    return None


def generic_payload(prompt: str, level: LevelLike, config: ProviderConfig) -> Dict[str, Any]:
    # Отправляем и плоский prompt, и массив сообщений: неизвестный сервер может ждать любое из полей
    return {
        "prompt": prompt,
        "level": level_value(level),
        "model": config.model or "",
        "messages": chat_messages(prompt, level, config),
        "temperature": config.temperature,
        "max_tokens": config.max_output_length,
    }


def extract_custom_text(data: Any) -> str:
    """
    Достает текст из ответа неизвестной схемы.
    Порядок: choices[0].message.content, choices[0].text, блоки content
    в стиле Anthropic, затем запасные поля. Если ничего не нашли, пустая строка.
    """
    if not isinstance(data, dict):
        return ""

    choices = data.get("choices")
    if isinstance(choices, list) and choices and isinstance(choices[0], dict):
        first = choices[0]
        message = first.get("message")
        if isinstance(message, dict) and isinstance(message.get("content"), str):
            return message["content"].strip()
        if isinstance(first.get("text"), str):
            return first["text"].strip()

    content = data.get("content")
    if isinstance(content, list):
        texts = [block["text"] for block in content
                 if isinstance(block, dict) and isinstance(block.get("text"), str)]
        if texts:
            return " ".join(texts)

    for field in FALLBACK_TEXT_FIELDS:
        value = data.get(field)
        if isinstance(value, str) and value:
            return value

    output = data.get("output")
    if isinstance(output, dict) and isinstance(output.get("text"), str):
        return output["text"]

    return ""


class CustomAdapter:
    name = Provider.CUSTOM.value

    def __init__(self, client: httpx.AsyncClient):
        self.client = client

    @staticmethod
    def build_payload(prompt: str, level: LevelLike, config: ProviderConfig) -> Dict[str, Any]:
        profile = sniff_vendor(config.custom_endpoint)
        if profile is None:
            return generic_payload(prompt, level, config)
        return chat_payload(config.model or profile.default_model, prompt, level, config)

    async def call(self, prompt: str, level: LevelLike, config: ProviderConfig) -> str:
        if not config.custom_endpoint:
            raise ProviderConfigurationError(self.name, "No custom endpoint provided")

        logger.info(f"Calling custom API at {config.custom_endpoint}")
        data = await post_json(self.client, self.name, config.custom_endpoint,
                               self.build_payload(prompt, level, config),
                               headers=bearer_headers(config.api_key))

        text = extract_custom_text(data)
        if not text:
            logger.warning(f"Custom API response from {config.custom_endpoint} matched no known shape")
        return text


def build_adapters(client: httpx.AsyncClient) -> Dict[str, ProviderAdapter]:
    """Таблица адаптеров по идентификатору провайдера."""
    return {
        Provider.OPENAI.value: ChatCompletionsAdapter(client, Provider.OPENAI.value, OPENAI_URL,
                                                      DEFAULT_MODELS[Provider.OPENAI.value]),
        Provider.ANTHROPIC.value: AnthropicAdapter(client),
        Provider.DEEPSEEK.value: ChatCompletionsAdapter(client, Provider.DEEPSEEK.value, DEEPSEEK_URL,
                                                        DEFAULT_MODELS[Provider.DEEPSEEK.value]),
        Provider.GOOGLE.value: GoogleAdapter(client),
        Provider.CUSTOM.value: CustomAdapter(client),
    }
