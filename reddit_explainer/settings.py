import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import aiofiles
from pydantic import ValidationError

from reddit_explainer.core.config import SETTINGS_FILE
from reddit_explainer.models import (
    Provider, ProviderConfig, SettingsUpdate,
    DEFAULT_PROVIDER, DEFAULT_TEMPERATURE, DEFAULT_MAX_OUTPUT_LENGTH,
)

logger = logging.getLogger(__name__)

# Значения по умолчанию для каждого сохраняемого поля
DEFAULT_SETTINGS: Dict[str, Any] = {
    "provider": DEFAULT_PROVIDER,
    "api_key": "",
    "custom_endpoint": "",
    "model": "",
    "temperature": DEFAULT_TEMPERATURE,
    "max_output_length": DEFAULT_MAX_OUTPUT_LENGTH,
}


class SettingsStoreError(Exception):
    """Файл настроек не удалось прочитать или записать."""


class SettingsValidationError(ValueError):
    """Настройки из формы не прошли проверку."""


class SettingsStore:
    """Хранилище настроек в JSON файле."""

    def __init__(self, path: Path = SETTINGS_FILE):
        self.path = Path(path)

    async def read(self) -> Dict[str, Any]:
        """Асинхронно читает настройки. Если файла нет, возвращает пустой словарь."""
        if not self.path.is_file():
            return {}
        try:
            async with aiofiles.open(self.path, mode='r', encoding='utf-8') as f:
                content = await f.read()
            data = json.loads(content) if content.strip() else {}
        except (OSError, ValueError) as e:
            raise SettingsStoreError(f"Cannot read settings file {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise SettingsStoreError(f"Settings file {self.path} must contain a JSON object")
        return data

    async def write(self, data: Dict[str, Any]):
        """Асинхронно сохраняет настройки в JSON файл."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(self.path, mode='w', encoding='utf-8') as f:
                await f.write(json.dumps(data, ensure_ascii=False, indent=4))
        except OSError as e:
            raise SettingsStoreError(f"Cannot write settings file {self.path}: {e}") from e
        logger.info(f"Successfully saved settings to {self.path}")


class ConfigurationHolder:
    """
    Держит текущие настройки провайдера.

    Сохраненные значения читаются через SettingsStore. Параметры генерации
    можно переопределить во время работы: переопределения хранятся только
    в памяти и накладываются поверх сохраненных значений при каждой загрузке.
    """

    def __init__(self, store: Optional[SettingsStore] = None):
        self.store = store or SettingsStore()
        self._generation_overrides: Dict[str, Any] = {}
        self._custom_audience = ""
        self._config = ProviderConfig()

    @property
    def config(self) -> ProviderConfig:
        return self._config

    async def load(self) -> ProviderConfig:
        """Перечитывает сохраненные настройки, заполняя отсутствующие поля значениями по умолчанию."""
        stored = await self.store.read()
        values = {key: stored.get(key, default) for key, default in DEFAULT_SETTINGS.items()}
        # None в файле означает "не задано"
        values = {key: DEFAULT_SETTINGS[key] if value is None else value for key, value in values.items()}
        values.update(self._generation_overrides)
        values["custom_audience"] = self._custom_audience

        try:
            self._config = ProviderConfig(**values)
        except ValidationError as e:
            raise SettingsStoreError(f"Invalid settings in {self.store.path}: {e}") from e

        if self._config.use_mock:
            logger.info("No API key configured, explanations will use the offline fallback")
        else:
            logger.info(f"Loaded settings for provider '{self._config.provider}'")
        return self._config

    def set_generation_params(self, temperature: Optional[float] = None,
                              max_output_length: Optional[int] = None) -> ProviderConfig:
        """Переопределяет temperature и/или max_output_length; не переданный параметр не меняется."""
        overrides = dict(self._generation_overrides)
        if temperature is not None:
            overrides["temperature"] = temperature
        if max_output_length is not None:
            overrides["max_output_length"] = max_output_length

        try:
            config = ProviderConfig(**{**self._config.model_dump(), **overrides})
        except ValidationError as e:
            raise ValueError(f"Invalid generation parameters: {e}") from e

        self._generation_overrides = overrides
        self._config = config
        return config

    def set_custom_audience_description(self, text: str) -> ProviderConfig:
        self._custom_audience = (text or "").strip()
        self._config = self._config.model_copy(update={"custom_audience": self._custom_audience})
        return self._config

    async def save(self, update: SettingsUpdate) -> ProviderConfig:
        """Проверяет и сохраняет настройки со страницы опций, затем перезагружает их."""
        provider = update.provider.strip()
        api_key = update.api_key.strip()
        custom_endpoint = update.custom_endpoint.strip()
        model = update.model.strip()

        if not api_key:
            raise SettingsValidationError("Please enter an API key.")
        if provider == Provider.CUSTOM.value and not custom_endpoint:
            raise SettingsValidationError("Please enter a custom API endpoint.")

        stored = await self.store.read()
        stored.update({
            "provider": provider,
            "api_key": api_key,
            "custom_endpoint": custom_endpoint,
            "model": model,
        })
        await self.store.write(stored)
        return await self.load()
