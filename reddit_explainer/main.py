from contextlib import asynccontextmanager
from typing import List
import logging

from fastapi import FastAPI, Request, HTTPException

from reddit_explainer.models import (
    ExplainRequest, ExplainResponse, SettingsUpdate, GenerationParams, AudienceUpdate,
    SettingsStatus, LevelInfo, ProviderConfig,
)
from reddit_explainer.prompts import level_catalog
from reddit_explainer.services import ExplanationService
from reddit_explainer.settings import ConfigurationHolder, SettingsStoreError, SettingsValidationError

logger = logging.getLogger(__name__)

# Настройки загружаются один раз при старте и перечитываются по запросу
holder = ConfigurationHolder()


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        await holder.load()
    except SettingsStoreError as e:
        logger.error(f"Error loading settings, using defaults: {e}")
    app.state.service = ExplanationService()
    yield
    await app.state.service.aclose()


app = FastAPI(
    title="Reddit Explainer",
    description="Explains Reddit posts at the selected comprehension level",
    version="1.0.0",
    lifespan=lifespan,
)


def settings_status(config: ProviderConfig) -> SettingsStatus:
    # Сам ключ наружу не отдаем, только признак его наличия
    return SettingsStatus(
        provider=config.provider,
        has_api_key=not config.use_mock,
        custom_endpoint=config.custom_endpoint,
        model=config.model,
        temperature=config.temperature,
        max_output_length=config.max_output_length,
        custom_audience=config.custom_audience,
    )


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/api/levels", response_model=List[LevelInfo])
async def api_levels():
    """Уровни объяснения для выпадающего списка в popup."""
    return [LevelInfo(id=level, audience=audience)
            for level, audience in level_catalog(holder.config.custom_audience)]


# --- Эндпоинт API для генерации объяснений (вызывается из popup расширения) ---

@app.post("/api/explain", response_model=ExplainResponse)
async def api_explain_post(request: Request, explain_request: ExplainRequest):
    """
    Принимает данные поста и уровень, возвращает объяснение.
    Ошибки провайдера сюда не доходят: в худшем случае вернется заглушка.
    """
    config = holder.config  # читаем настройки один раз на запрос
    if explain_request.custom_audience is not None:
        config = config.model_copy(update={"custom_audience": explain_request.custom_audience})

    logger.info(f"Explain request: level={explain_request.level}, provider={config.provider}, "
                f"title={explain_request.post.title[:60]!r}")
    explanation, used_fallback = await request.app.state.service.explain_with_status(
        explain_request.post, explain_request.level, config)
    return ExplainResponse(explanation=explanation, level=explain_request.level, mock=used_fallback)


# --- Эндпоинты настроек (страница опций расширения) ---

@app.get("/api/settings", response_model=SettingsStatus)
async def api_get_settings():
    return settings_status(holder.config)


@app.put("/api/settings", response_model=SettingsStatus)
async def api_save_settings(update: SettingsUpdate):
    try:
        config = await holder.save(update)
    except SettingsValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except SettingsStoreError as e:
        logger.error(f"Error saving settings: {e}")
        raise HTTPException(status_code=500, detail="Could not save settings.")
    return settings_status(config)


@app.patch("/api/settings/generation", response_model=SettingsStatus)
async def api_set_generation_params(params: GenerationParams):
    try:
        config = holder.set_generation_params(params.temperature, params.max_output_length)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return settings_status(config)


@app.put("/api/settings/audience", response_model=SettingsStatus)
async def api_set_custom_audience(update: AudienceUpdate):
    return settings_status(holder.set_custom_audience_description(update.text))


@app.post("/api/settings/reload", response_model=SettingsStatus)
async def api_reload_settings():
    try:
        config = await holder.load()
    except SettingsStoreError as e:
        logger.error(f"Error reloading settings: {e}")
        raise HTTPException(status_code=500, detail="Could not read settings.")
    return settings_status(config)


# --- Запуск сервера для локальной разработки ---
# (Этот блок выполняется, только если модуль запущен напрямую: python -m reddit_explainer.main)
if __name__ == "__main__":
    import uvicorn

    logger.info("Starting Uvicorn server for local development...")
    uvicorn.run(app, host="localhost", port=8000)
