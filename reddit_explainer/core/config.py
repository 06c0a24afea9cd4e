import os
from dotenv import load_dotenv
from pathlib import Path

# Корневая директория проекта
BASE_DIR = Path(__file__).resolve().parent.parent.parent

# Загружаем переменные окружения из .env файла в корне проекта
load_dotenv(dotenv_path=BASE_DIR / ".env")

# Файл с сохраненными настройками провайдера (аналог chrome.storage.sync)
SETTINGS_FILE = Path(os.getenv("EXPLAINER_SETTINGS_FILE", str(BASE_DIR / "settings.json")))

# Таймаут одного запроса к AI провайдеру, в секундах
REQUEST_TIMEOUT = float(os.getenv("EXPLAINER_REQUEST_TIMEOUT", "30"))

LOG_LEVEL = os.getenv("EXPLAINER_LOG_LEVEL", "INFO").upper()
