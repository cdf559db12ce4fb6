from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    # App
    APP_NAME: str = "Rendicion de Gastos"
    DEBUG: bool = True

    # CORS
    ALLOWED_ORIGINS: List[str] = ["http://localhost:5173"]

    # Generative AI scan (Gemini)
    GOOGLE_API_KEY: str = ""
    GEMINI_API_URL: str = (
        "https://generativelanguage.googleapis.com/v1beta/models/"
        "gemini-1.5-flash:generateContent"
    )
    AI_TIMEOUT_SECONDS: float = 30.0

    # OCR
    OCR_ENGINE: str = "gemini"  # gemini | tesseract
    TESSERACT_CMD: str = "/usr/bin/tesseract"
    TESSERACT_LANG: str = "spa"

    # Uploads
    MAX_UPLOAD_MB: int = 10

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
