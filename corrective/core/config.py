import os
from functools import lru_cache
from pathlib import Path
from typing import List

from dotenv import load_dotenv

load_dotenv()


class Settings:
    def __init__(self) -> None:
        base_dir = Path(__file__).resolve().parent.parent.parent
        self.APP_NAME: str = os.getenv("APP_NAME", "Corrective Maintenance Engine")
        self.ENV: str = os.getenv("ENV", "development")
        self.SQLALCHEMY_DATABASE_URI: str = os.getenv(
            "SQLALCHEMY_DATABASE_URI",
            f"sqlite:///{(base_dir / 'corrective.db').as_posix()}",
        )

        default_cors = [
            "http://localhost",
            "http://localhost:3000",
            "http://localhost:5173",
            "http://127.0.0.1",
            "http://127.0.0.1:3000",
            "http://127.0.0.1:5173",
        ]
        cors_origins = os.getenv("BACKEND_CORS_ORIGINS")
        self.BACKEND_CORS_ORIGINS: List[str] = (
            [origin.strip() for origin in cors_origins.split(",") if origin.strip()]
            if cors_origins
            else default_cors
        )

        # Tenant rows override these once created.
        self.DUPLICATE_SIMILARITY_THRESHOLD: int = int(os.getenv("DUPLICATE_SIMILARITY_THRESHOLD", "70"))
        self.RECURRENCE_SIMILARITY_THRESHOLD: int = int(os.getenv("RECURRENCE_SIMILARITY_THRESHOLD", "60"))

        self.MAX_PAGE_SIZE: int = int(os.getenv("MAX_PAGE_SIZE", "100"))
        self.MAX_TOP_SOLUTIONS: int = int(os.getenv("MAX_TOP_SOLUTIONS", "50"))

        self.GCP_PROJECT_ID: str = os.getenv("GCP_PROJECT_ID", "")
        self.CLOUD_TASKS_LOCATION: str = os.getenv("CLOUD_TASKS_LOCATION", "")
        self.CLOUD_TASKS_NOTIFY_QUEUE: str = os.getenv("CLOUD_TASKS_NOTIFY_QUEUE", "")
        self.CLOUD_TASKS_WORKER_URL: str = os.getenv("CLOUD_TASKS_WORKER_URL", "")
        self.NOTIFY_TASKS_SECRET: str = os.getenv("NOTIFY_TASKS_SECRET", "")


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
