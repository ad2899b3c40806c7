from dotenv import load_dotenv
from typing import List, Optional
from pydantic_settings import BaseSettings

load_dotenv()  # loads .env from current working directory

class Settings(BaseSettings):
    MONGODB_URI: str = "mongodb://localhost:27017"
    DB_NAME: str = "memoria_cognitiva"
    STORE_BACKEND: str = "memory"  # "memory" or "mongo"
    LOG_LEVEL: str = "INFO"
    RANDOM_SEED: Optional[int] = None

    # Analysis
    MIN_TRAINING_SAMPLES: int = 10
    MODEL_NOISE_RATE: float = 0.05
    TRAINING_DELAY_MS: int = 2000

    # Session timing
    ATTENTION_TICK_MS: int = 1500
    INTER_TRIAL_DELAY_MS: int = 1000

    CORS_ORIGINS: List[str] = ["*"]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

settings = Settings()
