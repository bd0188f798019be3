# recipegen/core/config.py
# 환경변수 로딩 (.env)
from __future__ import annotations

from typing import List, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    MONGO_URI: str = "mongodb://localhost:27017"  # 필요 시 prod/staging로 분리
    MONGO_DB: str = "recipegen"

    # OpenAI 호환 엔드포인트 (기본 OpenRouter)
    LLM_API_KEY: Optional[str] = None
    OPENAI_API_KEY: Optional[str] = None  # LLM_API_KEY 없을 때 폴백
    LLM_BASE_URL: str = "https://openrouter.ai/api/v1"
    LLM_MODEL: str = "openai/gpt-4o-mini"
    LLM_VISION_MODEL: str = "openai/gpt-4o"
    LLM_TIMEOUT_SEC: float = 30.0

    # 파이프라인 상수
    BASE_SERVINGS: int = 1          # 저장 레시피의 기준 인분
    MAX_RECIPES: int = 3
    SCORE_MIN: float = 0.60         # 품질 게이트(실험용)
    SCORE_AVG_MIN: float = 0.55

    # 시드
    SEED_ON_START: bool = False
    SEED_FILE: Optional[str] = None  # 없으면 패키지 내 data/seed_recipes.json

    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    class Config:
        env_file = ".env"

    @property
    def llm_api_key(self) -> Optional[str]:
        return self.LLM_API_KEY or self.OPENAI_API_KEY


settings = Settings()
