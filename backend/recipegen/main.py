# recipegen/main.py
# FastAPI 앱 초기화 및 라우터 설정
# 라우터는 각 기능별로 분리하여 관리

from __future__ import annotations

import logging
from asyncio import sleep
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from recipegen.api.routes_admin import router as admin_router
from recipegen.api.routes_ingredients import router as ingredients_router
from recipegen.api.routes_me import router as me_router
from recipegen.api.routes_recipes import router as recipes_router
from recipegen.core.config import settings
from recipegen.db.indexes import ensure_indexes
from recipegen.db.init import close_db, get_db, init_db
from recipegen.db.repository import MongoRecipeStore
from recipegen.services.seed import seed_database
from recipegen.services.telemetry import TelemetrySink

log = logging.getLogger(__name__)

app = FastAPI(title="Smart Recipe Generator - API", version="0.1.0")

# CORS: 프론트 origin 허용 + 쿠키 전달
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 앱 시작/종료 이벤트 핸들러
@app.on_event("startup")
async def on_startup() -> None:
    # 1) DB 먼저 붙는다 (최대 20회, 1초 간격)
    db = None
    for i in range(20):
        try:
            db = await init_db()
            log.info("[startup] db ready")
            break
        except Exception as e:
            log.warning("[startup] db init retry %d: %s", i + 1, e)
            await sleep(1.0)
    if db is None:
        log.error("[startup] db init failed after retries")
        return

    # 2) 인덱스 보장
    try:
        await ensure_indexes()
        log.info("[startup] indexes ensured")
    except Exception as e:
        log.warning("[startup] ensure_indexes failed: %s", e)

    # 3) 시드 (SEED_ON_START=true 일 때만)
    if settings.SEED_ON_START:
        try:
            n = await seed_database(MongoRecipeStore(db["recipes"]), TelemetrySink(db["logs"]))
            log.info("[startup] seeded %d recipes", n)
        except Exception:
            log.exception("[startup] seeding failed")

@app.on_event("shutdown")
async def on_shutdown() -> None:
    # 몽고db 커넥션 정리
    await close_db()

@app.get("/")
async def root():
    return {"status": "ok"}

@app.get("/health")
async def health():
    ok = {"status": "ok", "db": "skip"}
    try:
        db = get_db()
        await db.command("ping")
        ok["db"] = "ok"
    except Exception as e:
        ok["db"] = f"error: {e}"
    return ok

# 라우터 prefix는 각 파일 내에서 정의함 , 중복 prefix 금지
app.include_router(recipes_router)
app.include_router(ingredients_router)
app.include_router(admin_router)
app.include_router(me_router)
