# recipegen/db/indexes.py
# 컬렉션 인덱스 생성
# 앱 스타트업에서 한 번 ensure_indexes()를 await로 호출한다.

from recipegen.db.init import get_db


async def ensure_recipe_indexes(db):
    col = db["recipes"]
    await col.create_index([("title", 1)])   # GET /api/recipes 정렬/검색
    await col.create_index("ingredients.name")
    await col.create_index("source")
    await col.create_index("createdBy", sparse=True)
    await col.create_index([("cuisine", 1), ("difficulty", 1)])


async def ensure_log_indexes(db):
    col = db["logs"]
    await col.create_index([("timestamp", -1)])
    await col.create_index([("event", 1), ("timestamp", -1)])
    await col.create_index("userId", sparse=True)


async def ensure_activity_indexes(db):
    # 사용자(anon_id)당 레시피 하나에 즐겨찾기/평점 하나
    for name in ("favorites", "ratings"):
        col = db[name]
        await col.create_index([("userId", 1), ("recipeId", 1)], unique=True)
        await col.create_index("recipeId")
        await col.create_index([("userId", 1), ("createdAt", -1)])


async def ensure_indexes():
    db = get_db()
    await ensure_recipe_indexes(db)
    await ensure_log_indexes(db)
    await ensure_activity_indexes(db)
