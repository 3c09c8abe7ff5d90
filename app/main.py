import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from app.core.config import get_settings
from app.core.database import init_db, close_db
from app.core.scheduler import start_scheduler, stop_scheduler
from app.api import verification as verification_router
from app.api import whitelist as whitelist_router

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)
settings = get_settings()

PREFLIGHT_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, GET, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Whitelist Backend 启动 (env={settings.app_env})")
    await init_db()
    if settings.scheduler_enabled:
        start_scheduler()
    yield
    stop_scheduler()
    await close_db()
    logger.info("Whitelist Backend 已关闭")


app = FastAPI(
    title="Whitelist API",
    description="细胞膜服务器白名单申请后端",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.app_env == "development" else None,
    redoc_url=None,
)


# ─── CORS ─────────────────────────────────────────────────────────────────────
@app.middleware("http")
async def cors_envelope(request: Request, call_next):
    # 预检请求直接返回，不进入路由
    if request.method == "OPTIONS":
        return Response(status_code=200, headers=PREFLIGHT_HEADERS)
    response = await call_next(request)
    response.headers["Access-Control-Allow-Origin"] = "*"
    return response


# ─── Routers ──────────────────────────────────────────────────────────────────
app.include_router(verification_router.router)   # POST /api/send-code
app.include_router(whitelist_router.router)      # POST /api/whitelist-apply


# ─── Health check ─────────────────────────────────────────────────────────────
@app.get("/health")
async def health():
    return PlainTextResponse("OK")


# ─── 全局错误处理 ─────────────────────────────────────────────────────────────
@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    logger.error(f"未处理异常: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"status": "error", "error": {"message": "服务器内部发生错误"}},
        headers={"Access-Control-Allow-Origin": "*"},
    )
