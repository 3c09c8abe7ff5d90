import logging
from datetime import datetime, timezone
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from app.core.config import get_settings
from app.services.code_store import get_code_store

logger = logging.getLogger(__name__)
settings = get_settings()
scheduler: AsyncIOScheduler | None = None


async def _sweep_job():
    count = await get_code_store().sweep(datetime.now(timezone.utc))
    if count:
        logger.info(f"[定时任务] 清理了 {count} 个过期验证码")


def start_scheduler():
    global scheduler
    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        _sweep_job,
        trigger=IntervalTrigger(minutes=settings.code_sweep_interval_minutes),
        id="sweep_expired_codes",
        replace_existing=True,
        max_instances=1,
    )
    scheduler.start()
    logger.info(f"验证码清理任务已启动（每 {settings.code_sweep_interval_minutes} 分钟）")


def stop_scheduler():
    global scheduler
    if scheduler is None:
        return
    scheduler.shutdown(wait=False)
    scheduler = None
    logger.info("验证码清理任务已停止")
