import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from app.core.config import get_settings
from app.core.database import AsyncSessionLocal
from app.models.verification import VerificationCode

logger = logging.getLogger(__name__)
settings = get_settings()


@dataclass
class StoredCode:
    code: str
    issued_at: datetime

    def is_expired(self, now: datetime, ttl_seconds: int | None = None) -> bool:
        ttl = ttl_seconds if ttl_seconds is not None else settings.verification_code_ttl_seconds
        return now - self.issued_at > timedelta(seconds=ttl)


class CodeStore:
    """
    邮箱 → 验证码 的短期存储：
    - put 覆盖同一邮箱的旧验证码
    - 过期由读取方惰性判断，sweep 供定时任务批量清理
    """

    ttl_seconds: int | None = None

    def is_expired(self, stored: StoredCode, now: datetime) -> bool:
        return stored.is_expired(now, self.ttl_seconds)

    async def put(self, email: str, code: str, now: datetime) -> None:
        raise NotImplementedError

    async def get(self, email: str) -> StoredCode | None:
        raise NotImplementedError

    async def delete(self, email: str) -> None:
        raise NotImplementedError

    async def delete_in_session(self, db: AsyncSession, email: str) -> bool:
        """在调用方事务内删除；不支持的后端返回 False，由调用方在提交后再删"""
        return False

    async def sweep(self, now: datetime) -> int:
        raise NotImplementedError


class MemoryCodeStore(CodeStore):
    """进程内字典，进程重启即丢失；多 worker 部署时各 worker 互不可见"""

    def __init__(self, ttl_seconds: int | None = None):
        self.ttl_seconds = ttl_seconds
        self._codes: dict[str, StoredCode] = {}

    async def put(self, email: str, code: str, now: datetime) -> None:
        self._codes[email] = StoredCode(code=code, issued_at=now)

    async def get(self, email: str) -> StoredCode | None:
        return self._codes.get(email)

    async def delete(self, email: str) -> None:
        self._codes.pop(email, None)

    async def sweep(self, now: datetime) -> int:
        expired = [
            email for email, stored in self._codes.items()
            if stored.is_expired(now, self.ttl_seconds)
        ]
        for email in expired:
            del self._codes[email]
        return len(expired)

    def __len__(self) -> int:
        return len(self._codes)


class DatabaseCodeStore(CodeStore):
    """verification_codes 表，多实例共享"""

    def __init__(self, session_factory=AsyncSessionLocal, ttl_seconds: int | None = None):
        self.session_factory = session_factory
        self.ttl_seconds = ttl_seconds

    async def put(self, email: str, code: str, now: datetime) -> None:
        async with self.session_factory() as db:
            await db.merge(VerificationCode(email=email, code=code, issued_at=now))
            await db.commit()

    async def get(self, email: str) -> StoredCode | None:
        async with self.session_factory() as db:
            row = await db.get(VerificationCode, email)
            if row is None:
                return None
            return StoredCode(code=row.code, issued_at=row.issued_at_utc())

    async def delete(self, email: str) -> None:
        async with self.session_factory() as db:
            await db.execute(delete(VerificationCode).where(VerificationCode.email == email))
            await db.commit()

    async def delete_in_session(self, db: AsyncSession, email: str) -> bool:
        await db.execute(delete(VerificationCode).where(VerificationCode.email == email))
        return True

    async def sweep(self, now: datetime) -> int:
        ttl = self.ttl_seconds if self.ttl_seconds is not None else settings.verification_code_ttl_seconds
        cutoff = now - timedelta(seconds=ttl)
        async with self.session_factory() as db:
            result = await db.execute(
                select(VerificationCode.email).where(VerificationCode.issued_at < cutoff)
            )
            emails = result.scalars().all()
            if emails:
                await db.execute(
                    delete(VerificationCode).where(VerificationCode.email.in_(emails))
                )
                await db.commit()
        return len(emails)


def _build_code_store() -> CodeStore:
    backend = settings.code_store_backend.strip().lower()
    if backend == "database":
        logger.info("验证码存储：数据库")
        return DatabaseCodeStore()
    if backend != "memory":
        logger.warning(f"未知的验证码存储后端 {backend!r}，回退到内存")
    logger.info("验证码存储：进程内存")
    return MemoryCodeStore()


# 导入时创建一次，所有请求共用同一个实例
_code_store = _build_code_store()


def get_code_store() -> CodeStore:
    return _code_store
