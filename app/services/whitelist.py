import logging
import re
from datetime import datetime, timezone
from typing import Awaitable, Callable
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from sqlalchemy import func, select, text
from sqlalchemy.ext.asyncio import AsyncSession
from app.core.config import get_settings
from app.models.whitelist import WhitelistEntry
from app.services import classifier
from app.services.code_store import CodeStore

logger = logging.getLogger(__name__)
settings = get_settings()

_USERNAME_RE = re.compile(r"[A-Za-z0-9_]{3,16}")
_DIGITS_UNDERSCORE_RE = re.compile(r"[0-9_]+")
_DIGITS_RE = re.compile(r"[0-9]+")
_UNDERSCORES_RE = re.compile(r"_+")


class WhitelistError(Exception):
    def __init__(self, error_type: str, message: str):
        self.error_type = error_type
        self.message = message
        super().__init__(message)


class WhitelistApplication(BaseModel):
    model_config = ConfigDict(strict=True)

    email: str
    verification_code: str = Field(alias="verificationCode")
    ai_question: str = Field(alias="aiQuestion")
    qq_number: str = Field(alias="qqNumber")
    minecraft_username: str = Field(alias="minecraftUsername")


def parse_application(data) -> WhitelistApplication:
    try:
        return WhitelistApplication.model_validate(data)
    except ValidationError:
        raise WhitelistError("invalid_request", "请求的数据格式不正确或不完整喵~")


def is_valid_username(username: str) -> bool:
    """3-16 位字母数字下划线，且不能全是数字/下划线"""
    if (
        _DIGITS_UNDERSCORE_RE.fullmatch(username)
        or _DIGITS_RE.fullmatch(username)
        or _UNDERSCORES_RE.fullmatch(username)
    ):
        return False
    return _USERNAME_RE.fullmatch(username) is not None


async def check_verification_code(
    store: CodeStore, email: str, code: str, now: datetime
) -> None:
    stored = await store.get(email)
    if stored is None or stored.code != code:
        raise WhitelistError("wrong_verification_code", "验证码错了喵~")
    # 过期和错误共用同一个 error type
    if store.is_expired(stored, now):
        await store.delete(email)
        raise WhitelistError("wrong_verification_code", "验证码已过期，请重新获取喵~")


async def _lock_ip(db: AsyncSession, ip_address: str | None) -> None:
    # Postgres: 事务级 advisory lock，同一 IP 的计数+插入串行执行
    if ip_address and db.get_bind().dialect.name == "postgresql":
        await db.execute(
            text("SELECT pg_advisory_xact_lock(hashtext(:ip))"),
            {"ip": ip_address},
        )


async def count_entries_for_ip(db: AsyncSession, ip_address: str | None) -> int:
    # 拿不到 IP 时不计数，否则所有无 IP 的申请会共用一个上限
    if ip_address is None:
        return 0
    result = await db.execute(
        select(func.count())
        .select_from(WhitelistEntry)
        .where(WhitelistEntry.ip_address == ip_address)
    )
    return result.scalar_one()


async def insert_entry(
    db: AsyncSession,
    application: WhitelistApplication,
    ip_address: str | None,
    store: CodeStore | None = None,
) -> tuple[WhitelistEntry, bool]:
    """
    计数、插入（以及数据库后端的验证码删除）在同一事务内完成。
    返回 (entry, 验证码是否已在事务内删除)
    """
    limit = settings.ip_registration_limit
    await _lock_ip(db, ip_address)

    count = await count_entries_for_ip(db, ip_address)
    if count >= limit:
        await db.rollback()
        raise WhitelistError("email_limit_exceeded", f"一个IP只能注册{limit}个白名单账号喵~")

    entry = WhitelistEntry(
        qq_number=application.qq_number,
        email=application.email,
        minecraft_username=application.minecraft_username,
        ip_address=ip_address,
    )
    db.add(entry)
    code_consumed = False
    if store is not None:
        code_consumed = await store.delete_in_session(db, application.email)
    await db.commit()
    return entry, code_consumed


async def submit_application(
    db: AsyncSession,
    store: CodeStore,
    data,
    ip_address: str | None,
    classify: Callable[[str], Awaitable[bool]] | None = None,
    now: datetime | None = None,
) -> WhitelistEntry:
    """
    白名单申请完整流程，按顺序校验，首个失败即抛出 WhitelistError：
    1. 字段完整且均为字符串
    2. 验证码匹配
    3. 验证码未过期
    4. 用户名格式
    5. AI 问题审核
    6. 每 IP 注册上限
    7. 写库并清除已使用的验证码
    """
    classify = classify or classifier.classify_answer
    now = now or datetime.now(timezone.utc)

    application = parse_application(data)

    await check_verification_code(store, application.email, application.verification_code, now)

    if not is_valid_username(application.minecraft_username):
        raise WhitelistError("invalid_username", "用户名格式不对喵~")

    if not await classify(application.ai_question):
        raise WhitelistError("ai_question_error", "回答错误喵！")

    entry, code_consumed = await insert_entry(db, application, ip_address, store)
    if not code_consumed:
        # 记录已提交，删除失败不影响申请结果
        try:
            await store.delete(application.email)
        except Exception as e:
            logger.error(f"清除已使用验证码失败 {application.email}: {e}", exc_info=True)

    logger.info(
        f"白名单申请成功: {application.minecraft_username} "
        f"(email={application.email}, ip={ip_address})"
    )
    return entry
