from datetime import datetime, timezone
from sqlalchemy import String, DateTime
from sqlalchemy.orm import Mapped, mapped_column
from app.core.database import Base


class VerificationCode(Base):
    """数据库后端的验证码表，每个邮箱只保留最新一条"""
    __tablename__ = "verification_codes"

    email: Mapped[str] = mapped_column(String(320), primary_key=True)
    code: Mapped[str] = mapped_column(String(6), nullable=False)
    issued_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )

    def issued_at_utc(self) -> datetime:
        # SQLite 取回的是 naive datetime
        if self.issued_at.tzinfo is None:
            return self.issued_at.replace(tzinfo=timezone.utc)
        return self.issued_at
