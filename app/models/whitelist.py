from datetime import datetime
from sqlalchemy import Integer, String, DateTime, func
from sqlalchemy.orm import Mapped, mapped_column
from app.core.database import Base


class WhitelistEntry(Base):
    """
    qq_number TEXT NOT NULL
    email TEXT NOT NULL
    minecraft_username TEXT NOT NULL
    ip_address TEXT  (申请来源 IP，用于每 IP 注册上限)
    created_at TIMESTAMP DEFAULT NOW()
    """
    __tablename__ = "whitelist_entry"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    qq_number: Mapped[str] = mapped_column(String(32), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    minecraft_username: Mapped[str] = mapped_column(String(16), nullable=False)
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
