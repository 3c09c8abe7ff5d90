import os
import tempfile
from pathlib import Path

_TMP_DIR = Path(tempfile.mkdtemp(prefix="whitelist-tests-"))
DB_PATH = _TMP_DIR / "test.db"

# 必须在导入 app 之前设置，Settings 在导入时读取环境变量
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{DB_PATH}"
os.environ["APP_ENV"] = "test"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["CODE_STORE_BACKEND"] = "memory"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, func, select

from app.core.database import Base
from app.main import app
from app.models import verification  # noqa: F401
from app.models.whitelist import WhitelistEntry
from app.services import classifier, mailer
from app.services.code_store import get_code_store


@pytest.fixture(scope="session")
def sync_engine():
    engine = create_engine(f"sqlite:///{DB_PATH}")
    yield engine
    engine.dispose()


@pytest.fixture(autouse=True)
def reset_state(sync_engine):
    Base.metadata.drop_all(sync_engine)
    Base.metadata.create_all(sync_engine)
    get_code_store()._codes.clear()
    yield


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def store():
    return get_code_store()


@pytest.fixture
def sent_mail(monkeypatch):
    """替换邮件发送，记录 (email, code)"""
    outbox = []

    async def fake_send(email, code):
        outbox.append((email, code))

    monkeypatch.setattr(mailer, "send_verification_email", fake_send)
    return outbox


@pytest.fixture
def verdict(monkeypatch):
    """替换 AI 审核，默认通过；修改 state["result"] 控制结果"""
    state = {"result": True, "calls": []}

    async def fake_classify(answer):
        state["calls"].append(answer)
        if isinstance(state["result"], Exception):
            raise state["result"]
        return state["result"]

    monkeypatch.setattr(classifier, "classify_answer", fake_classify)
    return state


@pytest.fixture
def count_entries(sync_engine):
    def _count(ip_address=None):
        stmt = select(func.count()).select_from(WhitelistEntry)
        if ip_address is not None:
            stmt = stmt.where(WhitelistEntry.ip_address == ip_address)
        with sync_engine.connect() as conn:
            return conn.execute(stmt).scalar_one()
    return _count


@pytest.fixture
def fetch_entries(sync_engine):
    def _fetch():
        with sync_engine.connect() as conn:
            return conn.execute(select(WhitelistEntry.__table__)).mappings().all()
    return _fetch
