from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # App
    app_env: str = "development"

    # Database（默认 SQLite，生产可换 postgresql://）
    database_url: str = "sqlite+aiosqlite:///./whitelist.db"

    # DeepSeek 回答审核
    deepseek_api_key: str = ""
    deepseek_base_url: str = "https://api.deepseek.com"
    deepseek_model: str = "deepseek-chat"
    llm_timeout_seconds: float = 30.0

    # 邮件发送（MailChannels）
    mail_api_url: str = "https://api.mailchannels.net/tx/v1/send"
    mail_api_key: str = ""
    mail_from_email: str = "noreply@cellmembranedemo.site"
    mail_from_name: str = "细胞膜服务器"

    # 验证码
    verification_code_ttl_seconds: int = 300
    code_store_backend: str = "memory"   # memory / database
    code_sweep_interval_minutes: int = 10
    scheduler_enabled: bool = True

    # 白名单限制
    ip_registration_limit: int = 3
    client_ip_header: str = "cf-connecting-ip"

    class Config:
        env_file = ".env"
        case_sensitive = False

    def get_chat_completions_url(self) -> str:
        return f"{self.deepseek_base_url.rstrip('/')}/chat/completions"

    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


@lru_cache()
def get_settings() -> Settings:
    return Settings()
