import logging
import secrets
import aiohttp
from app.core.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

SUBJECT = "【细胞膜服务器】您的验证码"

BODY_TEMPLATE = (
    "您好！\n\n"
    "您正在申请服务器白名单，您的验证码是：{code}\n\n"
    "该验证码5分钟内有效，请勿泄露。\n\n"
    " - 细胞膜服务器管理组"
)


class MailDeliveryError(Exception):
    """邮件服务返回非 2xx"""

    def __init__(self, status: int, body: str):
        self.status = status
        self.body = body
        super().__init__(f"邮件发送失败: HTTP {status}")


def generate_code() -> str:
    """6 位数字验证码，范围 [100000, 999999]"""
    return str(100000 + secrets.randbelow(900000))


def build_payload(email: str, code: str) -> dict:
    return {
        "personalizations": [{"to": [{"email": email}]}],
        "from": {"email": settings.mail_from_email, "name": settings.mail_from_name},
        "subject": SUBJECT,
        "content": [
            {
                "type": "text/plain",
                "value": BODY_TEMPLATE.format(code=code),
            }
        ],
    }


async def send_verification_email(email: str, code: str) -> None:
    headers = {"Content-Type": "application/json"}
    if settings.mail_api_key:
        headers["X-Api-Key"] = settings.mail_api_key

    async with aiohttp.ClientSession() as session:
        async with session.post(
            settings.mail_api_url, headers=headers, json=build_payload(email, code)
        ) as resp:
            if resp.status >= 300:
                text = await resp.text()
                logger.error(f"邮件发送失败 {resp.status}: {text}")
                raise MailDeliveryError(resp.status, text)

    logger.info(f"验证码邮件已发送: {email}")
