import logging
from datetime import datetime, timezone
from fastapi import APIRouter, Depends, Request
from app.api.responses import error_response, success_response
from app.services import mailer
from app.services.code_store import CodeStore, get_code_store

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["verification"])


# ─── POST /api/send-code ─────────────────────────────────────────────────────

@router.post("/send-code")
async def send_code(request: Request, store: CodeStore = Depends(get_code_store)):
    """
    发送邮箱验证码：
    1. 校验 email
    2. 生成 6 位验证码并发邮件
    3. 发送成功后才写入验证码存储
    """
    try:
        data = await request.json()
        email = data.get("email") if isinstance(data, dict) else None
        if not isinstance(email, str) or not email:
            return error_response("缺少邮箱地址", status_code=400)

        code = mailer.generate_code()
        try:
            await mailer.send_verification_email(email, code)
        except mailer.MailDeliveryError:
            return error_response("邮件发送服务暂时不可用", status_code=500)

        await store.put(email, code, datetime.now(timezone.utc))
        return success_response()
    except Exception as e:
        logger.error(f"发送验证码异常: {e}", exc_info=True)
        return error_response("服务器内部发生错误", status_code=500)
