import logging
from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from app.api.responses import error_response, success_response
from app.core.config import get_settings
from app.core.database import get_db
from app.services import whitelist as whitelist_service
from app.services.code_store import CodeStore, get_code_store

logger = logging.getLogger(__name__)
settings = get_settings()
router = APIRouter(prefix="/api", tags=["whitelist"])


def get_client_ip(request: Request) -> str | None:
    """优先取代理头（Cloudflare: cf-connecting-ip），没有则退回直连地址"""
    ip = request.headers.get(settings.client_ip_header)
    if ip:
        return ip.strip()
    return request.client.host if request.client else None


# ─── POST /api/whitelist-apply ───────────────────────────────────────────────

@router.post("/whitelist-apply")
async def whitelist_apply(
    request: Request,
    db: AsyncSession = Depends(get_db),
    store: CodeStore = Depends(get_code_store),
):
    try:
        data = await request.json()
        await whitelist_service.submit_application(
            db=db,
            store=store,
            data=data,
            ip_address=get_client_ip(request),
        )
    except whitelist_service.WhitelistError as e:
        return error_response(e.message, error_type=e.error_type)
    except Exception as e:
        logger.error(f"白名单申请异常: {e}", exc_info=True)
        return error_response("服务器内部发生错误", error_type="unknown_error")
    return success_response()
