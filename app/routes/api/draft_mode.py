"""
CMS draft mode toggle

/enable validates the preview secret, sets a signed expiring cookie and
redirects to the page being previewed. Only same-site relative paths are accepted.
"""
from fastapi import APIRouter, HTTPException, Query, status
from fastapi.responses import RedirectResponse

from app.core.config import settings
from app.core.logging_config import logger
from app.core.security import create_draft_mode_token
from app.core.webhook_security import constant_time_compare

router = APIRouter(
    prefix="/api/draft-mode",
    tags=["draft-mode"]
)


def is_safe_redirect(path: str) -> bool:
    """Relative path on this site: starts with a single '/', no scheme, no backslashes"""
    if not path or not path.startswith("/") or path.startswith("//"):
        return False
    return "\\" not in path and "://" not in path


@router.get("/enable")
async def enable_draft_mode(secret: str = Query(...), slug: str = Query("/")):
    if not settings.SANITY_PREVIEW_SECRET or not constant_time_compare(secret, settings.SANITY_PREVIEW_SECRET):
        logger.warning("Draft mode enable attempt with invalid secret")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid secret")
    if not is_safe_redirect(slug):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid redirect path")

    response = RedirectResponse(url=slug, status_code=status.HTTP_307_TEMPORARY_REDIRECT)
    response.set_cookie(
        key=settings.DRAFT_MODE_COOKIE,
        value=create_draft_mode_token(),
        max_age=settings.DRAFT_MODE_TTL_MINUTES * 60,
        httponly=True,
        secure=settings.ENVIRONMENT == "production",
        samesite="none" if settings.ENVIRONMENT == "production" else "lax",
    )
    logger.info(f"Draft mode enabled for {slug}")
    return response


@router.get("/disable")
async def disable_draft_mode(slug: str = Query("/")):
    target = slug if is_safe_redirect(slug) else "/"
    response = RedirectResponse(url=target, status_code=status.HTTP_307_TEMPORARY_REDIRECT)
    response.delete_cookie(settings.DRAFT_MODE_COOKIE)
    return response
