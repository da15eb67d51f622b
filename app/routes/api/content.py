"""
CMS content: help center, changelog and blog
"""
from fastapi import APIRouter, Depends, Query, Request

from app.core.config import settings
from app.core.security import is_valid_draft_mode_token
from app.services.cms_service import cms_service

router = APIRouter(
    prefix="/api/content",
    tags=["content"]
)

LANGUAGE = Query("es", pattern=r"^(es|en)$")


def is_draft_mode(request: Request) -> bool:
    return is_valid_draft_mode_token(request.cookies.get(settings.DRAFT_MODE_COOKIE))


@router.get("/help/categories")
async def help_categories(language: str = LANGUAGE, draft: bool = Depends(is_draft_mode)):
    return cms_service.help_categories(language, draft)


@router.get("/help/categories/{category_slug}/articles")
async def help_articles_by_category(
    category_slug: str,
    language: str = LANGUAGE,
    draft: bool = Depends(is_draft_mode)
):
    return cms_service.help_articles_by_category(category_slug, language, draft)


@router.get("/help/search")
async def search_help(
    q: str = Query(..., min_length=2, max_length=100),
    language: str = LANGUAGE,
    limit: int = Query(10, ge=1, le=50),
    draft: bool = Depends(is_draft_mode)
):
    return cms_service.search_help(q, language, limit, draft)


@router.get("/help/articles/{slug}")
async def help_article(slug: str, language: str = LANGUAGE, draft: bool = Depends(is_draft_mode)):
    return cms_service.help_article(slug, language, draft)


@router.get("/changelog")
async def changelogs(
    language: str = LANGUAGE,
    limit: int = Query(20, ge=1, le=100),
    draft: bool = Depends(is_draft_mode)
):
    return cms_service.changelogs(language, limit, draft)


@router.get("/changelog/{slug}")
async def changelog(slug: str, language: str = LANGUAGE, draft: bool = Depends(is_draft_mode)):
    return cms_service.changelog(slug, language, draft)


@router.get("/blog")
async def blog_posts(
    language: str = LANGUAGE,
    limit: int = Query(20, ge=1, le=100),
    draft: bool = Depends(is_draft_mode)
):
    return cms_service.blog_posts(language, limit, draft)


@router.get("/blog/{slug}")
async def blog_post(slug: str, language: str = LANGUAGE, draft: bool = Depends(is_draft_mode)):
    return cms_service.blog_post(slug, language, draft)
