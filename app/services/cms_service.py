"""
Sanity CMS content (help center, changelog, blog) over the GROQ HTTP API
"""
import json
from typing import Any, Dict, Optional

import requests

from app.core.config import settings
from app.core.exceptions import NotFoundError, ServiceUnavailableError
from app.core.logging_config import logger

LANGUAGES = ("es", "en")

HELP_CATEGORIES_QUERY = """*[_type == "helpCategory" && language == $language && isActive == true] | order(displayOrder asc) {
  _id, name, "slug": slug.current, description, icon, displayOrder, language,
  "articleCount": count(*[_type == "helpArticle" && references(^._id) && isPublished == true])
}"""

HELP_CATEGORY_BY_SLUG_QUERY = """*[_type == "helpCategory" && slug.current == $slug && language == $language][0] {
  _id, name, "slug": slug.current, description, icon, language
}"""

HELP_ARTICLES_BY_CATEGORY_QUERY = """*[_type == "helpArticle" && category._ref == $categoryId && language == $language && isPublished == true] | order(publishedAt desc) {
  _id, title, "slug": slug.current, excerpt,
  "category": category->{name, "slug": slug.current},
  publishedAt, language
}"""

HELP_ARTICLE_BY_SLUG_QUERY = """*[_type == "helpArticle" && slug.current == $slug && language == $language && isPublished == true][0] {
  _id, title, "slug": slug.current, excerpt, content,
  "category": category->{name, "slug": slug.current, icon},
  "relatedArticles": relatedArticles[]->{_id, title, "slug": slug.current, excerpt},
  language, publishedAt, seoMetadata
}"""

HELP_ARTICLES_SEARCH_QUERY = """*[_type == "helpArticle" && language == $language && isPublished == true && (
  title match $searchTerm + "*" || excerpt match $searchTerm + "*" || pt::text(content) match $searchTerm + "*"
)] | order(_score desc) [0...$limit] {
  _id, title, "slug": slug.current, excerpt, "category": category->{name, "slug": slug.current}, publishedAt, language
}"""

CHANGELOGS_QUERY = """*[_type == "changelog" && language == $language] | order(publishedAt desc, sprintNumber desc) [0...$limit] {
  _id, sprintNumber, title, "slug": slug.current, summary, categories, tags, targetAudience, publishedAt, language
}"""

CHANGELOG_BY_SLUG_QUERY = """*[_type == "changelog" && slug.current == $slug && language == $language][0] {
  _id, sprintNumber, title, "slug": slug.current, summary, content, categories, tags, targetAudience, publishedAt, language
}"""

BLOG_POSTS_QUERY = """*[_type == "blogPost" && language == $language && isPublished == true] | order(publishedAt desc) [0...$limit] {
  _id, title, "slug": slug.current, excerpt, "category": category->{name, "slug": slug.current},
  "author": author->{name}, featuredImage, publishedAt, readingTime, language
}"""

BLOG_POST_BY_SLUG_QUERY = """*[_type == "blogPost" && slug.current == $slug && language == $language && isPublished == true][0] {
  _id, title, "slug": slug.current, excerpt, content, "category": category->{name, "slug": slug.current},
  "author": author->{name, bio}, featuredImage, publishedAt, readingTime, seoMetadata, language
}"""


def normalize_language(language: Optional[str]) -> str:
    return language if language in LANGUAGES else "es"


class SanityClient:
    """Minimal client for the Sanity query endpoint"""

    def __init__(self):
        self.timeout = 10

    def _url(self, use_cdn: bool) -> str:
        host = "apicdn.sanity.io" if use_cdn else "api.sanity.io"
        return (
            f"https://{settings.SANITY_PROJECT_ID}.{host}/v{settings.SANITY_API_VERSION}"
            f"/data/query/{settings.SANITY_DATASET}"
        )

    def fetch(self, query: str, params: Optional[Dict[str, Any]] = None, draft: bool = False) -> Any:
        """
        Run a GROQ query and return its ``result``.
        In draft mode the ``drafts`` perspective is read with the API token and the CDN is bypassed.
        """
        if not settings.SANITY_PROJECT_ID:
            raise ServiceUnavailableError("CMS not configured")

        query_params = {"query": query}
        for key, value in (params or {}).items():
            query_params[f"${key}"] = json.dumps(value)

        headers = {"Accept": "application/json"}
        if draft:
            if not settings.SANITY_API_TOKEN:
                logger.warning("Draft mode requested without SANITY_API_TOKEN, serving published content")
                draft = False
            else:
                query_params["perspective"] = "drafts"
                headers["Authorization"] = f"Bearer {settings.SANITY_API_TOKEN}"

        try:
            response = requests.get(self._url(use_cdn=not draft), params=query_params, headers=headers, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"Sanity query failed: {str(e)}")
            raise ServiceUnavailableError("Content service unavailable")

        return response.json().get("result")


class CMSService:
    """Content reads used by /api/content"""

    def __init__(self, client: Optional[SanityClient] = None):
        self.client = client or SanityClient()

    def _one(self, query: str, params: Dict[str, Any], draft: bool, label: str) -> Dict[str, Any]:
        result = self.client.fetch(query, params, draft=draft)
        if not result:
            raise NotFoundError(f"{label} not found")
        return result

    def help_categories(self, language: str, draft: bool = False):
        return self.client.fetch(HELP_CATEGORIES_QUERY, {"language": normalize_language(language)}, draft) or []

    def help_articles_by_category(self, category_slug: str, language: str, draft: bool = False) -> Dict[str, Any]:
        language = normalize_language(language)
        category = self._one(HELP_CATEGORY_BY_SLUG_QUERY, {"slug": category_slug, "language": language}, draft, "Category")
        articles = self.client.fetch(
            HELP_ARTICLES_BY_CATEGORY_QUERY,
            {"categoryId": category["_id"], "language": language},
            draft
        ) or []
        return {"category": category, "articles": articles}

    def help_article(self, slug: str, language: str, draft: bool = False):
        return self._one(HELP_ARTICLE_BY_SLUG_QUERY, {"slug": slug, "language": normalize_language(language)}, draft, "Article")

    def search_help(self, term: str, language: str, limit: int = 10, draft: bool = False):
        return self.client.fetch(
            HELP_ARTICLES_SEARCH_QUERY,
            {"searchTerm": term, "language": normalize_language(language), "limit": limit},
            draft
        ) or []

    def changelogs(self, language: str, limit: int = 20, draft: bool = False):
        return self.client.fetch(CHANGELOGS_QUERY, {"language": normalize_language(language), "limit": limit}, draft) or []

    def changelog(self, slug: str, language: str, draft: bool = False):
        return self._one(CHANGELOG_BY_SLUG_QUERY, {"slug": slug, "language": normalize_language(language)}, draft, "Changelog")

    def blog_posts(self, language: str, limit: int = 20, draft: bool = False):
        return self.client.fetch(BLOG_POSTS_QUERY, {"language": normalize_language(language), "limit": limit}, draft) or []

    def blog_post(self, slug: str, language: str, draft: bool = False):
        return self._one(BLOG_POST_BY_SLUG_QUERY, {"slug": slug, "language": normalize_language(language)}, draft, "Post")


# Global instance
cms_service = CMSService()
