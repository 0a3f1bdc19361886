"""docsindex ingest pipeline — crawler, article chunker, embedding providers."""

from docsindex.ingest.article import Article, ArticleComponent, chunk_article, page_to_article
from docsindex.ingest.crawl import PageData, SsrfError, crawl_site
from docsindex.ingest.embeddings import (
    EmbeddingProvider,
    LiteLLMEmbeddingProvider,
    MissingApiKeyError,
)
from docsindex.ingest.favicon import fetch_favicon

__all__ = [
    "Article",
    "ArticleComponent",
    "EmbeddingProvider",
    "LiteLLMEmbeddingProvider",
    "MissingApiKeyError",
    "PageData",
    "SsrfError",
    "chunk_article",
    "crawl_site",
    "fetch_favicon",
    "page_to_article",
]
