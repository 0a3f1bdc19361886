"""Page → Article conversion and heading-aware article chunking.

An Article is the readable part of a crawled page, split into components at
H1/H2/H3 headings. ``chunk_article()`` cuts each component into chunks that
fit the embedding provider's maximum chunk size.

Token counting uses a 4-chars-per-token approximation; no external
tokenizer dependency is required.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

import html2text
from bs4 import BeautifulSoup

from docsindex.db.models import Chunk
from docsindex.ingest.crawl import PageData

_CHARS_PER_TOKEN = 4
_OVERLAP = 0.10

# Matches H1, H2, H3 headings at the start of a line.
_HEADING_RE = re.compile(r"^(#{1,3}) +(.+?) *#*$", re.MULTILINE)

# html2text converter
_h2t = html2text.HTML2Text()
_h2t.ignore_links = True
_h2t.ignore_images = True
_h2t.body_width = 0


@dataclass
class ArticleComponent:
    title: str
    body: str


@dataclass
class Article:
    """Readable content of one page."""

    url: str
    subpath: str
    title: str
    components: list[ArticleComponent] = field(default_factory=list)


def page_to_article(page: PageData) -> Article | None:
    """Extract the main content of *page*; None when it holds no readable text."""
    soup = BeautifulSoup(page.html, "html.parser")
    title_tag = soup.find("title")
    title = title_tag.get_text(strip=True) if title_tag else ""

    for tag in soup.find_all(["script", "style", "nav", "footer", "aside", "head"]):
        tag.decompose()

    main = (
        soup.find("article")
        or soup.find("main")
        or soup.find(attrs={"role": "main"})
        or soup.find("body")
    )
    if main is None:
        # Plain text / markdown bodies (e.g. raw GitHub files) have no markup.
        text = page.html.strip()
    else:
        text = _h2t.handle(str(main)).strip()

    if not text:
        return None

    components = _split_on_headings(text, default_title=title or page.path)
    if not components:
        return None

    return Article(
        url=page.url,
        subpath=page.path,
        title=title or components[0].title,
        components=components,
    )


def _split_on_headings(text: str, default_title: str) -> list[ArticleComponent]:
    """Split markdown *text* on H1/H2/H3 boundaries into titled components."""
    matches = list(_HEADING_RE.finditer(text))
    components: list[ArticleComponent] = []

    preamble_end = matches[0].start() if matches else len(text)
    preamble = text[:preamble_end].strip()
    if preamble:
        components.append(ArticleComponent(title=default_title, body=preamble))

    for i, match in enumerate(matches):
        end = matches[i + 1].start() if i + 1 < len(matches) else len(text)
        body = text[match.end():end].strip()
        if body:
            components.append(ArticleComponent(title=match.group(2).strip(), body=body))

    return components


def chunk_article(article: Article, max_chunk_size: int) -> list[Chunk]:
    """Split *article* into ordered chunks of at most *max_chunk_size* tokens.

    Every chunk's content starts with its component title so the embedded text
    keeps its section context. ``filepath`` points at the section anchor.
    """
    if max_chunk_size < 1:
        raise ValueError("max_chunk_size must be >= 1")

    chunks: list[Chunk] = []
    for component in article.components:
        header = f"{article.title}\n\n{component.title}\n\n"
        budget = max_chunk_size * _CHARS_PER_TOKEN - len(header)
        if budget < _CHARS_PER_TOKEN:
            header = ""
            budget = max_chunk_size * _CHARS_PER_TOKEN

        anchor = _slugify(component.title)
        filepath = f"{article.subpath}#{anchor}" if anchor else article.subpath

        for start, end in _window_spans(component.body, budget):
            segment = component.body[start:end].strip()
            if not segment:
                continue
            start_line = component.body.count("\n", 0, start)
            end_line = start_line + component.body.count("\n", start, end)
            chunks.append(
                Chunk(
                    content=header + segment,
                    filepath=filepath,
                    start_line=start_line,
                    end_line=end_line,
                    index=len(chunks),
                    metadata={"title": component.title},
                )
            )
    return chunks


def _window_spans(text: str, char_size: int) -> list[tuple[int, int]]:
    """Return fixed-window (start, end) spans over *text* with 10 % overlap."""
    if not text.strip():
        return []

    overlap_chars = int(char_size * _OVERLAP)
    step = max(1, char_size - overlap_chars)

    spans: list[tuple[int, int]] = []
    pos = 0
    length = len(text)
    while pos < length:
        end = min(pos + char_size, length)
        spans.append((pos, end))
        if end >= length:
            break
        pos += step
    return spans


def _slugify(title: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", title.lower()).strip("-")
