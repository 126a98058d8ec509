"""Postprocessing of downloaded documents."""

from typing import Optional

from bs4 import BeautifulSoup
from markdownify import markdownify as md

from ..model import Postprocess


def _main_content(html: str):
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style"]):
        tag.decompose()
    # Prefer <main>, then <body>, then the whole document
    main_content = soup.find("main")
    if main_content is None:
        main_content = soup.body if soup.body else soup
    return main_content


def html_to_markdown(html: str) -> str:
    """Convert the main content of an HTML page to markdown."""
    return md(str(_main_content(html))).strip()


def html_to_text(html: str) -> str:
    """Extract the visible text of an HTML page, one block per line."""
    return _main_content(html).get_text("\n", strip=True)


def postprocess(text: str, mode: Postprocess = Postprocess.NONE, limit: Optional[int] = None) -> str:
    """
    Convert downloaded text and cut it to ``limit`` characters.

    Args:
        text: Downloaded document
        mode: Conversion to apply
        limit: Maximum length after conversion (None or 0 = unlimited)
    """
    if mode == Postprocess.HTML2MD:
        text = html_to_markdown(text)
    elif mode == Postprocess.HTML2TEXT:
        text = html_to_text(text)

    if limit and text:
        text = text[:limit]
    return text
