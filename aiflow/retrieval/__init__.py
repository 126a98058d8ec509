"""Download retrieval and postprocessing."""

from .fetcher import Fetcher, HttpFetcher
from .postprocess import postprocess, html_to_markdown, html_to_text

__all__ = ['Fetcher', 'HttpFetcher', 'postprocess', 'html_to_markdown', 'html_to_text']
