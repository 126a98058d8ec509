"""
Block format transforms.

Rewrites ``<<<mode1|mode2>>>body<<<end>>>`` spans by piping ``body`` through
the named transforms left to right. Spans are processed innermost first and
the text is re-scanned until none remain, so spans may nest.
"""

import html
import quopri
import re
from typing import Callable, Dict

from ..exceptions import UnknownTransformMode


def text_to_html(text: str) -> str:
    """Escape markup characters and mark line breaks with <br />."""
    escaped = html.escape(text, quote=True)
    return re.sub(r'(\r\n|\n\r|\n|\r)', r'<br />\1', escaped)


def quoted_printable(text: str) -> str:
    """Quoted-printable encode UTF-8 text."""
    return quopri.encodestring(text.encode('utf-8')).decode('ascii')


class BlockTransformer:
    """Applies named transform pipelines to delimited blocks."""

    # Body may not contain another opening tag, so the innermost span matches first
    BLOCK_PATTERN = re.compile(r'<<<(?!end>>>)([^<>]*?)>>>((?:(?!<<<).)*?)<<<end>>>', re.DOTALL)

    def __init__(self):
        self.transforms: Dict[str, Callable[[str], str]] = {
            'text-to-html': text_to_html,
            'quoted-printable': quoted_printable,
        }

    def transform(self, text: str) -> str:
        """
        Replace every block in ``text``.

        Raises:
            UnknownTransformMode: If a block names an unknown transform
        """
        while True:
            updated = self.BLOCK_PATTERN.sub(self._replace, text)
            if updated == text:
                return updated
            text = updated

    def _replace(self, match: re.Match) -> str:
        body = match.group(2)
        for mode in match.group(1).split('|'):
            transform = self.transforms.get(mode.strip())
            if transform is None:
                raise UnknownTransformMode(f"Unknown block processing method: '{mode}'")
            body = transform(body)
        return body
