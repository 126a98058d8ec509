"""
Template substitution.

Resolves ${...} expressions against a scope until the text stops changing.

Supported forms:
- ${name}: scope lookup, left untouched (with a warning) when missing
- ${@rand|N[|charset]}: random string
- ${@date|format[|expr]}: formatted moment, see variables.dates
- ${@autocamel|name}: CamelCase an all-lowercase value
- ${@tee|target|text...}: bind text to target and print it
- ${expr}${>name}: print expr and also bind it to name
"""

import json
import logging
import random
import re
import string
from datetime import datetime
from typing import Callable, Dict, Mapping, Optional, Set

from ..exceptions import SelfReferentialTemplate
from .dates import resolve_moment

logger = logging.getLogger(__name__)


def autocamel(text: str) -> str:
    """CamelCase ``text`` unless it already contains an uppercase letter."""
    if re.search(r'[A-Z]', text):
        return text
    words = re.split(r'[\s_-]+', text)
    return ''.join(word[:1].upper() + word[1:] for word in words)


def rand_length(text: str) -> int:
    """Leading integer of ``text``; anything non-numeric counts as 0."""
    match = re.match(r'\s*([+-]?\d+)', text)
    return max(int(match.group(1)), 0) if match else 0


class TemplateResolver:
    """
    Fixed-point ${...} substitution over a scope.

    Captured values (${@tee|...} and ${...}${>name}) live only for the
    duration of one resolve() call; the caller's scope is never modified.
    """

    MAX_PASSES = 100
    DEFAULT_CHARSET = string.digits + string.ascii_lowercase + string.ascii_uppercase
    DEFAULT_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'
    CAPTURE_PATTERN = re.compile(r'\$\{>([^{}]+)\}')

    def __init__(
        self,
        max_passes: Optional[int] = None,
        rng: Optional[random.Random] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        """
        Initialize the resolver.

        Args:
            max_passes: Substitution passes allowed before giving up
            rng: Random source for ${@rand}
            clock: Returns "now" for ${@date}
        """
        self.max_passes = max_passes or self.MAX_PASSES
        self.rng = rng or random.SystemRandom()
        self.clock = clock or datetime.now
        self.undefined_vars: Set[str] = set()

    def resolve(self, text: Optional[str], scope: Mapping[str, str]) -> Optional[str]:
        """
        Substitute all expressions in ``text``.

        Args:
            text: Template text (None passes through)
            scope: Variables visible to the template

        Returns:
            Resolved text

        Raises:
            SelfReferentialTemplate: If no fixed point is reached within max_passes
        """
        self.undefined_vars.clear()
        if text is None:
            return None

        data: Dict[str, str] = dict(scope)
        current = text
        for _ in range(self.max_passes):
            updated = self._substitute_pass(current, data)
            if updated == current:
                return updated
            current = updated

        raise SelfReferentialTemplate(
            f"Template did not settle after {self.max_passes} passes: {json.dumps(text[:200])}"
        )

    def resolve_values(self, values: Mapping[str, str], scope: Mapping[str, str]) -> Dict[str, str]:
        """Resolve every value of a mapping against the same scope."""
        return {name: self.resolve(value, scope) or '' for name, value in values.items()}

    def _substitute_pass(self, text: str, data: Dict[str, str]) -> str:
        out = []
        pos = 0
        while True:
            start = text.find('${', pos)
            if start < 0:
                out.append(text[pos:])
                break

            end = self._find_closing(text, start + 2)
            if end < 0:
                # Unbalanced braces: nothing more to substitute
                out.append(text[pos:])
                break

            out.append(text[pos:start])
            token_end = end + 1
            capture = None
            match = self.CAPTURE_PATTERN.match(text, token_end)
            if match:
                capture = match.group(1)
                token_end = match.end()

            raw = text[start:token_end]
            body = text[start + 2:end]
            if body.startswith('>'):
                # Dangling capture with nothing to capture
                out.append(raw)
            else:
                value = self._evaluate(body, data, raw)
                if capture:
                    data[capture] = value
                out.append(value)
            pos = token_end

        return ''.join(out)

    @staticmethod
    def _find_closing(text: str, index: int) -> int:
        depth = 1
        while index < len(text):
            char = text[index]
            if char == '{':
                depth += 1
            elif char == '}':
                depth -= 1
                if depth == 0:
                    return index
            index += 1
        return -1

    def _evaluate(self, body: str, data: Dict[str, str], raw: str) -> str:
        if '${' in body:
            body = self._substitute_pass(body, data)

        params = body.split('|')
        name = params.pop(0)

        if name == '@autocamel':
            return autocamel(data.get(params[0] if params else 'var', ''))
        if name == '@tee':
            target = params.pop(0) if params else 'var'
            value = '|'.join(params)
            data[target] = value
            return value
        if name == '@date':
            fmt = params[0] if params and params[0] else self.DEFAULT_DATE_FORMAT
            expression = params[1] if len(params) > 1 else 'now'
            return resolve_moment(expression, self.clock()).strftime(fmt)
        if name == '@rand':
            length = rand_length(params[0]) if params and params[0].strip() else 8
            charset = '|'.join(params[1:]) or self.DEFAULT_CHARSET
            return ''.join(self.rng.choice(charset) for _ in range(length))
        if name in data:
            return data[name]

        if name not in self.undefined_vars:
            self.undefined_vars.add(name)
            logger.warning(
                f"Variable '{name}' not found. Text: {json.dumps(raw)}. "
                f"Supported vars: {json.dumps(list(data.keys()), ensure_ascii=False)}"
            )
        return raw
