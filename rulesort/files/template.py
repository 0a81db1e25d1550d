#!/usr/bin/env python3
"""Name templates rendered with Jinja2.

Rule templates use ``{{key|filter}}`` placeholders:

- ``{{filename}}``: file stem (name without extension)
- ``{{metadata.<key>}}``: value from the metadata mapping, e.g.
  ``{{metadata.EXIF:DateTime}}`` or ``{{metadata.size}}``
- ``|date:<format>``: reformat an RFC3339 or EXIF timestamp with strftime

Placeholders are rewritten into a sandboxed Jinja2 template whose delimiters
never appear in user text, and keys, patterns and literal text are passed in
as context values. Expansion never fails: unknown keys render empty and
unknown filters are ignored.

Destination paths additionally support ``{year}``, ``{month}`` and ``{day}``
(see :func:`expand_date_tokens`).

Example:
    >>> resolver = TemplateResolver()
    >>> resolver.expand("{{metadata.created|date:%Y}}_{{filename}}.jpg",
    ...                 "/photos/cat.jpg", {"created": "2024-05-01T10:00:00+00:00"})
    '2024_cat.jpg'
"""

import re
import threading
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

import jinja2
from jinja2.sandbox import SandboxedEnvironment

from rulesort.core.dates import parse_template_datetime
from rulesort.infrastructure.logger import get_logger

_TOKEN_RE = re.compile(r"\{\{(.*?)\}\}")

FILENAME_KEY = "filename"
METADATA_PREFIX = "metadata."
DATE_FILTER = "date"


def format_date(value: Any, pattern: str) -> str:
    """Reformat a timestamp string; unparseable values are returned unchanged."""
    text = str(value)
    try:
        return parse_template_datetime(text).strftime(pattern)
    except ValueError:
        return text


class TemplateResolver:
    """Expands ``{{...}}`` placeholders against a file and its metadata.

    Compiled templates are cached per template string, so a rule's rename
    template is parsed once per pass and shared by all workers.
    """

    def __init__(self):
        self._env = SandboxedEnvironment(
            variable_start_string="\x02{",
            variable_end_string="}\x03",
            block_start_string="\x02%",
            block_end_string="%\x03",
            comment_start_string="\x02#",
            comment_end_string="#\x03",
            autoescape=False,
        )
        self._env.filters[DATE_FILTER] = format_date
        self._cache: Dict[str, Tuple[jinja2.Template, List[str]]] = {}
        self._lock = threading.Lock()
        self._logger = get_logger()

    def _compile(self, template: str) -> Tuple[jinja2.Template, List[str]]:
        """Translate a rule template into a Jinja2 template and its arguments."""
        with self._lock:
            cached = self._cache.get(template)
        if cached is not None:
            return cached

        args: List[str] = []
        parts: List[str] = []

        def arg(value: str) -> str:
            args.append(value)
            return f"_args[{len(args) - 1}]"

        position = 0
        for match in _TOKEN_RE.finditer(template):
            if match.start() > position:
                parts.append(f"\x02{{ {arg(template[position:match.start()])} }}\x03")
            position = match.end()

            key, *filters = [segment.strip() for segment in match.group(1).split("|")]
            expr = f"_lookup({arg(key)})"
            for spec in filters:
                name, _, param = spec.partition(":")
                if name.strip() == DATE_FILTER and param:
                    expr += f" | {DATE_FILTER}({arg(param)})"
            parts.append(f"\x02{{ {expr} }}\x03")

        if position < len(template):
            parts.append(f"\x02{{ {arg(template[position:])} }}\x03")

        compiled = (self._env.from_string("".join(parts)), args)
        with self._lock:
            self._cache[template] = compiled
        return compiled

    def expand(
        self,
        template: str,
        path: Union[str, Path],
        metadata: Optional[Mapping[str, str]] = None,
    ) -> str:
        """Expand a rule template.

        Args:
            template: Template text with ``{{...}}`` placeholders
            path: File the template is rendered for
            metadata: Metadata mapping (see ``rulesort.files.metadata``)

        Returns:
            Rendered text; unknown keys contribute an empty string
        """
        metadata = metadata or {}
        stem = Path(path).stem

        def lookup(key: str) -> str:
            if key == FILENAME_KEY:
                return stem
            if key.startswith(METADATA_PREFIX):
                return metadata.get(key[len(METADATA_PREFIX):], "")
            return ""

        try:
            compiled, args = self._compile(template)
            return compiled.render(_args=args, _lookup=lookup)
        except jinja2.TemplateError as e:
            self._logger.warning("Template could not be rendered", template=template, error=str(e))
            return _TOKEN_RE.sub("", template)


_default_resolver: Optional[TemplateResolver] = None
_resolver_lock = threading.Lock()


def get_resolver() -> TemplateResolver:
    """Get the shared template resolver."""
    global _default_resolver
    with _resolver_lock:
        if _default_resolver is None:
            _default_resolver = TemplateResolver()
        return _default_resolver


def expand(template: str, path: Union[str, Path], metadata: Optional[Mapping[str, str]] = None) -> str:
    """Expand a rule template with the shared resolver."""
    return get_resolver().expand(template, path, metadata)


def expand_date_tokens(template: str, today: Optional[date] = None) -> str:
    """Replace ``{year}``, ``{month}`` and ``{day}`` with zero-padded date parts.

    Args:
        template: Destination path template
        today: Date to fill in (defaults to the current local date)

    Returns:
        Template with date tokens substituted
    """
    today = today or date.today()
    return (
        template.replace("{year}", f"{today.year:04d}")
        .replace("{month}", f"{today.month:02d}")
        .replace("{day}", f"{today.day:02d}")
    )
