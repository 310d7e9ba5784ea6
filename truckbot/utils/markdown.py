"""Helpers for placing user-supplied text inside Telegram Markdown replies."""

from __future__ import annotations

import re
from typing import Any

# Characters legacy Telegram Markdown treats as entity delimiters.
_MARKDOWN_SPECIAL_RE = re.compile(r"([_*`\[])")


def escape_markdown(value: Any) -> str:
    """Backslash-escape entity delimiters so ``value`` renders literally."""
    return _MARKDOWN_SPECIAL_RE.sub(r"\\\1", str(value))


def bold(value: Any) -> str:
    """Wrap ``value`` in a bold entity.

    Escapes are not honoured inside an entity, so a stray ``*`` that would end
    the entity early is dropped instead.
    """
    return f"*{str(value).replace('*', '')}*"


__all__ = ["bold", "escape_markdown"]
