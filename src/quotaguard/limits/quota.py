"""Quota class derivation.

An account can be throttled independently per upstream surface. The request
layer knows which header style and model family a request used; this module
maps that pair to the tag that keys rate-limit state.
"""

from enum import Enum
from typing import Union


class ModelFamily(str, Enum):
    """Model families with separate upstream quotas."""
    CLAUDE = "claude"
    GEMINI = "gemini"


class HeaderStyle(str, Enum):
    """Request header styles; Gemini quotas differ per style."""
    ANTIGRAVITY = "antigravity"
    GEMINI_CLI = "gemini-cli"


def header_style_to_quota_key(
    header_style: Union[HeaderStyle, str],
    family: Union[ModelFamily, str],
) -> str:
    """Convert header style + model family to a quota class tag.

    Args:
        header_style: Header style used by the request.
        family: Model family of the requested model.

    Returns:
        ``"claude"`` for Claude models regardless of header style, otherwise
        ``"gemini-antigravity"`` or ``"gemini-cli"``.

    Raises:
        ValueError: If either value is not a known member.
    """
    family = ModelFamily(family)
    header_style = HeaderStyle(header_style)

    if family is ModelFamily.CLAUDE:
        return "claude"
    if header_style is HeaderStyle.ANTIGRAVITY:
        return "gemini-antigravity"
    return "gemini-cli"
