"""Clipboard utilities for the CLI frontend.

Uses pyperclip for cross-platform clipboard access.
"""

from __future__ import annotations

import pyperclip

from shadowkeep.core.exceptions import ShadowKeepError


def copy_to_clipboard(text: str) -> None:
    """Copy text to the system clipboard.

    Raises:
        ShadowKeepError: If no clipboard mechanism is available.
    """
    try:
        pyperclip.copy(text)
    except pyperclip.PyperclipException as e:
        raise ShadowKeepError(f"Clipboard unavailable: {e}") from e
