"""Unit tests for the clipboard helper."""

import pyperclip
import pytest
from unittest.mock import patch

from shadowkeep.core.exceptions import ShadowKeepError
from shadowkeep.frontend.cli.clipboard import copy_to_clipboard


def test_copy_to_clipboard():
    with patch("shadowkeep.frontend.cli.clipboard.pyperclip.copy") as copy:
        copy_to_clipboard("secret")
    copy.assert_called_once_with("secret")


def test_copy_failure_is_wrapped():
    with patch("shadowkeep.frontend.cli.clipboard.pyperclip.copy", side_effect=pyperclip.PyperclipException("no xclip")):
        with pytest.raises(ShadowKeepError, match="Clipboard unavailable"):
            copy_to_clipboard("secret")
