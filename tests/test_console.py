"""Tests for console.py module."""

from unittest.mock import patch

import pytest
from rich.panel import Panel

from secret_syncer import console


class TestConsoleOutput:
    """Tests for console output functions."""

    @pytest.mark.parametrize(
        ("func", "icon"),
        [
            (console.info, "ℹ"),
            (console.success, "✓"),
            (console.warning, "⚠"),
            (console.error, "✗"),
            (console.action, "→"),
            (console.step, "•"),
        ],
    )
    def test_message_prefix(self, func, icon):
        """Test that every message kind carries its icon."""
        with patch.object(console.console, "print") as mock_print:
            func("payments/api-key synced")

        call_arg = mock_print.call_args[0][0]
        assert call_arg.endswith(" payments/api-key synced")
        assert icon in call_arg

    def test_highlight_returns_markup(self):
        """Test highlight returns Rich markup."""
        assert console.highlight("synced-secrets") == "[highlight]synced-secrets[/highlight]"

    def test_newline(self):
        """Test newline prints empty line."""
        with patch.object(console.console, "print") as mock_print:
            console.newline()
            mock_print.assert_called_once_with()


class TestConsoleWidgets:
    """Tests for spinner, progress and panels."""

    def test_spinner_context_manager(self):
        """Test spinner works as context manager."""
        with patch.object(console.console, "status") as mock_status:
            with console.spinner("Checking cluster connection..."):
                pass
            mock_status.assert_called_once()
            assert "Checking cluster connection..." in mock_status.call_args[0][0]

    def test_task_progress_uses_shared_console(self):
        """Test task progress bar creation."""
        assert console.create_task_progress().console is console.console

    def test_summary_panel(self):
        """Test summary panel renders a panel."""
        with patch.object(console.console, "print") as mock_print:
            console.summary_panel("Secrets Synced", {"Created": "2", "Failed": "0"})

        panel = mock_print.call_args[0][0]
        assert isinstance(panel, Panel)
