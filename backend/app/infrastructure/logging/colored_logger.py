"""Colored pipeline logger — ANSI-colored console logging for sync and embedding runs.

Provides a PipelineLogger with color-coded output per pipeline stage,
making it easy to follow one sync run (site → collection → item) or one
embedding run (batch after batch) in the terminal.

Color scheme:
    🔵 Blue    — Sync run / Sites
    🟡 Yellow  — Collections / Items
    🟣 Magenta — Chunking
    🟠 Cyan    — Embedding batches
    ⚪ White   — Audit records
    🔴 Red     — Errors
    ⚪ Gray    — Timing / Stats
"""

import logging
import time
from contextlib import contextmanager
from typing import Any


# ── ANSI Color Codes ─────────────────────────────────────────────────

class _Colors:
    """ANSI escape codes for terminal colors."""

    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    RED = "\033[91m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    BLUE = "\033[94m"
    MAGENTA = "\033[95m"
    CYAN = "\033[96m"
    WHITE = "\033[97m"
    GRAY = "\033[90m"


# ── Pipeline Stage Definitions ───────────────────────────────────────

class PipelineStage:
    """Predefined pipeline stages with colors and icons."""

    SYNC = ("SYNC", _Colors.BLUE, "🔄")
    SITE = ("SITE", _Colors.BLUE, "🌐")
    COLLECTION = ("COLLECTION", _Colors.YELLOW, "🗂️")
    ITEM = ("ITEM", _Colors.YELLOW, "📄")
    CHUNK = ("CHUNK", _Colors.MAGENTA, "✂️")
    EMBED = ("EMBED", _Colors.CYAN, "🧮")
    AUDIT = ("AUDIT", _Colors.WHITE, "📝")
    ERROR = ("ERROR", _Colors.RED, "❌")
    COMPLETE = ("COMPLETE", _Colors.GREEN, "✅")


def _format_details(kwargs: dict[str, Any], color: str) -> str:
    details = " | ".join(f"{k}={v}" for k, v in kwargs.items())
    return f" {color}({details}){_Colors.RESET}"


# ── PipelineLogger ───────────────────────────────────────────────────

class PipelineLogger:
    """Color-coded logger for sync and embedding runs.

    Usage:
        log = PipelineLogger("ContentSync")
        log.step_start(PipelineStage.COLLECTION, "Blog Posts", site="My Site")
        log.detail("page 1: 25 items")
        log.step_complete(PipelineStage.COLLECTION, "Blog Posts", items=25)
    """

    def __init__(self, component_name: str):
        self._logger = logging.getLogger(component_name)

    def step_start(self, stage: tuple[str, str, str], message: str, **kwargs: Any) -> None:
        """Log the start of a pipeline step with its stage color."""
        label, color, icon = stage
        formatted = (
            f"{color}{_Colors.BOLD}{icon} [{label}]{_Colors.RESET} "
            f"{color}{message}{_Colors.RESET}"
        )
        if kwargs:
            formatted += _format_details(kwargs, _Colors.GRAY)
        self._logger.info(formatted)

    def step_complete(self, stage: tuple[str, str, str], message: str, **kwargs: Any) -> None:
        """Log the successful completion of a pipeline step."""
        label, color, icon = stage
        formatted = (
            f"{color}{icon} [{label}]{_Colors.RESET} "
            f"{_Colors.GREEN}✓ {message}{_Colors.RESET}"
        )
        if kwargs:
            formatted += _format_details(kwargs, _Colors.GRAY)
        self._logger.info(formatted)

    def step_error(self, stage: tuple[str, str, str], message: str, error: BaseException | None = None) -> None:
        """Log a pipeline step error in red."""
        label, _, _ = stage
        formatted = (
            f"{_Colors.RED}{_Colors.BOLD}❌ [{label}]{_Colors.RESET} "
            f"{_Colors.RED}{message}{_Colors.RESET}"
        )
        if error:
            formatted += f" {_Colors.DIM}→ {type(error).__name__}: {error}{_Colors.RESET}"
        self._logger.error(formatted)

    def step_warning(self, stage: tuple[str, str, str], message: str) -> None:
        """Log a recoverable problem (item skipped, batch failed) in yellow."""
        label, _, icon = stage
        self._logger.warning(
            f"{_Colors.YELLOW}{icon} [{label}] ⚠ {message}{_Colors.RESET}"
        )

    def detail(self, message: str, **kwargs: Any) -> None:
        """Log additional detail (gray/dimmed)."""
        formatted = f"   {_Colors.GRAY}├─ {message}{_Colors.RESET}"
        if kwargs:
            formatted += _format_details(kwargs, _Colors.DIM)
        self._logger.debug(formatted)

    def separator(self, title: str = "") -> None:
        """Log a visual separator line."""
        if title:
            self._logger.info(
                f"{_Colors.GRAY}{'─' * 10} {title} {'─' * max(50 - len(title), 4)}{_Colors.RESET}"
            )
        else:
            self._logger.info(f"{_Colors.GRAY}{'─' * 60}{_Colors.RESET}")

    def stats(self, **kwargs: Any) -> None:
        """Log run counters / timing information."""
        parts = [f"{k}: {v}" for k, v in kwargs.items()]
        self._logger.info(f"   {_Colors.GRAY}📈 {' | '.join(parts)}{_Colors.RESET}")

    @contextmanager
    def timed_step(self, stage: tuple[str, str, str], message: str, **kwargs: Any):
        """Context manager that logs start/end with elapsed time.

        Usage:
            with log.timed_step(PipelineStage.SITE, "Syncing My Site"):
                ...
        """
        self.step_start(stage, message, **kwargs)
        start = time.perf_counter()
        try:
            yield
        except Exception as e:
            elapsed = time.perf_counter() - start
            self.step_error(stage, f"{message} failed after {elapsed:.2f}s", error=e)
            raise
        else:
            elapsed = time.perf_counter() - start
            self.step_complete(stage, f"{message} in {elapsed:.2f}s")
