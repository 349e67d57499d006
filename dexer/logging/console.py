"""Console logging helpers for dexer.

Colored, timestamped status lines for the CLI. Messages go to stderr so that
generated ninja or JSON on stdout can be piped straight into a file.
"""

import sys
from datetime import datetime

# Global verbose setting (can be modified at runtime)
_verbose_enabled: bool = False


def set_verbose(enabled: bool) -> None:
    """Enable or disable verbose output globally."""
    global _verbose_enabled
    _verbose_enabled = enabled


class Colors:
    """ANSI color codes for terminal output (bright variants)."""

    RESET = "\033[0m"
    BOLD = "\033[1m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    BLUE = "\033[94m"
    MAGENTA = "\033[95m"
    CYAN = "\033[96m"
    RED = "\033[91m"
    GRAY = "\033[90m"
    WHITE = "\033[97m"
    # Secondary info
    MUTED = "\033[90m"


def log(
    icon: str,
    message: str,
    color: str = Colors.RESET,
    dim: bool = False,
    module: str | None = None,
) -> None:
    """Print one status line, optionally tagged with the module name."""
    style = Colors.MUTED if dim else ""
    timestamp = datetime.now().strftime("%H:%M:%S")
    prefix = f"{Colors.CYAN}[{module}]{Colors.RESET} " if module else ""
    print(
        f"{Colors.GRAY}{timestamp}{Colors.RESET} {prefix}{style}{color}{icon} {message}{Colors.RESET}",
        file=sys.stderr,
    )


def log_verbose(icon: str, message: str, module: str | None = None) -> None:
    """Like log(), but only when verbose output is enabled."""
    if _verbose_enabled:
        log(icon, message, Colors.MUTED, module=module)
