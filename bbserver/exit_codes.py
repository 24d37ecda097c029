"""
Standard exit codes and error types for bbserver.

Following Unix/POSIX conventions for command-line tools. Every error the
driver raises derives from CommandError so the CLI can map it to an exit code.
"""
from typing import Optional

# Standard POSIX exit codes
SUCCESS = 0              # Successful termination
GENERAL_ERROR = 1        # General errors
USAGE_ERROR = 2          # Misuse of shell command (wrong arguments, etc.)

# Application-specific exit codes (64-113 are typically available)
NOT_SUPPORTED = 64       # URL is not handled by this driver
CONFIG_ERROR = 66        # Configuration file error
NETWORK_ERROR = 68       # Network connection failed
AUTH_ERROR = 69          # Authentication/authorization failed
DATA_ERROR = 70          # Data format or validation error
INTERRUPTED = 130        # Terminated by Ctrl+C (SIGINT)

# Exit code mappings for common exceptions
EXCEPTION_EXIT_CODES = {
    'PermissionError': AUTH_ERROR,
    'ConnectionError': NETWORK_ERROR,
    'TimeoutError': NETWORK_ERROR,
    'ValueError': DATA_ERROR,
    'JSONDecodeError': DATA_ERROR,
    'KeyboardInterrupt': INTERRUPTED,
}


def get_exit_code_for_exception(exc: BaseException) -> int:
    """
    Get the appropriate exit code for an exception.

    Args:
        exc: The exception that occurred

    Returns:
        Appropriate exit code
    """
    if isinstance(exc, CommandError):
        return exc.exit_code
    return EXCEPTION_EXIT_CODES.get(exc.__class__.__name__, GENERAL_ERROR)


class CommandError(Exception):
    """
    Base error carrying the exit code the CLI should terminate with.
    """
    def __init__(self, message: str, exit_code: int = GENERAL_ERROR):
        super().__init__(message)
        self.exit_code = exit_code


class InvalidUrlError(CommandError):
    """Raised when a URL does not look like a Bitbucket Server repository URL."""
    def __init__(self, url: str):
        super().__init__(
            f"The Bitbucket Server repository URL {url} is invalid. "
            "It must be the HTTP(s) URL of a Bitbucket server project.",
            USAGE_ERROR,
        )
        self.url = url


class UnsupportedOriginError(CommandError):
    """Raised when a URL's host matches none of the configured Bitbucket Server domains."""
    def __init__(self, url: str):
        super().__init__(
            f"{url} does not match any entry of bitbucket-server-domains",
            CONFIG_ERROR,
        )
        self.url = url


class UnsupportedVcsError(CommandError):
    """Raised when the remote repository is not a git repository."""
    def __init__(self, url: str, vcs_type: Optional[str], clone_url: str = ""):
        message = f"{url} does not appear to be a git repository"
        if clone_url:
            message += f", use {clone_url}"
        super().__init__(message, DATA_ERROR)
        self.url = url
        self.vcs_type = vcs_type


class TransportError(CommandError):
    """Raised when an HTTP request fails or returns a non-2xx status."""
    def __init__(self, message: str, url: str = "", status_code: Optional[int] = None):
        exit_code = AUTH_ERROR if status_code in (401, 403) else NETWORK_ERROR
        super().__init__(message, exit_code)
        self.url = url
        self.status_code = status_code


class FallbackInitError(TransportError):
    """
    Raised when the REST API failed and the clone-based fallback driver
    cannot be set up either.

    Carries the url and status of the failed REST request, so callers that
    handle TransportError see it too.
    """
    def __init__(self, message: str, ssh_url: str = "", url: str = "", status_code: Optional[int] = None):
        super().__init__(message, url=url, status_code=status_code)
        self.exit_code = AUTH_ERROR
        self.ssh_url = ssh_url


class ConfigError(CommandError):
    """Raised when there's a configuration error."""
    def __init__(self, message: str):
        super().__init__(message, CONFIG_ERROR)
