"""
Standard exit codes and error types for svntag commands.

Following Unix/POSIX conventions for command-line tools.
"""
from typing import Optional

# Standard POSIX exit codes
SUCCESS = 0              # Successful termination
GENERAL_ERROR = 1        # General errors
USAGE_ERROR = 2          # Misuse of shell command (wrong arguments, etc.)

# Application-specific exit codes (64-113 are typically available)
NO_MODULES_FOUND = 64    # No module locations to tag
SVN_ERROR = 65           # The svn client reported an error
CONFIG_ERROR = 66        # Configuration file error
LEDGER_ERROR = 67        # Revision ledger could not be read
TEMPLATE_ERROR = 68      # Template could not be evaluated
AUTH_ERROR = 69          # Authentication unavailable
PARTIAL_SUCCESS = 71     # Some modules were tagged, then the run aborted
INTERRUPTED = 130        # Terminated by Ctrl+C (SIGINT)

# Exit code mappings for common exceptions
EXCEPTION_EXIT_CODES = {
    'FileNotFoundError': GENERAL_ERROR,
    'PermissionError': GENERAL_ERROR,
    'ValueError': USAGE_ERROR,
    'ConfigError': CONFIG_ERROR,
    'LedgerUnreadableError': LEDGER_ERROR,
    'TemplateError': TEMPLATE_ERROR,
    'AuthUnavailableError': AUTH_ERROR,
    'SvnError': SVN_ERROR,
    'CopyFailedError': SVN_ERROR,
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
    exit_code = getattr(exc, 'exit_code', None)
    if isinstance(exit_code, int):
        return exit_code
    exc_name = exc.__class__.__name__
    return EXCEPTION_EXIT_CODES.get(exc_name, GENERAL_ERROR)


class CommandError(Exception):
    """
    Exception that commands can raise to indicate specific exit codes.
    """
    def __init__(self, message: str, exit_code: int = GENERAL_ERROR):
        super().__init__(message)
        self.exit_code = exit_code


class NoModulesFoundError(CommandError):
    """Raised when there is nothing to tag."""
    def __init__(self, message: str = "No module locations given"):
        super().__init__(message, NO_MODULES_FOUND)


class ConfigError(CommandError):
    """Raised when there's a configuration error."""
    def __init__(self, message: str):
        super().__init__(message, CONFIG_ERROR)


class LedgerUnreadableError(CommandError):
    """Raised when a ledger file exists but cannot be read."""
    def __init__(self, message: str):
        super().__init__(message, LEDGER_ERROR)


class TemplateError(CommandError):
    """Raised when a template cannot be parsed or a reference cannot be resolved."""
    def __init__(self, message: str):
        super().__init__(message, TEMPLATE_ERROR)


class AuthUnavailableError(CommandError):
    """Raised when no authentication provider is available for the repository."""
    def __init__(self, message: str = "No Subversion authentication provider available"):
        super().__init__(message, AUTH_ERROR)


class SvnError(CommandError):
    """Raised when an svn invocation fails."""
    def __init__(self, message: str, returncode: Optional[int] = None):
        super().__init__(message, SVN_ERROR)
        self.returncode = returncode


class CopyFailedError(CommandError):
    """Raised when copying a module to its tag location fails."""
    def __init__(self, message: str):
        super().__init__(message, SVN_ERROR)


class PartialSuccessError(CommandError):
    """Raised when some modules were tagged before the run aborted."""
    def __init__(self, message: str, succeeded: int = 0, failed: int = 0):
        super().__init__(message, PARTIAL_SUCCESS)
        self.succeeded = succeeded
        self.failed = failed
