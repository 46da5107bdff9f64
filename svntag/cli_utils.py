"""
Common CLI utilities and decorators for consistent command behavior.
"""

import json
import sys
import click
from functools import wraps
from typing import Dict, Iterable, Optional, Tuple

from .exit_codes import (
    INTERRUPTED,
    get_exit_code_for_exception, CommandError
)


def handle_errors(func):
    """
    Decorator giving commands consistent error handling:
    - CommandError exits with its own exit code
    - Ctrl+C exits with INTERRUPTED
    - Errors are reported on stderr, and as a JSON object on stdout
      when the command was asked for --json
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        output_json = kwargs.get('output_json', False)
        try:
            return func(*args, **kwargs)
        except KeyboardInterrupt:
            click.echo("Interrupted by user", err=True)
            sys.exit(INTERRUPTED)
        except click.ClickException:
            # Click exceptions already have their exit code
            raise
        except CommandError as e:
            _report_error(e, e.exit_code, output_json)
            sys.exit(e.exit_code)
        except (OSError, ValueError) as e:
            code = get_exit_code_for_exception(e)
            _report_error(e, code, output_json)
            sys.exit(code)

    return wrapper


def _report_error(error: Exception, exit_code: int, output_json: bool) -> None:
    click.echo(f"Error: {error}", err=True)
    if output_json:
        error_obj = {
            "error": str(error),
            "type": type(error).__name__,
            "exit_code": exit_code,
        }
        # Add extra fields for PartialSuccessError
        if hasattr(error, 'succeeded'):
            error_obj['succeeded'] = error.succeeded
            error_obj['failed'] = error.failed
        print(json.dumps(error_obj, ensure_ascii=False), flush=True)


def parse_defines(defines: Iterable[str]) -> Dict[str, str]:
    """Parse NAME=VALUE pairs given with -D."""
    values = {}
    for item in defines:
        name, sep, value = item.partition('=')
        if not sep or not name.strip():
            raise click.BadParameter(f"Expected NAME=VALUE, got '{item}'", param_hint="'-D'")
        values[name.strip()] = value
    return values


def parse_module(value: str) -> Tuple[str, Optional[str]]:
    """
    Parse a --module value: 'URL' or 'URL=PATH'.

    Returns:
        (url, local_path or None)
    """
    if '://' not in value.split('=', 1)[0]:
        raise click.BadParameter(f"Expected URL or URL=PATH, got '{value}'", param_hint="'--module'")
    url, sep, path = value.partition('=')
    return url, (path if sep and path else None)


# Standard options that many commands share
common_options = {
    'config': click.option('--config', 'config_path', type=click.Path(dir_okay=False),
                           help='Configuration file (default: ~/.svntag/config.*)'),
    'json': click.option('--json', 'output_json', is_flag=True, help='Output as JSONL'),
    'pretty': click.option('--pretty', is_flag=True, help='Display with rich formatting'),
    'dry_run': click.option('--dry-run', is_flag=True,
                            help='Preview without changing the repository'),
    'debug': click.option('--debug', is_flag=True, help='Enable debug logging'),
}


def add_common_options(*option_names):
    """
    Decorator to add common options to a command.

    Example:
        @add_common_options('json', 'debug')
        def my_command(output_json, debug):
            ...
    """
    def decorator(func):
        for name in reversed(option_names):
            if name in common_options:
                func = common_options[name](func)
        return func
    return decorator

