"""
Check command for svntag.

Validates tag templates before they are used by a build, and optionally
shows what they evaluate to for a sample repository URL.
"""

import json
import sys
from typing import Optional

import click

from ..cli_utils import add_common_options, handle_errors, parse_defines
from ..config import configure_logging, load_config, validate_config
from ..exit_codes import TemplateError
from ..template import SAMPLE_REPOSITORY_URL, check_template, preview


@click.command('check')
@click.argument('templates', nargs=-1)
@click.option('--preview', 'show_preview', is_flag=True,
              help='Evaluate each template against a sample repository URL')
@click.option('--url', 'repository_url', default=SAMPLE_REPOSITORY_URL,
              help='Repository URL used by --preview')
@click.option('-e', '--env', 'env_values', multiple=True, metavar='NAME=VALUE',
              help="Value visible as ${env['NAME']} in --preview (repeatable)")
@click.option('-D', '--define', 'defines', multiple=True, metavar='NAME=VALUE',
              help="Value visible as ${sys['NAME']} in --preview (repeatable)")
@add_common_options('config', 'json', 'debug')
@handle_errors
def check_cmd(
    templates: tuple,
    show_preview: bool,
    repository_url: str,
    env_values: tuple,
    defines: tuple,
    config_path: Optional[str],
    output_json: bool,
    debug: bool,
):
    """
    Check that tag templates are valid.

    With no arguments, the templates in the configuration are checked.

    \b
    Examples:
        svntag check "../tags/${env['BUILD_TAG']}"
        svntag check --preview -e BUILD_NUMBER=7 "tags/${repoURL[-1]}-${env['BUILD_NUMBER']}"
    """
    config = load_config(config_path)
    configure_logging(config, debug=debug)

    if not templates:
        validate_config(config)
        templates = tuple(
            value for key, value in (config.get('tag', {}) or {}).items()
            if key in ('tag_url', 'comment', 'delete_comment', 'mkdir_comment') and value
        )

    environment = parse_defines(env_values)
    properties = parse_defines(defines)

    failures = 0
    for template in templates:
        record = {'template': template, 'valid': True}
        try:
            if not template.strip():
                raise TemplateError("Template is empty")
            record['references'] = check_template(template)
            if show_preview:
                record['preview'] = preview(template, environment, properties, repository_url)
        except TemplateError as e:
            failures += 1
            record['valid'] = False
            record['error'] = str(e)

        if output_json:
            print(json.dumps(record, ensure_ascii=False), flush=True)
        elif record['valid']:
            line = f"✓ {template}"
            if 'preview' in record:
                line += f"  ->  {record['preview']}"
            print(line)
        else:
            print(f"✗ {template}: {record['error']}", file=sys.stderr)

    if failures:
        raise TemplateError(f"{failures} of {len(templates)} template(s) invalid")
