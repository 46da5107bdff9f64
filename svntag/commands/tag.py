"""
Tag command for svntag.

Tags every module of a finished build: the exact revision recorded in the
revision ledger is copied to a templated tag location, replacing any tag
already there.
"""

import json
import os
import sys
from typing import Optional

import click

from ..cli_utils import add_common_options, handle_errors, parse_defines, parse_module
from ..config import configure_logging, load_config, validate_config
from ..domain.module import ModuleLocation
from ..domain.operation import TagStatus
from ..domain.tagging import TagSpec
from ..exit_codes import CommandError, NoModulesFoundError, PartialSuccessError
from ..infra.svn_client import SvnAuth, SvnClient
from ..services.build_context import (
    BUILD_RESULTS,
    LocalBuildContext,
    default_system_properties,
    locations_from_checkouts,
)
from ..services.tag_service import TagService


@click.command('tag')
@click.argument('checkouts', nargs=-1, type=click.Path(exists=True, file_okay=False))
@click.option('--module', 'modules', multiple=True, metavar='URL[=PATH]',
              help='Module to tag, optionally with its working copy path (repeatable)')
@click.option('--ledger', 'ledger_path', type=click.Path(dir_okay=False),
              help='Revision ledger file (default: ledger.path from config)')
@click.option('--tag-url', help="Tag URL template, e.g. \"../tags/${env['BUILD_TAG']}\"")
@click.option('--comment', help='Commit message template for the tag copy')
@click.option('--delete-comment', help='Commit message template for deleting an old tag')
@click.option('--mkdir-comment',
              help='Create the tag parent by importing an empty directory with this message')
@click.option('--peg-externals/--no-peg-externals', default=None,
              help='Copy from the working copy with externals pinned to their checked-out revisions')
@click.option('--wait', 'wait_seconds', type=click.FloatRange(min=0),
              help='Seconds to wait once before the first copy')
@click.option('-D', '--define', 'defines', multiple=True, metavar='NAME=VALUE',
              help="Extra value visible to templates as ${sys['NAME']} (repeatable)")
@click.option('--build-result', type=click.Choice(BUILD_RESULTS, case_sensitive=False),
              default='SUCCESS', show_default=True,
              help='Result of the build; only successful builds are tagged')
@click.option('--username', help='Subversion user name (default: svn.username from config)')
@add_common_options('config', 'json', 'pretty', 'dry_run', 'debug')
@handle_errors
def tag_cmd(
    checkouts: tuple,
    modules: tuple,
    ledger_path: Optional[str],
    tag_url: Optional[str],
    comment: Optional[str],
    delete_comment: Optional[str],
    mkdir_comment: Optional[str],
    peg_externals: Optional[bool],
    wait_seconds: Optional[float],
    defines: tuple,
    build_result: str,
    username: Optional[str],
    config_path: Optional[str],
    output_json: bool,
    pretty: bool,
    dry_run: bool,
    debug: bool,
):
    """
    Tag the modules of a build at the revisions it checked out.

    Modules are given as working copy directories (their URL is read with
    svn info) and/or with --module. Each module's revision is looked up in
    the revision ledger written by `svntag record`; modules without one are
    skipped.

    \b
    Template references:
        ${env['NAME']}     build environment variable
        ${sys['NAME']}     system property (see -D)
        ${repoURL[i]}      segment i of the module URL split on '/'

    \b
    Examples:
        # Preview the tag locations
        svntag tag trunk --tag-url "../tags/${env['BUILD_TAG']}" --dry-run
        # Tag two modules given by URL
        svntag tag --module http://svn/repo/a/trunk --module http://svn/repo/b/trunk \\
            --tag-url "http://svn/repo/${repoURL[-2]}/tags/build-${env['BUILD_NUMBER']}"
        # Freeze externals to the revisions in the working copy
        svntag tag trunk --peg-externals --tag-url "../tags/release"
    """
    config = load_config(config_path)
    configure_logging(config, debug=debug)

    spec = TagSpec.from_config(
        config,
        tag_url_template=tag_url,
        tag_comment_template=comment,
        delete_comment_template=delete_comment,
        mkdir_comment_template=mkdir_comment,
        peg_externals=peg_externals,
        wait_seconds=wait_seconds,
        dry_run=dry_run,
    )
    validate_config({'tag': spec.to_dict()})

    client = SvnClient.from_config(config, SvnAuth.from_config(config, username=username))

    locations = [ModuleLocation(url, path or '.') for url, path in map(parse_module, modules)]
    locations.extend(locations_from_checkouts(checkouts, client))
    if not locations:
        raise NoModulesFoundError("No modules given; pass working copies or --module URL")

    properties = dict((config.get('template', {}) or {}).get('properties') or {})
    properties.update(parse_defines(defines))

    context = LocalBuildContext(
        locations,
        ledger_path or (config.get('ledger', {}) or {}).get('path') or 'revision.txt',
        environment=os.environ,
        properties=default_system_properties(properties),
        auth=client.auth,
        build_result=build_result,
    )

    service = TagService(config=config, svn_client=client)
    progress_iter = service.tag_modules(context, spec)

    if pretty:
        _tag_output_pretty(service, progress_iter, spec, len(locations))
    elif output_json:
        _tag_output_json(service, progress_iter)
    else:
        _tag_output_simple(service, progress_iter, spec)

    _raise_for_result(service)


def _raise_for_result(service: TagService) -> None:
    """Turn an unsuccessful run into the matching CommandError."""
    result = service.last_result
    if result is None or result.success:
        return

    if result.successful > 0 and not result.dry_run:
        raise PartialSuccessError(
            f"Tagged {result.successful} module(s) before the run aborted",
            succeeded=result.successful,
            failed=result.failed,
        )
    if service.last_error is not None:
        raise service.last_error
    raise CommandError("; ".join(result.errors) or "Tagging failed")


def _tag_output_simple(service, progress_iter, spec):
    """Plain text progress and summary on stderr."""
    mode = "[dry run] " if spec.dry_run else ""

    for progress in progress_iter:
        print(f"{mode}{progress}", file=sys.stderr)

    result = service.last_result
    if result and result.total:
        print(f"\n{mode}Tagging complete:", file=sys.stderr)
        print(f"  Tagged: {result.successful}", file=sys.stderr)
        if result.skipped > 0:
            print(f"  Skipped: {result.skipped}", file=sys.stderr)
        if result.failed > 0:
            print(f"  Failed: {result.failed}", file=sys.stderr)


def _tag_output_json(service, progress_iter):
    """JSONL output: progress lines, one object per module, then the summary."""
    for progress in progress_iter:
        print(json.dumps({'progress': progress}, ensure_ascii=False), flush=True)

    result = service.last_result
    if result:
        for detail in result.details:
            print(json.dumps(detail.to_dict(), ensure_ascii=False), flush=True)
        print(json.dumps(result.to_dict(), ensure_ascii=False), flush=True)


_STATUS_STYLES = {
    TagStatus.SUCCESS: "green",
    TagStatus.DRY_RUN: "cyan",
    TagStatus.SKIPPED: "yellow",
    TagStatus.FAILED: "red",
}


def _tag_output_pretty(service, progress_iter, spec, module_count):
    """Rich formatted output with a spinner while tagging and a per-module table."""
    from rich.console import Console
    from rich.markup import escape
    from rich.progress import Progress, SpinnerColumn, TextColumn
    from rich.table import Table

    console = Console(stderr=True)
    mode = "[bold yellow]DRY RUN[/bold yellow] " if spec.dry_run else ""

    console.print(f"\n{mode}[bold]Tag Modules[/bold]")
    console.print(f"[bold]Tag URL:[/bold] {escape(spec.tag_url_template)}")
    if spec.peg_externals:
        console.print("[bold]Externals:[/bold] pegged")
    console.print(f"[bold]Modules:[/bold] {module_count}")
    console.print()

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        task = progress.add_task("Processing...", total=None)

        for message in progress_iter:
            progress.update(task, description=escape(message))

    result = service.last_result
    if result is None:
        console.print("[red]Tagging failed - no result[/red]")
        return

    if result.fatal_error:
        console.print(f"[red]✗[/red] {escape(result.fatal_error)}")
        return

    if result.details:
        table = Table(title=f"{mode}Tags", show_header=True)
        table.add_column("Module", style="cyan")
        table.add_column("Revision", justify="right")
        table.add_column("Tag URL")
        table.add_column("Status")

        for detail in result.details:
            style = _STATUS_STYLES.get(detail.status, "white")
            status = detail.status.value
            if detail.new_revision is not None:
                status = f"{status} (r{detail.new_revision})"
            table.add_row(
                escape(detail.module.repository_url),
                str(detail.revision) if detail.revision is not None else "-",
                escape(detail.tag_url or "-"),
                f"[{style}]{status}[/{style}]",
            )
        console.print(table)

    for detail in result.details:
        for warning in detail.warnings:
            console.print(f"  [yellow]![/yellow] {escape(detail.name)}: {escape(warning)}")

    if result.errors:
        console.print(f"\n[red]Errors ({len(result.errors)}):[/red]")
        for error in result.errors:
            console.print(f"  [red]•[/red] {escape(error)}")
    elif not spec.dry_run and result.successful > 0:
        console.print(f"\n[bold green]✓[/bold green] Tagged {result.successful} module(s)")
