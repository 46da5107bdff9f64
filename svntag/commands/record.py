"""
Record command for svntag.

Writes the revision ledger for a set of working copies, normally run
right after the build's checkout so `svntag tag` later tags exactly what
was built.
"""

import json
import sys
from typing import Optional

import click

from ..cli_utils import add_common_options, handle_errors
from ..config import configure_logging, load_config
from ..exit_codes import NoModulesFoundError
from ..infra.svn_client import SvnAuth, SvnClient
from ..ledger import parse_ledger, write_ledger
from ..services.build_context import record_revisions


@click.command('record')
@click.argument('checkouts', nargs=-1, type=click.Path(exists=True, file_okay=False))
@click.option('--ledger', 'ledger_path', type=click.Path(dir_okay=False),
              help='Revision ledger file (default: ledger.path from config)')
@click.option('--merge', is_flag=True,
              help='Keep records already in the ledger for other URLs')
@click.option('--username', help='Subversion user name (default: svn.username from config)')
@add_common_options('config', 'json', 'debug')
@handle_errors
def record_cmd(
    checkouts: tuple,
    ledger_path: Optional[str],
    merge: bool,
    username: Optional[str],
    config_path: Optional[str],
    output_json: bool,
    debug: bool,
):
    """
    Record the checked-out revision of each working copy.

    \b
    Examples:
        # After checking out trunk and lib
        svntag record trunk lib --ledger revision.txt
        # Add another module to an existing ledger
        svntag record tools --merge
    """
    config = load_config(config_path)
    configure_logging(config, debug=debug)

    if not checkouts:
        raise NoModulesFoundError("No working copies given")

    client = SvnClient.from_config(config, SvnAuth.from_config(config, username=username))
    path = ledger_path or (config.get('ledger', {}) or {}).get('path') or 'revision.txt'

    revisions = {}
    if merge:
        revisions.update(parse_ledger(path))
    recorded = record_revisions(checkouts, client)
    revisions.update(recorded)

    written = write_ledger(path, revisions)

    if output_json:
        for url, revision in recorded.items():
            print(json.dumps({'url': url, 'revision': revision}), flush=True)
        print(json.dumps({'type': 'summary', 'ledger': str(written),
                          'recorded': len(recorded), 'total': len(revisions)}), flush=True)
    else:
        for url, revision in recorded.items():
            print(f"{url}@{revision}", file=sys.stderr)
        print(f"Recorded {len(recorded)} revision(s) in {written}", file=sys.stderr)
