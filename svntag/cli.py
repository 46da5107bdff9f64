#!/usr/bin/env python3

import click

from svntag.commands.tag import tag_cmd
from svntag.commands.record import record_cmd
from svntag.commands.check import check_cmd
from svntag.commands.config import config_cmd


@click.group()
@click.version_option(package_name="svntag")
def cli():
    """svntag - Tag Subversion modules after a successful build.

    Record the revisions a build checked out, then copy exactly those
    revisions to templated tag locations, replacing older tags.
    """
    pass


cli.add_command(tag_cmd)
cli.add_command(record_cmd)
cli.add_command(check_cmd)
cli.add_command(config_cmd)


def main():
    cli()

if __name__ == "__main__":
    main()
