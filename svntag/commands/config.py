import click
import copy
import json
from pathlib import Path

from svntag.cli_utils import handle_errors
from svntag.config import get_config_path, get_default_config, load_config, save_config


@click.group("config")
def config_cmd():
    """Configuration management commands."""
    pass


@config_cmd.command("show")
@click.option("--pretty", is_flag=True, help="Display as formatted JSON instead of single-line JSONL")
@click.option("--path", is_flag=True, help="Show the config file path being used")
@click.option("--config", "config_path", type=click.Path(dir_okay=False),
              help="Configuration file (default: ~/.svntag/config.*)")
@handle_errors
def show_config(pretty, path, config_path):
    """Show the current configuration with all merges applied.

    By default, outputs single-line JSON (JSONL format).
    Use --pretty for human-readable formatted output.
    Use --path to see which config file is being used.
    The svn password is never shown.
    """
    if path:
        print(json.dumps({"config_path": str(Path(config_path) if config_path else get_config_path())}))
        return

    config = copy.deepcopy(load_config(config_path))
    svn = config.get("svn") or {}
    if svn.get("password"):
        svn["password"] = "***"

    if pretty:
        print(json.dumps(config, indent=2, ensure_ascii=False))
    else:
        print(json.dumps(config, ensure_ascii=False))


@config_cmd.command("init")
@click.option("--config", "config_path", type=click.Path(dir_okay=False),
              help="File to write (default: ~/.svntag/config.json); .toml and .yaml are supported")
@click.option("--tag-url", default="", help="Initial tag URL template")
@click.option("--force", is_flag=True, help="Overwrite an existing configuration file")
@handle_errors
def init_config(config_path, tag_url, force):
    """Write a configuration file with the default settings."""
    target = Path(config_path) if config_path else get_config_path()
    if target.exists() and not force:
        raise click.ClickException(f"Configuration already exists at {target} (use --force to overwrite)")

    config = get_default_config()
    config["tag"]["tag_url"] = tag_url
    written = save_config(config, target)
    click.echo(f"Configuration written to {written}")
