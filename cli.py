# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0

"""args-filter CLI - validate rules files and filter query strings"""

import json
import logging
import sys
from pathlib import Path
from typing import Optional

import click

from argsfilter import __version__
from argsfilter.core.config import get_config
from argsfilter.core.exceptions import ArgsFilterError
from argsfilter.core.loader import load_file
from argsfilter.core.logger import get_logger
from argsfilter.core.registry import FilterRegistry
from argsfilter.core.variable import evaluate

logger = logging.getLogger("argsfilter.cli")


def _resolve_rules(config: Optional[str]) -> Path:
    if config:
        return Path(config)

    default = get_config().filters.config_file
    if default is None:
        click.echo(
            "No rules file given and filters.config_file is not set "
            "(use ARGSFILTER_CONFIG or pass a path).",
            err=True,
        )
        raise click.Abort()
    return default


def _load_or_exit(path: Path) -> FilterRegistry:
    try:
        return load_file(path)
    except ArgsFilterError as e:
        click.echo(f"[-] {e.message}", err=True)
        click.echo(f"configuration file {path} test failed", err=True)
        sys.exit(1)


@click.group()
@click.version_option(version=__version__)
@click.option("--log-level", "-l", default=None, help="DEBUG, INFO, WARNING, ERROR")
def cli(log_level: Optional[str]):
    """args-filter - keep only the query-string keys you declare.

    Core commands:
        argsfilter check   - Validate a rules file
        argsfilter apply   - Filter a query string with a declared variable
        argsfilter show    - List declared variables and their rules
    """
    settings = get_config()
    level = log_level or settings.observability.log_level
    log_dir = settings.observability.log_dir if settings.observability.file_logging else None
    get_logger("argsfilter", level=level, log_dir=log_dir)


@cli.command()
@click.argument("config", type=click.Path(exists=True, dir_okay=False), required=False)
def check(config: Optional[str]):
    """Validate a rules file, like a server's configuration test.

    Examples:
        argsfilter check rules.yaml
        ARGSFILTER_CONFIG=rules.yaml argsfilter check
    """
    path = _resolve_rules(config)
    registry = _load_or_exit(path)
    click.echo(f"[+] {len(registry)} args_filter block(s) compiled")
    click.echo(f"configuration file {path} test is successful")


@cli.command()
@click.argument("name")
@click.argument("query")
@click.option("--config", "-c", type=click.Path(exists=True, dir_okay=False), help="Rules file")
def apply(name: str, query: str, config: Optional[str]):
    """Print QUERY filtered through the variable NAME.

    Examples:
        argsfilter apply -c rules.yaml '$filtered_args' 'x=1&ads.foo=2&y=4'
    """
    registry = _load_or_exit(_resolve_rules(config))

    result = evaluate(registry, name, query.encode("utf-8"))
    if result is None:
        click.echo(f"[-] args_filter variable {name} is not declared", err=True)
        sys.exit(1)

    click.echo(result.value.decode("utf-8", errors="replace"))


@cli.command()
@click.argument("config", type=click.Path(exists=True, dir_okay=False), required=False)
@click.option("--output", "-o", type=click.Choice(["text", "json"]), default="text")
def show(config: Optional[str], output: str):
    """List declared variables and their compiled rules."""
    registry = _load_or_exit(_resolve_rules(config))

    if output == "json":
        data = {f"${name}": definition.to_dict() for name, definition in registry.items()}
        click.echo(json.dumps(data, indent=2))
        return

    if not len(registry):
        click.echo("No args_filter blocks declared")
        return

    for name, definition in registry.items():
        flags = []
        if definition.volatile:
            flags.append("volatile")
        if definition.is_identity():
            flags.append("identity")
        suffix = f" ({', '.join(flags)})" if flags else ""

        click.echo(f"${name}: initial {definition.initial.value}{suffix}")
        for idx, rule in enumerate(definition.rules):
            info = rule.to_dict()
            mode = ""
            if info["matcher"] == "regex":
                mode = "~* " if info["case_insensitive"] else "~ "
            click.echo(f"  [{idx}] {info['action']} {mode}{info['value']}")


if __name__ == "__main__":
    cli()
