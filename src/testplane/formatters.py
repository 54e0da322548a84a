"""CLI output formatting helpers."""

import json
from typing import Any

import click
import yaml


def print_config_yaml(data: dict[str, Any], section: str | None = None) -> None:
    """Print config as YAML, nested under the section name when given."""
    document = {section: data} if section else data
    click.echo(yaml.safe_dump(document, default_flow_style=False, sort_keys=False).rstrip("\n"))


def print_sources(sources: dict[str, str]) -> None:
    """Print where non-default config values came from."""
    if not sources:
        click.echo("All values are defaults.")
        return
    click.echo("Sources:")
    for key in sorted(sources):
        click.echo(f"  {key}: {sources[key]}")


def print_endpoints(endpoints: dict[str, Any], json_output: bool = False) -> None:
    """Print running fixture endpoints.

    Args:
        endpoints: Mapping of component name to URL, directory and PID
        json_output: Print a single JSON object instead of text
    """
    if json_output:
        click.echo(json.dumps(endpoints, default=str))
        return
    for name, info in endpoints.items():
        click.echo(f"{name}:")
        for key, value in info.items():
            click.echo(f"  {key}: {value}")
