"""CLI main entry point.

Runs the fixtures outside a test suite, e.g. to debug a binary's flags or
to keep a control plane up while iterating on tests:

    testplane up
    testplane up --etcd-only
    testplane which kube-apiserver
    testplane config show
"""

import json
import signal
import sys
import threading
from typing import Any, NoReturn

import click

from .config import ClusterConfig, load_config
from .errors import FixtureError
from .formatters import print_config_yaml, print_endpoints, print_sources
from .lightweight import ControlPlane, Etcd
from .process.binaries import find_binary
from .shared.logging import configure_logging, get_logger

logger = get_logger(__name__)


def fail(error: FixtureError) -> NoReturn:
    """Report a fixture error and exit with status 1."""
    click.echo(f"Error: {error}", err=True)
    sys.exit(1)


def wait_for_shutdown() -> None:
    """Block until SIGINT or SIGTERM."""
    stop = threading.Event()

    def handle_signal(signum: int, frame: Any) -> None:
        stop.set()

    signal.signal(signal.SIGTERM, handle_signal)
    signal.signal(signal.SIGINT, handle_signal)
    while not stop.wait(0.5):
        pass


def _load(ctx: click.Context) -> ClusterConfig:
    try:
        return load_config(ctx.obj["config_path"])
    except FixtureError as e:
        fail(e)


@click.group()
@click.option("-c", "--config", type=click.Path(), help="Config file path")
@click.option(
    "--log-level",
    envvar="TESTPLANE_LOG_LEVEL",
    type=click.Choice(["debug", "info", "warning", "error"], case_sensitive=False),
    default="warning",
    help="Log level (default: warning)",
)
@click.option("--json-logs", is_flag=True, help="Log as JSON")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.pass_context
def cli(
    ctx: click.Context,
    config: str | None,
    log_level: str,
    json_logs: bool,
    json_output: bool,
) -> None:
    """Ephemeral etcd and API server fixtures."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config
    ctx.obj["json_output"] = json_output
    configure_logging(level=log_level, json_output=json_logs)


@cli.command()
@click.option("--etcd-only", is_flag=True, help="Start etcd without an API server")
@click.pass_context
def up(ctx: click.Context, etcd_only: bool) -> None:
    """Start fixtures and keep them running until interrupted."""
    config = _load(ctx)

    if etcd_only:
        fixture: Any = Etcd(config.etcd)
    else:
        fixture = ControlPlane(config)

    try:
        fixture.start()
    except FixtureError as e:
        logger.error("start failed", error=e.to_dict())
        fail(e)

    try:
        print_endpoints(_endpoints(fixture), json_output=ctx.obj["json_output"])
        if not ctx.obj["json_output"]:
            click.echo("Press Ctrl+C to stop.")
        wait_for_shutdown()
    finally:
        logger.info("shutting down")
        try:
            fixture.stop()
        except FixtureError as e:
            fail(e)


def _endpoints(fixture: Any) -> dict[str, Any]:
    if isinstance(fixture, ControlPlane):
        members = [fixture.etcd, fixture.api_server]
    else:
        members = [fixture]
    return {
        member.component: {"url": member.url, "dir": str(member.dir), "pid": member.pid}
        for member in members
        if member is not None
    }


@cli.command()
@click.argument("component")
@click.option("--path", default="", help="Explicit path to check instead of searching")
def which(component: str, path: str) -> None:
    """Print the binary a fixture would run for COMPONENT."""
    try:
        click.echo(str(find_binary(component, path)))
    except FixtureError as e:
        fail(e)


@cli.group()
def config() -> None:
    """Inspect configuration."""
    pass


@config.command("show")
@click.option("--section", type=click.Choice(["etcd", "api_server"]), help="Show one section")
@click.pass_context
def config_show(ctx: click.Context, section: str | None) -> None:
    """Show effective configuration and where each value came from."""
    loaded = _load(ctx)
    data = loaded.to_dict()
    sources = loaded.sources
    if section:
        data = data[section]
        sources = {k: v for k, v in sources.items() if k.startswith(f"{section}.")}

    if ctx.obj["json_output"]:
        click.echo(json.dumps({"values": data, "sources": sources}, default=str))
        return

    print_config_yaml(data, section)
    print_sources(sources)


def main() -> None:
    """Console script entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
