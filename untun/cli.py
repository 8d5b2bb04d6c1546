"""untun command line."""

import json
import logging
import os
import sys

import click

from . import __version__, service
from .binary import BinaryManager
from .error_messages import describe_error
from .exceptions import UntunError
from .manager import start_tunnel
from .models import TunnelOptions


def configure_logging(debug: bool = False):
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _fail(error: Exception):
    info = describe_error(error)
    click.echo(f"Error: {info['message']}", err=True)
    click.echo(f"  {info['_technical']}", err=True)
    click.echo(f"  {info['guidance']}", err=True)
    sys.exit(1)


@click.group()
@click.version_option(version=__version__, prog_name="untun")
@click.option("--debug", is_flag=True, help="Show cloudflared output and debug logs")
def cli(debug):
    """Expose a local server to the internet with a cloudflared quick tunnel."""
    if debug:
        os.environ["DEBUG"] = "1"
    configure_logging(debug or bool(os.environ.get("DEBUG")))


@cli.command()
@click.argument("url", required=False)
@click.option("--port", help="The port of the tunnel (default: 3000)")
@click.option("--hostname", help="The hostname of the tunnel (default: localhost)")
@click.option("--protocol", type=click.Choice(["http", "https"]),
              help="The protocol of the tunnel (default: http)")
@click.option("--no-verify-tls", is_flag=True, help="Skip TLS verification of the local server")
@click.option("--accept-notice", is_flag=True, help="Accept the Cloudflare notice without prompting")
def tunnel(url, port, hostname, protocol, no_verify_tls, accept_notice):
    """Create a tunnel to a local server."""
    options = TunnelOptions(
        url=url,
        port=port,
        hostname=hostname,
        protocol=protocol,
        verify_tls=not no_verify_tls,
        accept_notice=accept_notice,
    )

    try:
        handle = start_tunnel(options)
    except UntunError as e:
        _fail(e)

    if handle is None:
        click.echo("Tunnel not started.")
        sys.exit(1)

    with handle:
        click.echo("Waiting for tunnel URL...")
        try:
            click.echo(f"Tunnel ready at {handle.get_url()}")
            handle.wait()
        except UntunError as e:
            _fail(e)
        except KeyboardInterrupt:
            click.echo("Stopping tunnel...")


@cli.command()
@click.option("--version", "version", default=None, help="cloudflared release or 'latest'")
def install(version):
    """Download the cloudflared binary."""
    try:
        path = BinaryManager(version).ensure_binary()
    except UntunError as e:
        _fail(e)
    click.echo(path)


@cli.group(name="service")
def service_group():
    """Manage cloudflared as a system service."""


@service_group.command(name="install")
@click.argument("token", required=False)
def service_install(token):
    """Install the cloudflared service."""
    try:
        service.install(token, binary_path=BinaryManager().ensure_binary())
    except UntunError as e:
        _fail(e)
    click.echo("cloudflared service installed")


@service_group.command(name="uninstall")
def service_uninstall():
    """Uninstall the cloudflared service."""
    try:
        service.uninstall(binary_path=BinaryManager().get_binary_path())
    except UntunError as e:
        _fail(e)
    click.echo("cloudflared service uninstalled")


@service_group.command(name="status")
def service_status():
    """Show tunnel details parsed from the service log."""
    try:
        state = service.current()
    except UntunError as e:
        _fail(e)
    data = state.to_dict()
    data['pids'] = service.running()
    click.echo(json.dumps(data, indent=2))


@service_group.command(name="logs")
@click.option("-n", "lines", default=300, show_default=True, help="Journal entries (systemd)")
def service_logs(lines):
    """Print the service log."""
    try:
        output = service.journal(lines) if service.is_systemd() else service.err()
    except UntunError as e:
        _fail(e)
    click.echo(output)


def main():
    cli()
