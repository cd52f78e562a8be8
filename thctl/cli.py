#!/usr/bin/env python3
"""
THCTL CLI Interface
"""

import logging
import sys
import time
from typing import Any, Callable, Dict, List

import click

from . import __version__
from .config import ClientConfig, find_env_file, load_config, parse_duration, DEFAULT_ENDPOINT, ENV_FILE_NAME
from .context import CallContext
from .exceptions import (
    AuthenticationError,
    ClientError,
    ConfigError,
    InvalidParamsError,
    InvalidRequestError,
    NodeConnectionError,
    NotFoundError,
    RequestCancelledError,
    RPCTimeoutError,
    ThctlException,
)
from .lotus import LotusClient, MinerInfoAggregator
from .response_format import OUTPUT_FORMATS, error_response, render, standard_response, to_plain as _plain
from .utils import format_bytes, format_fil, format_percentage, power_share, setup_logging

logger = logging.getLogger(__name__)


class CliState:
    """Global options shared by every subcommand"""

    def __init__(self, api_url=None, auth_token=None, timeout=None, retries=None, env_file=None,
                 output="json", pretty=False, quiet=False):
        self.api_url = api_url
        self.auth_token = auth_token
        self.timeout = timeout
        self.retries = retries
        self.env_file = env_file
        self.output = output
        self.pretty = pretty
        self.quiet = quiet

    def load_config(self) -> ClientConfig:
        return load_config(
            env_file=self.env_file,
            endpoint=self.api_url,
            auth_token=self.auth_token,
            timeout=parse_duration(self.timeout) if self.timeout else None,
            retry_count=self.retries,
        )


def describe_error(error: ThctlException, subject: str = "", url: str = "") -> str:
    """User-facing message for a failed command"""
    if isinstance(error, NotFoundError):
        return f"{subject or 'resource'} not found"
    if isinstance(error, AuthenticationError):
        return "authentication failed: invalid or missing API token"
    if isinstance(error, NodeConnectionError):
        return f"could not reach node{' at ' + url if url else ''}: {error.message}"
    if isinstance(error, RPCTimeoutError):
        return "request timed out"
    if isinstance(error, RequestCancelledError):
        return "request cancelled"
    if isinstance(error, InvalidParamsError):
        return f"invalid parameters: {error.message}"
    if isinstance(error, InvalidRequestError):
        return f"invalid request: {error.message}"
    if isinstance(error, ConfigError):
        return f"configuration error: {error}"
    return f"error: {error}"


def _emit(state: CliState, response: Dict[str, Any]):
    click.echo(render(response, state.output, state.pretty))


def _fail(state: CliState, operation: str, message: str, partial: Any = None):
    if partial is not None:
        response = standard_response([partial], operation=operation, status="partial", error=message)
        _emit(state, response)
    elif state.output != "table":
        _emit(state, error_response(message, operation=operation))

    if not state.quiet or state.output == "table":
        click.echo(f"Error: {message}", err=True)
    sys.exit(1)


def run_command(state: CliState, operation: str, subject: str, action: Callable[[LotusClient, CallContext], Any],
                data_type: str = "result"):
    """Build a client, run ``action`` and render its result or a classified failure"""
    start_time = time.time()
    url = ""
    try:
        config = state.load_config()
        with LotusClient(config) as client:
            url = client.url
            result = action(client, CallContext.background())
    except (ClientError, ConfigError) as e:
        logger.debug(f"{operation} failed: {e!r}")
        partial = getattr(e, "partial", None)
        _fail(state, operation, describe_error(e, subject, url), partial)

    records = result if isinstance(result, list) else [result]
    meta = {"data_type": data_type}
    errors = getattr(result, "errors", None)
    if errors:
        meta["errors"] = errors
    response = standard_response(
        records,
        operation=operation,
        execution_time_ms=int((time.time() - start_time) * 1000),
        **meta
    )
    _emit(state, response)


@click.group()
@click.option('--api-url', help='Lotus API URL or multiaddress (overrides LOTUS_API_URL)')
@click.option('--auth-token', help='Lotus API token (overrides LOTUS_API_TOKEN)')
@click.option('--timeout', help='Request timeout, e.g. 30s or 1m (overrides LOTUS_API_TIMEOUT)')
@click.option('--retries', type=click.IntRange(min=0), help='Retry count for transient failures')
@click.option('--env-file', type=click.Path(dir_okay=False), help=f'Configuration file (default: ./{ENV_FILE_NAME} or ~/{ENV_FILE_NAME})')
@click.option('--output', '-o', type=click.Choice(OUTPUT_FORMATS), default='json',
              help='Output format (default: json)')
@click.option('--pretty', is_flag=True, help='Pretty-print JSON output (default: compact)')
@click.option('--debug', is_flag=True, help='Enable debug logging')
@click.option('--quiet', is_flag=True, help='Suppress output except results')
@click.version_option(__version__, prog_name='thctl')
@click.pass_context
def cli(ctx, api_url, auth_token, timeout, retries, env_file, output, pretty, debug, quiet):
    """THCTL: query Filecoin storage-provider data from a Lotus node"""

    # Set up logging
    if debug:
        setup_logging(logging.DEBUG)
    elif quiet:
        setup_logging(logging.ERROR)
    else:
        setup_logging(logging.WARNING)

    ctx.obj = CliState(
        api_url=api_url,
        auth_token=auth_token,
        timeout=timeout,
        retries=retries,
        env_file=env_file,
        output=output,
        pretty=pretty,
        quiet=quiet,
    )


@cli.group()
def fil():
    """Filecoin commands"""


@fil.group()
def sectors():
    """Sector queries"""


@sectors.command('list')
@click.option('--miner', '-m', 'miner_id', required=True, help='Miner ID, e.g. f01234')
@click.option('--active', is_flag=True, help='Only list active sectors')
@click.pass_obj
def sectors_list(state, miner_id, active):
    """List sectors of a miner"""
    run_command(
        state, "sectors.list", f"miner {miner_id}",
        lambda client, ctx: client.list_sectors(ctx, miner_id, only_active=active),
        data_type="sector",
    )


@sectors.command('info')
@click.option('--miner', '-m', 'miner_id', required=True, help='Miner ID, e.g. f01234')
@click.argument('sector', type=click.IntRange(min=0))
@click.pass_obj
def sectors_info(state, miner_id, sector):
    """Show on-chain information of a sector"""
    run_command(
        state, "sectors.info", f"sector {sector} of miner {miner_id}",
        lambda client, ctx: client.get_sector_info(ctx, miner_id, sector),
        data_type="sector",
    )


@sectors.command('status')
@click.option('--miner', '-m', 'miner_id', required=True, help='Miner ID, e.g. f01234')
@click.argument('sector', type=click.IntRange(min=0))
@click.pass_obj
def sectors_status(state, miner_id, sector):
    """Show the proving state and location of a sector"""
    run_command(
        state, "sectors.status", f"sector {sector} of miner {miner_id}",
        lambda client, ctx: client.get_sector_status(ctx, miner_id, sector),
        data_type="sector",
    )


@sectors.command('penalty')
@click.option('--miner', '-m', 'miner_id', required=True, help='Miner ID, e.g. f01234')
@click.argument('sector', type=click.IntRange(min=0))
@click.pass_obj
def sectors_penalty(state, miner_id, sector):
    """Estimate the termination penalty of a sector"""

    def action(client, ctx):
        penalty = client.get_sector_penalty(ctx, miner_id, sector)
        return {**_plain(penalty), "penalty_fil": format_fil(penalty.penalty)}

    run_command(state, "sectors.penalty", f"sector {sector} of miner {miner_id}", action, data_type="penalty")


@sectors.command('vested')
@click.option('--miner', '-m', 'miner_id', required=True, help='Miner ID, e.g. f01234')
@click.argument('sector', type=click.IntRange(min=0))
@click.pass_obj
def sectors_vested(state, miner_id, sector):
    """Show pledge and vesting amounts of a sector"""

    def action(client, ctx):
        vesting = client.get_sector_vested(ctx, miner_id, sector)
        return {
            **_plain(vesting),
            "initial_pledge_fil": format_fil(vesting.initial_pledge),
            "miner_vesting_funds_fil": format_fil(vesting.miner_vesting_funds),
        }

    run_command(state, "sectors.vested", f"sector {sector} of miner {miner_id}", action, data_type="vesting")


@fil.group()
def miner():
    """Miner queries"""


@miner.command('info')
@click.argument('miner_id')
@click.pass_obj
def miner_info(state, miner_id):
    """Comprehensive miner information"""

    def action(client, ctx):
        aggregator = MinerInfoAggregator(client, timeout=client.config.timeout)
        return aggregator.aggregate(ctx, miner_id)

    run_command(state, "miner.info", f"miner {miner_id}", action, data_type="miner")


@miner.command('power')
@click.argument('miner_id')
@click.pass_obj
def miner_power(state, miner_id):
    """Raw and quality-adjusted power of a miner"""

    def action(client, ctx):
        power = client.get_miner_power(ctx, miner_id)
        return {
            "miner_id": miner_id,
            **_plain(power),
            "network_power_share": format_percentage(
                power_share(power.raw_byte_power, power.network_raw_byte_power)
            ),
            "raw_byte_power_human": format_bytes(power.raw_byte_power),
            "quality_adj_power_human": format_bytes(power.quality_adj_power),
        }

    run_command(state, "miner.power", f"miner {miner_id}", action, data_type="power")


@miner.command('balance')
@click.argument('miner_id')
@click.pass_obj
def miner_balance(state, miner_id):
    """Available balance of a miner"""

    def action(client, ctx):
        available = client.get_miner_available_balance(ctx, miner_id)
        return {
            "miner_id": miner_id,
            "available_balance": available,
            "available_balance_fil": format_fil(available),
        }

    run_command(state, "miner.balance", f"miner {miner_id}", action, data_type="balance")


@miner.command('deadline')
@click.argument('miner_id')
@click.pass_obj
def miner_deadline(state, miner_id):
    """Current proving deadline and deadline schedule"""

    def action(client, ctx):
        proving = client.get_miner_proving_deadline(ctx, miner_id)
        deadlines = client.get_miner_deadlines(ctx, miner_id)
        return {
            "miner_id": miner_id,
            "proving_deadline": _plain(proving),
            "deadlines": [
                {
                    "index": deadline.index,
                    "post_submissions": len(deadline.post_submissions),
                    "disputable_proof_count": deadline.disputable_proof_count,
                }
                for deadline in deadlines
            ],
        }

    run_command(state, "miner.deadline", f"miner {miner_id}", action, data_type="deadline")


@cli.command()
@click.pass_obj
def doctor(state):
    """Run diagnostic checks on configuration and node connectivity"""
    problems: List[str] = []

    click.echo("Checking configuration file...")
    try:
        path = find_env_file(state.env_file)
    except ConfigError as e:
        click.echo(f"  FAILED: {e}")
        sys.exit(1)

    if path is None:
        click.echo(f"  {ENV_FILE_NAME} not found in current or home directory")
        click.echo("  It should contain:")
        click.echo("    LOTUS_API_URL=http://your-lotus-node:1234/rpc/v0")
        click.echo("    LOTUS_API_TOKEN=your-api-token")
    else:
        click.echo(f"  Found {path}")

    click.echo("Checking configuration values...")
    try:
        config = state.load_config()
    except ConfigError as e:
        click.echo(f"  FAILED: {e}")
        sys.exit(1)

    if config.endpoint == DEFAULT_ENDPOINT:
        click.echo(f"  LOTUS_API_URL is not set (using {DEFAULT_ENDPOINT})")
    else:
        click.echo(f"  LOTUS_API_URL: {config.endpoint}")
    if config.auth_token:
        click.echo("  LOTUS_API_TOKEN is configured")
    else:
        problems.append("LOTUS_API_TOKEN is not set")
        click.echo("  LOTUS_API_TOKEN is not set")
    click.echo(f"  Timeout: {config.timeout}s, retries: {config.retry_count}")

    click.echo("Checking node connectivity...")
    try:
        with LotusClient(config) as client:
            version = client.version(CallContext.background().with_timeout(config.timeout))
        click.echo(f"  SUCCESS: {client.url} answered, version {version.get('Version', 'unknown')}")
    except ClientError as e:
        problems.append(describe_error(e, "node", config.endpoint))
        click.echo(f"  FAILED: {describe_error(e, 'node', config.endpoint)}")

    click.echo("")
    if problems:
        click.echo("Diagnostic summary: problems found")
        for problem in problems:
            click.echo(f"  - {problem}")
        sys.exit(1)
    click.echo("Diagnostic summary: all checks passed")


if __name__ == '__main__':
    cli()
