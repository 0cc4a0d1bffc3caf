"""
Command line entry point: python -m intentsync [monitor|compare|sync]
"""

import asyncio
import signal
import sys

import click

from intentsync.core.monitor import Monitor
from intentsync.utils.log import get_default_logger

_LOG = get_default_logger("intentsync")


def _print_stats(monitor: Monitor):
    stats = monitor.get_stats()
    click.echo("Database statistics:")
    click.echo(f"  Total intents:  {stats['total_intents']}")
    click.echo(f"  Total fills:    {stats['total_fills']}")
    click.echo(f"  Total deposits: {stats['total_deposits']}")
    click.echo(f"  EVM fills:      {stats['total_evm_fill_events']}")
    click.echo(f"  EVM deposits:   {stats['total_evm_deposit_events']}")
    click.echo(f"  Last update:    {stats['last_update'] or 'Never'}")


def _startup_sync(monitor: Monitor):
    comparison = monitor.compare_intent_ids()
    if comparison["needs_sync"]:
        click.echo(f"Found {comparison['gap']} intents to sync")
        result = monitor.sync_new_intents()
        click.echo(f"  Synced {result.inserted} intents, {result.failed} failed")
    else:
        click.echo("Intents are up to date")

    transactions = monitor.sync_all_transactions()
    click.echo(
        f"  Fills synced: {transactions.fills.inserted}/{transactions.fills.checked}"
    )
    click.echo(
        f"  Deposits synced: "
        f"{transactions.deposits.inserted}/{transactions.deposits.checked}"
    )
    if transactions.fills.failed or transactions.deposits.failed:
        click.echo(
            f"  Failed: {transactions.fills.failed} fills, "
            f"{transactions.deposits.failed} deposits"
        )


def _create_monitor(ctx: click.Context) -> Monitor:
    try:
        monitor = Monitor.create_instance_from_env(ctx.obj["env_file"])
        monitor.initialize()
    except Exception as e:  # pylint: disable=broad-except
        _LOG.error("Start-up failed: %s", e)
        sys.exit(1)
    return monitor


@click.group()
@click.option(
    "--env-file",
    default=".env",
    show_default=True,
    help="Environment file to load before reading settings.",
)
@click.pass_context
def cli(ctx: click.Context, env_file: str):
    """Mirror intents and settlement events of a network into a SQL database."""
    ctx.ensure_object(dict)
    ctx.obj["env_file"] = env_file


@cli.command()
@click.pass_context
def compare(ctx: click.Context):
    """Compare the newest intent id in the database with the network's."""
    monitor = _create_monitor(ctx)
    comparison = monitor.compare_intent_ids()
    click.echo(f"Database max id: {comparison['database_max_id']}")
    click.echo(f"Network max id:  {comparison['network_max_id']}")
    click.echo(f"Gap:             {comparison['gap']}")
    monitor.close()


@cli.command()
@click.option("--full", is_flag=True, help="Re-fetch every intent, not only the gap.")
@click.pass_context
def sync(ctx: click.Context, full: bool):
    """Run the start-up sync once and exit."""
    monitor = _create_monitor(ctx)
    if full:
        result = monitor.sync_all_intents()
        click.echo(
            f"Fetched {result.fetched}, inserted {result.inserted}, failed {result.failed}"
        )
        monitor.sync_all_transactions()
    else:
        _startup_sync(monitor)
    if monitor.evm_sync_enabled and monitor.evm_syncers:
        summary = asyncio.run(monitor.sync_all_evm_chains())
        click.echo(
            f"EVM events: {summary.total_fill_events} fills, "
            f"{summary.total_deposit_events} deposits"
        )
        monitor.link_evm_events()
    _print_stats(monitor)
    monitor.close()


@cli.command()
@click.pass_context
def monitor(ctx: click.Context):  # pylint: disable=redefined-outer-name
    """Run the start-up sync, then poll until SIGINT / SIGTERM."""
    mon = _create_monitor(ctx)
    _startup_sync(mon)
    _print_stats(mon)

    async def run():
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, mon.stop_monitoring)
        await mon.start_monitoring()

    asyncio.run(run())
    mon.close()


if __name__ == "__main__":
    cli()  # pylint: disable=no-value-for-parameter
