#!/usr/bin/env python3
"""
qdownload command line interface.

Downloads historical market data from IQFeed into CSV or TSV files:

    qdownload -s 20190101 -e 20190201 -o data minute SPY,QQQ
    qdownload -s 20190101 interval 5 seconds symbols.txt
"""

import os
import logging
from typing import Any, Dict

import click

from .config import DownloadConfig, INTERVAL_TYPES, load_config_file
from .downloader import SymbolDownloader
from .exceptions import ConfigurationError
from .logging_config import setup_logging
from .request_factory import DataKind, RequestIdGenerator
from .scheduler import DownloadScheduler, summarize
from .symbols import read_symbols

logger = logging.getLogger(__name__)

SYMBOLS_HELP = "Comma separated symbols or symbols file"


def _load_config_file(ctx: click.Context, param: click.Parameter, value):
    """Use a YAML file as option defaults; explicit flags still win."""
    if value:
        try:
            ctx.default_map = {**(ctx.default_map or {}), **load_config_file(value)}
        except ConfigurationError as e:
            raise click.BadParameter(e.message, ctx=ctx, param=param)
    return value


@click.group(invoke_without_command=True)
@click.option('--config', '-c', type=click.Path(dir_okay=False), callback=_load_config_file,
              is_eager=True, expose_value=False, help='YAML file with option defaults')
@click.option('--start', '-s', default='', help='Start date (YYYYMMDD[ HHmmSS])')
@click.option('--end', '-e', default='', help='End date (YYYYMMDD[ HHmmSS])')
@click.option('--tz', '-z', default='', help='Output time zone (ET, CT, PT, UTC or IANA name)')
@click.option('--out', '-o', default='data', help='Output directory')
@click.option('--parallelism', '-p', default=8, type=click.IntRange(min=1),
              help='Number of parallel downloads')
@click.option('--tsv', '-t', is_flag=True, help='Use tab separator instead of comma')
@click.option('--gzip', '-g', is_flag=True, help='Compress files with gzip')
@click.option('--end-timestamp', '-x', is_flag=True, help='Timestamp bars at their end')
@click.option('--protocol', default=None, help='IQFeed protocol version')
@click.option('--labels/--no-labels', default=None,
              help='Send LabelAtBeginning with interval requests')
@click.option('--verbose', '-l', is_flag=True, help='Verbose logging')
@click.option('--detailed', '-d', is_flag=True, help='Log every received record')
@click.pass_context
def cli(ctx: click.Context, start, end, tz, out, parallelism, tsv, gzip, end_timestamp,
        protocol, labels, verbose, detailed):
    """Download historical market data from IQFeed."""
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())
        click.echo("")
        click.echo("ERROR: Command argument is missing", err=True)
        ctx.exit(2)

    ctx.obj = {
        'start_date': start,
        'end_date': end,
        'time_zone': tz,
        'out_directory': out,
        'parallelism': parallelism,
        'tsv': tsv,
        'gzip': gzip,
        'end_timestamp': end_timestamp,
        'protocol': protocol,
        'use_labels': labels,
        'detailed_logging': detailed,
        'verbose': verbose,
    }


@cli.command()
@click.argument('symbols', metavar='SYMBOLS')
@click.pass_obj
def eod(options: Dict[str, Any], symbols: str):
    """Download EOD bars."""
    run_download(DataKind.EOD, options, symbols)


@cli.command()
@click.argument('symbols', metavar='SYMBOLS')
@click.pass_obj
def minute(options: Dict[str, Any], symbols: str):
    """Download minute bars."""
    run_download(DataKind.MINUTE, options, symbols)


@cli.command()
@click.argument('symbols', metavar='SYMBOLS')
@click.pass_obj
def tick(options: Dict[str, Any], symbols: str):
    """Download tick data."""
    run_download(DataKind.TICK, options, symbols)


@cli.command()
@click.argument('length', type=click.IntRange(min=1))
@click.argument('interval_type', metavar='TYPE',
                type=click.Choice(list(INTERVAL_TYPES), case_sensitive=False))
@click.argument('symbols', metavar='SYMBOLS')
@click.pass_obj
def interval(options: Dict[str, Any], length: int, interval_type: str, symbols: str):
    """Download interval bars of LENGTH seconds, volume or ticks."""
    run_download(DataKind.INTERVAL, options, symbols,
                 interval_length=length, interval_type=interval_type)


def run_download(kind: DataKind, options: Dict[str, Any], symbols_arg: str,
                 interval_length: int = 0, interval_type: str = ''):
    """
    Resolve configuration and symbols, then download every symbol.

    Per-symbol failures are logged by the downloader and do not change
    the exit code.
    """
    options = dict(options)
    setup_logging(options.pop('verbose'))

    try:
        config = DownloadConfig(interval_length=interval_length, interval_type=interval_type,
                                **options)
    except ConfigurationError as e:
        raise click.UsageError(e.message)

    try:
        os.makedirs(config.out_directory, exist_ok=True)
        symbols = read_symbols(symbols_arg)
    except OSError as e:
        raise click.ClickException(str(e))

    if not symbols:
        raise click.UsageError(f"{SYMBOLS_HELP} argument is empty")

    downloader = SymbolDownloader(kind, config, RequestIdGenerator())
    results = DownloadScheduler(downloader.download, config.parallelism).run(symbols)

    summary = summarize(results)
    logger.info(
        f"Finished {len(results)} symbols: {summary['completed']} completed, "
        f"{summary['skipped']} skipped, {summary['failed']} failed"
    )


def main():
    cli(prog_name='qdownload')


if __name__ == '__main__':
    main()
