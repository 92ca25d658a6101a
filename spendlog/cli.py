# spendlog/cli.py
import logging
import os

import click
from dotenv import load_dotenv

from spendlog.config import load_config
from spendlog.database import init_db, list_transactions
from spendlog.errors import SpendlogError
from spendlog.outputs import get_output
from spendlog.utils import format_year_month, resolve_year_month


@click.group()
@click.option(
    '--config', 'config_path',
    default='config.yaml',
    type=click.Path(dir_okay=False),
    help='Path to config.yaml (defaults are used when it does not exist)'
)
@click.option(
    '--env-file', 'env_file',
    default=None,
    type=click.Path(exists=True, dir_okay=False),
    help='Optional .env file with SPENDLOG_* settings'
)
@click.pass_context
def main(ctx, config_path, env_file):
    """
    Spendlog: record monthly income and expenses by item and payment
    category, and serve them over a small JSON API.
    """
    if env_file:
        load_dotenv(env_file)
    logging.basicConfig(level=os.getenv("SPENDLOG_LOG_LEVEL", "INFO").upper())
    ctx.obj = load_config(config_path)


@main.command('init-db')
@click.option('--db', 'db_path', default=None, type=click.Path(dir_okay=False),
              help='SQLite database file (overrides config)')
@click.pass_obj
def init_db_command(cfg, db_path):
    """Create the database tables if they do not exist."""
    db_path = db_path or cfg['db_path']
    init_db(db_path)
    click.echo(f"Initialized database at {db_path}.")


@main.command()
@click.option('--db', 'db_path', default=None, type=click.Path(dir_okay=False),
              help='SQLite database file (overrides config)')
@click.option('--host', default=None, help='Host to bind (overrides config)')
@click.option('--port', default=None, type=int, help='Port to bind (overrides config)')
@click.option('--default-user-id', default=None,
              help='User id assumed when a request carries none (development only)')
@click.pass_obj
def serve(cfg, db_path, host, port, default_user_id):
    """Run the HTTP API under uvicorn."""
    import uvicorn

    from spendlog.web import create_app

    app = create_app(db_path=db_path, default_user_id=default_user_id, config=cfg)
    host = host or cfg['host']
    port = port or int(cfg['port'])
    click.echo(f"Spendlog API running at http://{host}:{port} (db: {app.state.db_path})")
    uvicorn.run(app, host=host, port=port)


@main.command()
@click.option('--user-id', required=True, help='Owner of the transactions to export')
@click.option('--year', type=int, default=None, help='Year (defaults to the current month)')
@click.option('--month', type=click.IntRange(1, 12), default=None, help='Month 1-12')
@click.option(
    '--format', 'output_format',
    default='csv',
    type=click.Choice(['csv', 'excel']),
    help='Output target: csv or excel'
)
@click.option('--db', 'db_path', default=None, type=click.Path(dir_okay=False),
              help='SQLite database file (overrides config)')
@click.option('--output-dir', default=None, type=click.Path(file_okay=False),
              help='Directory for the exported file (overrides config)')
@click.pass_obj
def export(cfg, user_id, year, month, output_format, db_path, output_dir):
    """Export one month of a user's transactions to CSV or Excel."""
    db_path = db_path or cfg['db_path']
    if output_dir:
        cfg = {**cfg, 'output_dir': output_dir}
    try:
        year, month = resolve_year_month(year, month)
        txs = list_transactions(db_path, user_id, year=year, month=month)
    except SpendlogError as exc:
        raise click.ClickException(str(exc)) from exc

    outputter = get_output(output_format, cfg)
    out_path = outputter.write(txs, format_year_month(year, month))
    click.echo(f"Exported {len(txs)} transaction(s) to {out_path}.")
