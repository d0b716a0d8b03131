import asyncio
import sys

from dataclasses import dataclass
from typing import Annotated

import cappa
import granian

from cappa.output import error_format
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table
from rich.text import Text
from watchfiles import PythonFilter

from imagegen import __version__
from imagegen.core.conf import settings
from imagegen.database.db import create_tables, drop_tables
from imagegen.database.redis import redis_client
from imagegen.src.billing.domain.results import ConfirmationStatus
from imagegen.src.billing.payments.api_client import BillingAPIClient
from imagegen.src.billing.payments.polling import ConfirmationPoller
from imagegen.src.billing.payments.reconciliation import reconciliation_service
from imagegen.src.billing.shared.webhook_lock import WebhookLock
from imagegen.utils.console import console

output_help = '\nFor more information, try "[cyan]--help[/]"'


class CustomReloadFilter(PythonFilter):
    """Custom reload filter"""

    def __init__(self) -> None:
        super().__init__(extra_extensions=['.json', '.yaml', '.yml'])


async def init() -> None:
    panel_content = Text()
    panel_content.append('Database configuration', style='bold green')
    panel_content.append('\n\n  • Type: ')
    panel_content.append(f'{settings.DATABASE_TYPE}', style='yellow')
    panel_content.append('\n  • Database: ')
    panel_content.append(
        f'{settings.DATABASE_SQLITE_FILE if settings.DATABASE_TYPE == "sqlite" else settings.DATABASE_SCHEMA}',
        style='yellow',
    )
    panel_content.append('\n\nRedis configuration', style='bold green')
    panel_content.append('\n\n  • Database: ')
    panel_content.append(f'{settings.REDIS_DATABASE}', style='yellow')

    console.print(Panel(panel_content, title=f'imagegen v{__version__} initialization', border_style='cyan', padding=(1, 2)))
    ok = Prompt.ask('Are you sure to rebuild the database tables?', choices=['y', 'n'], default='n')

    if ok.lower() == 'y':
        console.print('Initializing...', style='white')
        try:
            console.print('Dropping database tables', style='white')
            await drop_tables()
            console.print('Dropping Redis cache', style='white')
            await redis_client.delete_prefix(settings.BILLING_BALANCE_REDIS_PREFIX)
            console.print('Creating database tables', style='white')
            await create_tables()
            console.print('Initialization completed', style='green')
            console.print('\nTry [bold cyan]imagegen run[/bold cyan] to start the service')
        except Exception as e:
            raise cappa.Exit(f'Initialization failed: {e}', code=1)
    else:
        console.print('Initialization cancelled', style='yellow')


def run(host: str, port: int, reload: bool, workers: int) -> None:  # noqa: FBT001
    url = f'http://{host}:{port}'
    docs_url = url + settings.FASTAPI_DOCS_URL
    redoc_url = url + settings.FASTAPI_REDOC_URL
    openapi_url = url + (settings.FASTAPI_OPENAPI_URL or '')

    panel_content = Text()
    panel_content.append('Python version:', style='bold cyan')
    panel_content.append(f'{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}', style='white')

    panel_content.append('\nAPI request address: ', style='bold cyan')
    panel_content.append(f'{url}{settings.FASTAPI_API_V1_PATH}', style='blue')

    panel_content.append('\nAbacatePay webhook: ', style='bold cyan')
    panel_content.append(f'{url}{settings.FASTAPI_API_V1_PATH}/billing/abacatepay/webhook', style='blue')

    panel_content.append('\n\nEnvironment mode: ', style='bold green')
    env_style = 'yellow' if settings.ENVIRONMENT == 'dev' else 'green'
    panel_content.append(f'{settings.ENVIRONMENT.upper()}', style=env_style)

    if settings.ENVIRONMENT == 'dev':
        panel_content.append(f'\n\n📖 Swagger docs: {docs_url}', style='bold magenta')
        panel_content.append(f'\n📚 Redoc docs: {redoc_url}', style='bold magenta')
        panel_content.append(f'\n📡 OpenAPI JSON: {openapi_url}', style='bold magenta')

    console.print(Panel(panel_content, title=f'imagegen v{__version__}', border_style='purple', padding=(1, 2)))
    granian.Granian(
        target='imagegen.main:app',
        interface='asgi',
        address=host,
        port=port,
        reload=not reload,
        reload_filter=CustomReloadFilter,
        workers=workers,
    ).serve()


async def reconcile(hours: int, cleanup: bool) -> None:  # noqa: FBT001
    console.print(f'Reconciling pending purchases from the last {hours}h...', style='bold cyan')
    try:
        results = await reconciliation_service.reconcile_pending_purchases(hours=hours)
    except Exception as e:
        raise cappa.Exit(f'Reconciliation failed: {e}', code=1)

    table = Table(show_header=True, header_style='bold magenta')
    table.add_column('Checked', style='cyan', justify='center')
    table.add_column('Fixed', style='green', justify='center')
    table.add_column('Pending', style='yellow', justify='center')
    table.add_column('Failed', style='red', justify='center')
    table.add_row(str(results['checked']), str(results['fixed']), str(results['pending']), str(results['failed']))
    console.print(table)

    for error in results['errors']:
        console.print(f'  • {error["purchase_id"]}: {error["error"]}', style='red')

    if cleanup:
        deleted = await WebhookLock.cleanup_old_events()
        console.print(f'Deleted {deleted} old webhook events', style='white')

    if results['failed']:
        raise cappa.Exit(code=1)


async def confirm(server: str, token: str, billing_id: str | None, attempts: int, interval: float) -> None:
    client = BillingAPIClient(server, token)
    poller = ConfirmationPoller(
        lambda: client.confirm_payment(billing_id),
        max_attempts=attempts,
        interval=interval,
    )

    with console.status('Waiting for payment confirmation...'):
        outcome = await poller.run()

    if outcome.activated:
        console.print(outcome.result.message, style='bold green')
        if outcome.result.credits_added:
            console.print(f'Credits added: {outcome.result.credits_added}', style='green')
    elif outcome.result is not None and outcome.result.status == ConfirmationStatus.NOT_FOUND:
        raise cappa.Exit(outcome.result.message, code=1)
    else:
        if outcome.result is not None:
            console.print(outcome.result.message, style='yellow')
        console.print(
            f'Still not confirmed after {outcome.attempts} attempts. '
            'Run [bold cyan]imagegen confirm[/bold cyan] again once the payment is done.',
            style='yellow',
        )
        raise cappa.Exit(code=2)


@cappa.command(help='Initialize imagegen database', default_long=True)
@dataclass
class Init:
    async def __call__(self) -> None:
        await init()


@cappa.command(help='Run API service', default_long=True)
@dataclass
class Run:
    host: Annotated[
        str,
        cappa.Arg(
            default='127.0.0.1',
            help='Host IP address to serve on. Use `127.0.0.1` for local development and `0.0.0.0` for public access',
        ),
    ]
    port: Annotated[
        int,
        cappa.Arg(default=8000, help='Host port to serve on'),
    ]
    no_reload: Annotated[
        bool,
        cappa.Arg(default=False, help='Disable auto reload on file changes'),
    ]
    workers: Annotated[
        int,
        cappa.Arg(default=1, help='Number of worker processes, must be used together with `--no-reload`'),
    ]

    def __call__(self) -> None:
        run(host=self.host, port=self.port, reload=self.no_reload, workers=self.workers)


@cappa.command(help='Grant credits for pending purchases that AbacatePay reports paid', default_long=True)
@dataclass
class Reconcile:
    hours: Annotated[
        int,
        cappa.Arg(default=settings.RECONCILIATION_LOOKBACK_HOURS, help='Look back period in hours'),
    ]
    cleanup: Annotated[
        bool,
        cappa.Arg(default=False, help='Also delete webhook events older than the retention period'),
    ]

    async def __call__(self) -> None:
        await reconcile(hours=self.hours, cleanup=self.cleanup)


@cappa.command(help='Poll a running server until a PIX payment is confirmed', default_long=True)
@dataclass
class Confirm:
    token: Annotated[
        str,
        cappa.Arg(help='User access token'),
    ]
    server: Annotated[
        str,
        cappa.Arg(default='http://127.0.0.1:8000', help='Server base url'),
    ]
    billing_id: Annotated[
        str | None,
        cappa.Arg(default=None, help='AbacatePay billing id, defaults to the latest pending purchase'),
    ]
    attempts: Annotated[
        int,
        cappa.Arg(default=settings.BILLING_CONFIRM_POLL_MAX_ATTEMPTS, help='Maximum confirmation attempts'),
    ]
    interval: Annotated[
        float,
        cappa.Arg(default=settings.BILLING_CONFIRM_POLL_INTERVAL_SECONDS, help='Seconds between attempts'),
    ]

    async def __call__(self) -> None:
        await confirm(self.server, self.token, self.billing_id, self.attempts, self.interval)


@cappa.command(help='imagegen command line interface', default_long=True)
@dataclass
class ImagegenCli:
    subcmd: cappa.Subcommands[Init | Run | Reconcile | Confirm]


def main() -> None:
    output = cappa.Output(error_format=f'{error_format}\n{output_help}')
    asyncio.run(cappa.invoke_async(ImagegenCli, version=__version__, output=output))
