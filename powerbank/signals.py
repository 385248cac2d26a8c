"""
Signals
-------

Defines a number of signals that the aiohttp server uses
to facilitate some of the advanced functionality.

Each signal must accept an the ``app`` argument.
"""

from aiohttp.abc import Application
from tortoise import Tortoise, connections

from powerbank import logger
from powerbank.service.access.users import create_treasury


async def close_database_connections(app: Application):
    """Closes the open database connections."""
    await connections.close_all()


async def initialize_database(app: Application):
    """Initializes and generates the schema for our database."""
    await Tortoise.init(
        db_url=app['database_uri'],
        modules={'models': ['powerbank.models']}
    )
    await Tortoise.generate_schemas(safe=True)


async def ensure_treasury(app: Application):
    """Makes sure there is an account to pay the income of the rentals into."""
    treasury = await create_treasury()
    logger.info("Paying rental income into %s", treasury)


async def start_background_tasks(app: Application):
    """Starts the background tasks."""
    logger.info("Starting Background Tasks")
    app['battery_scheduler'].start()


async def stop_background_tasks(app: Application):
    """Stops the background tasks, letting a running battery check finish."""
    await app['battery_scheduler'].stop()


def register_signals(app, init_database=True):
    """Registers all the signals at the appropriate hooks."""
    if init_database:
        app.on_startup.append(initialize_database)

    app.on_startup.append(ensure_treasury)  # the treasury must exist
    app.on_startup.append(start_background_tasks)  # before anything is rented

    app.on_cleanup.append(stop_background_tasks)
    if init_database:
        app.on_cleanup.append(close_database_connections)
