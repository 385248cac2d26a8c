"""
App
-----
"""

import asyncio
from datetime import timedelta

import sentry_sdk
import uvloop
from aiohttp import web
from aiohttp_apispec import setup_aiohttp_apispec
from sentry_sdk.integrations.aiohttp import AioHttpIntegration

from powerbank import server_mode, logger
from powerbank.config import api_root, database_url, battery_check_interval, lock_timeout, sentry_dsn
from powerbank.middleware import rental_error_middleware
from powerbank.service.background.battery_scheduler import BatteryScheduler
from powerbank.service.locks import LockManager
from powerbank.service.manager.device_manager import DeviceManager
from powerbank.service.manager.membership_manager import MembershipManager
from powerbank.service.manager.rental_manager import RentalManager
from powerbank.signals import register_signals
from powerbank.version import __version__, name
from powerbank.views import register_views


def build_app(db_uri=None, init_database=True):
    """Sets up the app and installs uvloop."""
    app = web.Application(middlewares=[rental_error_middleware])
    uvloop.install()

    # every service shares one set of row locks
    app['lock_manager'] = LockManager(timeout=lock_timeout)
    app['rental_manager'] = RentalManager(app['lock_manager'])
    app['device_manager'] = DeviceManager(app['lock_manager'])
    app['membership_manager'] = MembershipManager(app['lock_manager'])
    app['battery_scheduler'] = BatteryScheduler(
        app['lock_manager'], interval=timedelta(minutes=battery_check_interval)
    )
    app['database_uri'] = db_uri if db_uri is not None else database_url

    # set up the database and background tasks
    register_signals(app, init_database=init_database)

    # register views
    register_views(app, api_root)

    setup_aiohttp_apispec(
        app=app, title=name, version=__version__, url=f"{api_root}/docs",
        info={"description": "Rent power banks by the hour."},
    )

    # set up sentry exception tracking
    if sentry_dsn is not None:
        logger.info("Starting Sentry Logging")
        sentry_sdk.init(
            dsn=sentry_dsn,
            environment=server_mode,
            release=f"{name}@{__version__}",
            integrations=[AioHttpIntegration()]
        )

    if server_mode == "development" or server_mode == "testing":
        asyncio.get_event_loop().set_debug(True)

    return app
