from datetime import timedelta

from aiohttp import web

from powerbank.service.access.users import get_treasury_account
from powerbank.service.background.battery_scheduler import BatteryScheduler
from powerbank.signals import register_signals


async def test_startup_and_cleanup(aiohttp_client, database, lock_manager):
    """Assert that starting the app creates the treasury and runs the scheduler until cleanup."""
    scheduler = BatteryScheduler(lock_manager, interval=timedelta(hours=1))
    app = web.Application()
    app['battery_scheduler'] = scheduler
    register_signals(app, init_database=False)

    client = await aiohttp_client(app)
    assert scheduler.running
    assert (await get_treasury_account()).is_treasury

    await client.close()
    assert not scheduler.running
