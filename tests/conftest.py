from datetime import datetime, timezone, timedelta
from decimal import Decimal
from itertools import count
from random import Random

import pytest
from aiohttp import web
from aiohttp.test_utils import TestClient
from faker import Faker
from faker.providers import company, internet, phone_number
from tortoise import Tortoise, connections

from powerbank.middleware import rental_error_middleware
from powerbank.models import Device, DeviceStatus, User, Membership, Order
from powerbank.service.access.users import create_treasury
from powerbank.service.background.battery_scheduler import BatteryScheduler
from powerbank.service.clock import FixedClock
from powerbank.service.locks import LockManager
from powerbank.service.manager.device_manager import DeviceManager
from powerbank.service.manager.membership_manager import MembershipManager
from powerbank.service.manager.rental_manager import RentalManager
from powerbank.service.order_codes import OrderCodeGenerator
from powerbank.views import register_views

pytest_plugins = 'aiohttp.pytest_plugin'

fake = Faker()
fake.add_provider(company)
fake.add_provider(internet)
fake.add_provider(phone_number)

START_TIME = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
"""The time the test clock starts at."""


@pytest.fixture
async def database(loop):
    """Gives each test a fresh in-memory database."""
    await Tortoise.init(
        db_url="sqlite://:memory:",
        modules={'models': ['powerbank.models']},
    )
    await Tortoise.generate_schemas()
    yield
    await connections.close_all()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(START_TIME)


@pytest.fixture
def lock_manager() -> LockManager:
    return LockManager(timeout=0.1)


@pytest.fixture
def rental_manager(database, lock_manager, clock) -> RentalManager:
    return RentalManager(lock_manager, clock, OrderCodeGenerator(clock, Random(0)))


@pytest.fixture
def device_manager(database, lock_manager) -> DeviceManager:
    return DeviceManager(lock_manager)


@pytest.fixture
def membership_manager(database, lock_manager, clock) -> MembershipManager:
    return MembershipManager(lock_manager, clock)


@pytest.fixture
def battery_scheduler(database, lock_manager) -> BatteryScheduler:
    return BatteryScheduler(lock_manager, interval=timedelta(hours=1))


@pytest.fixture
async def client(
    aiohttp_client, database, lock_manager, rental_manager, device_manager, membership_manager, battery_scheduler
) -> TestClient:
    app = web.Application(middlewares=[rental_error_middleware])

    app['lock_manager'] = lock_manager
    app['rental_manager'] = rental_manager
    app['device_manager'] = device_manager
    app['membership_manager'] = membership_manager
    app['battery_scheduler'] = battery_scheduler

    # the signals are left out so the scheduler doesn't tick during the tests
    register_views(app, "/api/v1")

    return await aiohttp_client(app)


@pytest.fixture
def random_user_factory(database):
    user_id = count(1)

    async def create_user(membership=Membership.COMMON, balance="200.00"):
        return await User.create(
            username=f"{fake.user_name()}{next(user_id)}", phone=fake.phone_number()[:32],
            membership=membership, balance=Decimal(balance)
        )

    return create_user


@pytest.fixture
def random_device_factory(database):
    async def create_device(status=DeviceStatus.AVAILABLE, battery_level=100, price_per_hour="10.00"):
        return await Device.create(
            brand=fake.company()[:64], status=status,
            battery_level=battery_level, price_per_hour=Decimal(price_per_hour)
        )

    return create_device


@pytest.fixture
async def random_user(random_user_factory) -> User:
    """Creates a random user with enough balance to rent a device."""
    return await random_user_factory()


@pytest.fixture
async def random_device(random_device_factory) -> Device:
    """Creates a random available device in the database."""
    return await random_device_factory()


@pytest.fixture
async def treasury(database) -> User:
    return await create_treasury()


@pytest.fixture
async def random_rental(rental_manager, random_user, random_device) -> Order:
    """Rents the random device to the random user."""
    return await rental_manager.create_rental(random_user.id, random_device.id)
