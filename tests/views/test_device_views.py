from aiohttp.test_utils import TestClient

from powerbank.models import DeviceStatus, Membership
from powerbank.serializer import JSendSchema, JSendStatus
from powerbank.serializer.fields import Many
from powerbank.serializer.models import DeviceSchema, OrderSchema
from powerbank.service.access.devices import get_device, get_devices
from powerbank.service.access.users import get_user
from powerbank.service.locks import DeviceKey


class TestDevicesView:

    async def test_get_devices(self, client: TestClient, random_device):
        """Assert that anyone can get the list of devices."""
        response_schema = JSendSchema.of(devices=Many(DeviceSchema()))
        response = await client.get('/api/v1/devices')
        response_data = response_schema.load(await response.json())
        assert response_data["status"] == JSendStatus.SUCCESS
        assert [device["id"] for device in response_data["data"]["devices"]] == [random_device.id]
        assert response_data["data"]["devices"][0]["available"]

    async def test_get_devices_by_status(self, client: TestClient, random_device_factory):
        await random_device_factory()
        in_use = await random_device_factory(status=DeviceStatus.IN_USE)
        response = await client.get('/api/v1/devices', params={"status": "InUse"})
        response_data = JSendSchema.of(devices=Many(DeviceSchema())).load(await response.json())
        assert [device["id"] for device in response_data["data"]["devices"]] == [in_use.id]
        assert response_data["data"]["devices"][0]["status"] is DeviceStatus.IN_USE

    async def test_get_devices_bad_status(self, client: TestClient, database):
        response = await client.get('/api/v1/devices', params={"status": "Broken"})
        assert response.status == 400
        response_data = JSendSchema().load(await response.json())
        assert response_data["status"] == JSendStatus.FAIL

    async def test_register_device(self, client: TestClient, database):
        """Assert that a device can be registered."""
        response = await client.post('/api/v1/devices', json={"brand": "Anker", "price_per_hour": 2.5})
        assert response.status == 201
        response_data = JSendSchema.of(device=DeviceSchema()).load(await response.json())
        device = response_data["data"]["device"]
        assert device["brand"] == "Anker"
        assert device["status"] is DeviceStatus.AVAILABLE
        assert device["battery_level"] == 100
        assert (await get_device(device["id"])).brand == "Anker"

    async def test_register_device_bad_battery(self, client: TestClient, database):
        response = await client.post(
            '/api/v1/devices', json={"brand": "Anker", "price_per_hour": 2.5, "battery_level": 101}
        )
        assert response.status == 400
        response_data = JSendSchema().load(await response.json())
        assert "battery_level" in response_data["data"]["errors"]

    async def test_register_device_in_use(self, client: TestClient, database):
        """Assert that a device cannot be registered as already rented."""
        response = await client.post(
            '/api/v1/devices', json={"brand": "Anker", "price_per_hour": 2.5, "status": "InUse"}
        )
        assert response.status == 400
        response_data = JSendSchema().load(await response.json())
        assert "status" in response_data["data"]["errors"]
        assert await get_devices() == []

    async def test_register_device_unavailable(self, client: TestClient, database):
        """Assert that only a flat device can be registered as unavailable."""
        response = await client.post(
            '/api/v1/devices', json={"brand": "Anker", "price_per_hour": 2.5, "status": "Unavailable"}
        )
        assert response.status == 400
        response_data = JSendSchema().load(await response.json())
        assert "battery_level" in response_data["data"]["errors"]

        response = await client.post(
            '/api/v1/devices',
            json={"brand": "Anker", "price_per_hour": 2.5, "status": "Unavailable", "battery_level": 5}
        )
        assert response.status == 201
        response_data = JSendSchema.of(device=DeviceSchema()).load(await response.json())
        assert response_data["data"]["device"]["status"] is DeviceStatus.UNAVAILABLE
        assert not response_data["data"]["device"]["available"]


class TestDeviceView:

    async def test_get_device(self, client: TestClient, random_device):
        response = await client.get(f'/api/v1/devices/{random_device.id}')
        response_data = JSendSchema.of(device=DeviceSchema()).load(await response.json())
        assert response_data["data"]["device"]["id"] == random_device.id
        assert response_data["data"]["device"]["brand"] == random_device.brand

    async def test_get_missing_device(self, client: TestClient, database):
        response = await client.get('/api/v1/devices/1000')
        assert response.status == 404
        response_data = JSendSchema().load(await response.json())
        assert response_data["status"] == JSendStatus.FAIL

    async def test_update_price(self, client: TestClient, random_device):
        response = await client.patch(f'/api/v1/devices/{random_device.id}', json={"price_per_hour": 4})
        response_data = JSendSchema.of(device=DeviceSchema()).load(await response.json())
        assert response_data["data"]["device"]["price_per_hour"] == 4
        assert (await get_device(random_device.id)).price_per_hour == 4

    async def test_update_price_not_positive(self, client: TestClient, random_device):
        response = await client.patch(f'/api/v1/devices/{random_device.id}', json={"price_per_hour": 0})
        assert response.status == 400

    async def test_charge_unavailable_device(self, client: TestClient, random_device_factory):
        """Assert that a charging device cannot be marked as charged past the recharge threshold."""
        device = await random_device_factory(status=DeviceStatus.UNAVAILABLE, battery_level=10)
        response = await client.patch(f'/api/v1/devices/{device.id}', json={"battery_level": 90})
        assert response.status == 409
        assert (await get_device(device.id)).battery_level == 10

    async def test_update_busy_device(self, client: TestClient, lock_manager, random_device):
        """Assert that updating a device held by another operation asks the client to retry."""
        async with lock_manager.acquire(DeviceKey(random_device.id)):
            response = await client.patch(f'/api/v1/devices/{random_device.id}', json={"battery_level": 5})
        assert response.status == 503
        assert "Retry-After" in response.headers
        assert (await get_device(random_device.id)).battery_level == 100

    async def test_delete_device(self, client: TestClient, random_device):
        response = await client.delete(f'/api/v1/devices/{random_device.id}')
        assert response.status == 204
        assert await get_device(random_device.id) is None

    async def test_delete_rented_device(self, client: TestClient, random_rental, random_device):
        """Assert that a rented device cannot be deleted."""
        response = await client.delete(f'/api/v1/devices/{random_device.id}')
        assert response.status == 409
        assert await get_device(random_device.id) is not None


class TestDeviceRentalsView:

    async def test_rent_device(self, client: TestClient, random_user, random_device):
        """Assert that a user can rent a device."""
        response = await client.post(f'/api/v1/devices/{random_device.id}/rentals', json={"user_id": random_user.id})
        assert response.status == 201
        response_data = JSendSchema.of(rental=OrderSchema()).load(await response.json())
        rental = response_data["data"]["rental"]
        assert rental["is_open"]
        assert rental["device_url"] == f"/api/v1/devices/{random_device.id}"
        assert rental["user_url"] == f"/api/v1/users/{random_user.id}"
        assert rental["deposit"] == 99
        assert "estimated_price" in rental
        assert (await get_device(random_device.id)).status is DeviceStatus.IN_USE

    async def test_rent_device_insufficient_balance(self, client: TestClient, random_user_factory, random_device):
        user = await random_user_factory(balance="10.00")
        response = await client.post(f'/api/v1/devices/{random_device.id}/rentals', json={"user_id": user.id})
        assert response.status == 402
        response_data = JSendSchema().load(await response.json())
        assert response_data["data"]["required"] == 99
        assert response_data["data"]["balance"] == 10

    async def test_rent_rented_device(self, client: TestClient, random_rental, random_user_factory, random_device):
        user = await random_user_factory(membership=Membership.VIP)
        response = await client.post(f'/api/v1/devices/{random_device.id}/rentals', json={"user_id": user.id})
        assert response.status == 409
        assert (await get_user(user.id)).balance == 200

    async def test_rent_missing_user(self, client: TestClient, random_device):
        response = await client.post(f'/api/v1/devices/{random_device.id}/rentals', json={"user_id": 1000})
        assert response.status == 404

    async def test_rent_busy_device(self, client: TestClient, lock_manager, random_user, random_device):
        """Assert that a device that is locked for too long asks the client to retry."""
        async with lock_manager.acquire(DeviceKey(random_device.id)):
            response = await client.post(
                f'/api/v1/devices/{random_device.id}/rentals', json={"user_id": random_user.id}
            )
        assert response.status == 503
        assert "Retry-After" in response.headers

    async def test_get_device_rentals(self, client: TestClient, random_rental, random_device):
        response = await client.get(f'/api/v1/devices/{random_device.id}/rentals')
        response_data = JSendSchema.of(rentals=Many(OrderSchema())).load(await response.json())
        assert [rental["id"] for rental in response_data["data"]["rentals"]] == [random_rental.id]


class TestDeviceCurrentRentalView:

    async def test_get_current_rental(self, client: TestClient, random_rental, random_device):
        response = await client.get(f'/api/v1/devices/{random_device.id}/rentals/current')
        response_data = JSendSchema.of(rental=OrderSchema()).load(await response.json())
        assert response_data["data"]["rental"]["id"] == random_rental.id

    async def test_get_current_rental_none(self, client: TestClient, random_device):
        response = await client.get(f'/api/v1/devices/{random_device.id}/rentals/current')
        assert response.status == 404
        response_data = JSendSchema().load(await response.json())
        assert "not being rented" in response_data["data"]["message"]
