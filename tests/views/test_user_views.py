from aiohttp.test_utils import TestClient

from powerbank.models import Membership
from powerbank.serializer import JSendSchema, JSendStatus
from powerbank.serializer.fields import Many
from powerbank.serializer.models import UserSchema, OrderSchema
from powerbank.service.access.users import get_user, get_treasury_account


class TestUsersView:

    async def test_get_users(self, client: TestClient, random_user):
        """Assert that you can get a list of users."""
        response_schema = JSendSchema.of(users=Many(UserSchema()))
        response = await client.get('/api/v1/users')
        response_data = response_schema.load(await response.json())
        assert response_data["status"] == JSendStatus.SUCCESS
        assert any(user["id"] == random_user.id for user in response_data["data"]["users"])

    async def test_create_user(self, client: TestClient, database):
        """Assert that you can create a user."""
        response = await client.post('/api/v1/users', json={"username": "alex", "phone": "07700900000"})
        assert response.status == 201
        response_data = JSendSchema.of(user=UserSchema()).load(await response.json())
        user = response_data["data"]["user"]
        assert user["username"] == "alex"
        assert user["membership"] is Membership.COMMON
        assert user["balance"] == 0

    async def test_create_duplicate_user(self, client: TestClient, random_user):
        response = await client.post('/api/v1/users', json={"username": random_user.username})
        assert response.status == 400
        response_data = JSendSchema().load(await response.json())
        assert "username" in response_data["data"]["errors"]

    async def test_create_user_bad_schema(self, client: TestClient, database):
        """Assert that creating a user with a bad schema gives a descriptive error."""
        response = await client.post('/api/v1/users', json={"bad_schema": "fail"})
        response_data = JSendSchema().load(await response.json())
        assert response_data["status"] == JSendStatus.FAIL
        assert "username" in response_data["data"]["errors"]


class TestUserView:

    async def test_get_user(self, client: TestClient, random_user):
        response = await client.get(f'/api/v1/users/{random_user.id}')
        response_data = JSendSchema.of(user=UserSchema()).load(await response.json())
        assert response_data["data"]["user"]["username"] == random_user.username
        assert response_data["data"]["user"]["balance"] == 200

    async def test_get_missing_user(self, client: TestClient, database):
        response = await client.get('/api/v1/users/1000')
        assert response.status == 404


class TestUserRentalsView:

    async def test_get_rentals(self, client: TestClient, random_rental, random_user):
        response = await client.get(f'/api/v1/users/{random_user.id}/rentals')
        response_data = JSendSchema.of(rentals=Many(OrderSchema())).load(await response.json())
        assert [rental["id"] for rental in response_data["data"]["rentals"]] == [random_rental.id]

    async def test_search_rentals(self, client: TestClient, random_rental, random_user, rental_manager, treasury):
        """Assert that a user's rentals can be searched by order code."""
        order = await rental_manager.finish(random_rental.id)

        response = await client.get(f'/api/v1/users/{random_user.id}/rentals', params={"q": order.order_code})
        response_data = JSendSchema.of(rentals=Many(OrderSchema())).load(await response.json())
        assert [rental["id"] for rental in response_data["data"]["rentals"]] == [random_rental.id]

        response = await client.get(f'/api/v1/users/{random_user.id}/rentals', params={"q": "nothing matches"})
        response_data = JSendSchema.of(rentals=Many(OrderSchema())).load(await response.json())
        assert response_data["data"]["rentals"] == []

    async def test_current_rentals(self, client: TestClient, random_rental, random_user):
        response = await client.get(f'/api/v1/users/{random_user.id}/rentals/current')
        response_data = JSendSchema.of(rentals=Many(OrderSchema())).load(await response.json())
        assert [rental["id"] for rental in response_data["data"]["rentals"]] == [random_rental.id]


class TestUserBalanceView:

    async def test_top_up(self, client: TestClient, random_user):
        response = await client.post(f'/api/v1/users/{random_user.id}/balance', json={"amount": 25.5})
        response_data = JSendSchema.of(user=UserSchema()).load(await response.json())
        assert response_data["data"]["user"]["balance"] == 225.5
        assert (await get_user(random_user.id)).balance == 225.5

    async def test_top_up_negative(self, client: TestClient, random_user):
        response = await client.post(f'/api/v1/users/{random_user.id}/balance', json={"amount": -5})
        assert response.status == 400
        assert (await get_user(random_user.id)).balance == 200


class TestUserMembershipView:

    async def test_upgrade(self, client: TestClient, random_user, treasury):
        response = await client.post(
            f'/api/v1/users/{random_user.id}/membership', json={"membership": "SVIP", "months": 12}
        )
        response_data = JSendSchema.of(user=UserSchema()).load(await response.json())
        user = response_data["data"]["user"]
        assert user["membership"] is Membership.SVIP
        assert user["balance"] == 20
        assert user["membership_expiry"] is not None
        assert (await get_treasury_account()).balance == 180

    async def test_upgrade_unknown_plan(self, client: TestClient, random_user, treasury):
        response = await client.post(
            f'/api/v1/users/{random_user.id}/membership', json={"membership": "VIP", "months": 2}
        )
        assert response.status == 400
        response_data = JSendSchema().load(await response.json())
        assert "no 2 month plan" in response_data["data"]["message"]

    async def test_upgrade_insufficient_balance(self, client: TestClient, random_user_factory, treasury):
        user = await random_user_factory(balance="10.00")
        response = await client.post(f'/api/v1/users/{user.id}/membership', json={"membership": "VIP", "months": 1})
        assert response.status == 402
        assert (await get_user(user.id)).membership is Membership.COMMON
