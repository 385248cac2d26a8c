"""
User Related Views
-------------------------

Handles all the user CRUD, as well as topping
up balances and buying memberships.
"""
from http import HTTPStatus

from aiohttp import web
from aiohttp_apispec import docs

from powerbank.models import User
from powerbank.serializer import JSendSchema, JSendStatus
from powerbank.serializer.decorators import expects, returns
from powerbank.serializer.fields import Many
from powerbank.serializer.models import UserSchema, OrderSchema, TopUpSchema, MembershipUpgradeSchema
from powerbank.service.access.orders import get_orders, search_orders
from powerbank.service.access.users import get_users, get_user, create_user, UserExistsError
from powerbank.views.base import BaseView
from powerbank.views.decorators import match_getter

USER_IDENTIFIER_REGEX = r"\d+"


def _bad_request(message: str, **data):
    return web.HTTPBadRequest(text=JSendSchema().dumps({
        "status": JSendStatus.FAIL,
        "data": {"message": message, **data}
    }), content_type='application/json')


class UsersView(BaseView):
    """
    Gets or adds to the list of users.
    """
    url = "/users"
    name = "users"

    @docs(summary="Get All Users")
    @expects(None)
    @returns(JSendSchema.of(users=Many(UserSchema())))
    async def get(self):
        users = await get_users(username=self.request.query.get("username"))
        return {
            "status": JSendStatus.SUCCESS,
            "data": {"users": [user.serialize() for user in users]}
        }

    @docs(summary="Create A User")
    @expects(UserSchema(only=('username', 'phone')))
    @returns(JSendSchema.of(user=UserSchema()), HTTPStatus.CREATED)
    async def post(self):
        try:
            user = await create_user(**self.request["data"])
        except UserExistsError as error:
            raise _bad_request("Could not create the user.", errors=error.errors)

        return {
            "status": JSendStatus.SUCCESS,
            "data": {"user": user.serialize()}
        }


class UserView(BaseView):
    """
    Gets a single user.
    """
    url = f"/users/{{id:{USER_IDENTIFIER_REGEX}}}"
    name = "user"
    with_user = match_getter(get_user, 'user', user_id='id')

    @with_user
    @docs(summary="Get A User")
    @expects(None)
    @returns(JSendSchema.of(user=UserSchema()))
    async def get(self, user: User):
        return {
            "status": JSendStatus.SUCCESS,
            "data": {"user": user.serialize()}
        }


class UserRentalsView(BaseView):
    """
    Gets the user's rental history, optionally searched with ``?q=``.
    """
    url = f"/users/{{id:{USER_IDENTIFIER_REGEX}}}/rentals"
    name = "user_rentals"
    with_user = match_getter(get_user, 'user', user_id='id')

    @with_user
    @docs(summary="Get All Rentals For User")
    @returns(JSendSchema.of(rentals=Many(OrderSchema())))
    async def get(self, user: User):
        keyword = self.request.query.get("q")
        orders = await search_orders(user, keyword) if keyword else await get_orders(user=user)
        return {
            "status": JSendStatus.SUCCESS,
            "data": {"rentals": [await self.serialize_order(order) for order in orders]}
        }


class UserCurrentRentalView(BaseView):
    """
    Gets the user's open rentals.
    """
    url = f"/users/{{id:{USER_IDENTIFIER_REGEX}}}/rentals/current"
    name = "user_current_rental"
    with_user = match_getter(get_user, 'user', user_id='id')

    @with_user
    @docs(summary="Get Current Rentals For User")
    @returns(JSendSchema.of(rentals=Many(OrderSchema())))
    async def get(self, user: User):
        orders = await self.rental_manager.current_rentals(user.id)
        return {
            "status": JSendStatus.SUCCESS,
            "data": {"rentals": [await self.serialize_order(order) for order in orders]}
        }


class UserBalanceView(BaseView):
    """
    Tops up the user's balance.
    """
    url = f"/users/{{id:{USER_IDENTIFIER_REGEX}}}/balance"
    name = "user_balance"
    with_user = match_getter(get_user, 'user', user_id='id')

    @with_user
    @docs(summary="Top Up A User's Balance")
    @expects(TopUpSchema())
    @returns(JSendSchema.of(user=UserSchema()))
    async def post(self, user: User):
        try:
            user = await self.membership_manager.top_up(user.id, self.request["data"]["amount"])
        except ValueError as error:
            raise _bad_request(str(error))

        return {
            "status": JSendStatus.SUCCESS,
            "data": {"user": user.serialize()}
        }


class UserMembershipView(BaseView):
    """
    Buys a membership for the user, paid from their balance.
    """
    url = f"/users/{{id:{USER_IDENTIFIER_REGEX}}}/membership"
    name = "user_membership"
    with_user = match_getter(get_user, 'user', user_id='id')

    @with_user
    @docs(summary="Upgrade A User's Membership")
    @expects(MembershipUpgradeSchema())
    @returns(JSendSchema.of(user=UserSchema()))
    async def post(self, user: User):
        try:
            user = await self.membership_manager.upgrade(
                user.id, self.request["data"]["membership"], self.request["data"]["months"]
            )
        except ValueError as error:
            raise _bad_request(str(error))

        return {
            "status": JSendStatus.SUCCESS,
            "data": {"user": user.serialize()}
        }
