"""
Users
-----

The account store. Balances are only ever changed through
:func:`adjust_balance`, by callers holding the user's lock.
"""
from decimal import Decimal
from typing import Optional, List

from tortoise.backends.base.client import BaseDBAsyncClient
from tortoise.exceptions import IntegrityError

from powerbank.models import User, Membership
from powerbank.pricing import to_money, Amount
from powerbank.service.exceptions import NotFoundError, ConflictError


class UserExistsError(Exception):
    def __init__(self, errors):
        super().__init__()
        self.errors = errors


async def get_users(*, username: str = None, membership: Membership = None) -> List[User]:
    """
    Gets all the users in the system.

    :param username: An optional name to filter by.
    :param membership: An optional membership to filter by.
    """

    query = User.all()

    if username is not None:
        query = query.filter(username__icontains=username)

    if membership is not None:
        query = query.filter(membership=membership)

    return await query.order_by("id")


async def get_user(user_id: int, *, for_update=False, connection: BaseDBAsyncClient = None) -> Optional[User]:
    """
    :param user_id: The user id of the user to get.
    :param for_update: Whether to lock the row until the end of the current transaction.
    :return: The user with the given id.
    """
    query = User.filter(id=user_id)
    if for_update:
        query = query.select_for_update()
    return await query.using_db(connection).first()


async def get_treasury_account(*, for_update=False, connection: BaseDBAsyncClient = None) -> Optional[User]:
    """Gets the admin account that collects all income."""
    query = User.filter(membership=Membership.ADMIN)
    if for_update:
        query = query.select_for_update()
    return await query.using_db(connection).order_by("id").first()


async def create_user(username: str, phone: str = "", *, membership: Membership = Membership.COMMON,
                      balance: Amount = 0) -> User:
    """
    Creates a new user.

    :raises UserExistsError: When the user with the given username already exists.
    :raises ConflictError: When creating a second treasury account.
    """
    if membership is Membership.ADMIN and await get_treasury_account() is not None:
        raise ConflictError("There can only be one treasury account.")

    try:
        return await User.create(username=username, phone=phone, membership=membership, balance=to_money(balance))
    except IntegrityError as error:
        errors = {}
        for message in (str(arg) for arg in error.args):
            if "unique" in message.lower():
                errors["username"] = "User with that username already exists!"

        if not errors:
            raise error

        raise UserExistsError(errors)


async def create_treasury(username: str = "admin") -> User:
    """Gets the treasury account, creating it if it does not exist yet."""
    treasury = await get_treasury_account()
    if treasury is None:
        treasury = await create_user(username, membership=Membership.ADMIN)
    return treasury


async def adjust_balance(user_id: int, delta: Amount, *, connection: BaseDBAsyncClient = None) -> Decimal:
    """
    Adds ``delta`` to the balance of a user, returning the new balance.

    The balance is read and written back inside the caller's transaction,
    so the caller must hold the lock for the user.

    :raises NotFoundError: If there is no such user.
    """
    user = await get_user(user_id, for_update=True, connection=connection)
    if user is None:
        raise NotFoundError(f"User {user_id} does not exist.", user_id=user_id)

    user.balance = to_money(user.balance + to_money(delta))
    await user.save(update_fields=["balance"], using_db=connection)
    return user.balance
