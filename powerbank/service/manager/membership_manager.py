"""
Membership Manager
------------------

Handles the money a user puts into the system: topping up their
balance, and buying VIP or SVIP membership. Membership fees are
paid into the treasury in the same transaction that takes them
from the user.
"""

from datetime import timedelta

from tortoise.transactions import in_transaction

from powerbank import logger
from powerbank.models import User, Membership
from powerbank.pricing import plan_price, sufficient_funds, to_money, Amount
from powerbank.service.access.users import get_user, get_treasury_account, adjust_balance
from powerbank.service.clock import Clock, SystemClock
from powerbank.service.exceptions import NotFoundError, ConflictError, InsufficientBalanceError, persistence_errors
from powerbank.service.locks import LockManager, UserKey

DAYS_PER_MONTH = 30


class MembershipManager:

    def __init__(self, locks: LockManager, clock: Clock = None):
        self._locks = locks
        self._clock = clock if clock is not None else SystemClock()

    async def top_up(self, user_id: int, amount: Amount) -> User:
        """
        Adds money to a user's balance.

        :raises ValueError: If the amount is not positive.
        :raises NotFoundError: If the user does not exist.
        """
        amount = to_money(amount)
        if amount <= 0:
            raise ValueError("Top ups must be positive.")

        async with self._locks.acquire(UserKey(user_id)):
            with persistence_errors():
                async with in_transaction() as connection:
                    await adjust_balance(user_id, amount, connection=connection)
                    user = await get_user(user_id, connection=connection)

        logger.info("User %s topped up %s, balance now %s", user_id, amount, user.balance)
        return user

    async def upgrade(self, user_id: int, membership: Membership, months: int) -> User:
        """
        Buys a membership plan for a user.

        :raises ValueError: If there is no plan for that membership and number of months.
        :raises NotFoundError: If the user or treasury does not exist.
        :raises ConflictError: If the user is the treasury.
        :raises InsufficientBalanceError: If the user cannot afford the plan.
        """
        price = plan_price(membership, months)

        with persistence_errors():
            treasury = await get_treasury_account()
        if treasury is None:
            raise NotFoundError("There is no treasury account to pay into.")
        if treasury.id == user_id:
            raise ConflictError("The treasury account cannot buy a membership.", user_id=user_id)

        async with self._locks.acquire(UserKey(user_id), UserKey(treasury.id)):
            with persistence_errors():
                async with in_transaction() as connection:
                    user = await get_user(user_id, for_update=True, connection=connection)
                    if user is None:
                        raise NotFoundError(f"User {user_id} does not exist.", user_id=user_id)

                    if not sufficient_funds(user.balance, price):
                        raise InsufficientBalanceError(
                            f"A balance of {price} is needed for this plan.", user.balance, price
                        )

                    await adjust_balance(user.id, -price, connection=connection)
                    await adjust_balance(treasury.id, price, connection=connection)

                    user = await get_user(user_id, connection=connection)
                    user.membership = membership
                    user.membership_expiry = self._clock.now() + timedelta(days=DAYS_PER_MONTH * months)
                    await user.save(update_fields=["membership", "membership_expiry"], using_db=connection)

        logger.info("User %s bought %s months of %s for %s", user_id, months, membership.value, price)
        return user
