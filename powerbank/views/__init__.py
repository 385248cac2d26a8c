"""
.. autoclasstree:: powerbank.views

This package contains the server API for viewing,
renting, and returning power banks, and for managing
the accounts that pay for them.

API Conventions
---------------

The API conforms as best as possible to the REST standard. For a quick primer, look at `Web Api Design`_. In short,
the api must:

* Be ordered in terms of resources (nouns such as device)
* Have multiple ways of accessing the same resource (GET, POST, PATCH, DELETE)
* Accept and return JSON with snake_case key naming
* Support filtering (if necessary) using the query string

API Expected Responses
----------------------

The server responds with JSend formatted JSON to all GET, POST, and PATCH requests.
DELETE requests respond with a 204 content not found.

.. _`Web Api Design`: https://pages.apigee.com/rs/apigee/images/api-design-ebook-2012-03.pdf
"""

import aiohttp_cors
from aiohttp.abc import Application

from powerbank import logger
from .devices import DevicesView, DeviceView, DeviceRentalsView, DeviceCurrentRentalView
from .rentals import RentalsView, RentalView, RentalByCodeView, RentalReturnView
from .users import UsersView, UserView, UserRentalsView, UserCurrentRentalView, UserBalanceView, UserMembershipView

views = [
    DevicesView, DeviceView, DeviceRentalsView, DeviceCurrentRentalView,
    RentalsView, RentalView, RentalByCodeView, RentalReturnView,
    UsersView, UserView, UserRentalsView, UserCurrentRentalView, UserBalanceView, UserMembershipView,
]


def register_views(app: Application, base: str):
    """
    Registers all the API views onto the given router at a specific root url.

    :param app: The app to register the views to.
    :param base: The base URL.
    """
    cors = aiohttp_cors.setup(app, defaults={
        "*": aiohttp_cors.ResourceOptions(
            allow_credentials=True,
            expose_headers="*",
            allow_headers="*",
            allow_methods="*",
        )
    })

    for view in views:
        logger.info("Registered %s at %s", view.__name__, base + view.url)
        view.register_route(app, base)
        view.enable_cors(cors)
