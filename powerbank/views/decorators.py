"""
Decorators
-------------------------
"""
from functools import wraps
from inspect import isawaitable
from typing import Union, Any, Dict, Tuple

from aiohttp import web
from aiohttp.web_request import Request
from aiohttp.web_urldispatcher import View

from powerbank.serializer import JSendStatus, JSendSchema


class Optional:
    """Signify the match map entry to be optional."""

    def __init__(self, value):
        self.value = value


def resolve_match_map(request: Request, match_map) -> Dict[str, Any]:
    """
    Converts the url parameters named in the match map to their expected types.

    :raises ValueError: With one argument per parameter that could not be converted.
    """
    resolved_matches = {}
    errors = []

    for key, value in match_map.items():

        if isinstance(value, Optional):
            value = value.value
            is_optional = True
        else:
            is_optional = False

        if isinstance(value, str):
            value = (value, int)

        if not isinstance(value, tuple):
            raise TypeError(f"match_getter incorrectly configured (doesn't support {type(value)})")

        url_parameter, converter = value
        param = request.match_info.get(url_parameter)
        if param is None:
            if not is_optional:
                errors.append(f'Missing url parameter "{url_parameter}".')
            continue

        try:
            resolved_matches[key] = converter(param)
        except ValueError:
            errors.append(f'Could not convert url parameter "{param}" to expected type {converter.__name__}.')

    if errors:
        raise ValueError(*errors)
    return resolved_matches


def match_getter(getter_function, *injection_parameters: Union[str, Optional],
                 **match_map: Union[str, Optional, Tuple[str, type]]):
    """
    Automatically fetches and includes an item, or 404's if it doesn't exist.

    .. code-block:: python

        # example usage
        @match_getter(get_device, 'device', device_id='id')
        async def get(self, device: Device)
            return web.json_response(data=device.serialize())

    :param getter_function: The function to fetch the item from.
    :param injection_parameters: The name of the parameter to pass the object as.
    :param match_map: Associates a kwarg on the ``getter_function`` to a url variable.
    :return: A decorator that wraps the response and passes in the object.
    """

    def attach_instance(original_function):

        @wraps(original_function)
        async def new_func(self: View, **kwargs):
            try:
                params = resolve_match_map(self.request, match_map)
            except ValueError as error:
                response = {
                    "status": JSendStatus.FAIL,
                    "data": {
                        "message": "Errors with your request.",
                        "errors": list(error.args)
                    }
                }
                raise web.HTTPBadRequest(text=JSendSchema().dumps(response), content_type='application/json')
            item = getter_function(**params)
            if isawaitable(item):
                item = await item

            # if the getter function returns multiple items,
            # and there are multiple parameter names,
            # then set those keys in the decorated function
            if len(injection_parameters) > 1 and isinstance(item, tuple) and len(injection_parameters) == len(item):
                optional_injected_kwargs = dict(zip(injection_parameters, item))
            else:
                optional_injected_kwargs = {injection_parameters[0]: item}

            not_found = []
            injected_kwargs = {}
            for key, item in optional_injected_kwargs.items():
                if isinstance(key, Optional):
                    injected_kwargs[key.value] = item
                elif item is None:
                    not_found.append(key)
                else:
                    injected_kwargs[key] = item

            if not_found:
                response = {
                    "status": JSendStatus.FAIL,
                    "data": {
                        "message": f'Could not find {", ".join(not_found)} with the given params.',
                        "params": params
                    }
                }
                raise web.HTTPNotFound(text=JSendSchema().dumps(response), content_type='application/json')

            return await original_function(self, **kwargs, **injected_kwargs)

        return new_func

    return attach_instance
