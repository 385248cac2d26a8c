"""
JSend Schema
------------

Every response body is wrapped in a `JSend`_ envelope: a ``status``,
and either the ``data`` the client asked for, or a ``message`` when the
server fails. Failures caused by the request carry their
user-facing message inside ``data``.

.. _`JSend`: https://github.com/omniti-labs/jsend
"""

from enum import Enum

from marshmallow import Schema, fields, validates_schema, ValidationError, EXCLUDE
from marshmallow.fields import Field

from .fields import EnumField


class JSendStatus(str, Enum):

    SUCCESS = "success"
    """The request went through."""

    FAIL = "fail"
    """The request, or the data supplied with it, was refused."""

    ERROR = "error"
    """The server could not handle the request."""


class JSendSchema(Schema):
    status = EnumField(JSendStatus, required=True)
    data = fields.Dict()
    message = fields.String()
    code = fields.Integer()

    @validates_schema
    def assert_envelope(self, data, **kwargs):
        status = data["status"]

        if status is not JSendStatus.ERROR and "data" not in data:
            raise ValidationError(f"A {status.value} response must include data.")
        if status is JSendStatus.FAIL and "message" not in data["data"]:
            raise ValidationError("A failure must tell the user what went wrong.")
        if status is JSendStatus.ERROR and "message" not in data:
            raise ValidationError("An error response must include a message.")

    @staticmethod
    def of(**kwargs):
        """
        Creates a JSendSchema whose ``data`` holds the given fields,
        each either a marshmallow field or a schema to nest.

        >>> device_schema = JSendSchema.of(device=DeviceSchema())
        >>> validated_data = device_schema.load(await response.json())
        """
        class Meta:
            unknown = EXCLUDE

        data_schema = type("DataSchema", (Schema,), {
            "Meta": Meta,
            **{
                name: value if isinstance(value, Field) else fields.Nested(value)
                for name, value in kwargs.items()
            }
        })

        class TypedJSendSchema(JSendSchema):
            data = fields.Nested(data_schema)

        return TypedJSendSchema()
