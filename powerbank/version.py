"""
Version
-------

Defines the version of the application.

.. autodata:: powerbank.version.__version__
"""

__version__ = "1.0.0"
"""The current version."""

name = "powerbank-server"
