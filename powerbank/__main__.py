"""
The primary entry point to the application.
"""

from aiohttp import web

from powerbank import logger
from powerbank.app import build_app
from powerbank.version import __version__, name

if __name__ == '__main__':
    logger.info(f'Starting {name} %s!', __version__)
    web.run_app(build_app())
