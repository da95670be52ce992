import sys
import os
from contextlib import asynccontextmanager

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))


@asynccontextmanager
async def serve(handler):
    """Serve ``handler`` on GET / of a local mock target and yield its URL."""
    app = web.Application()
    app.router.add_get("/", handler)
    async with TestServer(app) as server:
        yield str(server.make_url("/"))


@pytest.fixture
def mock_target():
    return serve
