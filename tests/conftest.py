"""Shared fixtures: a fake curl_cffi session so nothing touches the network."""

import asyncio

import pytest

from helpers import PageFetcher


class FakeResponse:
    def __init__(self, text="", status_code=200):
        self.text = text
        self.status_code = status_code


class FakeSession:
    """
    Stands in for curl_cffi's AsyncSession.

    `routes` maps a URL substring to an HTML string, a (status, html) tuple or
    an exception instance to raise. `delays` maps a URL substring to seconds
    to sleep before answering.
    """

    def __init__(self, routes=None, delays=None):
        self.routes = routes or {}
        self.delays = delays or {}
        self.calls = []
        self.cancelled = []

    async def get(self, url, headers=None, impersonate=None, timeout=None):
        self.calls.append(url)

        delay = next((d for key, d in self.delays.items() if key in url), 0)
        if delay:
            try:
                await asyncio.sleep(delay)
            except asyncio.CancelledError:
                self.cancelled.append(url)
                raise

        for key, answer in self.routes.items():
            if key not in url:
                continue
            if isinstance(answer, BaseException):
                raise answer
            if isinstance(answer, tuple):
                status, text = answer
                return FakeResponse(text, status)
            return FakeResponse(answer)
        return FakeResponse("", 404)


@pytest.fixture
def make_fetcher():
    """make_fetcher(routes, delays) → (PageFetcher, FakeSession)"""
    def _make(routes=None, delays=None):
        session = FakeSession(routes, delays)
        return PageFetcher(session=session), session
    return _make
