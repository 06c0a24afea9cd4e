from typing import Callable, List, Tuple

import httpx
import pytest

from reddit_explainer.models import PostData, ProviderConfig


class RecordingHandler:
    """Test transport: records requests and returns a canned response."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]):
        self.handler = handler
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)

    @property
    def calls(self) -> int:
        return len(self.requests)


@pytest.fixture
def post() -> PostData:
    return PostData(
        title="Why is the sky blue?",
        postContent="I always wondered why the sky looks blue during the day but red at sunset. "
                    "Is it something about the atmosphere or the sun itself?",
        topComments=[
            "Rayleigh scattering: shorter wavelengths scatter more.",
            "At sunset light travels through more air, so blue is scattered away.",
        ],
    )


@pytest.fixture
def make_client() -> Callable[..., Tuple[httpx.AsyncClient, RecordingHandler]]:
    def factory(handler: Callable[[httpx.Request], httpx.Response]):
        recorder = RecordingHandler(handler)
        return httpx.AsyncClient(transport=httpx.MockTransport(recorder)), recorder
    return factory


@pytest.fixture
def openai_config() -> ProviderConfig:
    return ProviderConfig(provider="openai", api_key="sk-test")
