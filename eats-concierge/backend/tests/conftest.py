from __future__ import annotations

import pytest

from config import Configuration
from fakes import SUSHI_REPLY, make_cfg


@pytest.fixture
def cfg() -> Configuration:
    return make_cfg()


@pytest.fixture
def sushi_reply() -> str:
    return SUSHI_REPLY
