import os

# 测试期间不写日志文件
os.environ.setdefault("LOG_DISABLE_FILE", "true")

import pytest  # noqa: E402

from src.core.principal import Principal  # noqa: E402
from tests.fake_replica import COUNTER_ID, RELAY_ID, FakeReplica  # noqa: E402


@pytest.fixture
def replica() -> FakeReplica:
    return FakeReplica(
        counter_id=Principal.from_text(COUNTER_ID),
        relay_id=Principal.from_text(RELAY_ID),
    )
