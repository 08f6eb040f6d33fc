import pytest


def make_proxies(*names):
    return [
        {"name": name, "type": "ss", "server": "127.0.0.1", "port": 8388 + i,
         "cipher": "aes-128-gcm", "password": "test"}
        for i, name in enumerate(names)
    ]


@pytest.fixture
def sample_config():
    return {
        "proxies": make_proxies(
            "HK 01", "HK 02 0.5x", "TW 01", "JP 01", "US 01", "KR 01",
            "SG 01", "UK 01", "Starlink US", "Expire 2026-12-31",
        )
    }
