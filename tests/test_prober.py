"""
单元测试：服务器状态探测（新版协议优先，旧版回退）
"""

import asyncio
from types import SimpleNamespace

import pytest

from server_analytics import prober
from server_analytics.exceptions import ProbeError


def status_response(online, maximum, version, latency=None):
    response = SimpleNamespace(
        players=SimpleNamespace(online=online, max=maximum),
        version=SimpleNamespace(name=version),
    )
    if latency is not None:
        response.latency = latency
    return response


class FakeServer:
    """替代 mcstatus 的服务器类，按类属性返回结果或抛出异常"""
    result = None
    calls = []
    srv = {}
    lookups = []

    def __init__(self, host, port, timeout=3):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.address = SimpleNamespace(host=host, port=port)

    @classmethod
    async def async_lookup(cls, address, timeout=3):
        cls.lookups.append(address)
        host, port = cls.srv.get(address, (address, 25565))
        return cls(host, port, timeout=timeout)

    async def async_status(self):
        type(self).calls.append((self.host, self.port, self.timeout))
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


@pytest.fixture
def servers(monkeypatch):
    class Modern(FakeServer):
        calls = []
        srv = {}
        lookups = []

    class Legacy(FakeServer):
        calls = []

    monkeypatch.setattr(prober, "JavaServer", Modern)
    monkeypatch.setattr(prober, "LegacyServer", Legacy)
    return Modern, Legacy


def test_modern_protocol(servers):
    modern, legacy = servers
    modern.result = status_response(3, 20, "Paper 1.20.4", latency=42.6)

    reading = asyncio.run(prober.probe("mc.example.com", 25565, timeout=5))

    assert reading.player_count == 3
    assert reading.max_players == 20
    assert reading.latency == 43
    assert reading.version == "Paper 1.20.4"
    assert modern.calls == [("mc.example.com", 25565, 5)]
    assert legacy.calls == []


def test_legacy_fallback_has_no_latency(servers):
    modern, legacy = servers
    modern.result = ConnectionResetError("unexpected packet")
    legacy.result = status_response(7, 40, "1.6.4")

    reading = asyncio.run(prober.probe("old.example.com", 25565, timeout=5))

    assert reading.player_count == 7
    assert reading.max_players == 40
    assert reading.latency is None
    assert reading.version == "1.6.4"
    assert len(legacy.calls) == 1


def test_legacy_unknown_version(servers):
    modern, legacy = servers
    modern.result = OSError("bad handshake")
    legacy.result = status_response(0, 10, "")

    reading = asyncio.run(prober.probe("old.example.com", 25565))

    assert reading.version == "Unknown"


def test_both_protocols_fail(servers):
    modern, legacy = servers
    modern.result = ConnectionRefusedError("Connection refused")
    legacy.result = ConnectionRefusedError("Connection refused")

    with pytest.raises(ProbeError, match="Connection refused"):
        asyncio.run(prober.probe("down.example.com", 25565))


def test_timeout_message(servers):
    modern, legacy = servers
    modern.result = asyncio.TimeoutError()
    legacy.result = asyncio.TimeoutError()

    with pytest.raises(ProbeError, match="Timed out after 5"):
        asyncio.run(prober.probe("slow.example.com", 25565, timeout=5))


def test_srv_record_used_for_default_port(servers):
    """测试：默认端口先查 SRV，两种协议都连接解析后的地址"""
    modern, legacy = servers
    modern.srv = {"play.example.com": ("node1.example.com", 25570)}
    modern.result = OSError("bad handshake")
    legacy.result = status_response(2, 20, "1.6.4")

    asyncio.run(prober.probe("play.example.com", 25565, timeout=5))

    assert modern.lookups == ["play.example.com"]
    assert modern.calls == [("node1.example.com", 25570, 5)]
    assert legacy.calls == [("node1.example.com", 25570, 5)]


def test_explicit_port_skips_srv(servers):
    modern, legacy = servers
    modern.result = status_response(1, 10, "1.20.4", latency=10)

    asyncio.run(prober.probe("play.example.com", 25570, timeout=5))

    assert modern.lookups == []
    assert modern.calls == [("play.example.com", 25570, 5)]


def test_srv_lookup_failure_connects_directly(servers, monkeypatch):
    modern, legacy = servers
    modern.result = status_response(1, 10, "1.20.4", latency=10)

    async def _failing_lookup(address, timeout=3):
        raise OSError("DNS resolution failed")

    monkeypatch.setattr(modern, "async_lookup", _failing_lookup)

    reading = asyncio.run(prober.probe("mc.example.com", 25565, timeout=5))

    assert reading.player_count == 1
    assert modern.calls == [("mc.example.com", 25565, 5)]
