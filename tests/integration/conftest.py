# tests/integration/conftest.py - v1
"""Shared fixtures for integration tests.

SQLite and memory backends need nothing external. The Redis hot tier runs
against a throwaway container started through testcontainers:
- session scope: the container starts once per pytest session
- function scope: the database is flushed before each test

Container address:
- Prefers the container bridge IP (docker-outside-of-docker devcontainers
  cannot reach localhost:mapped_port)
- Falls back to the mapped host port when the bridge IP is unreachable
"""

from __future__ import annotations

import logging
import socket
import time

import pytest

logger = logging.getLogger(__name__)

REDIS_IMAGE = "redis:7-alpine"
REDIS_INTERNAL_PORT = 6379


def pytest_configure(config):
    config.addinivalue_line("markers", "redis: marks tests requiring Redis container")


# =====================================================================
#  CONTAINER NETWORKING HELPERS
# =====================================================================

def _get_container_bridge_ip(container, max_attempts: int = 10) -> str | None:
    """Container bridge network IP, or None if Docker never reports one."""
    for attempt in range(max_attempts):
        wrapped = container.get_wrapped_container()
        wrapped.reload()
        networks = wrapped.attrs.get("NetworkSettings", {}).get("Networks", {})
        for net_name, net_info in networks.items():
            ip = net_info.get("IPAddress", "")
            if ip:
                logger.info(
                    "Container %s IP: %s (network: %s, attempt %d)",
                    wrapped.short_id, ip, net_name, attempt + 1,
                )
                return ip
        logger.debug("Container IP empty, attempt %d/%d", attempt + 1, max_attempts)
        time.sleep(0.5)
    return None


def _reachable(host: str, port: int, timeout: float = 1.0) -> bool:
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except OSError:
        return False


def _docker_available() -> bool:
    """Check if Docker daemon is reachable."""
    try:
        import docker
        docker.from_env().ping()
    except Exception:  # noqa: BLE001
        return False
    return True


# =====================================================================
#  REDIS
# =====================================================================

@pytest.fixture(scope="session")
def redis_container():
    if not _docker_available():
        pytest.skip("Docker not available")

    from testcontainers.core.container import DockerContainer
    from testcontainers.core.waiting_utils import wait_for_logs

    container = DockerContainer(REDIS_IMAGE).with_exposed_ports(REDIS_INTERNAL_PORT)
    container.start()
    try:
        wait_for_logs(container, predicate=r"Ready to accept connections", timeout=30)

        host, port = _get_container_bridge_ip(container), REDIS_INTERNAL_PORT
        if host is None or not _reachable(host, port):
            host = container.get_container_host_ip()
            port = int(container.get_exposed_port(REDIS_INTERNAL_PORT))
        logger.info("Redis ready at %s:%d", host, port)
        yield {"host": host, "port": port}
    finally:
        container.stop()


@pytest.fixture(scope="session")
def redis_url(redis_container) -> str:
    c = redis_container
    return f"redis://{c['host']}:{c['port']}/0"


@pytest.fixture
def flushed_redis_url(redis_url) -> str:
    import redis

    client = redis.Redis.from_url(redis_url)
    client.flushdb()
    client.close()
    return redis_url
