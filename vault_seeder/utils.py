"""Process, port and logging helpers."""

import logging
import os
import random
import socket
import time
from typing import Optional

import coloredlogs
import psutil

logger = logging.getLogger(__name__)


#: Libraries that log every JSON-RPC request at info level
NOISY_LOGGERS = (
    "web3.providers.AsyncHTTPProvider",
    "web3.providers.HTTPProvider",
    "web3.RequestManager",
    "urllib3.connectionpool",
)


def is_localhost_port_listening(port: int, host="localhost") -> bool:
    """Does some process accept TCP connections on this port."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        return s.connect_ex((host, port)) == 0


def find_free_port(min_port: int = 20_000, max_port: int = 40_000, max_attempt: int = 20) -> int:
    """Pick a random localhost port nobody listens to.

    .. note ::

        Another process may grab the port before we bind it.

    :raise RuntimeError:
        All ``max_attempt`` random picks were taken
    """
    assert type(min_port) == int
    assert type(max_port) == int

    for _ in range(max_attempt):
        candidate = random.randrange(min_port, max_port)
        if not is_localhost_port_listening(candidate, "127.0.0.1"):
            logger.info("Allocated port %d for Anvil", candidate)
            return candidate

    raise RuntimeError(f"No free port in {min_port} - {max_port} after {max_attempt} attempts")


def shutdown_hard(
    process: psutil.Popen,
    log_level: Optional[int] = None,
    block_timeout=30,
    check_port: Optional[int] = None,
) -> tuple[bytes, bytes]:
    """SIGKILL a process and collect its output.

    :param log_level:
        Log each output line at this level

    :param check_port:
        Block until this localhost port is released, at most ``block_timeout`` seconds

    :return:
        stdout, stderr
    """

    if process.poll() is None:
        process.kill()

    output = []
    for name, stream in (("stdout", process.stdout), ("stderr", process.stderr)):
        data = b""
        for line in stream.readlines():
            data += line
            if log_level is not None:
                logger.log(log_level, "%s: %s", name, line.decode("utf-8").strip())
        output.append(data)

    if check_port is not None:
        deadline = time.time() + block_timeout
        while is_localhost_port_listening(check_port):
            if time.time() > deadline:
                raise AssertionError(f"Process still holds port {check_port} after {block_timeout} seconds")
            time.sleep(0.1)

    return output[0], output[1]


def setup_console_logging(
    log_level: str | None = None,
    simplified_logging=False,
) -> logging.Logger:
    """Set up coloured log output.

    :param log_level:
        Level name like ``info``.
        If not given, read from ``LOG_LEVEL`` environment variable, defaulting to ``info``.

    :param simplified_logging:
        Output messages only, no timestamps or logger names

    :return:
        Root logger
    """

    if not log_level:
        log_level = os.environ.get("LOG_LEVEL", "info")

    numeric_level = getattr(logging, log_level.upper(), None)
    assert isinstance(numeric_level, int), f"No log level: {log_level}"

    if simplified_logging:
        fmt = "%(message)s"
    else:
        fmt = "%(asctime)s %(name)-32s %(message)s"

    coloredlogs.install(level=numeric_level, fmt=fmt, datefmt="%H:%M:%S")

    # coloredlogs only ever lowers the root level
    root = logging.getLogger()
    root.setLevel(numeric_level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(logging.WARNING, numeric_level))

    return root
