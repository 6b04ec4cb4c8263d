"""Read the toolchain environment file.

The toolchain keeps its secrets and local paths in ``.env.hardhat``.
See ``.env.hardhat.example`` for the recognised keys.

- Values are read with `python-dotenv <https://github.com/theskumar/python-dotenv>`__
  into a plain dict instead of being injected into ``os.environ``

- Variables already set in the process environment win over the file
"""

import logging
import os
from pathlib import Path
from typing import Mapping

from dotenv import dotenv_values

logger = logging.getLogger(__name__)


#: Default environment file name, looked up from the working directory
DEFAULT_ENV_FILE = Path(".env.hardhat")


class ConfigurationError(Exception):
    """Required environment or file precondition is missing or broken.

    Always fatal. The operator gets a warning and the process exits with status 1.
    """


def read_env_file(
    path: Path = DEFAULT_ENV_FILE,
    required=False,
    environ: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Read variables from the environment file.

    :param path:
        Path to the ``.env.hardhat`` file

    :param required:
        Raise instead of warning if the file is not there.

        The network configuration works without the file,
        the vault funding script does not.

    :param environ:
        Process environment overlay. Defaults to ``os.environ``.

    :return:
        Merged variables, process environment taking the precedence

    :raise ConfigurationError:
        If the file is required but missing
    """

    if environ is None:
        environ = os.environ

    if not path.is_file():
        if required:
            raise ConfigurationError(f"No {path} file found, required to use this script. Please check {path}.example for an example")
        logger.warning("No %s file found, required to use tenderly", path)
        logger.warning("Please check %s.example for an example", path)
        values = {}
    else:
        values = {k: v for k, v in dotenv_values(path).items() if v is not None}
        logger.info("Loaded %d variables from %s", len(values), path)

    values.update(environ)
    return values


def get_frontend_dir(env: Mapping[str, str], cwd: Path | None = None) -> Path | None:
    """Resolve the frontend project directory.

    The frontend project stores the addresses of our deployed contracts.

    :param env:
        Variables from :py:func:`read_env_file`

    :param cwd:
        Resolve a relative ``FRONTEND_PATH`` against this directory.
        Defaults to the current working directory.

    :return:
        Absolute path, or ``None`` if ``FRONTEND_PATH`` is not set
    """
    frontend_path = env.get("FRONTEND_PATH")
    if not frontend_path:
        return None

    if cwd is None:
        cwd = Path.cwd()

    return (cwd / Path(frontend_path).expanduser()).resolve()
