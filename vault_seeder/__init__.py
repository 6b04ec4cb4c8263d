"""vault_seeder package root.

Seed pre-deployed vault contracts with test liquidity on a forked network.

"""

import sys


#: Minimum required Python version to run this package
MIN_PYTHON_VERSION = (3, 11)


def _check_python_version():
    """Try early abort if the Python version is too old."""

    # Use Python tuple comparison for version numbers
    # https://stackoverflow.com/a/1093331/315168
    if sys.version_info < MIN_PYTHON_VERSION:
        raise RuntimeError(f"vault-seeder needs Python {MIN_PYTHON_VERSION[0]}.{MIN_PYTHON_VERSION[1]} or later")


_check_python_version()
