"""Package version, from installed metadata or the source checkout."""

import tomllib
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

_PYPROJECT = Path(__file__).resolve().parents[2] / "pyproject.toml"


def _read_version() -> str:
    try:
        return version("receipt-agent")
    except PackageNotFoundError:
        pass

    # Running from a checkout without an install
    if _PYPROJECT.exists():
        with _PYPROJECT.open("rb") as f:
            return str(tomllib.load(f)["project"]["version"])
    return "0+unknown"


__version__ = _read_version()

__all__ = ["__version__"]
