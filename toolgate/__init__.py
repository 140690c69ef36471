"""toolgate: a tool-calling gateway for AI agents."""

from importlib.metadata import PackageNotFoundError, version as _v

try:
    __version__ = _v("toolgate")
except PackageNotFoundError:
    # Source checkout without `pip install -e .`
    __version__ = "0.0.0+unknown"
