"""catalogsync - Reconcile a warehouse table catalog into a local metadata store."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("catalogsync")
except PackageNotFoundError:
    __version__ = "unknown"

__all__ = ["__version__"]
