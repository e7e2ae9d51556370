"""Live KB Sync - keeps a scraped live document current in a remote vector store."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("live-kb-sync")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"  # Fallback for development without install
