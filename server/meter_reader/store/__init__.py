"""Scan history storage package."""
from .scan_store import JsonScanStore, MemoryScanStore, ScanStore

__all__ = ["JsonScanStore", "MemoryScanStore", "ScanStore"]
