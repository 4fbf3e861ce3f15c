"""Shared QR toolkit dependency; tests override it with a fixed-clock codec."""

from functools import lru_cache

from sarnies_api.core.settings import get_settings
from sarnies_api.services.qr.toolkit import QRToolkit, build_qr_toolkit


@lru_cache
def get_qr_toolkit() -> QRToolkit:
    return build_qr_toolkit(get_settings())
