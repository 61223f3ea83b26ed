from .driver import BaseDriver, DriverCapabilities

__all__ = ("BaseDriver", "DriverCapabilities")
