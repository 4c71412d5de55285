from quarry.registry import CapabilityRegistry

from . import mutation, pagination, sampling, transaction  # noqa
from .base import Capabilities, capability
from .pagination import Page, Pagination

CapabilityRegistry.freeze()

__all__ = ("Capabilities", "Page", "Pagination", "capability")
