from .hydrator import Hydrator
from .interface import BaseInterface

__all__ = ("BaseInterface", "Hydrator")
