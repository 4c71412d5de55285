from typing import Optional, Tuple, Type

from quarry.base.interface import BaseInterface
from quarry.exception import QuarryError


class LazyPool(BaseInterface):
    """Stand-in interface for executors created before an event loop is
    running

    It remembers which interface to build for which DSN. `Quarry.connect()`
    replaces it with the real interface through `derive()`. Any attempt to
    query through it fails.
    """

    _singleton = None
    _target: Optional[Type[BaseInterface]]
    _target_dsn: str
    _sizing: Tuple[int, Optional[int]]
    _derived: Optional[BaseInterface]

    def __new__(cls, *args, **kwargs):
        if cls._singleton is None:
            instance = super().__new__(cls)
            instance._target = None
            instance._target_dsn = ""
            instance._sizing = (1, None)
            instance._derived = None
            cls._singleton = instance
        return cls._singleton

    def __init__(self) -> None:
        if "_connection" not in self.__dict__:
            super().__init__()

    def _setup_pool(self): ...

    async def open(self): ...

    async def close(self): ...

    def _acquire(self, timeout: Optional[float] = None):
        raise QuarryError(
            "Connection pool to your database has not been setup. "
            "Did you forget to await Quarry.connect()?"
        )

    @property
    def target(self) -> Optional[Type[BaseInterface]]:
        """The interface class that will be derived"""
        return self._target

    def configure(
        self,
        target: Type[BaseInterface],
        dsn: str,
        min_size: int = 1,
        max_size: Optional[int] = None,
    ) -> None:
        self._target = target
        self._target_dsn = dsn
        self._sizing = (min_size, max_size)
        self._derived = None

    def derive(self) -> BaseInterface:
        """Build the real interface, once

        Raises:
            QuarryError: If nothing was configured

        Returns:
            BaseInterface: The interface for the configured DSN
        """
        if self._target is None:
            raise QuarryError("No interface available to derive")
        if self._derived is None:
            min_size, max_size = self._sizing
            self._derived = self._target(
                self._target_dsn, min_size=min_size, max_size=max_size
            )
        return self._derived

    @classmethod
    def reset(cls) -> None:
        cls._singleton = None
