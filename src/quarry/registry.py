from __future__ import annotations

from collections import defaultdict
from inspect import isclass
from typing import (
    TYPE_CHECKING,
    Callable,
    DefaultDict,
    Dict,
    Optional,
    Set,
    Type,
    Union,
)

if TYPE_CHECKING:
    from quarry.base.interface import BaseInterface
    from quarry.sql.executor import ModelExecutor

ALL_MODELS = "*"


class Registry(dict):
    _singleton = None

    def __new__(cls, *args, **kwargs):
        if cls._singleton is None:
            cls.reset()
        return cls._singleton

    def register(
        self, executor: Union[Type[ModelExecutor], ModelExecutor]
    ) -> None:
        cls = executor if isclass(executor) else executor.__class__
        self[cls.__name__] = executor

    @classmethod
    def reset(cls):
        cls._singleton = super().__new__(cls)  # type: ignore


class InterfaceRegistry:
    _singleton = None
    _interfaces: Set[BaseInterface]

    def __new__(cls, *args, **kwargs):
        if cls._singleton is None:
            cls.reset()
        return cls._singleton

    @classmethod
    def add(cls, interface: BaseInterface) -> None:
        instance = cls()
        instance._interfaces.add(interface)

    def __iter__(self):
        return iter(self._interfaces)

    @classmethod
    def reset(cls):
        cls._singleton = super().__new__(cls)
        cls._singleton._interfaces = set()


class PoolRegistry:
    """
    Registry to ensure executors with the same DSN share the same pool
    instance.
    """

    _singleton = None
    _pools: Dict[str, BaseInterface]

    def __new__(cls, *args, **kwargs):
        if cls._singleton is None:
            cls.reset()
        return cls._singleton

    @classmethod
    def get_or_create(
        cls,
        dsn: str,
        pool_class: Type[BaseInterface],
        min_size: int = 1,
        max_size: Optional[int] = None,
    ) -> BaseInterface:
        """
        Get existing pool or create new one for DSN.

        Args:
            dsn: Database connection string
            pool_class: Class to use for creating new pool
            min_size: Minimum number of connections in pool
            max_size: Maximum number of connections in pool

        Returns:
            Shared pool instance for the DSN
        """
        instance = cls()
        if dsn not in instance._pools:
            instance._pools[dsn] = pool_class(
                dsn, min_size=min_size, max_size=max_size
            )
        return instance._pools[dsn]

    @classmethod
    def get(cls, dsn: str) -> Optional[BaseInterface]:
        """Get pool for DSN if it exists"""
        instance = cls()
        return instance._pools.get(dsn)

    @classmethod
    def reset(cls):
        """Reset the registry (useful for testing)"""
        cls._singleton = super().__new__(cls)
        cls._singleton._pools = {}


class CapabilityRegistry:
    """
    Registry of the operations attached to model executors, keyed first by
    model name (or `ALL_MODELS`) and then by operation name.

    Every operation is a callable whose first argument is the executor
    it is bound to. `reset()` goes back to the operations recorded by the
    last `freeze()`, which are the built-in capabilities once
    `quarry.capability` is imported.
    """

    _singleton = None
    _operations: DefaultDict[str, Dict[str, Callable]]
    _defaults: Dict[str, Dict[str, Callable]] = {}

    def __new__(cls, *args, **kwargs):
        if cls._singleton is None:
            cls.reset()
        return cls._singleton

    @classmethod
    def add(
        cls, name: str, operation: Callable, model: str = ALL_MODELS
    ) -> None:
        instance = cls()
        instance._operations[model][name] = operation

    @classmethod
    def get(cls, model: str, name: str) -> Optional[Callable]:
        operations = cls()._operations
        operation = operations.get(model, {}).get(name)
        if operation is None:
            operation = operations.get(ALL_MODELS, {}).get(name)
        return operation

    @classmethod
    def discard(cls, name: str, model: str = ALL_MODELS) -> None:
        cls()._operations.get(model, {}).pop(name, None)

    @classmethod
    def resolve(cls, model: str) -> Dict[str, Callable]:
        operations = cls()._operations
        return {
            **operations.get(ALL_MODELS, {}),
            **operations.get(model, {}),
        }

    @classmethod
    def freeze(cls) -> None:
        cls._defaults = {
            model: dict(operations)
            for model, operations in cls()._operations.items()
        }

    @classmethod
    def reset(cls):
        cls._singleton = super().__new__(cls)
        cls._singleton._operations = defaultdict(
            dict,
            {
                model: dict(operations)
                for model, operations in cls._defaults.items()
            },
        )
