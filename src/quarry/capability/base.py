from __future__ import annotations

from functools import partial
from typing import Any, Callable, List, Optional, Type, Union

from quarry.registry import ALL_MODELS, CapabilityRegistry


def capability(
    name: Optional[str] = None, model: Union[str, Type[object], None] = None
):
    """Register a function as a capability of model executors

    The function receives the executor as its first argument. Without a
    `model`, the capability is attached to every executor. A capability
    registered for one model takes precedence over a global one with the
    same name.

    Example:

    ```python
    from quarry import capability

    @capability(model=Item)
    async def find_cheapest(client, where=None):
        return await client.find_first(where, order_by={"price": "asc"})

    cheapest = await item_executor.capabilities.find_cheapest()
    ```

    Args:
        name (str, optional): The name of the operation. Defaults to the
            name of the function.
        model (Union[str, Type[object]], optional): The model, or model
            name, to attach to. Defaults to every model.
    """
    if isinstance(model, type):
        model = model.__name__

    def decorator(f):
        CapabilityRegistry.add(name or f.__name__, f, model or ALL_MODELS)
        return f

    return decorator


class Capabilities:
    """The registered capabilities of a single executor

    Every attribute resolves to the registered operation with the executor
    already passed in.
    """

    def __init__(self, client: Any) -> None:
        self._client = client
        get_model_name = getattr(client, "get_model_name", None)
        self._model = (
            get_model_name() if callable(get_model_name) else ALL_MODELS
        )

    def __str__(self) -> str:
        return f"<Capabilities {self._model}>"

    @property
    def client(self) -> Any:
        return self._client

    @property
    def model(self) -> str:
        return self._model

    def __getattr__(self, name: str) -> Callable[..., Any]:
        if name.startswith("_"):
            raise AttributeError(name)
        operation = CapabilityRegistry.get(self._model, name)
        if operation is None:
            raise AttributeError(
                f"{self._model} does not have a capability named {name!r}"
            )
        return partial(operation, self._client)

    def __contains__(self, name: str) -> bool:
        return CapabilityRegistry.get(self._model, name) is not None

    def __dir__(self) -> List[str]:
        return sorted(
            {*super().__dir__(), *CapabilityRegistry.resolve(self._model)}
        )
