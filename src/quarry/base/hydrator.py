from dataclasses import fields, is_dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Type


class Hydrator:
    """Turns rows from the database into models

    Subclass it and override `hydrate` to change how a single row becomes
    a model. Columns a dataclass model does not declare are dropped, so a
    `SELECT *` keeps working when a column is added to the table.
    """

    fallback: Type[object] = dict
    """The model used when none is passed"""

    def hydrate(
        self, data: Mapping[str, Any], model: Optional[Type[object]] = None
    ) -> Any:
        """Cast one row

        Args:
            data (Mapping[str, Any]): The row
            model (Type[object], optional): The model to cast into.
                Defaults to `fallback`.

        Returns:
            Any: The model instance
        """
        model = model or self.fallback
        if model is dict:
            return dict(data)
        return model(**self.declared(data, model))

    def hydrate_many(
        self,
        rows: Iterable[Mapping[str, Any]],
        model: Optional[Type[object]] = None,
    ) -> List[Any]:
        return [self.hydrate(row, model) for row in rows]

    @staticmethod
    def declared(
        data: Mapping[str, Any], model: Type[object]
    ) -> Dict[str, Any]:
        if not is_dataclass(model):
            return dict(data)
        names = {field.name for field in fields(model) if field.init}
        return {key: value for key, value in data.items() if key in names}
