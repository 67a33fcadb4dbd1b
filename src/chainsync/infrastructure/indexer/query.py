"""GraphQL list query builder for the indexer."""

import json
from dataclasses import dataclass, field
from typing import Any, Literal

DEFAULT_LIMIT = 1000


def _render_value(value: Any) -> str:
    """Render a Python value as a GraphQL input literal."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return json.dumps(value)
    if isinstance(value, dict):
        inner = ", ".join(f"{k}: {_render_value(v)}" for k, v in value.items())
        return "{" + inner + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(_render_value(v) for v in value) + "]"
    if value is None:
        return "null"
    raise TypeError(f"Cannot render {type(value).__name__} as GraphQL literal")


@dataclass(frozen=True)
class ListQuery:
    """Parameterized list query against one indexer entity.

    Renders to ``query { <entity>(orderBy: ..., ...) { items { ... } } }``.
    """

    entity: str
    fields: tuple[str, ...]
    order_by: str | None = None
    order_direction: Literal["asc", "desc"] = "desc"
    limit: int = DEFAULT_LIMIT
    where: dict[str, Any] = field(default_factory=dict)
    after: str | None = None

    def __post_init__(self) -> None:
        if not self.fields:
            raise ValueError("ListQuery requires at least one field")
        if not 0 < self.limit <= DEFAULT_LIMIT:
            raise ValueError(f"limit must be within 1..{DEFAULT_LIMIT}")

    def arguments(self) -> str:
        args: list[str] = []
        if self.where:
            args.append(f"where: {_render_value(self.where)}")
        if self.order_by:
            args.append(f"orderBy: {_render_value(self.order_by)}")
            args.append(f"orderDirection: {_render_value(self.order_direction)}")
        if self.after:
            args.append(f"after: {_render_value(self.after)}")
        args.append(f"limit: {self.limit}")
        return ", ".join(args)

    def to_graphql(self) -> str:
        selection = " ".join(self.fields)
        return (
            f"query {{ {self.entity}({self.arguments()}) "
            f"{{ items {{ {selection} }} }} }}"
        )

    def extract_items(self, data: dict[str, Any] | None) -> list[dict[str, Any]] | None:
        """Pull the ``items`` list out of a query result.

        Returns:
            Items list, or None when the envelope is missing
        """
        if not isinstance(data, dict):
            return None
        envelope = data.get(self.entity)
        if not isinstance(envelope, dict):
            return None
        items = envelope.get("items")
        if not isinstance(items, list):
            return None
        return items
