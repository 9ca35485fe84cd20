"""Pydantic schema helpers shared by services."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict


class CamelModel(BaseModel):
    """Base model for camelCase wire payloads.

    Unknown keys are kept so payloads round-trip through the service without
    losing fields the models do not name.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    def to_wire(self, **kwargs: Any) -> dict[str, Any]:
        """Dump using wire aliases, omitting empty optionals."""
        kwargs.setdefault("by_alias", True)
        kwargs.setdefault("exclude_none", True)
        return self.model_dump(mode="json", **kwargs)


__all__ = ["CamelModel"]
