"""
Model catalogue served by ``/v1/models``.

The upstream offers a fixed set of models and publishes no listing call, so
the catalogue is static. Requests for other model names are still forwarded;
the upstream decides what it accepts.

Adding a model:
    1. Add an entry to _MODELS below.
    2. That's it -- /v1/models picks it up automatically.

Last Grunted: 10/19/2026 03:30:00 PM UTC
"""
from __future__ import annotations

from dataclasses import dataclass

OWNED_BY = "ChandlerAi"
CATALOGUE_CREATED = 1692901427


@dataclass(frozen=True, slots=True)
class ModelSpec:
    """Immutable specification for a single listed model.

    Attributes:
        id: Model identifier, also the upstream ``model_name``.
        owned_by: Organisation shown to clients.
        created: Unix timestamp shown to clients.
    """

    id: str
    owned_by: str = OWNED_BY
    created: int = CATALOGUE_CREATED


_MODELS: dict[str, ModelSpec] = {
    spec.id: spec
    for spec in (
        ModelSpec(id="gpt-3.5"),
        ModelSpec(id="llama3-70b"),
        ModelSpec(id="llama3-8b"),
        ModelSpec(id="grok"),
    )
}


def get_model(model_id: str) -> ModelSpec | None:
    return _MODELS.get(model_id)


def get_model_objects() -> list[dict]:
    """Return every model as an OpenAI model-object dict, in catalogue order."""
    return [
        {"id": spec.id, "object": "model", "created": spec.created, "owned_by": spec.owned_by}
        for spec in _MODELS.values()
    ]
