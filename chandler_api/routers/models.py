"""
OpenAI-compatible Models API router.

Implements the /v1/models endpoints:
    - GET /v1/models - List all available models
    - GET /v1/models/{model} - Retrieve specific model information

Backed by the static catalogue in ``chandler_api.services.model_registry``.

Last Grunted: 10/19/2026 03:30:00 PM UTC
"""
from fastapi import APIRouter

from chandler_api.schemas import ModelListResponse, ModelObject
from chandler_api.services.errors import model_not_found_error
from chandler_api.services.model_registry import get_model, get_model_objects

router = APIRouter()


@router.get("/v1/models", response_model=ModelListResponse)
async def list_models():
    """List all available models.

    Example Response::

        {
            "object": "list",
            "data": [
                {"id": "gpt-3.5", "object": "model", "created": 1692901427, "owned_by": "ChandlerAi"},
                ...
            ]
        }
    """
    return ModelListResponse(
        object="list",
        data=[ModelObject(**m) for m in get_model_objects()],
    )


@router.get("/v1/models/{model_id}", response_model=ModelObject)
async def retrieve_model(model_id: str):
    """Retrieve a specific model by ID, or a 404 OpenAI error."""
    spec = get_model(model_id)
    if not spec:
        return model_not_found_error(model_id)

    return ModelObject(
        id=spec.id,
        object="model",
        created=spec.created,
        owned_by=spec.owned_by,
    )
