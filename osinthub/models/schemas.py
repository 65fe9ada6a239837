"""Request bodies for the auth and search endpoints.

Bodies are parsed with ``parse_json_body()`` rather than as FastAPI body
parameters so that malformed JSON and wrong field types produce the service's
own 400 responses instead of FastAPI's 422. Required-field checks that have
client-facing wording live in the routers.
"""

from __future__ import annotations

from typing import Optional, TypeVar

from fastapi import Request
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from osinthub.constants import DEFAULT_SEARCH_LANG, DEFAULT_SEARCH_LIMIT
from osinthub.errors import BadRequestError

ModelT = TypeVar("ModelT", bound=BaseModel)


class LoginRequest(BaseModel):
    """Body for POST /api/auth/login."""

    login: Optional[str] = None
    password: Optional[str] = None


class NftAuthRequest(BaseModel):
    """Body for POST /api/auth/nft-auth.

    ``signature`` must be present but is not verified (no signed-proof check).
    """

    model_config = ConfigDict(populate_by_name=True)

    wallet_address: Optional[str] = Field(default=None, alias="walletAddress")
    signature: Optional[str] = None
    message: Optional[str] = None


class SearchRequest(BaseModel):
    """Body for POST /api/search. ``request`` is the lookup query."""

    request: Optional[str] = None
    limit: int = Field(default=DEFAULT_SEARCH_LIMIT, ge=1)
    lang: str = DEFAULT_SEARCH_LANG


async def parse_json_body(request: Request, model: type[ModelT]) -> ModelT:
    """Read and validate the request body.

    Raises:
        BadRequestError: Body is not JSON, not a JSON object, or fails validation.
    """
    try:
        raw = await request.json()
    except ValueError as exc:
        raise BadRequestError("Invalid JSON in request body") from exc

    if not isinstance(raw, dict):
        raise BadRequestError("Request body must be a JSON object")

    try:
        return model.model_validate(raw)
    except ValidationError as exc:
        fields = sorted({".".join(str(p) for p in err["loc"]) for err in exc.errors()})
        raise BadRequestError(f"Invalid request body: {', '.join(fields)}") from exc
