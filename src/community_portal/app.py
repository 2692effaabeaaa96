# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""FastAPI host that exposes the portal engine over HTTP."""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from typing import Any, Dict, Optional

from azure.identity import ClientSecretCredential
from fastapi import Body, Depends, FastAPI, Header, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .client import PortalClient
from .core._error_codes import (
    CLIENT_MESSAGES,
    INTERNAL_ERROR,
    NOT_FOUND_ENTITY,
    VALIDATION_BODY,
    VALIDATION_MISSING_PARAMETER,
)
from .core._logging import configure_logging
from .core.config import PortalConfig
from .core.errors import NotFoundError, PortalError, ValidationError
from .core.identity import UserIdentity, decode_bearer_token

logger = logging.getLogger(__name__)

_REQUIRED_ENV_VARS = (
    "DATAVERSE_URL",
    "TENANT_ID",
    "CLIENT_ID",
    "CLIENT_SECRET",
)


def _require_env(name: str) -> str:
    value = os.getenv(name, "").strip()
    if not value:
        raise RuntimeError(f"Environment variable '{name}' is required.")
    return value


@lru_cache(maxsize=1)
def _portal_client() -> PortalClient:
    config = PortalConfig.from_env()
    configure_logging(config.log_level)
    credential = ClientSecretCredential(
        tenant_id=_require_env("TENANT_ID"),
        client_id=_require_env("CLIENT_ID"),
        client_secret=_require_env("CLIENT_SECRET"),
    )
    return PortalClient(_require_env("DATAVERSE_URL"), credential, config)


def get_client() -> PortalClient:
    return _portal_client()


def get_identity(
    authorization: Optional[str] = Header(None),
    client: PortalClient = Depends(get_client),
) -> UserIdentity:
    return decode_bearer_token(authorization, leeway=client._config.token_leeway)


def _require(value: Optional[str], name: str) -> str:
    if not value:
        raise ValidationError(f"{name} is required", subcode=VALIDATION_MISSING_PARAMETER)
    return value


app = FastAPI(title="Community Portal Engine", version="0.1.0")


@app.exception_handler(PortalError)
async def _portal_error_handler(request: Request, exc: PortalError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.to_dict())
    else:
        logger.warning("%s %s rejected: %s", request.method, request.url.path, exc.to_dict())
    return JSONResponse(status_code=exc.status_code, content=exc.to_response())


@app.exception_handler(RequestValidationError)
async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    error = ValidationError("Malformed request", subcode=VALIDATION_BODY, details={"errors": str(exc.errors())})
    return await _portal_error_handler(request, error)


@app.exception_handler(Exception)
async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("%s %s raised an unexpected error", request.method, request.url.path)
    error = PortalError(CLIENT_MESSAGES[INTERNAL_ERROR], code=INTERNAL_ERROR)
    return JSONResponse(status_code=500, content=error.to_response())


@app.on_event("startup")
def _startup_check() -> None:
    """Fail fast if required environment variables are absent."""
    for env_name in _REQUIRED_ENV_VARS:
        _require_env(env_name)
    _portal_client()


@app.get("/health")
def health() -> Dict[str, Any]:
    return {"status": "ok"}


@app.get("/entity-config")
def entity_config(
    entity: Optional[str] = Query(None),
    contact_guid: Optional[str] = Query(None, alias="contactGuid"),
    clear_cache: bool = Query(False, alias="clearCache"),
    identity: UserIdentity = Depends(get_identity),
    client: PortalClient = Depends(get_client),
) -> Dict[str, Any]:
    """Menu entries for the caller, or one configuration when ``entity`` is given."""
    contact = client.contacts.verify(_require(contact_guid, "contactGuid"), identity)
    if clear_cache:
        client.configs.invalidate()

    if entity:
        config = client.configs.get(entity)
        if config.requires_admin and not contact.is_admin:
            raise NotFoundError(f"Entity configuration {entity!r} not found", subcode=NOT_FOUND_ENTITY)
        return {"config": config.to_dict(), "userIsAdmin": contact.is_admin}

    configs = client.configs.list(is_admin=contact.is_admin)
    return {
        "configs": [c.to_dict() for c in configs],
        "userIsAdmin": contact.is_admin,
        "totalCount": len(configs),
    }


@app.get("/generic-entity")
def read_entity(
    entity: Optional[str] = Query(None),
    mode: Optional[str] = Query(None),
    id: Optional[str] = Query(None),
    contact_guid: Optional[str] = Query(None, alias="contactGuid"),
    view_mode: Optional[str] = Query(None, alias="viewMode"),
    page: int = Query(1),
    page_size: Optional[int] = Query(None, alias="pageSize"),
    relationship: Optional[str] = Query(None),
    identity: UserIdentity = Depends(get_identity),
    client: PortalClient = Depends(get_client),
) -> Dict[str, Any]:
    ctx = client.records.authorize(
        _require(entity, "entity"),
        _require(contact_guid, "contactGuid"),
        identity,
        view_mode,
    )
    if mode == "form":
        return client.records.form(ctx).to_dict()
    if mode == "subgrid":
        return client.records.subgrid(
            ctx,
            _require(id, "id"),
            _require(relationship, "relationship"),
            page=page,
            page_size=page_size,
        ).to_dict()
    if mode != "list" and id:
        return client.records.get(ctx, id).to_dict()
    return client.records.list(ctx, page=page, page_size=page_size).to_dict()


@app.post("/generic-entity")
def create_entity(
    payload: Any = Body(None),
    entity: Optional[str] = Query(None),
    contact_guid: Optional[str] = Query(None, alias="contactGuid"),
    identity: UserIdentity = Depends(get_identity),
    client: PortalClient = Depends(get_client),
) -> Dict[str, Any]:
    ctx = client.records.authorize(_require(entity, "entity"), _require(contact_guid, "contactGuid"), identity)
    return client.records.create(ctx, payload).to_dict()


@app.patch("/generic-entity")
def update_entity(
    payload: Any = Body(None),
    entity: Optional[str] = Query(None),
    id: Optional[str] = Query(None),
    contact_guid: Optional[str] = Query(None, alias="contactGuid"),
    identity: UserIdentity = Depends(get_identity),
    client: PortalClient = Depends(get_client),
) -> Dict[str, Any]:
    ctx = client.records.authorize(_require(entity, "entity"), _require(contact_guid, "contactGuid"), identity)
    return client.records.update(ctx, _require(id, "id"), payload).to_dict()


@app.delete("/generic-entity")
def delete_entity(
    entity: Optional[str] = Query(None),
    id: Optional[str] = Query(None),
    contact_guid: Optional[str] = Query(None, alias="contactGuid"),
    identity: UserIdentity = Depends(get_identity),
    client: PortalClient = Depends(get_client),
) -> Dict[str, Any]:
    ctx = client.records.authorize(_require(entity, "entity"), _require(contact_guid, "contactGuid"), identity)
    return client.records.delete(ctx, _require(id, "id")).to_dict()


@app.get("/contact")
def read_profile(
    identity: UserIdentity = Depends(get_identity),
    client: PortalClient = Depends(get_client),
) -> Dict[str, Any]:
    """The caller's own contact, looked up from the token."""
    return client.contacts.profile(identity).to_dict()


@app.post("/contact")
def save_profile(
    payload: Any = Body(None),
    identity: UserIdentity = Depends(get_identity),
    client: PortalClient = Depends(get_client),
) -> Dict[str, Any]:
    return client.contacts.save_profile(identity, payload).to_dict()


@app.get("/organization")
def read_organization(
    mode: Optional[str] = Query(None),
    contact_id: Optional[str] = Query(None, alias="contactId"),
    contact_guid: Optional[str] = Query(None, alias="contactGuid"),
    page: int = Query(1),
    page_size: Optional[int] = Query(None, alias="pageSize"),
    identity: UserIdentity = Depends(get_identity),
    client: PortalClient = Depends(get_client),
) -> Dict[str, Any]:
    """Contacts of the caller's account; administrators only."""
    contact = client.contacts.verify(_require(contact_guid, "contactGuid"), identity)
    return client.contacts.organization(
        contact,
        mode=mode,
        contact_id=contact_id,
        page=page,
        page_size=page_size,
    ).to_dict()
