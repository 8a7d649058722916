"""Internal API gateway for configurator backends.

Routes under /internal/*. No API key required.
Meant to be called by the server-configurator backend
(service-to-service, behind a firewall or VPN).
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from rackwise.cache.redis_cache import ResultCache, compatibility_cache_key, validation_cache_key
from rackwise.engine.compatibility import check_compatibility
from rackwise.engine.errors import MalformedSpecification, SpecificationNotFound
from rackwise.engine.lookup import ComponentSpecLookup, InMemorySpecLookup
from rackwise.engine.policy import SpecPolicy
from rackwise.engine.results import ResourceKind
from rackwise.engine.risers import cascade_removal_plan, validate_riser_removal
from rackwise.engine.storage_paths import resolve_storage_connection
from rackwise.engine.trackers import get_resource_availability
from rackwise.engine.validation import validate_configuration
from rackwise.models.components import Component, ComponentType
from rackwise.models.configuration import Configuration

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/internal", tags=["Internal"])

# Set by app lifespan
_lookup: ComponentSpecLookup = InMemorySpecLookup()
_policy: SpecPolicy = SpecPolicy()
_cache: Optional[ResultCache] = None


def set_lookup(lookup: ComponentSpecLookup) -> None:
    """Called during app startup to inject the spec catalog."""
    global _lookup
    _lookup = lookup


def set_policy(policy: SpecPolicy) -> None:
    global _policy
    _policy = policy


def set_cache(cache: Optional[ResultCache]) -> None:
    """Called during app startup to inject the cache."""
    global _cache
    _cache = cache


# ──────────────────────────────────────────────
# Request bodies
# ──────────────────────────────────────────────


class CompatibilityCheckRequest(BaseModel):
    component_type: ComponentType
    candidate: Component
    configuration: Configuration = Configuration()


class StorageConnectionRequest(BaseModel):
    candidate: Component
    configuration: Configuration = Configuration()


class ConfigurationRequest(BaseModel):
    configuration: Configuration = Configuration()


# ──────────────────────────────────────────────
# Routes
# ──────────────────────────────────────────────


@router.get("/health")
async def health():
    return {
        "status": "healthy",
        "gateway": "internal",
        "catalog_records": len(_lookup) if hasattr(_lookup, "__len__") else None,
        "cache_available": _cache is not None and _cache.available,
    }


@router.post("/compatibility/check")
async def check_component_compatibility(request: CompatibilityCheckRequest):
    """Check one candidate against the current build.

    Results are cached; component order does not affect the cache key.
    """
    cache_key = compatibility_cache_key(
        request.component_type, request.candidate, request.configuration, _policy.strict_types
    )
    if _cache:
        cached = await _cache.get_json(cache_key)
        if cached is not None:
            logger.info("Cache HIT for %s %s", request.component_type.value, request.candidate.uuid)
            cached["cached"] = True
            return cached

    try:
        result = check_compatibility(
            request.component_type,
            request.candidate,
            request.configuration,
            _lookup,
            _policy,
        )
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))

    payload = result.to_dict()
    if _cache:
        await _cache.set_json(cache_key, payload)
    payload["cached"] = False
    return payload


@router.post("/storage/connection")
async def storage_connection(request: StorageConnectionRequest):
    if request.candidate.component_type != ComponentType.STORAGE:
        raise HTTPException(status_code=422, detail="Candidate must be a storage component")
    result = resolve_storage_connection(request.candidate, request.configuration, _lookup)
    return result.to_dict()


@router.post("/resources/{kind}")
async def resource_availability(kind: ResourceKind, request: ConfigurationRequest):
    usage = get_resource_availability(kind, request.configuration, _lookup)
    return usage.to_dict()


@router.post("/configuration/validate")
async def validate(request: ConfigurationRequest):
    """Validate a whole build. Reports are cached per configuration id."""
    cache_key = validation_cache_key(request.configuration, _policy.strict_types)
    if _cache:
        cached = await _cache.get_json(cache_key)
        if cached is not None:
            cached["cached"] = True
            return cached

    payload = validate_configuration(request.configuration, _lookup, _policy).to_dict()
    if _cache:
        await _cache.set_json(cache_key, payload)
    payload["cached"] = False
    return payload


@router.delete("/configuration/{config_uuid}/cache")
async def invalidate_configuration_cache(config_uuid: str):
    """Drop cached reports after the build behind config_uuid changed."""
    removed = await _cache.invalidate_configuration(config_uuid) if _cache else 0
    return {"config_uuid": config_uuid, "invalidated": removed}


@router.get("/cache/stats")
async def cache_stats():
    if not _cache:
        return {"available": False, "keys": 0}
    return await _cache.stats()


@router.post("/risers/{riser_uuid}/removal")
async def riser_removal(riser_uuid: str, request: ConfigurationRequest):
    riser = request.configuration.find(riser_uuid)
    if riser is None or riser.component_type != ComponentType.PCIE_CARD:
        raise HTTPException(status_code=404, detail=f"Riser {riser_uuid} not in configuration")
    check = validate_riser_removal(request.configuration, _lookup, riser_uuid)
    plan = cascade_removal_plan(request.configuration, _lookup, riser_uuid)
    return {"removal": check.to_dict(), "cascade_plan": plan.to_dict()}


@router.get("/specs/{component_type}/{uuid}")
async def get_specification(component_type: ComponentType, uuid: str):
    try:
        spec = _lookup.find(component_type, uuid).require(component_type, uuid)
    except SpecificationNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except MalformedSpecification as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    return {
        "component_type": component_type.value,
        "uuid": uuid,
        "has_record": _lookup.has_record(component_type, uuid),
        "specification": spec.model_dump(exclude_none=True),
    }
