"""Model lifecycle routes: catalog, status, readiness, load/unload."""
from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request

from core.lifecycle import Category, ModelOrchestrator

router = APIRouter()


def _orchestrator(request: Request) -> ModelOrchestrator:
    return request.app.state.orchestrator


def _category(raw: str) -> Category:
    try:
        return Category.parse(raw)
    except ValueError:
        raise HTTPException(
            status_code=404, detail=f"unknown category: {raw}"
        ) from None


@router.get("/models")
async def list_models(request: Request):  # noqa: D401
    orch = _orchestrator(request)
    local = {
        m.id: m.local_path
        for m in await orch.gateway.list_available_models()
    }
    assigned = {orch.assignment(c): c.value for c in Category}
    models_out = []
    for desc in orch.registry.list():
        local_path = local.get(desc.id)
        models_out.append(
            {
                "id": desc.id,
                "name": desc.name,
                "modality": desc.modality.value,
                "framework": desc.framework.value,
                "files": [f.filename for f in desc.files],
                "memory_requirement": desc.memory_requirement,
                "category": assigned.get(desc.id),
                "downloaded": local_path is not None,
                "local_path": str(local_path) if local_path else None,
            }
        )
    return {"models": models_out}


@router.get("/status")
def status(request: Request):  # noqa: D401
    return _orchestrator(request).snapshot()


@router.get("/readiness")
async def readiness(request: Request):  # noqa: D401
    return {"capabilities": await _orchestrator(request).readiness()}


@router.post("/models/load-all", status_code=202)
async def load_all(request: Request):  # noqa: D401
    tasks = _orchestrator(request).download_and_load_all()
    return {"scheduled": [t.get_name() for t in tasks]}


@router.post("/models/unload-all")
async def unload_all(request: Request):  # noqa: D401
    orch = _orchestrator(request)
    await orch.unload_all()
    return orch.snapshot()


@router.post("/models/{category}/load", status_code=202)
async def load_category(category: str, request: Request):  # noqa: D401
    orch = _orchestrator(request)
    cat = _category(category)
    # a busy category ignores the request; report it instead of scheduling
    if orch.state(cat).busy:
        return {"category": cat.value, "scheduled": False}
    orch.schedule(cat)
    return {"category": cat.value, "scheduled": True}


@router.delete("/error")
def clear_error(request: Request):  # noqa: D401
    orch = _orchestrator(request)
    orch.clear_error()
    return {"error": orch.error}
