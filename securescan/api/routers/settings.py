from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime

from ..database import get_db
from .. import models, storage
from ...ai_agent.providers import ProviderKind

router = APIRouter(
    prefix="/settings",
    tags=["settings"]
)

class ModelConfigCreate(BaseModel):
    name: str
    provider: ProviderKind
    model_name: str
    endpoint: Optional[str] = None
    api_key: Optional[str] = None
    is_default: bool = False

    model_config = {"protected_namespaces": ()}

class ModelConfigUpdate(BaseModel):
    name: Optional[str] = None
    provider: Optional[ProviderKind] = None
    model_name: Optional[str] = None
    endpoint: Optional[str] = None
    api_key: Optional[str] = None
    is_default: Optional[bool] = None

    model_config = {"protected_namespaces": ()}

class ModelConfigResponse(BaseModel):
    id: str
    name: str
    provider: str
    model_name: str
    endpoint: Optional[str] = None
    has_api_key: bool
    is_default: bool
    created_at: Optional[datetime] = None

    model_config = {"protected_namespaces": ()}


def _to_response(config: models.ModelConfiguration) -> ModelConfigResponse:
    # API keys are write-only
    return ModelConfigResponse(
        id=config.id,
        name=config.name,
        provider=config.provider,
        model_name=config.model_name,
        endpoint=config.endpoint,
        has_api_key=bool(config.api_key),
        is_default=bool(config.is_default),
        created_at=config.created_at,
    )


def _check_required_fields(provider: ProviderKind, endpoint: Optional[str], api_key: Optional[str]):
    if provider is ProviderKind.CUSTOM and not endpoint:
        raise HTTPException(status_code=400, detail="Custom endpoint URL is required")
    if provider in (ProviderKind.OPENAI, ProviderKind.ANTHROPIC) and not api_key:
        raise HTTPException(status_code=400, detail=f"{provider.value} API key is required")


def _load_config(db: Session, config_id: str) -> models.ModelConfiguration:
    config = storage.get_model_config(db, config_id)
    if not config:
        raise HTTPException(status_code=404, detail="Model configuration not found")
    return config


@router.get("/models", response_model=List[ModelConfigResponse])
def list_model_configs(db: Session = Depends(get_db)):
    return [_to_response(c) for c in storage.list_model_configs(db)]


@router.post("/models", response_model=ModelConfigResponse)
def create_model_config(request: ModelConfigCreate, db: Session = Depends(get_db)):
    _check_required_fields(request.provider, request.endpoint, request.api_key)
    fields = request.model_dump()
    fields["provider"] = request.provider.value
    return _to_response(storage.create_model_config(db, **fields))


@router.put("/models/{config_id}", response_model=ModelConfigResponse)
def update_model_config(config_id: str, request: ModelConfigUpdate, db: Session = Depends(get_db)):
    config = _load_config(db, config_id)
    fields = request.model_dump(exclude_unset=True)
    if "provider" in fields and fields["provider"] is not None:
        fields["provider"] = ProviderKind(fields["provider"]).value

    provider = ProviderKind(fields.get("provider") or config.provider)
    _check_required_fields(
        provider,
        fields.get("endpoint", config.endpoint),
        fields.get("api_key", config.api_key),
    )
    return _to_response(storage.update_model_config(db, config, **fields))


@router.post("/models/{config_id}/default", response_model=ModelConfigResponse)
def set_default_model_config(config_id: str, db: Session = Depends(get_db)):
    config = _load_config(db, config_id)
    return _to_response(storage.set_default_model_config(db, config))


@router.delete("/models/{config_id}")
def delete_model_config(config_id: str, db: Session = Depends(get_db)):
    config = _load_config(db, config_id)
    storage.delete_model_config(db, config)
    return {"message": "Model configuration deleted"}
