from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from leadhub.api.deps import get_db
from leadhub.schemas.common import ListResponse
from leadhub.schemas.lead_import import (
    FacebookLeadAdsSetup,
    LeadImportConfigCreate,
    LeadImportConfigRead,
    LeadImportConfigUpdate,
    WebhookTokenCreate,
    WebhookTokenIssued,
    WebhookTokenRead,
)
from leadhub.services import import_configs as import_configs_service

router = APIRouter(prefix="/imports")


@router.post(
    "/configs",
    response_model=LeadImportConfigRead,
    status_code=status.HTTP_201_CREATED,
    tags=["import-configs"],
)
def create_import_config(payload: LeadImportConfigCreate, db: Session = Depends(get_db)):
    return import_configs_service.lead_import_configs.create(db, payload)


@router.get(
    "/configs/{config_id}", response_model=LeadImportConfigRead, tags=["import-configs"]
)
def get_import_config(config_id: str, db: Session = Depends(get_db)):
    return import_configs_service.lead_import_configs.get(db, config_id)


@router.get(
    "/configs",
    response_model=ListResponse[LeadImportConfigRead],
    tags=["import-configs"],
)
def list_import_configs(
    account_id: UUID | None = None,
    platform: str | None = None,
    is_active: bool | None = None,
    order_by: str = Query(default="created_at"),
    order_dir: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    return import_configs_service.lead_import_configs.list_response(
        db, account_id, platform, is_active, order_by, order_dir, limit, offset
    )


@router.patch(
    "/configs/{config_id}", response_model=LeadImportConfigRead, tags=["import-configs"]
)
def update_import_config(
    config_id: str, payload: LeadImportConfigUpdate, db: Session = Depends(get_db)
):
    return import_configs_service.lead_import_configs.update(db, config_id, payload)


@router.delete(
    "/configs/{config_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["import-configs"],
)
def delete_import_config(config_id: str, db: Session = Depends(get_db)):
    import_configs_service.lead_import_configs.delete(db, config_id)


@router.post(
    "/facebook/setup",
    response_model=LeadImportConfigRead,
    status_code=status.HTTP_201_CREATED,
    tags=["import-configs"],
)
def setup_facebook_lead_ads(payload: FacebookLeadAdsSetup, db: Session = Depends(get_db)):
    return import_configs_service.setup_facebook_lead_ads(db, payload)


@router.post(
    "/webhook-tokens",
    response_model=WebhookTokenIssued,
    status_code=status.HTTP_201_CREATED,
    tags=["webhook-tokens"],
)
def issue_webhook_token(payload: WebhookTokenCreate, db: Session = Depends(get_db)):
    record, token = import_configs_service.issue_webhook_token(db, payload)
    return WebhookTokenIssued(
        **WebhookTokenRead.model_validate(record).model_dump(), token=token
    )


@router.get(
    "/webhook-tokens",
    response_model=list[WebhookTokenRead],
    tags=["webhook-tokens"],
)
def list_webhook_tokens(account_id: UUID, db: Session = Depends(get_db)):
    return import_configs_service.list_webhook_tokens(db, account_id)


@router.delete(
    "/webhook-tokens/{token_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["webhook-tokens"],
)
def revoke_webhook_token(token_id: str, db: Session = Depends(get_db)):
    import_configs_service.revoke_webhook_token(db, token_id)
