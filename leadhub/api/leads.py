from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from leadhub.api.deps import get_db
from leadhub.schemas.common import ListResponse
from leadhub.schemas.lead import ImportedLeadRead, LeadProcessRequest, LeadProcessResponse
from leadhub.services import lead_settlement as settlement_service
from leadhub.services.imported_leads import imported_leads

router = APIRouter(prefix="/leads")


@router.post("/process", response_model=LeadProcessResponse, tags=["leads"])
def process_lead(payload: LeadProcessRequest, db: Session = Depends(get_db)):
    result = settlement_service.process_lead(
        db, payload.config_id, payload.lead_data, payload.source_lead_id
    )
    return LeadProcessResponse(
        success=result.success,
        lead_id=result.lead_id,
        error=result.error,
        duplicate=result.duplicate,
    )


@router.get("", response_model=ListResponse[ImportedLeadRead], tags=["leads"])
def list_leads(
    account_id: UUID | None = None,
    status: str | None = None,
    platform: str | None = None,
    order_by: str = Query(default="imported_at"),
    order_dir: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    return imported_leads.list_response(
        db, account_id, status, platform, order_by, order_dir, limit, offset
    )


@router.get("/{lead_id}", response_model=ImportedLeadRead, tags=["leads"])
def get_lead(lead_id: str, db: Session = Depends(get_db)):
    return imported_leads.get(db, lead_id)
