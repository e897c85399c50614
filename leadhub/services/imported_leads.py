from sqlalchemy.orm import Session

from leadhub.models.lead import ImportedLead, LeadStatus
from leadhub.models.lead_import import LeadPlatform
from leadhub.services.common import (
    ListResponseMixin,
    apply_ordering,
    apply_pagination,
    coerce_uuid,
    get_or_404,
    validate_enum,
)


class ImportedLeads(ListResponseMixin):
    @staticmethod
    def get(db: Session, lead_id: str) -> ImportedLead:
        return get_or_404(db, ImportedLead, lead_id, "Lead not found")

    @staticmethod
    def list(
        db: Session,
        account_id: str | None,
        status: str | None,
        platform: str | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ):
        query = db.query(ImportedLead)
        if account_id:
            query = query.filter(ImportedLead.account_id == coerce_uuid(account_id))
        if status:
            query = query.filter(
                ImportedLead.status == validate_enum(status, LeadStatus, "status")
            )
        if platform:
            query = query.filter(
                ImportedLead.source_platform
                == validate_enum(platform, LeadPlatform, "platform")
            )
        query = apply_ordering(
            query,
            order_by,
            order_dir,
            {
                "imported_at": ImportedLead.imported_at,
                "quality_score": ImportedLead.quality_score,
            },
        )
        return apply_pagination(query, limit, offset).all()


imported_leads = ImportedLeads()
