from leadhub.models.account import Account, SavedPaymentMethod  # noqa: F401
from leadhub.models.balance import (  # noqa: F401
    BalanceTransaction,
    TransactionType,
    UserBalance,
)
from leadhub.models.lead import ImportedLead, LeadStatus  # noqa: F401
from leadhub.models.lead_import import (  # noqa: F401
    LeadImportConfig,
    LeadPlatform,
    WebhookToken,
)
from leadhub.models.notification import LeadNotification  # noqa: F401
from leadhub.models.webhook_log import WebhookRequestLog  # noqa: F401
