# Masters
from app.models.masters.account_models import Account, AccountItem
from app.models.masters.lead_models import Lead
from app.models.masters.bill_item_models import BillItem
from app.models.masters.tax_location_models import TaxLocation

# Files
from app.models.files.stored_file_models import StoredFile

# Billing
from app.models.billing.quote_models import Quote, QuoteItem
from app.models.billing.invoice_models import Invoice, InvoiceItem

# Support
from app.models.support.activity_models import SystemActivity
from app.models.notifications.outbox_models import NotificationOutbox
