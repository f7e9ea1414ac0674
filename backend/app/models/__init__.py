from app.models.user import User
from app.models.supplier import Supplier
from app.models.product import Product
from app.models.invoice import Invoice, InvoiceItem
from app.models.audit_log import AuditLog
from app.models.notification_log import NotificationLog

__all__ = ["User", "Supplier", "Product", "Invoice", "InvoiceItem", "AuditLog", "NotificationLog"]
