from .tenant import Tenant
from .user import User
from .supplier import Supplier, SupplierDocument

from .purchase_requisition import PurchaseRequisition, PRLine
from .attachment import Attachment
from .approval import ApprovalRule, ApprovalLevel, ApprovalWorkflow, ApprovalStep
from .rfq import RFQ, RFQLine, RFQSupplier
from .vendor_quotation import VendorQuotation, VendorQuotationLine

from .purchase import PurchaseOrder, PurchaseOrderItem
from .goods_receipt import GoodsReceipt, GRLine

from .status_event import StatusEvent
from .idempotency import IdempotencyKey

__all__ = [n for n in dir() if n[:1].isupper()]
