from db.models.purchase_requisition import PurchaseRequisitionStatus as PRS
from db.models.attachment import AttachmentStatus as AS
from db.models.purchase import POStatus as POS, POApprovalStatus as POA
from db.models.rfq import RFQStatus as RS, InvitationStatus as IS
from db.models.vendor_quotation import VendorQuotationStatus as VQS
from db.models.supplier import SupplierStatus as SS
from db.models.approval import WorkflowStatus as WS, StepDecision as SD
from utils.errors import IllegalTransition

# Every member of every enum appears as a key; terminal states map to an empty set.
TRANSITIONS = {
    PRS: {
        PRS.DRAFT: {PRS.PENDING_APPROVAL, PRS.CANCELLED},
        PRS.PENDING_APPROVAL: {PRS.APPROVED, PRS.REJECTED, PRS.CANCELLED},
        PRS.APPROVED: {PRS.PO_GENERATED, PRS.CANCELLED},
        # back to APPROVED when its PO is deleted before any reception
        PRS.PO_GENERATED: {PRS.RECEIVED, PRS.APPROVED},
        PRS.REJECTED: set(),
        PRS.RECEIVED: set(),
        PRS.CANCELLED: set(),
    },
    AS: {
        AS.PENDING: {AS.APPROVED, AS.REJECTED},
        AS.APPROVED: {AS.REJECTED},
        AS.REJECTED: {AS.APPROVED},
    },
    POS: {
        POS.PENDIENTE: {POS.APROBADA, POS.EN_PROCESO},
        POS.APROBADA: {POS.EN_PROCESO, POS.PARCIALMENTE_RECIBIDA, POS.FINALIZADA},
        POS.EN_PROCESO: {
            POS.PARCIALMENTE_RECIBIDA,
            POS.ENTREGADA,
            POS.FINALIZADA,
        },
        # APROBADA again when every reception is annulled (also from ENTREGADA)
        POS.PARCIALMENTE_RECIBIDA: {POS.ENTREGADA, POS.FINALIZADA, POS.APROBADA},
        POS.ENTREGADA: {POS.PARCIALMENTE_RECIBIDA, POS.FINALIZADA, POS.APROBADA},
        POS.FINALIZADA: set(),
    },
    POA: {
        POA.PENDIENTE_APROBACION: {POA.APROBADA, POA.RECHAZADA},
        POA.APROBADA: set(),
        POA.RECHAZADA: set(),
    },
    RS: {
        RS.DRAFT: {RS.PUBLISHED, RS.CANCELLED},
        RS.PUBLISHED: {
            RS.IN_QUOTATION,
            RS.EVALUATION,
            RS.CLOSED,
            RS.CANCELLED,
            RS.EXPIRED,
        },
        RS.IN_QUOTATION: {RS.EVALUATION, RS.CLOSED, RS.CANCELLED, RS.EXPIRED},
        RS.EVALUATION: {RS.AWARDED, RS.CANCELLED},
        RS.AWARDED: set(),
        RS.CANCELLED: set(),
        RS.CLOSED: set(),
        RS.EXPIRED: set(),
    },
    IS: {
        IS.PENDING: {IS.INVITED},
        IS.INVITED: {IS.VIEWED, IS.QUOTED, IS.DECLINED, IS.NOT_AWARDED},
        IS.VIEWED: {IS.QUOTED, IS.DECLINED, IS.NOT_AWARDED},
        IS.QUOTED: {IS.AWARDED, IS.NOT_AWARDED},
        IS.DECLINED: {IS.NOT_AWARDED},
        IS.AWARDED: set(),
        IS.NOT_AWARDED: set(),
    },
    VQS: {
        VQS.DRAFT: {VQS.SUBMITTED},
        VQS.SUBMITTED: {VQS.UNDER_REVIEW, VQS.REJECTED, VQS.AWARDED},
        VQS.UNDER_REVIEW: {VQS.ACCEPTED, VQS.REJECTED, VQS.AWARDED},
        VQS.ACCEPTED: {VQS.AWARDED, VQS.REJECTED},
        VQS.REJECTED: set(),
        VQS.AWARDED: set(),
    },
    SS: {
        SS.INVITED: {SS.PENDING_COMPLETION},
        SS.PENDING_COMPLETION: {SS.PENDING_APPROVAL},
        SS.PENDING_APPROVAL: {SS.ACTIVE, SS.REJECTED},
        SS.ACTIVE: {SS.SUSPENDED},
        SS.SUSPENDED: {SS.ACTIVE},
        SS.REJECTED: set(),
    },
    WS: {
        WS.IN_PROGRESS: {WS.APPROVED, WS.REJECTED, WS.CANCELLED},
        WS.APPROVED: set(),
        WS.REJECTED: set(),
        WS.CANCELLED: set(),
    },
    SD: {
        SD.PENDING: {SD.APPROVED, SD.REJECTED, SD.SKIPPED},
        SD.APPROVED: set(),
        SD.REJECTED: set(),
        SD.SKIPPED: set(),
    },
}


def allowed(current) -> set:
    return TRANSITIONS[type(current)][current]


def can_transition(current, target) -> bool:
    return target in allowed(current)


def is_terminal(current) -> bool:
    return not allowed(current)


def check_transition(entity: str, current, target):
    """Raise IllegalTransition unless current -> target is in the table."""
    if not can_transition(current, target):
        raise IllegalTransition(entity, current, target)
    return target
