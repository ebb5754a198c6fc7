# utils/serializers.py
"""Plain-dict views of the models, used by the JSON routes."""


def _num(x):
    return None if x is None else float(x)


def _dt(x):
    return x.isoformat() if x is not None else None


def _val(e):
    return getattr(e, "value", e)


def user_to_dict(u):
    return {
        "id": u.id,
        "username": u.username,
        "full_name": u.full_name,
        "email": u.email,
        "role": _val(u.role),
        "tenant_id": u.tenant_id,
        "supplier_id": u.supplier_id,
        "is_active": bool(u.is_active),
    }


def attachment_to_dict(a):
    return {
        "id": a.id,
        "file_name": a.file_name,
        "mime_type": a.mime_type,
        "size": a.size,
        "is_specification": bool(a.is_specification),
        "status": _val(a.status),
        "approver_id": a.approver_id,
        "decided_at": _dt(a.decided_at),
        "comment": a.comment,
        "uploaded_at": _dt(a.uploaded_at),
    }


def pr_to_dict(pr, with_lines=True):
    data = {
        "id": pr.id,
        "number": pr.number,
        "title": pr.title,
        "description": pr.description,
        "justification": pr.justification,
        "department": pr.department,
        "cost_center": pr.cost_center,
        "estimated_amount": _num(pr.estimated_amount),
        "currency": pr.currency,
        "priority": _val(pr.priority),
        "purchase_type": _val(pr.purchase_type),
        "needed_by": _dt(pr.needed_by),
        "submitted_at": _dt(pr.submitted_at),
        "requester_id": pr.requester_id,
        "approver_id": pr.approver_id,
        "decided_at": _dt(pr.decided_at),
        "decision_comment": pr.decision_comment,
        "supplier_id": pr.supplier_id,
        "status": _val(pr.status),
        "created_at": _dt(pr.created_at),
        "updated_at": _dt(pr.updated_at),
    }
    if with_lines:
        data["lines"] = [
            {
                "id": ln.id,
                "description": ln.description,
                "qty": _num(ln.qty),
                "unit": ln.unit,
                "unit_price": _num(ln.unit_price),
                "line_total": _num(ln.line_total),
                "specifications": ln.specifications,
            }
            for ln in pr.lines
        ]
        data["attachments"] = [attachment_to_dict(a) for a in pr.attachments]
        wf = pr.approval_workflows[-1] if pr.approval_workflows else None
        data["approval"] = workflow_to_dict(wf) if wf is not None else None
    return data


def approval_rule_to_dict(rule):
    return {
        "id": rule.id,
        "name": rule.name,
        "purchase_type": _val(rule.purchase_type),
        "min_amount": _num(rule.min_amount),
        "max_amount": _num(rule.max_amount),
        "priority": rule.priority,
        "is_active": rule.is_active,
        "levels": [
            {
                "level_order": lv.level_order,
                "name": lv.name,
                "level_type": _val(lv.level_type),
                "approver_role": _val(lv.approver_role),
                "approver_user_id": lv.approver_user_id,
            }
            for lv in rule.levels
        ],
    }


def workflow_to_dict(wf):
    return {
        "id": wf.id,
        "requisition_id": wf.pr_id,
        "rule_id": wf.rule_id,
        "rule": wf.rule.name if wf.rule else None,
        "status": _val(wf.status),
        "current_level": wf.current_level,
        "created_at": _dt(wf.created_at),
        "completed_at": _dt(wf.completed_at),
        "steps": [
            {
                "level_order": s.level_order,
                "name": s.level_name,
                "level_type": _val(s.level_type),
                "approver_role": _val(s.approver_role),
                "approver_user_id": s.approver_user_id,
                "decision": _val(s.decision),
                "decided_by": s.decided_by.username if s.decided_by else None,
                "decided_at": _dt(s.decided_at),
                "comment": s.comment,
            }
            for s in wf.steps
        ],
    }


def po_to_dict(po, with_items=True):
    data = {
        "id": po.id,
        "number": po.po_no,
        "supplier_id": po.supplier_id,
        "supplier_name": po.supplier_name,
        "supplier_tax_id": po.supplier_tax_id,
        "supplier_email": po.supplier_email,
        "status": _val(po.status),
        "approval_status": _val(po.approval_status),
        "approver_id": po.approver_id,
        "approved_at": _dt(po.approved_at),
        "approval_comment": po.approval_comment,
        "order_date": _dt(po.order_date),
        "expected_date": _dt(po.expected_date),
        "subtotal": _num(po.subtotal),
        "tax": _num(po.tax),
        "total": _num(po.total),
        "currency": po.currency,
        "payment_terms": po.payment_terms,
        "delivery_place": po.delivery_place,
        "notes": po.notes,
        "pr_id": po.pr_id,
        "rfq_id": po.rfq_id,
        "vq_id": po.vq_id,
    }
    if with_items:
        data["items"] = [
            {
                "id": it.id,
                "pr_line_id": it.pr_line_id,
                "description": it.description,
                "unit": it.unit,
                "qty": _num(it.qty),
                "price": _num(it.price),
                "line_total": _num(it.line_total),
                "received_qty": _num(it.received_qty),
            }
            for it in po.items
        ]
    return data


def reception_to_dict(gr):
    return {
        "id": gr.id,
        "number": gr.number,
        "po_id": gr.po_id,
        "receiver_id": gr.receiver_id,
        "reception_type": _val(gr.reception_type),
        "observations": gr.observations,
        "received_at": _dt(gr.received_at),
        "lines": [
            {
                "id": ln.id,
                "po_line_id": ln.po_line_id,
                "description": ln.description,
                "unit": ln.unit,
                "expected_qty": _num(ln.expected_qty),
                "received_qty": _num(ln.qty),
                "pending_qty": _num(ln.pending_qty),
            }
            for ln in gr.lines
        ],
    }


def vq_to_dict(vq):
    return {
        "id": vq.id,
        "number": vq.number,
        "rfq_id": vq.rfq_id,
        "supplier_id": vq.supplier_id,
        "status": _val(vq.status),
        "currency": vq.currency,
        "total_amount": _num(vq.total_amount),
        "delivery_days": vq.delivery_days,
        "payment_terms": vq.payment_terms,
        "valid_until": _dt(vq.valid_until),
        "notes": vq.notes,
        "submitted_at": _dt(vq.submitted_at),
        "lines": [
            {
                "id": ln.id,
                "rfq_line_id": ln.rfq_line_id,
                "qty": _num(ln.qty),
                "price": _num(ln.price),
                "line_total": _num(ln.line_total),
                "brand": ln.brand,
                "model": ln.model,
                "notes": ln.notes,
            }
            for ln in vq.lines
        ],
    }


def invitation_to_dict(inv):
    return {
        "id": inv.id,
        "rfq_id": inv.rfq_id,
        "supplier_id": inv.supplier_id,
        "supplier_name": inv.supplier.name if inv.supplier else None,
        "status": _val(inv.status),
        "invited_at": _dt(inv.invited_at),
        "viewed_at": _dt(inv.viewed_at),
        "responded_at": _dt(inv.responded_at),
        "decline_reason": inv.decline_reason,
    }


def rfq_to_dict(r, with_children=True):
    data = {
        "id": r.id,
        "number": r.number,
        "title": r.title,
        "description": r.description,
        "pr_id": r.pr_id,
        "deadline": _dt(r.deadline),
        "currency": r.currency,
        "budget": _num(r.budget),
        "payment_terms": r.payment_terms,
        "notes": r.notes,
        "status": _val(r.status),
        "published_at": _dt(r.published_at),
        "closed_at": _dt(r.closed_at),
        "awarded_supplier_id": r.awarded_supplier_id,
        "awarded_at": _dt(r.awarded_at),
    }
    if with_children:
        data["lines"] = [
            {
                "id": ln.id,
                "description": ln.description,
                "qty": _num(ln.qty),
                "unit": ln.unit,
                "specifications": ln.specifications,
                "pr_line_id": ln.pr_line_id,
            }
            for ln in r.lines
        ]
        data["invitations"] = [invitation_to_dict(i) for i in r.invitations]
    return data


def supplier_to_dict(s):
    return {
        "id": s.id,
        "code": s.code,
        "name": s.name,
        "tax_id": s.tax_id,
        "email": s.email,
        "phone": s.phone,
        "address": s.address,
        "status": _val(s.status),
        "company_data": s.company_data,
        "bank_data": s.bank_data,
        "company_data_complete": bool(s.company_data_complete),
        "bank_data_complete": bool(s.bank_data_complete),
        "status_reason": s.status_reason,
        "decided_at": _dt(s.decided_at),
    }


def supplier_document_to_dict(d):
    return {
        "id": d.id,
        "supplier_id": d.supplier_id,
        "doc_type": d.doc_type,
        "file_name": d.file_name,
        "mime_type": d.mime_type,
        "size": d.size,
        "expires_on": _dt(d.expires_on),
        "uploaded_at": _dt(d.uploaded_at),
    }


def event_to_dict(e):
    return {
        "id": e.id,
        "entity_type": e.entity_type,
        "entity_id": e.entity_id,
        "from": e.from_status,
        "to": e.to_status,
        "actor_id": e.actor_id,
        "comment": e.comment,
        "at": _dt(e.created_at),
    }


def circuit_to_dict(circuit):
    pr = circuit.get("requisition")
    po = circuit.get("purchase_order")
    rec = circuit.get("reception")
    return {
        "requisition": pr_to_dict(pr, with_lines=False) if pr else None,
        "purchase_order": po_to_dict(po, with_items=False) if po else None,
        "reception": reception_to_dict(rec) if rec else None,
        "receptions": [reception_to_dict(r) for r in circuit.get("receptions", [])],
    }
