# admin/setup.py
from flask import redirect, url_for, request, flash
from flask_login import current_user, logout_user
from flask_admin import Admin, AdminIndexView, expose
from flask_admin.contrib.sqla import ModelView
from flask_admin.menu import MenuLink
from flask_admin.theme import Bootstrap4Theme
from configs import db
from db.models.user import UserRole


def _is_admin() -> bool:
    return current_user.is_authenticated and current_user.has_role(UserRole.ADMIN)


class ProcurementAdminIndex(AdminIndexView):
    @expose("/")
    def index(self):
        if not current_user.is_authenticated:
            return redirect(url_for("auth.login", next=request.url))
        if not current_user.has_role(UserRole.ADMIN):
            flash("Admin role required.", "danger")
            return redirect(url_for("main.home"))
        return super().index()

    @expose("/logout")
    def admin_logout(self):
        if current_user.is_authenticated:
            logout_user()
            flash("Signed out.", "success")
        return redirect(url_for("admin.index"))

    def is_accessible(self):
        return _is_admin()

    def inaccessible_callback(self, name, **kwargs):
        return redirect(url_for("auth.login", next=request.url))


class TenantScopedView(ModelView):
    """Read-mostly back office view; every list is filtered to the admin's tenant."""

    can_view_details = True
    can_export = True
    can_delete = False

    def is_accessible(self):
        return _is_admin()

    def inaccessible_callback(self, name, **kwargs):
        return redirect(url_for("auth.login", next=request.url))

    def get_query(self):
        return super().get_query().filter(self.model.tenant_id == current_user.tenant_id)

    def get_count_query(self):
        return super().get_count_query().filter(
            self.model.tenant_id == current_user.tenant_id
        )


class UserView(TenantScopedView):
    column_exclude_list = ["password_hash"]
    column_searchable_list = ["username", "full_name", "email"]
    column_filters = ["role", "is_active"]
    form_excluded_columns = ["password_hash"]


class SupplierView(TenantScopedView):
    column_searchable_list = ["code", "name", "tax_id"]
    column_filters = ["status"]
    column_list = ["id", "code", "name", "tax_id", "status", "email"]


class RequisitionView(TenantScopedView):
    can_create = False
    column_searchable_list = ["number", "title"]
    column_filters = ["status", "priority"]
    column_list = ["id", "number", "title", "status", "estimated_amount", "created_at"]


class PurchaseOrderView(TenantScopedView):
    can_create = False
    column_searchable_list = ["po_no", "supplier_name"]
    column_filters = ["status", "approval_status", "order_date"]
    column_list = ["id", "po_no", "supplier_name", "order_date", "status", "total"]
    form_columns = ["payment_terms", "delivery_place", "expected_date", "notes"]


class RFQView(TenantScopedView):
    can_create = False
    column_searchable_list = ["number", "title"]
    column_filters = ["status"]
    column_list = ["id", "number", "title", "status", "deadline"]


class ReceptionView(TenantScopedView):
    can_create = False
    can_edit = False
    column_filters = ["reception_type", "received_at"]
    column_list = ["id", "number", "po", "reception_type", "received_at"]


class ApprovalRuleView(TenantScopedView):
    can_create = False
    column_filters = ["purchase_type", "is_active"]
    column_list = ["id", "name", "purchase_type", "min_amount", "max_amount", "priority", "is_active"]
    form_columns = ["name", "priority", "is_active"]


class StatusEventView(TenantScopedView):
    can_create = False
    can_edit = False
    column_default_sort = ("id", True)
    column_filters = ["entity_type", "entity_id", "to_status"]


def init_admin(app):
    admin = Admin(
        app,
        name="Procurement Admin",
        theme=Bootstrap4Theme(),
        index_view=ProcurementAdminIndex(url="/manage"),
        url="/manage",
    )
    from db.models.user import User
    from db.models.supplier import Supplier
    from db.models.purchase_requisition import PurchaseRequisition
    from db.models.rfq import RFQ
    from db.models.purchase import PurchaseOrder
    from db.models.goods_receipt import GoodsReceipt
    from db.models.status_event import StatusEvent
    from db.models.approval import ApprovalRule

    admin.add_view(
        UserView(User, db.session, category="System", endpoint="admin_user", name="Users")
    )
    admin.add_view(
        StatusEventView(
            StatusEvent,
            db.session,
            category="System",
            endpoint="admin_event",
            name="Status history",
        )
    )
    admin.add_view(
        SupplierView(
            Supplier,
            db.session,
            category="Master Data",
            endpoint="admin_supplier",
            name="Suppliers",
        )
    )
    admin.add_view(
        RequisitionView(
            PurchaseRequisition,
            db.session,
            category="Procurement",
            endpoint="admin_pr",
            name="Requisitions",
        )
    )
    admin.add_view(
        RFQView(RFQ, db.session, category="Procurement", endpoint="admin_rfq", name="RFQs")
    )
    admin.add_view(
        PurchaseOrderView(
            PurchaseOrder,
            db.session,
            category="Procurement",
            endpoint="admin_po",
            name="Purchase Orders",
        )
    )
    admin.add_view(
        ReceptionView(
            GoodsReceipt,
            db.session,
            category="Procurement",
            endpoint="admin_gr",
            name="Receptions",
        )
    )
    admin.add_view(
        ApprovalRuleView(
            ApprovalRule,
            db.session,
            category="Procurement",
            endpoint="admin_approval_rule",
            name="Approval rules",
        )
    )
    admin.add_link(MenuLink(name="Logout", url="/manage/logout"))
    return admin
