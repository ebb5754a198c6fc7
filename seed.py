# seed.py
from flask import current_app
from configs import db
from db.models.tenant import Tenant
from db.models.supplier import Supplier, SupplierStatus
from db.models.user import User, UserRole
from db.models.approval import ApprovalRule
from dao import approval as approval_dao, user as user_dao

DEMO_PASSWORD = "demo1234"

USERS = [
    ("admin", "System Admin", UserRole.ADMIN),
    ("requester1", "Area Requester", UserRole.REQUESTER),
    ("approver1", "Purchase Approver", UserRole.APPROVER),
    ("buyer1", "Purchasing Buyer", UserRole.BUYER),
    ("warehouse1", "Warehouse Staff", UserRole.WAREHOUSE),
]

SUPPLIERS = [
    # code, name, tax id, email
    ("PROV-001", "Distribuidora Norte SA", "30-71234567-1", "ventas@norte.example"),
    ("PROV-002", "Insumos del Sur SRL", "30-70987654-2", "contacto@sur.example"),
]


def seed_demo(code: str = "demo") -> Tenant:
    """Idempotent: running it twice leaves the same data."""
    tenant = Tenant.query.filter_by(code=code).first()
    if not tenant:
        tenant = Tenant(code=code, name="Demo Company", currency="ARS")
        db.session.add(tenant)
        db.session.commit()

    suppliers = []
    for s_code, name, tax_id, email in SUPPLIERS:
        s = Supplier.query.filter_by(tenant_id=tenant.id, code=s_code).first()
        if not s:
            s = Supplier(
                tenant_id=tenant.id,
                code=s_code,
                name=name,
                tax_id=tax_id,
                email=email,
                status=SupplierStatus.ACTIVE,
                company_data={"legal_name": name, "tax_id": tax_id, "address": "-"},
                company_data_complete=True,
            )
            db.session.add(s)
        suppliers.append(s)
    db.session.commit()

    for username, full_name, role in USERS:
        if not User.query.filter_by(username=username).first():
            user_dao.create_user(tenant.id, username, DEMO_PASSWORD, role, full_name)
    if not User.query.filter_by(username="supplier1").first():
        user_dao.create_user(
            tenant.id,
            "supplier1",
            DEMO_PASSWORD,
            UserRole.SUPPLIER,
            "Supplier Portal",
            supplier_id=suppliers[0].id,
        )
    if not ApprovalRule.query.filter_by(tenant_id=tenant.id).first():
        approval_dao.create_rule(
            tenant.id,
            "Large purchases",
            [
                {"name": "Area approver", "approver_role": "APPROVER"},
                {"name": "Management", "approver_role": "ADMIN"},
            ],
            min_amount=1000000,
        )
    current_app.logger.info("demo tenant %s seeded", tenant.code)
    return tenant
