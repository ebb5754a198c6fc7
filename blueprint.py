from index import main_bp
from routes.auth import auth_bp
from routes.supplier import supplier_bp
from routes.purchase_requisition import pr_bp
from routes.rfq import rfq_bp
from routes.vendor_quotation import vq_bp
from routes.purchases import purchase_bp
from routes.goods_receipt import gr_bp
from routes.circuit import circuit_bp
from routes.approval import approval_bp


def blue_print(app):
    app.register_blueprint(main_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(supplier_bp)
    app.register_blueprint(pr_bp)
    app.register_blueprint(rfq_bp)
    app.register_blueprint(vq_bp)
    app.register_blueprint(purchase_bp)
    app.register_blueprint(gr_bp)
    app.register_blueprint(circuit_bp)
    app.register_blueprint(approval_bp)
