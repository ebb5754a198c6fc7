import click
from flask import Flask, jsonify, request
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from configs import db, login, Config
from db.models.user import User
from blueprint import blue_print
from utils.auth import bearer_token, read_token
from utils.errors import ProcurementError
from utils.log import configure_logging, ensure_request_id, current_request_id


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    configure_logging(app)
    db.init_app(app)
    login.init_app(app)

    _register_request_hooks(app)
    _register_login(app)
    _register_error_handlers(app)
    _register_cli(app)

    if app.config.get("ADMIN_ENABLED"):
        from admin.setup import init_admin

        init_admin(app)  # /manage
    blue_print(app)
    return app


def _register_request_hooks(app):
    @app.before_request
    def _request_id():
        ensure_request_id()

    @app.after_request
    def _echo_request_id(response):
        response.headers["X-Request-Id"] = current_request_id()
        return response


def _register_login(app):
    @login.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @login.request_loader
    def load_user_from_token(req):
        token = bearer_token(req)
        if not token:
            return None
        payload = read_token(token)
        if not payload:
            return None
        user = db.session.get(User, int(payload.get("uid") or 0))
        if user is None or user.tenant_id != payload.get("tid") or not user.is_active:
            return None
        return user

    @login.unauthorized_handler
    def unauthorized():
        return (
            jsonify(
                error="unauthorized",
                message="Authentication required.",
                request_id=current_request_id(),
            ),
            401,
        )


def _register_error_handlers(app):
    @app.errorhandler(ProcurementError)
    def _procurement_error(e: ProcurementError):
        app.logger.info("%s %s -> %s: %s", request.method, request.path, e.code, e.message)
        return jsonify(e.to_payload(current_request_id())), e.http_status

    @app.errorhandler(HTTPException)
    def _http_error(e: HTTPException):
        payload = {
            "error": (e.name or "error").lower().replace(" ", "_"),
            "message": e.description,
            "request_id": current_request_id(),
        }
        return jsonify(payload), e.code

    @app.errorhandler(SQLAlchemyError)
    def _db_error(e: SQLAlchemyError):
        db.session.rollback()
        app.logger.exception("database error on %s %s", request.method, request.path)
        payload = {
            "error": "database_error",
            "message": "The operation could not be stored.",
            "request_id": current_request_id(),
        }
        return jsonify(payload), 500


def _register_cli(app):
    @app.cli.command("init-db")
    def init_db():
        """Create every table."""
        db.create_all()
        click.echo("tables created")

    @app.cli.command("seed")
    def seed():
        """Load a demo tenant with one user per role."""
        from seed import seed_demo

        tenant = seed_demo()
        click.echo(f"tenant {tenant.code} ready")

    @app.cli.command("expire-rfqs")
    def expire_rfqs():
        """Expire open RFQs whose deadline has passed."""
        from dao.rfq import expire_overdue_rfqs

        expired = expire_overdue_rfqs()
        click.echo(f"{len(expired)} RFQ(s) expired")


if __name__ == "__main__":
    create_app().run(debug=True, host="0.0.0.0", port=5000)
