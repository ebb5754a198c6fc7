from flask import Blueprint, jsonify, request, current_app
from flask_login import login_user, logout_user, current_user, login_required
from dao import user as user_dao
from utils.auth import issue_token
from utils.errors import ValidationFailed
from utils.serializers import user_to_dict

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


@auth_bp.route("/login", methods=["GET", "POST"])
def login():
    if request.method == "GET":
        return jsonify(message="POST username and password to sign in.")
    data = request.get_json(silent=True) or request.form
    username = (data.get("username") or "").strip()
    password = data.get("password") or ""
    if not username or not password:
        raise ValidationFailed("Username and password are required.")

    user = user_dao.authenticate(username, password)
    if not user:
        current_app.logger.warning("failed login for %s", username)
        return jsonify(error="invalid_credentials", message="Wrong username or password."), 401
    if not user.is_active:
        return jsonify(error="account_disabled", message="Account is disabled."), 403

    login_user(user, remember=bool(data.get("remember")))
    current_app.logger.info("user %s logged in", user.username)
    return jsonify(
        token=issue_token(user),
        token_type="Bearer",
        expires_in=current_app.config.get("TOKEN_MAX_AGE"),
        user=user_to_dict(user),
    )


@auth_bp.route("/logout", methods=["POST"])
def logout():
    if current_user.is_authenticated:
        logout_user()
    return jsonify(ok=True)


@auth_bp.route("/me")
@login_required
def me():
    return jsonify(user_to_dict(current_user))
