from typing import List, Optional
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.security import check_password_hash, generate_password_hash
from configs import db
from db.models.user import User, UserRole
from utils.errors import PreconditionFailed, ValidationFailed


def list_users(tenant_id: int) -> List[User]:
    return (
        User.query.filter_by(tenant_id=int(tenant_id))
        .order_by(User.username.asc())
        .all()
    )


def get_user(user_id) -> Optional[User]:
    try:
        return db.session.get(User, int(user_id))
    except (TypeError, ValueError):
        return None


def authenticate(username: str, password: str) -> Optional[User]:
    user = User.query.filter_by(username=(username or "").strip()).first()
    if not user or not check_password_hash(user.password_hash, password or ""):
        return None
    return user


def create_user(
    tenant_id: int,
    username: str,
    password: str,
    role: UserRole | str = UserRole.REQUESTER,
    full_name: str | None = None,
    email: str | None = None,
    supplier_id: int | None = None,
) -> User:
    username = (username or "").strip()
    if not username or not password:
        raise ValidationFailed("Username and password are required.")
    if User.query.filter_by(username=username).first():
        raise PreconditionFailed(f"User {username} already exists.")
    if not isinstance(role, UserRole):
        try:
            role = UserRole[str(role).strip().upper()]
        except KeyError:
            raise ValidationFailed(f"Unknown role: {role}")
    if role == UserRole.SUPPLIER and not supplier_id:
        raise ValidationFailed("A supplier portal user needs a supplier.")
    u = User(
        tenant_id=int(tenant_id),
        username=username,
        password_hash=generate_password_hash(password),
        role=role,
        full_name=full_name,
        email=email,
        supplier_id=supplier_id,
        is_active=True,
    )
    db.session.add(u)
    _commit()
    return u


def _commit():
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        raise
