from sqlalchemy.orm import Session

from agency.models.users import User
from agency.tenancy.errors import NoTenantAccess


def get_user(db: Session, user_id: int) -> User | None:
    return db.query(User).filter(User.id == user_id).first()


def get_user_by_email(db: Session, email: str) -> User | None:
    return db.query(User).filter(User.email == email.strip().lower()).first()


def create_user(
    db: Session,
    email: str,
    *,
    display_name: str | None = None,
    is_platform_admin: bool = False,
) -> User:
    user = User(
        email=email.strip().lower(),
        display_name=display_name,
        is_platform_admin=is_platform_admin,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def set_default_tenant(db: Session, user_id: int, tenant_id: int | None) -> User:
    """Persist the tenant a user lands in when no hint is supplied."""
    user = get_user(db, user_id)
    if user is None:
        raise NoTenantAccess("Unknown user")
    user.default_tenant_id = tenant_id
    db.commit()
    db.refresh(user)
    return user
