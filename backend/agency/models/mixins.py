from sqlalchemy import Column, DateTime, ForeignKey, Integer, event
from sqlalchemy.orm import declared_attr

from agency.core.time import utcnow


class TimestampMixin:
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    @staticmethod
    def _touch_updated_at(mapper, connection, target) -> None:
        target.updated_at = utcnow()

    @classmethod
    def __declare_last__(cls) -> None:
        event.listen(cls, "before_update", cls._touch_updated_at)


class TenantOwnedMixin:
    """
    Rows that belong to one tenant and record the user who created them.

    ``__owner_attr__`` names the column compared against the actor for
    ``*_own`` permissions.
    """

    __owner_attr__ = "created_by_user_id"

    @declared_attr
    def tenant_id(cls):
        return Column(
            Integer,
            ForeignKey("tenants.id", ondelete="RESTRICT"),
            nullable=False,
            index=True,
        )

    @declared_attr
    def created_by_user_id(cls):
        return Column(
            Integer,
            ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
            index=True,
        )
