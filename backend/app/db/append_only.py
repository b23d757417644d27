"""
Append-only guard for ORM classes.
Rejects UPDATE / DELETE flushes of mapped instances. Bulk Core statements
(update()/delete()) bypass mapper events and are not covered here.
"""
from sqlalchemy import event

from app.core.exceptions import ImmutableRowError


def append_only(cls):
    """Class decorator: register before_update / before_delete listeners that raise."""

    @event.listens_for(cls, "before_update")
    def _reject_update(mapper, connection, target):
        raise ImmutableRowError(cls.__tablename__, "UPDATE")

    @event.listens_for(cls, "before_delete")
    def _reject_delete(mapper, connection, target):
        raise ImmutableRowError(cls.__tablename__, "DELETE")

    return cls
