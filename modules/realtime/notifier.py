# -*- coding: utf-8 -*-
"""
Per-table change notifications.

Subscribers get the bare table name after a successful commit that touched
the table; they are expected to re-read whatever list they display
(invalidate-and-refetch, no row diffs, no ordering guarantee against later
writes). Rolled-back work notifies nobody. Callbacks run while the
committing session is closing its transaction, so a refetch must go through
a fresh session or happen outside the callback.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Callable

from sqlalchemy import event
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

_PENDING_KEY = "realtime_touched_tables"

_subscribers: dict[str, list[Callable[[str], None]]] = defaultdict(list)
_installed = False


def subscribe(table: str, on_change: Callable[[str], None]) -> Callable[[], None]:
    """Registers ``on_change(table)``; returns the matching unsubscribe callable."""
    _subscribers[table].append(on_change)

    def unsubscribe() -> None:
        try:
            _subscribers[table].remove(on_change)
        except ValueError:
            pass

    return unsubscribe


def clear_subscribers() -> None:
    _subscribers.clear()


def _touched_tables(session: Session) -> set[str]:
    tables = set()
    for obj in list(session.new) + list(session.dirty) + list(session.deleted):
        name = getattr(obj, "__tablename__", None)
        if name:
            tables.add(name)
    return tables


def _after_flush(session, flush_context):
    session.info.setdefault(_PENDING_KEY, set()).update(_touched_tables(session))


def _after_commit(session):
    tables = session.info.pop(_PENDING_KEY, set())
    for table in sorted(tables):
        for callback in list(_subscribers.get(table, ())):
            try:
                callback(table)
            except Exception:
                logger.exception("Change subscriber for '%s' failed", table)


def _after_rollback(session):
    session.info.pop(_PENDING_KEY, None)


def init_app(app) -> None:
    """Hooks the session events once per process."""
    global _installed
    if _installed:
        return
    event.listen(Session, "after_flush", _after_flush)
    event.listen(Session, "after_commit", _after_commit)
    event.listen(Session, "after_soft_rollback", lambda session, previous_transaction: _after_rollback(session))
    _installed = True
    app.logger.debug("Change notifications enabled")
