"""Post-commit hook list attached to a SQLAlchemy session."""

from __future__ import annotations

import logging
from typing import Any, Callable

from sqlalchemy import event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .errors import StorageError

# purpose: run best-effort side effects (cache invalidation, notifications) only after a commit lands
# inputs: session handle, callables registered while a mutation is prepared
# outputs: hooks executed in registration order, failures logged one by one
# status: active

logger = logging.getLogger(__name__)

_HOOKS_KEY = "atelier.post_commit_hooks"


def add_post_commit_hook(db: Session, func: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
    """Queue ``func`` to run once the session's outer transaction commits."""

    db.info.setdefault(_HOOKS_KEY, []).append((func, args, kwargs))


def pending_hooks(db: Session) -> int:
    return len(db.info.get(_HOOKS_KEY, []))


def run_post_commit_hooks(db: Session) -> int:
    """Run and clear queued hooks, returning how many failed.

    Hooks must not use ``db``; they run after its transaction is closed.
    """

    hooks = db.info.pop(_HOOKS_KEY, [])
    failures = 0
    for func, args, kwargs in hooks:
        try:
            func(*args, **kwargs)
        except Exception:
            failures += 1
            logger.exception("post-commit hook %s failed", getattr(func, "__name__", func))
    return failures


def commit(db: Session) -> None:
    """Commit the session, then run whatever hooks the mutation queued.

    A failed commit rolls back, drops the queued hooks and surfaces as StorageError.
    """

    try:
        db.commit()
    except SQLAlchemyError as exc:
        dropped = len(db.info.pop(_HOOKS_KEY, []))
        db.rollback()
        logger.error("commit failed, %d post-commit hooks discarded: %s", dropped, exc)
        raise StorageError("Failed to save changes") from exc
    run_post_commit_hooks(db)


@event.listens_for(Session, "after_soft_rollback")
def _discard_hooks_on_rollback(session: Session, previous_transaction) -> None:
    if previous_transaction.nested:
        return
    dropped = session.info.pop(_HOOKS_KEY, None)
    if dropped:
        logger.debug("discarded %d post-commit hooks after rollback", len(dropped))
