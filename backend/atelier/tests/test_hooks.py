import uuid

import pytest
from sqlalchemy import text

from atelier import hooks, models
from atelier.errors import StorageError


def test_hooks_run_after_commit_in_order(db):
    calls = []
    db.execute(text("SELECT 1"))
    hooks.add_post_commit_hook(db, calls.append, "first")
    hooks.add_post_commit_hook(db, calls.append, "second")
    assert calls == []
    assert hooks.pending_hooks(db) == 2

    hooks.commit(db)
    assert calls == ["first", "second"]
    assert hooks.pending_hooks(db) == 0


def test_rollback_discards_hooks(db):
    calls = []
    db.execute(text("SELECT 1"))
    hooks.add_post_commit_hook(db, calls.append, "never")
    db.rollback()
    assert hooks.pending_hooks(db) == 0
    hooks.commit(db)
    assert calls == []


def test_savepoint_rollback_keeps_outer_hooks(db):
    calls = []
    db.execute(text("SELECT 1"))
    hooks.add_post_commit_hook(db, calls.append, "kept")
    try:
        with db.begin_nested():
            raise RuntimeError("attempt lost")
    except RuntimeError:
        pass
    assert hooks.pending_hooks(db) == 1
    hooks.commit(db)
    assert calls == ["kept"]


def test_failing_hook_does_not_stop_the_rest(db):
    calls = []

    def explode():
        raise ValueError("smtp down")

    hooks.add_post_commit_hook(db, explode)
    hooks.add_post_commit_hook(db, calls.append, "after")
    assert hooks.run_post_commit_hooks(db) == 1
    assert calls == ["after"]


def test_failed_commit_raises_storage_error_and_drops_hooks(db):
    calls = []
    slug = f"dup-{uuid.uuid4().hex[:8]}"
    db.add(models.Firm(name="Original", slug=slug))
    db.commit()

    db.add(models.Firm(name="Copy", slug=slug))
    hooks.add_post_commit_hook(db, calls.append, "never")
    with pytest.raises(StorageError) as raised:
        hooks.commit(db)
    assert raised.value.status_code == 500
    assert hooks.pending_hooks(db) == 0
    assert calls == []
    assert db.query(models.Firm).filter_by(slug=slug).count() == 1
