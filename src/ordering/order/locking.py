"""Serialized read-modify-write transactions against the domain's store.

A command handler's unit of work commits only after the handler returns, so
two handlers can both load an order before either one commits, and the later
save wins. The in-memory provider widens this: a session copies the whole
store when it opens and puts that copy back on commit, so two writers race
even when they touch different orders.

``write_transaction`` holds one process-wide lock across load, change and
commit. A writer that waits reads everything committed before it, so the
order state machine sees every earlier transition and no commit is lost.
Handlers do all of their repository work inside it, which leaves the
handler's own unit of work with nothing to commit.
"""

import threading
from contextlib import contextmanager

from protean.core.unit_of_work import UnitOfWork

_write_lock = threading.RLock()


@contextmanager
def write_transaction():
    """Run the block in its own unit of work, committed before the lock is released.

    Re-entrant: a nested call on the same thread joins the outer lock and
    commits its own unit of work first.
    """
    with _write_lock:
        with UnitOfWork():
            yield
