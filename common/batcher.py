"""
Transactional batching: commit every N messages of a phase.
"""

import logging

logger = logging.getLogger(__name__)


class TransactionBatcher:
    """Commits a session every batch_size messages.

    One batcher covers one phase. A phase of M messages issues
    ceil(M / batch_size) commits once flush() has run; non-transacted
    batchers never commit.
    """

    def __init__(self, session, transacted: bool, batch_size: int, on_commit=None):
        """
        Args:
            session: Session whose commit() ends a unit of work
            transacted: Whether the session is transacted
            batch_size: Messages per commit, must be positive when transacted
            on_commit: Optional callable invoked after each successful commit
        """
        if transacted and batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self.session = session
        self.transacted = transacted
        self.batch_size = batch_size
        self.on_commit = on_commit
        self.count = 0
        self.commits = 0
        self._uncommitted = 0

    def record(self) -> bool:
        """Account for one message; commit when it closes a batch.

        Returns:
            True if this message triggered a commit
        """
        self.count += 1
        if not self.transacted:
            return False
        self._uncommitted += 1
        if self.count % self.batch_size == 0:
            self._commit()
            return True
        return False

    def flush(self) -> bool:
        """Commit the remainder of a partial batch.

        Returns:
            True if a commit was issued
        """
        if self.transacted and self._uncommitted > 0:
            self._commit()
            return True
        return False

    def _commit(self) -> None:
        self.session.commit()
        self._uncommitted = 0
        self.commits += 1
        if self.on_commit is not None:
            self.on_commit()

    def __repr__(self) -> str:
        return (
            f"TransactionBatcher(count={self.count}, commits={self.commits}, "
            f"transacted={self.transacted}, batch_size={self.batch_size})"
        )
