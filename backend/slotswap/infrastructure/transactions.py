"""Transaction Coordinator — one begin/commit/abort contract whether or not the store is atomic.

Invariants:
    - The capability is probed at most once per TransactionCapability (refresh() re-probes on demand)
    - A probe that cannot finish within probe_timeout_seconds, or fails, means "no atomicity"
    - commit() and abort() are idempotent: a finished scope ignores both, never raises
    - Every scope closes its session when it finishes
    - unit_of_work() aborts before any exception leaves it; no error path leaves a scope open

Design Decisions:
    - Two closed scope variants instead of a fake session object:
        AtomicScope — one real transaction; persist() flushes, abort() rolls everything back
        NoopScope   — write-through; persist() commits each write immediately
    - persist() commits or flushes whatever the session holds; callers stage exactly one row
      per persist (guarded UPDATEs leave loaded objects clean), so `writes` counts rows
    - KNOWN GAP: NoopScope.abort() cannot undo writes already applied. The swap engine keeps
      this safe in practice by validating every precondition before the first write and
      guarding every update on the state it validated, so a competing create loses the
      guard even without store-level isolation. A warning names the writes left in place.
    - Capability injected into the coordinator (not a module-level flag): tests build a
      fixed capability per case, the app builds one at startup
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from slotswap.core.domain_types import TransactionMode
from slotswap.core.errors import DatabaseError

logger = logging.getLogger(__name__)


class TransactionCapability:
    """Whether the backing store can commit several writes atomically."""

    def __init__(
        self,
        engine: AsyncEngine | None,
        mode: TransactionMode = TransactionMode.AUTO,
        probe_timeout_seconds: float = 3.0,
    ):
        if engine is None and mode == TransactionMode.AUTO:
            raise ValueError("TransactionMode.AUTO needs an engine to probe")
        self._engine = engine
        self._mode = mode
        self._timeout = probe_timeout_seconds
        self._supported: bool | None = None
        self._lock = asyncio.Lock()

    @classmethod
    def fixed(cls, supported: bool) -> "TransactionCapability":
        """Pre-decided capability — no probe, no engine."""
        mode = TransactionMode.ATOMIC if supported else TransactionMode.NONE
        return cls(None, mode)

    @property
    def mode(self) -> TransactionMode:
        return self._mode

    @property
    def probed(self) -> bool:
        return self._supported is not None

    async def atomic_supported(self) -> bool:
        """Probe on first use, then answer from the cached result."""
        if self._supported is None:
            async with self._lock:
                if self._supported is None:
                    self._supported = await self._probe()
        return self._supported

    async def refresh(self) -> bool:
        """Re-probe on demand (e.g. after the store topology changed)."""
        async with self._lock:
            self._supported = await self._probe()
        return self._supported

    async def _probe(self) -> bool:
        if self._mode == TransactionMode.ATOMIC:
            supported = True
        elif self._mode == TransactionMode.NONE:
            supported = False
        else:
            try:
                supported = await asyncio.wait_for(
                    self._probe_engine(), timeout=self._timeout,
                )
            except asyncio.TimeoutError:
                logger.warning(
                    f"Transaction probe timed out after {self._timeout}s — "
                    "assuming no atomic transactions",
                    extra={"atomic": False},
                )
                return False
            except (SQLAlchemyError, OSError) as e:
                logger.warning(
                    f"Transaction probe failed ({e}) — assuming no atomic transactions",
                    extra={"atomic": False},
                )
                return False
        logger.info(
            f"Store transactions: {'ENABLED' if supported else 'DISABLED'}",
            extra={"atomic": supported},
        )
        return supported

    async def _probe_engine(self) -> bool:
        async with self._engine.connect() as conn:
            sync_conn = conn.sync_connection
            level = (
                sync_conn.get_execution_options().get("isolation_level")
                or getattr(sync_conn.dialect, "isolation_level", None)
            )
            if level == "AUTOCOMMIT":
                return False
            trans = await conn.begin()
            await conn.execute(text("SELECT 1"))
            await trans.rollback()
        return True


class _SessionScope:
    """Shared plumbing for the two scope variants."""

    atomic: bool = False
    lock_rows: bool = False

    def __init__(self, session: AsyncSession):
        self.session = session
        self.writes = 0
        self._finished = False

    @property
    def finished(self) -> bool:
        return self._finished

    def _ensure_open(self) -> None:
        if self._finished:
            raise RuntimeError("Scope already finished")

    async def _close(self) -> None:
        self._finished = True
        await self.session.close()


class AtomicScope(_SessionScope):
    """Real transaction: writes become visible together on commit, or not at all."""

    atomic = True
    lock_rows = True

    async def persist(self) -> None:
        self._ensure_open()
        await self.session.flush()
        self.writes += 1

    async def commit(self) -> None:
        if self._finished:
            return
        try:
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Transaction commit failed: {e}")
            raise DatabaseError("Transaction commit failed", "commit") from e
        finally:
            await self._close()

    async def abort(self) -> None:
        if self._finished:
            return
        try:
            await self.session.rollback()
        except SQLAlchemyError as e:
            # abort runs on error paths; the error being handled takes precedence
            logger.error(f"Transaction rollback failed: {e}", exc_info=True)
        finally:
            await self._close()


class NoopScope(_SessionScope):
    """Write-through scope for stores without atomic multi-document commits."""

    atomic = False

    async def persist(self) -> None:
        self._ensure_open()
        try:
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Write-through commit failed: {e}")
            raise DatabaseError("Write-through commit failed", "commit") from e
        self.writes += 1

    async def commit(self) -> None:
        if self._finished:
            return
        await self._close()

    async def abort(self) -> None:
        if self._finished:
            return
        if self.writes:
            logger.warning(
                f"Aborting non-atomic scope: {self.writes} applied write(s) "
                "cannot be rolled back",
                extra={"applied_writes": self.writes, "atomic": False},
            )
        await self._close()


SessionScope = AtomicScope | NoopScope


class TransactionCoordinator:
    """Opens scopes of the right kind and finishes them."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        capability: TransactionCapability,
    ):
        self._session_factory = session_factory
        self._capability = capability

    @property
    def capability(self) -> TransactionCapability:
        return self._capability

    async def begin_scope(self) -> SessionScope:
        atomic = await self._capability.atomic_supported()
        session = self._session_factory()
        if atomic:
            return AtomicScope(session)
        return NoopScope(session)

    async def commit(self, scope: SessionScope) -> None:
        await scope.commit()

    async def abort(self, scope: SessionScope) -> None:
        await scope.abort()

    @asynccontextmanager
    async def unit_of_work(self) -> AsyncGenerator[SessionScope, None]:
        """Commit on normal exit; abort, then re-raise, on any exception."""
        scope = await self.begin_scope()
        try:
            yield scope
        except SQLAlchemyError as e:
            await self.abort(scope)
            logger.error(f"Store error inside scope: {e}")
            raise DatabaseError("Store operation failed", "execute") from e
        except BaseException:
            await self.abort(scope)
            raise
        await self.commit(scope)
