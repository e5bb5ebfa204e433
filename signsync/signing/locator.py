from __future__ import annotations

import logging
from collections.abc import Callable, Sequence

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from signsync.models.agreement import Agreement
from signsync.signing.references import try_normalize

logger = logging.getLogger(__name__)

# (db, reference) -> Agreement | None
LookupStrategy = Callable[[Session, str], Agreement | None]

def _candidates(reference: str) -> list[str]:
    raw = reference.strip()
    out = [raw.lower()]
    canonical = try_normalize(raw)
    if canonical and canonical not in out:
        out.append(canonical)
    return out

def by_primary_reference(db: Session, reference: str) -> Agreement | None:
    # compared as lowercased text: the column may hold uuid text in any case
    return db.scalar(
        select(Agreement)
        .where(func.lower(Agreement.external_reference).in_(_candidates(reference)))
        .order_by(Agreement.created_at)
        .limit(1)
    )

def by_legacy_reference(db: Session, reference: str) -> Agreement | None:
    return db.scalar(
        select(Agreement)
        .where(func.lower(Agreement.signature_request_id).in_(_candidates(reference)))
        .order_by(Agreement.created_at)
        .limit(1)
    )

def by_reference_prefix(db: Session, reference: str) -> Agreement | None:
    prefix = reference.strip().lower()
    if not prefix:
        return None
    pattern = prefix.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_") + "%"
    return db.scalar(
        select(Agreement)
        .where(func.lower(Agreement.external_reference).like(pattern, escape="\\"))
        .order_by(Agreement.created_at)
        .limit(1)
    )

DEFAULT_STRATEGIES: tuple[tuple[str, LookupStrategy], ...] = (
    ("primary_reference", by_primary_reference),
    ("legacy_reference", by_legacy_reference),
)
FUZZY_STRATEGIES: tuple[tuple[str, LookupStrategy], ...] = (
    ("reference_prefix", by_reference_prefix),
)

class AgreementLocator:
    """Resolves an external reference to one agreement, first hit wins.

    Fuzzy (prefix) matching is only tried when the caller asks for it; normal
    reconciliation must never attach an event to a near-miss agreement.
    """

    def __init__(
        self,
        strategies: Sequence[tuple[str, LookupStrategy]] = DEFAULT_STRATEGIES,
        fuzzy_strategies: Sequence[tuple[str, LookupStrategy]] = FUZZY_STRATEGIES,
        log: logging.Logger | None = None,
    ):
        self.strategies = tuple(strategies)
        self.fuzzy_strategies = tuple(fuzzy_strategies)
        self.log = log or logger

    def locate(self, db: Session, reference: str | None, *, fuzzy: bool = False) -> Agreement | None:
        if not reference or not reference.strip():
            return None

        chain = self.strategies + (self.fuzzy_strategies if fuzzy else ())
        for name, strategy in chain:
            try:
                found = strategy(db, reference)
            except SQLAlchemyError as e:
                db.rollback()
                self.log.warning("agreement lookup %s failed for %s: %s", name, reference, e)
                continue
            if found is not None:
                self.log.info("agreement %s matched %s via %s", found.id, reference, name)
                return found

        self.log.info("no agreement for reference %s", reference)
        return None
