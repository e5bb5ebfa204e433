import sys
import uuid
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from signsync.db import SessionLocal
from signsync.models.agreement import Agreement
from signsync.models.enums import LifecycleStatus

@dataclass
class SeedResult:
    agreement_id: uuid.UUID
    external_reference: str

def get_or_create_agreement(db: Session, external_reference: str, title: str) -> Agreement:
    reference = external_reference.strip().lower()
    a = db.scalar(select(Agreement).where(Agreement.external_reference == reference))
    if a is None:
        a = Agreement(
            external_reference=reference,
            title=title,
            lifecycle_status=LifecycleStatus.created.value,
            signatories=[],
        )
        db.add(a)
        db.flush()
    return a

def seed(external_reference: str | None = None) -> SeedResult:
    reference = external_reference or str(uuid.uuid4())
    with SessionLocal() as db:
        a = get_or_create_agreement(db, reference, "demo tenancy agreement")
        db.commit()
        return SeedResult(agreement_id=a.id, external_reference=a.external_reference)

def main() -> None:
    res = seed(sys.argv[1] if len(sys.argv) > 1 else None)
    print("seeded agreement:", res.agreement_id)
    print("external reference:", res.external_reference)

if __name__ == "__main__":
    main()
