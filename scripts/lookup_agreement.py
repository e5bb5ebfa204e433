"""Diagnostic lookup: which agreement would an event reference resolve to?

Runs the normal strategy chain and, with --fuzzy, the prefix match that the
webhook path never uses.
"""
from __future__ import annotations

import argparse

from rich import print

from signsync.db import SessionLocal
from signsync.signing.locator import AgreementLocator
from signsync.signing.references import normalize_reference

def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("reference")
    parser.add_argument("--fuzzy", action="store_true", help="allow prefix matches")
    args = parser.parse_args()

    ref = normalize_reference(args.reference)
    print("normalized:", ref.value, "[yellow](substituted)[/yellow]" if ref.substituted else "")

    with SessionLocal() as db:
        agreement = AgreementLocator().locate(db, args.reference, fuzzy=args.fuzzy)
        if agreement is None:
            print("[red]no agreement found[/red]")
            return
        print(
            {
                "id": str(agreement.id),
                "external_reference": agreement.external_reference,
                "signature_request_id": agreement.signature_request_id,
                "lifecycle_status": agreement.lifecycle_status,
                "signature_status": agreement.signature_status,
                "signatories": agreement.signatories,
                "signed_document_url": agreement.signed_document_url,
            }
        )

if __name__ == "__main__":
    main()
