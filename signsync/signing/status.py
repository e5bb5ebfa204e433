from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

_WS = re.compile(r"\s+")
_SIGNED_BY = "signed_by_"

class SignatureStep(str, Enum):
    send_for_signature = "send_for_signature"
    signed_by = "signed_by"
    signing_complete = "signing_complete"
    rejected = "rejected"

@dataclass(frozen=True)
class SignatureStatus:
    """Signature sub-status as a step plus, for per-signer completion, who signed.

    Stored as the legacy label ("signed_by_Jane_Doe") on the agreement row.
    """

    step: SignatureStep
    signer_name: str | None = None

    @classmethod
    def signed_by(cls, name: str) -> SignatureStatus:
        return cls(SignatureStep.signed_by, name)

    @property
    def label(self) -> str:
        if self.step is SignatureStep.signed_by:
            return _SIGNED_BY + _WS.sub("_", (self.signer_name or "Unknown").strip())
        return self.step.value

    @classmethod
    def parse(cls, label: str | None) -> SignatureStatus | None:
        if not label:
            return None
        if label.startswith(_SIGNED_BY):
            # underscores can't be told apart from spaces once stored
            return cls.signed_by(label[len(_SIGNED_BY) :].replace("_", " "))
        try:
            return cls(SignatureStep(label))
        except ValueError:
            return None

    def __str__(self) -> str:
        return self.label
