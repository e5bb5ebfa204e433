from __future__ import annotations

import base64
import os
import time
import uuid

import requests
from rich import print

from scripts.seed import seed

BASE = os.getenv("API_BASE_URL", "http://127.0.0.1:8000")

# smallest thing a pdf viewer will open
_DEMO_PDF = b"%PDF-1.4\n1 0 obj<<>>endobj\ntrailer<<>>\n%%EOF\n"

def post(path: str, *, json: dict | None = None) -> requests.Response:
    return requests.post(f"{BASE}{path}", headers={"content-type": "application/json"}, json=json, timeout=10)

def get(path: str) -> requests.Response:
    return requests.get(f"{BASE}{path}", timeout=10)

def send_event(reference: str, code: int, **fields) -> dict:
    body = {"RequestId": reference, "EventId": code, "EventTime": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())}
    body.update(fields)
    r = post("/webhooks/evia-sign", json=body)
    r.raise_for_status()
    return r.json()

def wait_ready(timeout_s: float = 30.0) -> None:
    deadline = time.time() + timeout_s
    last_err: Exception | None = None

    while time.time() < deadline:
        try:
            r = get("/ready")
            if r.status_code == 200:
                return
        except Exception as e:
            last_err = e
        time.sleep(0.5)

    if last_err:
        raise RuntimeError(f"api not ready after {timeout_s}s (last error: {last_err})")
    raise RuntimeError(f"api not ready after {timeout_s}s")

def main() -> None:
    print("[bold]demo: request sent -> signer completes -> request completes[/bold]")

    wait_ready()
    print("[green]ready ok[/green]")

    seeded = seed(str(uuid.uuid4()))
    reference = seeded.external_reference
    print("seeded agreement:", seeded.agreement_id, "ref:", reference)

    out = send_event(reference, 1, EventDescription="SignRequestReceived")
    print("request received ->", out)

    out = send_event(reference, 2, UserName="Jane Doe", Email="jane@example.com")
    print("signer completed ->", out)

    # same delivery again: roster must not grow
    out = send_event(reference, 2, UserName="Jane Doe", Email="jane@example.com")
    print("redelivered ->", out)

    out = send_event(
        reference,
        3,
        Documents=[
            {
                "DocumentName": "tenancy.pdf",
                "DocumentContent": base64.b64encode(_DEMO_PDF).decode("ascii"),
            }
        ],
    )
    print("request completed ->", out)
    if out.get("documentUrl"):
        print("[green]signed document:[/green]", out["documentUrl"])
    else:
        print("[yellow]no document url in outcome[/yellow]", out.get("warnings"))

if __name__ == "__main__":
    main()
