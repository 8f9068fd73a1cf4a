"""
Smoke test for the waitlist flow against a running, seeded server.

Usage:
    python -m app.db.seed
    BASE_URL=http://localhost:8000 python scripts/smoke_registrations.py

Picks the "Delivery Drivers" opportunity (2 spots), fills it, puts a third
volunteer on the waitlist and cancels one spot so the waitlist moves up.
"""

import os
import sys

import requests

BASE_URL = os.environ.get("BASE_URL", "http://localhost:8000")
IDENTITY_HEADER = os.environ.get("IDENTITY_HEADER", "X-User-Id")
VOLUNTEERS = ["volunteer-1", "volunteer-2", "volunteer-3"]


def call(method: str, path: str, user_id: str, **kwargs):
    resp = requests.request(
        method,
        f"{BASE_URL}{path}",
        headers={IDENTITY_HEADER: user_id},
        timeout=5,
        **kwargs,
    )
    return resp


def find_opportunity(title: str) -> int:
    resp = call("GET", "/opportunities", VOLUNTEERS[0], params={"search": title})
    resp.raise_for_status()
    for opp in resp.json():
        if opp["title"] == title:
            return opp["id"]
    sys.exit(f"Opportunity '{title}' not found; did you run the seed?")


def main():
    opp_id = find_opportunity("Delivery Drivers")

    for volunteer in VOLUNTEERS:
        resp = call("POST", f"/opportunities/{opp_id}/register", volunteer)
        body = resp.json()
        if resp.ok:
            print(f">> {volunteer}: {body['registration']['status']} ({body['capacity']})")
        else:
            print(f">> {volunteer}: {resp.status_code} {body}")

    resp = call("POST", f"/opportunities/{opp_id}/cancel", VOLUNTEERS[0])
    body = resp.json()
    promoted = body.get("promoted") or {}
    print(f">> cancel {VOLUNTEERS[0]}: promoted={promoted.get('user_id')} ({body.get('capacity')})")


if __name__ == "__main__":
    main()
    print("OK - smoke flow sent. Check responses above and the server logs.")
