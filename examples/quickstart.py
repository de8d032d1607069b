#!/usr/bin/env python3
"""
Daybook Quickstart — a journal's whole lifecycle in one script.

Registers two users → logs in → writes, reads, edits and deletes an
entry → shows that the second user cannot see the first user's entry
→ refreshes the access token → deletes both accounts.
Run with: python examples/quickstart.py

Requires: pip install httpx
Backend must be running: daybook serve  (http://localhost:8080)
"""

import sys
import uuid

import httpx

BASE = "http://localhost:8080/api/v1"
PASSWORD = "demo-password-123"


def login(client: httpx.Client, username: str) -> dict:
    """Register + login; returns the token response."""
    resp = client.post("/auth/register", json={"username": username, "password": PASSWORD})
    assert resp.status_code == 201, f"Register failed: {resp.text}"
    resp = client.post("/auth/login", json={"username": username, "password": PASSWORD})
    assert resp.status_code == 200, f"Login failed: {resp.text}"
    return resp.json()


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def main():
    run_id = uuid.uuid4().hex[:6]
    client = httpx.Client(base_url=BASE, timeout=90)

    # ── Health check ──────────────────────────────────────────────
    print("Checking backend health...")
    try:
        resp = client.get("/health")
    except httpx.ConnectError:
        print(f"Backend not reachable at {BASE}")
        sys.exit(1)
    health = resp.json()
    print(f"  Database: {'✓' if health['database'] == 'ok' else '✗'}")
    print(f"  Redis:    {'✓' if health['redis'] == 'ok' else '✗'}")

    # ── Accounts ──────────────────────────────────────────────────
    print("\n1. Registering alice and bob...")
    alice_tokens = login(client, f"alice-{run_id}")
    bob_tokens = login(client, f"bob-{run_id}")
    alice = bearer(alice_tokens["access_token"])
    bob = bearer(bob_tokens["access_token"])
    print(f"   alice-{run_id}, bob-{run_id}")

    # ── Write an entry ────────────────────────────────────────────
    print("\n2. alice writes an entry...")
    resp = client.post(
        "/entries",
        json={"title": "Day one", "content": "Went hiking"},
        headers=alice,
    )
    assert resp.status_code == 201, f"Failed: {resp.text}"
    entry = resp.json()
    print(f"   Entry: {entry['title']} ({entry['id'][:8]}...)")
    print(f"   Audio: {entry['audio_status']}")

    # ── Isolation ─────────────────────────────────────────────────
    print("\n3. bob tries to read it...")
    resp = client.get(f"/entries/{entry['id']}", headers=bob)
    print(f"   → {resp.status_code} {resp.json()['detail']}")
    print(f"   bob's list: {client.get('/entries', headers=bob).json()}")

    # ── Partial update ────────────────────────────────────────────
    print("\n4. alice edits only the content...")
    resp = client.put(
        f"/entries/{entry['id']}",
        json={"content": "Went hiking, then it rained"},
        headers=alice,
    )
    assert resp.status_code == 200, f"Failed: {resp.text}"
    print(f"   Title kept: {resp.json()['title']}")
    print(f"   Content:    {resp.json()['content']}")

    # ── Refresh ───────────────────────────────────────────────────
    print("\n5. alice refreshes the access token...")
    resp = client.post(
        "/auth/refresh", json={"refresh_token": alice_tokens["refresh_token"]}
    )
    assert resp.status_code == 200, f"Failed: {resp.text}"
    alice = bearer(resp.json()["access_token"])
    me = client.get("/auth/me", headers=alice).json()
    print(f"   {me['username']} has {me['entry_count']} entr{'y' if me['entry_count'] == 1 else 'ies'}")

    # ── Delete ────────────────────────────────────────────────────
    print("\n6. Cleaning up...")
    resp = client.delete(f"/entries/{entry['id']}", headers=alice)
    assert resp.status_code == 204, f"Failed: {resp.text}"
    for headers in (alice, bob):
        resp = client.delete("/users/me", headers=headers)
        assert resp.status_code == 204, f"Failed: {resp.text}"

    print("\n✓ Journal lifecycle finished; both accounts deleted.")


if __name__ == "__main__":
    main()
