# scripts/test/simulate_scan.py
"""Send a scanned ticket code to the backend as if a gate had read it."""

import argparse
import requests

BACKEND_URL = "http://localhost:8080/api/v1/scan"


def simulate_scan(payload, gate_id, api_key=None):
    headers = {"X-API-Key": api_key} if api_key else {}
    resp = requests.post(BACKEND_URL, json={"payload": payload, "gate_id": gate_id},
                         headers=headers, timeout=10)
    body = resp.json()
    if resp.status_code != 200:
        print(f"❌ HTTP {resp.status_code}: {body}")
        return
    icon = {"entered": "🟢", "exited": "🔵"}.get(body["entry_status"], "🔴")
    print(f"{icon} {body['entry_status'].upper()} — {body['message']} "
          f"(ticket={body.get('ticket_id')}, gate={gate_id})")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Simulate a gate scan")
    parser.add_argument("payload", help="ticket code, e.g. EVENT-<event uuid>-<user uuid>")
    parser.add_argument("--gate", default="GATE-MAIN")
    parser.add_argument("--url", default=BACKEND_URL)
    parser.add_argument("--api-key", default=None)
    args = parser.parse_args()

    BACKEND_URL = args.url
    simulate_scan(args.payload, args.gate, args.api_key)
