#!/usr/bin/env python3
"""
Service Health Checker

Probes the dispatcher, gateway and minting services and asks the
dispatcher for its agent catalog over JSON-RPC.
Run: python scripts/check_services.py
"""

import os
import sys
import uuid
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv
import requests

load_dotenv()

TIMEOUT_S = 5


def check_health(name: str, base_url: str) -> dict:
    """
    Call a service's /health endpoint.

    Returns:
        dict with status code, latency and optional error
    """
    url = f"{base_url.rstrip('/')}/health"
    try:
        response = requests.get(url, timeout=TIMEOUT_S)
    except requests.RequestException as e:
        return {"name": name, "url": url, "ok": False, "error": str(e)}

    return {
        "name": name,
        "url": url,
        "ok": response.status_code == 200,
        "status_code": response.status_code,
        "latency_ms": int(response.elapsed.total_seconds() * 1000),
    }


def check_agent_catalog(dispatcher_url: str) -> dict:
    """Call list_agents on the dispatcher."""
    payload = {"jsonrpc": "2.0", "method": "list_agents", "id": uuid.uuid4().hex}
    try:
        response = requests.post(dispatcher_url, json=payload, timeout=TIMEOUT_S)
        body = response.json()
    except (requests.RequestException, ValueError) as e:
        return {"ok": False, "error": str(e)}

    if "error" in body:
        return {"ok": False, "error": body["error"].get("message", "unknown error")}

    agents = body.get("result", {}).get("agents", [])
    return {"ok": True, "agents": agents}


def print_health(result: dict):
    """Print one service's probe result."""
    status = "✅" if result["ok"] else "❌"
    print(f"{status} {result['name']:<12} {result['url']}")
    if result.get("status_code") is not None:
        print(f"   Status: {result['status_code']}  Latency: {result['latency_ms']}ms")
    if result.get("error"):
        print(f"   Error: {result['error']}")


def check_all_services() -> bool:
    """Probe every service. Returns True when all are healthy."""
    dispatcher_url = os.getenv("DISPATCHER_URL", "http://127.0.0.1:3000")
    gateway_url = os.getenv("PUBLIC_BASE_URL", "http://127.0.0.1:8000")
    mint_url = os.getenv("MINT_URL", "http://127.0.0.1:8081")

    print("=" * 60)
    print("🔍 SERVICE HEALTH")
    print("=" * 60)

    results = [
        check_health("dispatcher", dispatcher_url),
        check_health("gateway", gateway_url),
        check_health("mint", mint_url),
    ]
    for result in results:
        print_health(result)

    print(f"\n{'─' * 50}")
    print("📋 AGENT CATALOG")
    print(f"{'─' * 50}")
    catalog = check_agent_catalog(dispatcher_url)
    if catalog["ok"]:
        for agent in catalog["agents"]:
            print(f"   {agent['id']}  {agent['name']}")
        if not catalog["agents"]:
            print("   ⚠️  Dispatcher reported no agents")
    else:
        print(f"❌ list_agents failed: {catalog['error']}")

    return all(r["ok"] for r in results) and catalog["ok"]


if __name__ == "__main__":
    sys.exit(0 if check_all_services() else 1)
