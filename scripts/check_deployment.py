#!/usr/bin/env python3
"""
Smoke check for a deployed voice call router.

Only read-only endpoints are exercised; routing a call would create or
mutate identity records.
"""

import asyncio
import sys
from typing import Any, Dict, Optional

import httpx

SAMPLE_EVENT = {
    "Name": "ContactFlowEvent",
    "Details": {
        "ContactData": {
            "ContactId": "deployment-check",
            "CustomerEndpoint": {"Address": "+15555550100", "Type": "TELEPHONE_NUMBER"}
        },
        "Parameters": {}
    }
}


async def check_endpoint(
    client: httpx.AsyncClient,
    url: str,
    method: str = "GET",
    data: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """Call a single endpoint and summarise the outcome."""
    try:
        if method == "GET":
            response = await client.get(url)
        elif method == "POST":
            response = await client.post(url, json=data)
        else:
            raise ValueError(f"Unsupported method: {method}")

        is_json = response.headers.get("content-type", "").startswith("application/json")
        return {
            "status_code": response.status_code,
            "success": response.status_code < 400,
            "response": response.json() if is_json else response.text,
            "error": None
        }
    except httpx.HTTPError as e:
        return {
            "status_code": None,
            "success": False,
            "response": None,
            "error": str(e)
        }


async def check_deployment(base_url: str) -> bool:
    """Run every check against the deployment and print a summary."""
    print(f"Checking deployment at: {base_url}")
    print("=" * 60)

    checks = [
        {"name": "Liveness", "url": f"{base_url}/healthz", "method": "GET"},
        {"name": "Readiness (record store)", "url": f"{base_url}/readyz", "method": "GET"},
        {"name": "Metrics", "url": f"{base_url}/metrics", "method": "GET"},
        {
            "name": "Contact event parsing",
            "url": f"{base_url}/api/v1/connect/debug",
            "method": "POST",
            "data": SAMPLE_EVENT
        },
    ]

    results = []
    async with httpx.AsyncClient(timeout=30.0) as client:
        for check in checks:
            print(f"Checking: {check['name']}")
            result = await check_endpoint(client, check["url"], check["method"], check.get("data"))
            results.append({**check, **result})

            if result["success"]:
                print(f"  OK     status {result['status_code']}")
            else:
                print(f"  FAILED status {result['status_code']}, error: {result['error']}")

    passed = sum(1 for r in results if r["success"])
    print("=" * 60)
    print(f"Checks passed: {passed}/{len(results)}")

    for failed in (r for r in results if not r["success"]):
        detail = failed["error"] or f"HTTP {failed['status_code']}"
        print(f"  - {failed['name']}: {detail}")

    return passed == len(results)


async def main():
    if len(sys.argv) != 2:
        print("Usage: python scripts/check_deployment.py <base_url>")
        sys.exit(1)

    success = await check_deployment(sys.argv[1].rstrip('/'))
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    asyncio.run(main())
