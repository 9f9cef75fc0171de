#!/usr/bin/env python3
"""
Demo script for the review analysis API.

Runs against a local API (``python -m review_analysis.api.app``) and plays
the external analysis service by posting the callbacks it would send.
Requires Redis for the cache; the analysis service itself may be absent,
in which case the request step shows the classified upstream error.
"""

import os
import sys
import time

import httpx

BASE_URL = os.getenv("DEMO_API_URL", "http://localhost:8000")


def print_section(title: str) -> None:
    """Print a section header."""
    print("\n" + "=" * 70)
    print(f"  {title}")
    print("=" * 70)


def show(response: httpx.Response) -> dict:
    data = response.json()
    print(f"  HTTP {response.status_code}: {data}")
    return data


def demo_health(client: httpx.Client) -> None:
    """Show service and cache health."""
    print_section("Health")
    show(client.get("/health"))
    show(client.get("/api/analyze/cache/health"))


def demo_request(client: httpx.Client, product_id: str) -> str | None:
    """Request an analysis twice; the second call reuses the first task."""
    print_section("Request analysis")

    body = {"productId": product_id, "url": f"https://shop.example/products/{product_id}"}
    data = show(client.post("/api/analyze", json=body))
    if not data.get("success"):
        print("\n  Analysis service unreachable, remaining steps need a task id.")
        return None

    print("\n  Requesting again (should come from cache):")
    show(client.post("/api/analyze", json=body))
    return data["taskId"]


def demo_callbacks(client: httpx.Client, product_id: str, task_id: str) -> None:
    """Post the callbacks the analysis service would send."""
    print_section("Callbacks")

    for progress in (25, 60, 40):
        print(f"\n  processing {progress}%:")
        show(
            client.post(
                "/api/analyze/callback",
                json={"taskId": task_id, "status": "processing", "progress": progress},
            )
        )
        show(client.get(f"/api/analyze/status/{product_id}"))
        time.sleep(0.2)

    completed = {
        "taskId": task_id,
        "status": "completed",
        "result": {
            "sentiment": {"positive": 72.5, "negative": 12.5, "neutral": 15.0},
            "summary": "Buyers like the battery life, some complain about shipping.",
            "keywords": ["battery", "shipping", "price"],
            "totalReviews": 240,
        },
    }
    print("\n  completed (sent twice, second is a duplicate):")
    show(client.post("/api/analyze/callback", json=completed))
    show(client.post("/api/analyze/callback", json=completed))

    print("\n  malformed callback (still acknowledged):")
    show(client.post("/api/analyze/callback", json={"status": "completed"}))


def demo_results(client: httpx.Client, product_id: str) -> None:
    """Show the cached result, statistics and invalidation."""
    print_section("Results and cache")
    show(client.get(f"/api/analyze/result/{product_id}"))
    show(client.get("/api/analyze/cache/stats"))
    show(client.delete(f"/api/analyze/cache/{product_id}"))
    show(client.get(f"/api/analyze/result/{product_id}"))


def main() -> None:
    """Run all demos."""
    print("\n🔎 Review Analysis Demo")
    print(f"API: {BASE_URL}")

    product_id = sys.argv[1] if len(sys.argv) > 1 else "demo-product"

    with httpx.Client(base_url=BASE_URL, timeout=10.0) as client:
        try:
            demo_health(client)
        except httpx.ConnectError:
            print("\n❌ API not reachable. Start it with: python -m review_analysis.api.app")
            sys.exit(1)

        task_id = demo_request(client, product_id)
        if task_id is not None:
            demo_callbacks(client, product_id, task_id)
            demo_results(client, product_id)

    print_section("Demo Complete")


if __name__ == "__main__":
    main()
