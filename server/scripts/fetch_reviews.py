#!/usr/bin/env python3
"""Print the testimonials summary a running server would render.

Usage:
    # Against a deployed server:
    uv run python scripts/fetch_reviews.py --url https://gobluebunny.com

    # Onboarding page ordering (newest first):
    uv run python scripts/fetch_reviews.py --url http://localhost:8080 --pm-onboarding

Useful after rotating GOOGLE_PLACES_API_KEY or GOOGLE_PLACE_ID: an empty
summary with a diagnostic means both Places API generations failed.
The diagnostic is only present on non-production deployments.
"""

from __future__ import annotations

import argparse
import json
import sys

import httpx


def fetch_summary(client: httpx.Client, *, pm_onboarding: bool = False) -> dict | None:
    """GET the review summary. Returns the parsed body or None on failure."""
    path = "/api/reviews/pm-onboarding" if pm_onboarding else "/api/reviews"
    try:
        resp = client.get(path, timeout=30)
    except httpx.RequestError as e:
        print(f"❌ Request failed: {e}")
        return None

    if resp.status_code != 200:
        print(f"❌ {path} returned {resp.status_code}: {resp.text[:200]}")
        return None
    return resp.json()


def print_summary(summary: dict) -> None:
    rating = summary.get("rating")
    total = summary.get("totalRatings")
    reviews = summary.get("reviews") or []

    if rating is None and not reviews:
        print("⚠ No Google data available.")
    else:
        print(f"★ {rating} from {total} ratings ({summary.get('source')})")

    print(f"   Reviews URL: {summary.get('reviewsUrl')}")
    for review in reviews:
        print(f"   - {review['author']} ({review['rating']}, {review['relativeTime']})")
        print(f"     {review['text']}")

    if summary.get("error"):
        print(f"   Diagnostic: {summary['error']}")


def main() -> int:
    parser = argparse.ArgumentParser(description="Show the site's Google review summary.")
    parser.add_argument("--url", required=True, help="Server base URL")
    parser.add_argument(
        "--pm-onboarding",
        action="store_true",
        help="Use the onboarding page ordering (newest first)",
    )
    parser.add_argument("--json", action="store_true", help="Print the raw JSON body")
    args = parser.parse_args()

    with httpx.Client(base_url=args.url.rstrip("/")) as client:
        summary = fetch_summary(client, pm_onboarding=args.pm_onboarding)

    if summary is None:
        return 1
    if args.json:
        print(json.dumps(summary, indent=2))
    else:
        print_summary(summary)
    return 0 if summary.get("reviews") or summary.get("rating") is not None else 2


if __name__ == "__main__":
    sys.exit(main())
