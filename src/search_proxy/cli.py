from __future__ import annotations

import argparse
import asyncio
import sys
from typing import Any

import httpx

from search_proxy.config import Settings
from search_proxy.google_search import RotationOutcome, RotationState, rotate_search
from search_proxy.models import CredentialProfile


def _print_outcome(outcome: RotationOutcome) -> None:
    print(f"\nOutcome: {outcome.state.value} (key index {outcome.index}, {outcome.attempts} attempt(s))")
    if outcome.state is RotationState.SEMANTIC_ERROR:
        error = outcome.payload.get("error", {})
        print(f"Upstream error: {error}")
        return
    if outcome.state is not RotationState.SUCCEEDED:
        return

    items: list[dict[str, Any]] = outcome.payload.get("items", []) if isinstance(outcome.payload, dict) else []
    print(f"Results: {len(items)}\n")
    for position, item in enumerate(items, start=1):
        print(f"  {position}. {item.get('title', '')}")
        print(f"     {item.get('link', '')}")
        if item.get("snippet"):
            print(f"     {item['snippet']}")
        print()


async def _run(cli_settings: Settings) -> int:
    pool = cli_settings.credential_pool()
    if not pool.is_configured:
        if cli_settings.credential_profile() is CredentialProfile.SINGLE:
            message = "Error: set both GOOGLE_API_KEY and GOOGLE_SEARCH_ENGINE_ID"
        else:
            message = "Error: set GOOGLE_API_KEYS and GOOGLE_SEARCH_ENGINE_IDS with the same number of values"
        print(message, file=sys.stderr)
        return 1

    print(f"Search Proxy CLI ({pool.size} credential pair(s)) - type 'help' for usage, 'quit' to exit")
    async with httpx.AsyncClient(timeout=cli_settings.request_timeout) as client:
        while True:
            try:
                raw = input("search> ").strip()
            except EOFError:
                break

            if not raw:
                continue
            if raw in ("exit", "quit", "q"):
                break
            if raw == "help":
                print("Usage: <query>")
                print("Commands: help, exit/quit/q")
                continue

            try:
                outcome = await rotate_search(pool, raw, client, settings=cli_settings)
            except Exception as exc:
                print(f"Error: {exc}")
                continue
            _print_outcome(outcome)
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Search Proxy CLI")
    parser.add_argument(
        "--base-url",
        default=None,
        help="Override the upstream search API base URL",
    )
    args = parser.parse_args()

    cli_settings = Settings()
    if args.base_url:
        cli_settings = cli_settings.model_copy(update={"search_base_url": args.base_url})

    try:
        sys.exit(asyncio.run(_run(cli_settings)))
    except KeyboardInterrupt:
        print("\nBye!")
        sys.exit(0)
