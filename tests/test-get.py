#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Smoke test for a running StoreRedirect function (e.g. `func start`).

Usage:
  - Send the built-in sample User-Agents (iPhone, iPad, Android, desktop, none):
      python tests/test-get.py

  - Send a single custom User-Agent:
      python tests/test-get.py -u "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X)"

Notes:
  - Redirects are not followed; the script prints the status code and the Location,
    Cache-Control and X-Redirect-Reason headers the function returned.
  - Expected destinations depend on the PLAYSTORE_URL, APPSTORE_URL and FALLBACK
    application settings of the host being called.
"""

import argparse
import sys

import requests

SAMPLE_USER_AGENTS = {
    "iphone": "Mozilla/5.0 (iPhone; CPU iPhone OS 16_0 like Mac OS X) AppleWebKit/605.1.15",
    "ipad": "Mozilla/5.0 (iPad; CPU OS 16_0 like Mac OS X) AppleWebKit/605.1.15",
    "android": (
        "Mozilla/5.0 (Linux; Android 13; SM-G998B) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/112.0.0.0 Mobile Safari/537.36"
    ),
    "desktop": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/112.0.0.0 Safari/537.36"
    ),
    "none": None,
}


def probe(endpoint: str, user_agent) -> requests.Response:
    """GET the endpoint without following redirects.

    When user_agent is None the User-Agent header is removed entirely rather than
    sending the requests library default.
    """
    session = requests.Session()
    if user_agent is None:
        session.headers.pop("User-Agent", None)
    else:
        session.headers["User-Agent"] = user_agent
    return session.get(endpoint, allow_redirects=False, timeout=30)


def describe(resp: requests.Response) -> str:
    if resp.status_code in (301, 302, 303, 307, 308):
        return (
            f"{resp.status_code} -> {resp.headers.get('Location')} "
            f"(Cache-Control: {resp.headers.get('Cache-Control')}; "
            f"X-Redirect-Reason: {resp.headers.get('X-Redirect-Reason')})"
        )
    return f"{resp.status_code} {resp.text}"


def main() -> None:
    parser = argparse.ArgumentParser(description="GET smoke test for the StoreRedirect function")
    parser.add_argument(
        "-e", "--endpoint",
        default="http://localhost:7071/",
        help="Endpoint URL to call (default: http://localhost:7071/)",
    )
    parser.add_argument(
        "-u", "--user-agent",
        default=None,
        help="Send only this User-Agent instead of the built-in samples.",
    )

    args = parser.parse_args()

    if args.user_agent is not None:
        cases = {"custom": args.user_agent}
    else:
        cases = SAMPLE_USER_AGENTS

    for name, user_agent in cases.items():
        print(f"GET -> {args.endpoint} [{name}]")
        try:
            resp = probe(args.endpoint, user_agent)
        except requests.RequestException as exc:
            print(f"Request failed: {exc}", file=sys.stderr)
            sys.exit(1)
        print("  " + describe(resp))


if __name__ == "__main__":
    main()
