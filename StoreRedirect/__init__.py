"""
App Store Redirect (Azure Function)

Inspects the caller's User-Agent and answers with a 302 to the Apple App Store,
the Google Play Store, or a fallback landing page. Destinations come from the
application settings below and are read on every invocation, then passed
explicitly through the decision pipeline.
"""

import json
import logging
import os
import re
from dataclasses import dataclass
from typing import Mapping, NamedTuple, Optional, Union

import azure.functions as func

# ---------------------------------------------------------------------------
# Configuration (driven by environment)
# ---------------------------------------------------------------------------
PLAYSTORE_URL_SETTING = "PLAYSTORE_URL"
APPSTORE_URL_SETTING = "APPSTORE_URL"
FALLBACK_SETTING = "FALLBACK"
# Optional: seconds browsers/CDNs may cache a redirect
CACHE_MAX_AGE_SETTING = "REDIRECT_CACHE_MAX_AGE"

DEFAULT_CACHE_MAX_AGE = 300
# Used by the selector when no fallback is configured at all
DEFAULT_FALLBACK_URL = "https://example.com"

REDIRECT_REASON = "User-Agent based redirect"
USER_AGENT_LOG_LIMIT = 100

_IOS_PATTERN = re.compile(r"iphone|ipad|ipod")
_ANDROID_PATTERN = re.compile(r"android")
_MOBILE_PATTERN = re.compile(r"mobile")


@dataclass(frozen=True)
class RedirectConfig:
    play_store_url: str = ""
    app_store_url: str = ""
    fallback_url: str = ""
    cache_max_age: int = DEFAULT_CACHE_MAX_AGE


def _parse_cache_max_age(raw: Optional[str]) -> int:
    if raw is None or not raw.strip():
        return DEFAULT_CACHE_MAX_AGE
    try:
        value = int(raw.strip())
    except ValueError:
        logging.warning(f"Invalid {CACHE_MAX_AGE_SETTING}='{raw}', defaulting to {DEFAULT_CACHE_MAX_AGE}")
        return DEFAULT_CACHE_MAX_AGE
    if value < 0:
        logging.warning(f"Negative {CACHE_MAX_AGE_SETTING}='{raw}', defaulting to {DEFAULT_CACHE_MAX_AGE}")
        return DEFAULT_CACHE_MAX_AGE
    return value


def load_config(environ: Optional[Mapping[str, str]] = None) -> RedirectConfig:
    """Build a RedirectConfig from application settings (os.environ by default).

    Values are stripped; a whitespace-only setting counts as not configured.
    """
    env = os.environ if environ is None else environ
    return RedirectConfig(
        play_store_url=(env.get(PLAYSTORE_URL_SETTING) or "").strip(),
        app_store_url=(env.get(APPSTORE_URL_SETTING) or "").strip(),
        fallback_url=(env.get(FALLBACK_SETTING) or "").strip(),
        cache_max_age=_parse_cache_max_age(env.get(CACHE_MAX_AGE_SETTING)),
    )

# ---------------------------------------------------------------------------
# User-Agent detection + destination selection
# ---------------------------------------------------------------------------


class UserAgentDetection(NamedTuple):
    is_ios: bool
    is_android: bool
    is_mobile: bool


def detect_user_agent(user_agent: str) -> UserAgentDetection:
    """Classify a raw User-Agent string. Total over all strings; '' gives all False.

    A spoofed agent carrying both iOS and Android tokens sets both flags;
    get_redirect_url resolves that in favour of iOS.
    """
    ua = (user_agent or "").lower()
    is_ios = bool(_IOS_PATTERN.search(ua))
    is_android = bool(_ANDROID_PATTERN.search(ua))
    is_mobile = is_ios or is_android or bool(_MOBILE_PATTERN.search(ua))
    return UserAgentDetection(is_ios=is_ios, is_android=is_android, is_mobile=is_mobile)


def get_redirect_url(detection: UserAgentDetection, config: RedirectConfig) -> str:
    """Pick the destination for a detection. First match wins:

    1. iOS with an App Store URL configured
    2. Android with a Play Store URL configured
    3. the fallback URL, or DEFAULT_FALLBACK_URL when that is empty too

    is_mobile is informational and never changes the outcome.
    """
    if detection.is_ios and config.app_store_url:
        return config.app_store_url
    if detection.is_android and config.play_store_url:
        return config.play_store_url
    return config.fallback_url or DEFAULT_FALLBACK_URL

# ---------------------------------------------------------------------------
# Outcomes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Redirect:
    url: str


@dataclass(frozen=True)
class Error:
    status_code: int
    message: str


@dataclass(frozen=True)
class Fault:
    """Unexpected failure inside the pipeline; resolved by _recover()."""
    reason: str


Outcome = Union[Redirect, Error, Fault]


def _decide(req: func.HttpRequest, config: RedirectConfig) -> Outcome:
    if (req.method or "").upper() != "GET":
        return Error(405, "Method not allowed")

    if not config.fallback_url:
        return Error(500, f"{FALLBACK_SETTING} environment variable is required")

    user_agent = req.headers.get("User-Agent") or ""
    if not user_agent:
        logging.warning("No User-Agent header found, redirecting to fallback")
        return Redirect(config.fallback_url)

    detection = detect_user_agent(user_agent)
    redirect_url = get_redirect_url(detection, config)

    logging.info(
        "Redirect: user_agent=%r is_ios=%s is_android=%s is_mobile=%s redirect_url=%s",
        user_agent[:USER_AGENT_LOG_LIMIT],
        detection.is_ios,
        detection.is_android,
        detection.is_mobile,
        redirect_url,
    )
    return Redirect(redirect_url)


def resolve(req: func.HttpRequest, config: RedirectConfig) -> Outcome:
    """Run the decision pipeline; any exception comes back as a Fault instead of propagating."""
    try:
        return _decide(req, config)
    except Exception as ex:
        logging.exception("Redirect decision failed.")
        return Fault(f"{type(ex).__name__}: {ex}")


def _recover(outcome: Outcome, config: RedirectConfig) -> Union[Redirect, Error]:
    if isinstance(outcome, Fault):
        if config.fallback_url:
            return Redirect(config.fallback_url)
        return Error(500, "Internal server error")
    return outcome

# ---------------------------------------------------------------------------
# Wire format
# ---------------------------------------------------------------------------


def _redirect_response(url: str, cache_max_age: int) -> func.HttpResponse:
    return func.HttpResponse(
        status_code=302,
        headers={
            "Location": url,
            "Cache-Control": f"public, max-age={cache_max_age}",
            "X-Redirect-Reason": REDIRECT_REASON,
        },
    )


def _error_response(message: str, status_code: int = 500) -> func.HttpResponse:
    return func.HttpResponse(
        json.dumps({"error": message}),
        status_code=status_code,
        headers={
            "Content-Type": "application/json",
            "Cache-Control": "no-cache",
        },
        mimetype="application/json",
    )


def to_http_response(outcome: Outcome, config: RedirectConfig) -> func.HttpResponse:
    final = _recover(outcome, config)
    if isinstance(final, Redirect):
        return _redirect_response(final.url, config.cache_max_age)
    return _error_response(final.message, final.status_code)


def handle_request(req: func.HttpRequest, config: RedirectConfig) -> func.HttpResponse:
    return to_http_response(resolve(req, config), config)


def main(req: func.HttpRequest) -> func.HttpResponse:
    try:
        config = load_config()
    except Exception as ex:
        logging.exception("Failed to load redirect settings.")
        # Only the fallback is needed to recover from a Fault
        config = RedirectConfig(fallback_url=(os.environ.get(FALLBACK_SETTING) or "").strip())
        return to_http_response(Fault(f"{type(ex).__name__}: {ex}"), config)
    return handle_request(req, config)
