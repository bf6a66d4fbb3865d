from __future__ import annotations

import hashlib
from urllib.error import URLError
from urllib.request import Request, urlopen

from config import get_settings


class PwnedLookupError(RuntimeError):
    pass


def password_hash_parts(password: str) -> tuple[str, str]:
    digest = hashlib.sha1(password.encode("utf-8")).hexdigest().upper()
    return digest[:5], digest[5:]


def suffix_in_range(body: str, suffix: str) -> bool:
    # each line is "<35 hex chars>:<count>"; padding entries carry count 0
    for line in body.splitlines():
        candidate, _, count = line.strip().partition(":")
        if candidate.upper() == suffix and count.strip() != "0":
            return True
    return False


def _fetch_range(prefix: str, *, base_url: str, timeout: float) -> str:
    url = f"{base_url}/range/{prefix}"
    req = Request(url, headers={"Accept": "text/plain", "Add-Padding": "true"})
    try:
        with urlopen(req, timeout=timeout) as resp:
            return resp.read().decode("utf-8")
    except (URLError, TimeoutError, UnicodeDecodeError) as exc:
        raise PwnedLookupError(
            f"Failed to query leaked-password range {prefix}"
        ) from exc


def is_password_leaked(password: str) -> bool:
    if not password:
        raise ValueError("Password is required")
    settings = get_settings()
    prefix, suffix = password_hash_parts(password)
    body = _fetch_range(
        prefix, base_url=settings.pwned_api_url, timeout=settings.pwned_timeout_secs
    )
    return suffix_in_range(body, suffix)
