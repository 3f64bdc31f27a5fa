"""Secret detection and redaction.

Every text that may reach the reviewer is passed through ``redact`` before
leaving the process. A match is replaced by ``[REDACTED:<category>]``; the
marker names what was found but never echoes any part of the value.

Patterns are ordered from most to least specific so that a GitHub token
inside ``token = ghp_...`` is reported as ``github_token`` rather than the
generic assignment form.
"""

from __future__ import annotations

import re
from pathlib import PurePosixPath

REDACTED_FILE_MARKER = "[REDACTED - sensitive file]"

_SECRET_PATTERNS: list[tuple[str, re.Pattern[str]]] = [
    (
        "private_key",
        re.compile(
            r"-----BEGIN (?:RSA |EC |DSA |OPENSSH |PGP |ENCRYPTED )?PRIVATE KEY(?: BLOCK)?-----"
            r"[\s\S]*?"
            r"-----END (?:RSA |EC |DSA |OPENSSH |PGP |ENCRYPTED )?PRIVATE KEY(?: BLOCK)?-----"
        ),
    ),
    ("github_pat", re.compile(r"github_pat_[A-Za-z0-9_]{22,}")),
    ("github_token", re.compile(r"gh[pousr]_[A-Za-z0-9_]{36,}")),
    ("aws_access_key", re.compile(r"\b(?:AKIA|ABIA|ACCA|ASIA)[A-Z0-9]{16}\b")),
    (
        "aws_secret_key",
        re.compile(r"(?i)aws[_-]?secret[_-]?(?:access[_-]?)?key\s*[=:]\s*['\"]?[A-Za-z0-9/+=]{40}['\"]?"),
    ),
    ("slack_token", re.compile(r"\bxox[baprs]-[A-Za-z0-9-]{10,}")),
    ("sendgrid_key", re.compile(r"\bSG\.[A-Za-z0-9_-]{22}\.[A-Za-z0-9_-]{43}")),
    ("stripe_key", re.compile(r"\b(?:sk|rk)_(?:live|test)_[A-Za-z0-9]{24,}")),
    ("polar_token", re.compile(r"\bpolar_(?:live|test|pat|oat|at|rt)_[A-Za-z0-9_-]{20,}")),
    ("twilio_key", re.compile(r"\bSK[a-f0-9]{32}\b")),
    ("jwt", re.compile(r"\beyJ[A-Za-z0-9_-]{10,}\.eyJ[A-Za-z0-9_-]{10,}\.[A-Za-z0-9_-]{10,}")),
    (
        "db_url",
        re.compile(r"(?i)\b(?:mysql|postgres(?:ql)?|mongodb(?:\+srv)?|redis|amqp|mssql)://[^\s:/@]+:[^\s@]+@[^\s'\"]+"),
    ),
    ("bearer_token", re.compile(r"(?i)\bbearer\s+[A-Za-z0-9_\-.=]{20,}")),
    (
        "api_key",
        re.compile(r"(?i)(?:api[_-]?key|apikey)['\"]?\s*[=:]\s*['\"]?[A-Za-z0-9_\-]{16,}['\"]?"),
    ),
    (
        "auth_token",
        re.compile(r"(?i)(?:auth[_-]?token|access[_-]?token|token)['\"]?\s*[=:]\s*['\"]?[A-Za-z0-9_\-.]{16,}['\"]?"),
    ),
    (
        "password_config",
        re.compile(r"(?i)(?:password|passwd|pwd)['\"]?\s*[=:]\s*['\"]?[^\s'\"]{8,}['\"]?"),
    ),
    (
        "secret",
        re.compile(r"(?i)(?:client[_-]?secret|secret[_-]?key|secret)['\"]?\s*[=:]\s*['\"]?[A-Za-z0-9_\-/+=]{16,}['\"]?"),
    ),
]

# Files whose whole content is secret by convention.
SENSITIVE_FILENAMES = {
    ".env",
    ".env.local",
    ".env.production",
    ".env.staging",
    ".env.development",
    "credentials.json",
    "service-account.json",
    "secrets.yaml",
    "secrets.yml",
    ".npmrc",
    ".pypirc",
    "id_rsa",
    "id_ed25519",
    ".htpasswd",
}

# .env.<stage>, e.g. .env.qa or .env.preview
_DOTENV_STAGE = re.compile(r"^\.env\.[a-z0-9_-]+$")

# Templates are meant to be committed and carry no real values.
_TEMPLATE_SUFFIXES = (".example", ".sample", ".template", ".dist")


def redaction_marker(category: str) -> str:
    return f"[REDACTED:{category}]"


def redact(text: str | None) -> str | None:
    """Replace every secret-shaped substring in ``text``."""
    if not text:
        return text
    for category, pattern in _SECRET_PATTERNS:
        text = pattern.sub(redaction_marker(category), text)
    return text


def detect(text: str | None) -> list[str]:
    """Return the categories of secrets present in ``text``."""
    if not text:
        return []
    return [category for category, pattern in _SECRET_PATTERNS if pattern.search(text)]


def is_sensitive_file(path: str) -> bool:
    name = PurePosixPath(path).name.lower()
    if name.endswith(_TEMPLATE_SUFFIXES):
        return False
    return name in SENSITIVE_FILENAMES or _DOTENV_STAGE.match(name) is not None
