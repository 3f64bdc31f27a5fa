from __future__ import annotations

import base64
import binascii
import logging
from pathlib import PurePosixPath

logger = logging.getLogger(__name__)

# Files worth fetching in full for the reviewer: source, config and docs.
CONTEXT_EXTENSIONS = {
    "php",
    "js",
    "ts",
    "jsx",
    "tsx",
    "vue",
    "svelte",
    "py",
    "rb",
    "go",
    "rs",
    "java",
    "kt",
    "scala",
    "cs",
    "cpp",
    "c",
    "h",
    "hpp",
    "swift",
    "dart",
    "ex",
    "exs",
    "yaml",
    "yml",
    "json",
    "xml",
    "toml",
    "sql",
    "graphql",
    "gql",
    "sh",
    "bash",
    "zsh",
    "md",
    "mdx",
    "txt",
}

NON_CODE_EXTENSIONS = {
    ".png",
    ".jpg",
    ".jpeg",
    ".gif",
    ".svg",
    ".ico",
    ".webp",
    ".bmp",
    ".tiff",
    ".pdf",
    ".doc",
    ".docx",
    ".xls",
    ".xlsx",
    ".ppt",
    ".pptx",
    ".woff",
    ".woff2",
    ".ttf",
    ".eot",
    ".otf",
    ".mp4",
    ".mp3",
    ".wav",
    ".ogg",
    ".avi",
    ".mov",
    ".zip",
    ".tar",
    ".gz",
    ".rar",
    ".7z",
    ".jar",
    ".exe",
    ".dll",
    ".so",
    ".dylib",
    ".pyc",
    ".lock",  # e.g. composer.lock, Cargo.lock, yarn.lock
    ".min.js",
    ".min.css",
    ".map",
}

# Generated files that don't end in a recognisable extension.
NON_CODE_FILENAMES = {
    "package-lock.json",
    "npm-shrinkwrap.json",
    "pnpm-lock.yaml",
    "go.sum",
    ".DS_Store",
    "Thumbs.db",
}


def extension(path: str) -> str:
    return PurePosixPath(path).suffix.lstrip(".").lower()


def is_code_file(file_name: str) -> bool:
    if PurePosixPath(file_name).name in NON_CODE_FILENAMES:
        return False
    return not any(file_name.lower().endswith(ext) for ext in NON_CODE_EXTENSIONS)


def has_context_extension(path: str) -> bool:
    return extension(path) in CONTEXT_EXTENSIONS


def decode_content(response, max_bytes: int | None = None) -> str | None:
    """Turn a provider file response into text.

    The provider returns either plain text or a mapping with ``content``,
    ``encoding`` and ``size``. Base64 payloads are decoded. Anything larger
    than ``max_bytes`` is dropped rather than truncated: half a file
    misleads the reviewer more than no file.
    """
    if response is None:
        return None

    if isinstance(response, str):
        text = response
    elif isinstance(response, dict):
        size = response.get("size")
        if max_bytes is not None and isinstance(size, int) and size > max_bytes:
            return None
        content = response.get("content")
        if not isinstance(content, str):
            return None
        if response.get("encoding") == "base64":
            try:
                raw = base64.b64decode(content.replace("\n", ""), validate=False)
            except (binascii.Error, ValueError):
                logger.debug("Could not decode base64 content.")
                return None
            text = raw.decode("utf-8", errors="replace")
        else:
            text = content
    else:
        return None

    if max_bytes is not None and len(text.encode("utf-8")) > max_bytes:
        return None
    return text


def truncate_at_boundary(text: str, max_chars: int, marker: str) -> str:
    """Cut ``text`` to ``max_chars``, preferring a paragraph or line break.

    A paragraph break is used when it falls in the last 20% of the window,
    a line break when it falls in the last 10%; otherwise the cut is hard.
    """
    if len(text) <= max_chars:
        return text

    head = text[:max_chars]
    paragraph = head.rfind("\n\n")
    if paragraph > max_chars * 0.8:
        head = head[:paragraph]
    else:
        line = head.rfind("\n")
        if line > max_chars * 0.9:
            head = head[:line]

    return head + marker
