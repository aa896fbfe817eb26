"""Front matter codec.

Files are YAML front matter between ``---`` lines followed by a free-form
body. ``decompose`` never raises: content without a usable header comes back
as an empty mapping, the whole text as body, and a parse error message.
"""

import base64
import binascii
import logging
import re
from typing import Any, NamedTuple

import yaml

from .exceptions import InvalidContentError

logger = logging.getLogger(__name__)

DELIMITER = "---"

FRONT_MATTER = re.compile(
    r"\A---[ \t]*\r?\n(?P<yaml>.*?)^---[ \t]*(?:\r?\n|\Z)",
    re.DOTALL | re.MULTILINE,
)
BASE64 = re.compile(r"^[A-Za-z0-9+/]*={0,2}$")


class Decomposed(NamedTuple):
    yaml: dict[str, Any]
    body: str
    yaml_parse_error: str | None


def decompose(content: str) -> Decomposed:
    """Split content into front matter and body."""
    match = FRONT_MATTER.match(content)
    if not match:
        return Decomposed({}, content, "No YAML front matter block delimited by ---")

    try:
        data = yaml.safe_load(match.group("yaml"))
    except yaml.YAMLError as e:
        logger.debug("Front matter parse failed: %s", e)
        return Decomposed({}, content, str(e))

    if data is None:
        data = {}
    if not isinstance(data, dict):
        return Decomposed(
            {}, content, f"Front matter must be a mapping, not {type(data).__name__}"
        )
    return Decomposed(data, content[match.end():], None)


def compose(data: dict[str, Any], body: str | None = None) -> str:
    """Serialise front matter and body back into file content."""
    header = yaml.safe_dump(
        data or {}, sort_keys=False, allow_unicode=True, default_flow_style=False
    )
    return f"{DELIMITER}\n{header}{DELIMITER}\n{body or ''}"


def is_base64(text: str) -> bool:
    """Whether text is Base64 (GitHub wraps it in newlines, so whitespace is ignored)."""
    if not isinstance(text, str):
        return False
    compact = "".join(text.split())
    return len(compact) % 4 == 0 and bool(BASE64.match(compact))


def decode(text: str) -> str:
    """Decode Base64 file content to text."""
    if not is_base64(text):
        raise InvalidContentError("Content must be a valid Base64-encoded string")
    try:
        return base64.b64decode("".join(text.split())).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as e:
        raise InvalidContentError(f"Content could not be decoded: {e}") from e


def encode(text: str) -> str:
    """Encode text as Base64 for the contents API."""
    return base64.b64encode(text.encode("utf-8")).decode("ascii")
