"""Per-page metadata block embedded at the top of each local Markdown file.

A tracked page file looks like::

    ---
    title: Installation
    remote_id: 42
    collection_id: 3
    subcollection_id: null
    collection_name: User Guides
    created: '2024-05-01T09:12:44.000000Z'
    updated: '2024-05-02T10:00:00.000000Z'
    last_synced: '2024-05-02T10:00:03.512000+00:00'
    ---

    # Installation
    ...

Parsing never raises: a missing, unterminated or unreadable block yields
empty metadata and the full content as body.  Timestamps stay opaque
strings; they are only parsed by the change detector at comparison time.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel

from bookstack_sync.file_handler import read_file_with_encoding, write_file

logger = logging.getLogger(__name__)

DELIMITER = "---"

# Upper bound on header lines read by ``read_metadata``.
MAX_HEADER_LINES = 200

_BLOCK_PATTERN = re.compile(
    r"\A\ufeff?---[ \t]*\r?\n(.*?)^---[ \t]*(?:\r?\n|\Z)(.*)\Z",
    re.DOTALL | re.MULTILINE,
)

INT_KEYS = ("remote_id", "collection_id")
NULLABLE_INT_KEYS = ("subcollection_id",)
STRING_KEYS = ("title", "created", "updated", "last_synced")
OPTIONAL_STRING_KEYS = (
    "collection_name",
    "collection_description",
    "subcollection_name",
    "subcollection_description",
)

# Emission order of ``serialize_metadata``.
METADATA_KEYS = (
    "title",
    "remote_id",
    "collection_id",
    "subcollection_id",
    "collection_name",
    "collection_description",
    "subcollection_name",
    "subcollection_description",
    "created",
    "updated",
    "last_synced",
)

_KEPT_RESOLVER_TAGS = frozenset(
    {"tag:yaml.org,2002:int", "tag:yaml.org,2002:null"}
)


class MetadataLoader(yaml.SafeLoader):
    """SafeLoader that only resolves plain scalars to int, null or str.

    Timestamps, booleans and floats stay strings so that values such as
    ``2024-05-01T09:12:44Z`` or a page titled ``On`` survive untouched.
    """


MetadataLoader.yaml_implicit_resolvers = {
    first_char: [
        (tag, regexp)
        for tag, regexp in resolvers
        if tag in _KEPT_RESOLVER_TAGS
    ]
    for first_char, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


class PageMetadata(BaseModel):
    """Identity and sync bookkeeping for one local file.

    Index files of book and chapter folders use the same record with
    ``remote_id`` unset.
    """

    title: str | None = None
    remote_id: int | None = None
    collection_id: int | None = None
    subcollection_id: int | None = None
    collection_name: str | None = None
    collection_description: str | None = None
    subcollection_name: str | None = None
    subcollection_description: str | None = None
    created: str | None = None
    updated: str | None = None
    last_synced: str | None = None

    model_config = {"frozen": True}

    @property
    def is_tracked(self) -> bool:
        """A file with a remote page id is tracked."""
        return self.remote_id is not None


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def _as_str(value: Any) -> str | None:
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


def _metadata_from_mapping(data: dict) -> PageMetadata:
    fields: dict[str, Any] = {}
    for key in INT_KEYS + NULLABLE_INT_KEYS:
        if key in data:
            value = _as_int(data[key])
            if value is not None:
                fields[key] = value
            elif data[key] is not None:
                logger.debug("Ignoring ill-typed metadata %s=%r", key, data[key])
    for key in STRING_KEYS + OPTIONAL_STRING_KEYS:
        if key in data:
            value = _as_str(data[key])
            if value is not None and value != "":
                fields[key] = value
    return PageMetadata(**fields)


def _load_block(block: str) -> dict | None:
    """Parse the YAML between the delimiters; ``None`` if not a mapping."""
    try:
        data = yaml.load(block, Loader=MetadataLoader)  # noqa: S506
    except yaml.YAMLError as exc:
        logger.debug("Unparseable metadata block: %s", exc)
        return None
    if data is None:
        return {}
    if not isinstance(data, dict):
        return None
    return data


def parse_metadata(content: str) -> tuple[PageMetadata, str]:
    """Split *content* into its metadata block and body.

    Returns:
        ``(metadata, body)``.  Without a valid block the metadata is empty
        and the body is the full content.
    """
    match = _BLOCK_PATTERN.match(content)
    if not match:
        return PageMetadata(), content

    data = _load_block(match.group(1))
    if data is None:
        return PageMetadata(), content

    body = match.group(2)
    # The serializer separates header and body with one blank line.
    if body.startswith("\r\n"):
        body = body[2:]
    elif body.startswith("\n"):
        body = body[1:]
    return _metadata_from_mapping(data), body


def read_metadata(path: Path) -> PageMetadata:
    """Read only the metadata block of *path*, never the full body.

    Raises:
        OSError: If the file cannot be opened.
    """
    lines: list[str] = []
    with open(path, encoding="utf-8", errors="replace") as fh:
        first = fh.readline()
        if first.lstrip("\ufeff").rstrip() != DELIMITER:
            return PageMetadata()
        for _ in range(MAX_HEADER_LINES):
            line = fh.readline()
            if not line:
                return PageMetadata()
            if line.rstrip() == DELIMITER:
                break
            lines.append(line)
        else:
            return PageMetadata()

    data = _load_block("".join(lines))
    if data is None:
        return PageMetadata()
    return _metadata_from_mapping(data)


# ---------------------------------------------------------------------------
# Serialisation
# ---------------------------------------------------------------------------


def serialize_metadata(metadata: PageMetadata) -> str:
    """Render *metadata* as a delimited block, keys in ``METADATA_KEYS`` order.

    Parent names and descriptions are only emitted when non-empty.  The
    returned text ends with the closing delimiter and a newline.
    """
    values = metadata.model_dump()
    ordered: dict[str, Any] = {}
    for key in METADATA_KEYS:
        value = values[key]
        if key in OPTIONAL_STRING_KEYS and not value:
            continue
        ordered[key] = value

    block = yaml.safe_dump(
        ordered,
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
        width=2**16,
    )
    return f"{DELIMITER}\n{block}{DELIMITER}\n"


def compose(metadata: PageMetadata, body: str) -> str:
    """Full file content: metadata block, one blank line, then *body*."""
    return f"{serialize_metadata(metadata)}\n{body}"


# ---------------------------------------------------------------------------
# Container metadata and index files
# ---------------------------------------------------------------------------


def container_metadata(
    book_id: int,
    book_name: str,
    book_description: str = "",
    chapter_id: int | None = None,
    chapter_name: str = "",
    chapter_description: str = "",
) -> PageMetadata:
    """Metadata shared by a container's index file and the pages inside it."""
    return PageMetadata(
        title=chapter_name if chapter_id is not None else book_name,
        collection_id=book_id,
        subcollection_id=chapter_id,
        collection_name=book_name or None,
        collection_description=book_description or None,
        subcollection_name=chapter_name or None,
        subcollection_description=chapter_description or None,
    )


def page_metadata(
    container: PageMetadata,
    remote_id: int,
    title: str,
    created: str | None,
    updated: str | None,
    last_synced: str,
) -> PageMetadata:
    """Metadata for a page file inside the container described by *container*."""
    return container.model_copy(
        update={
            "title": title,
            "remote_id": remote_id,
            "created": created or None,
            "updated": updated or None,
            "last_synced": last_synced,
        }
    )


def render_index(metadata: PageMetadata, description: str = "") -> str:
    body = f"# {metadata.title or ''}\n"
    if description:
        body += f"\n{description}\n"
    return compose(metadata, body)


def write_index_file(
    folder: Path, file_name: str, metadata: PageMetadata, description: str = ""
) -> bool:
    """Write the index file of *folder* unless it already holds that content.

    Returns:
        True when the file was (re)written.

    Raises:
        OSError: If the file cannot be read or written.
    """
    if not file_name:
        return False

    path = folder / file_name
    content = render_index(metadata, description)
    if path.is_file():
        current, _ = read_file_with_encoding(path)
        if current == content:
            return False
    write_file(path, content)
    logger.debug("Wrote index file %s", path)
    return True
