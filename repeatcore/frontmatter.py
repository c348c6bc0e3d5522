"""
Reading and rewriting the YAML frontmatter block of markdown notes.

Frontmatter is read with PyYAML's safe loader and rewritten with ruamel.yaml
in round-trip mode, so keys the scheduler does not own keep their order,
quoting and comments.
"""

import io
import logging
import re
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple, Union

import yaml
from ruamel.yaml import YAML
from ruamel.yaml.comments import CommentedMap
from ruamel.yaml.error import YAMLError as RuamelYAMLError

from .exceptions import NoteParsingError

logger = logging.getLogger(__name__)

FRONTMATTER_RE = re.compile(
    r"\A---[ \t]*\r?\n(.*?)(?:\r?\n)?---[ \t]*(?:\r?\n|\Z)", re.DOTALL
)

_round_trip_yaml = YAML()
_round_trip_yaml.indent(mapping=2, sequence=4, offset=2)
_round_trip_yaml.preserve_quotes = True
_round_trip_yaml.width = 4096


def frontmatter_bounds(markdown: str) -> Optional[Tuple[int, int]]:
    """
    Start and end offsets of the frontmatter block including its ``---``
    delimiters, or None when the note has no frontmatter.
    """
    match = FRONTMATTER_RE.match(markdown)
    if not match:
        return None
    return match.start(), match.end()


def split_frontmatter(
    markdown: str, path: Optional[Union[str, Path]] = None
) -> Tuple[Dict[str, Any], str]:
    """
    Split a note into its frontmatter mapping and body.

    Returns:
        Tuple[Dict[str, Any], str]: The parsed mapping (empty when the note has
        no frontmatter) and the remaining markdown body.

    Raises:
        NoteParsingError: If the frontmatter is not valid YAML or not a mapping.
    """
    match = FRONTMATTER_RE.match(markdown)
    if not match:
        return {}, markdown
    try:
        data = yaml.safe_load(match.group(1))
    except yaml.YAMLError as e:
        raise NoteParsingError(f"Invalid YAML frontmatter: {e}", path) from e
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise NoteParsingError("Frontmatter must be a mapping.", path)
    return data, markdown[match.end():]


def update_frontmatter(
    markdown: str,
    updates: Mapping[str, Any],
    path: Optional[Union[str, Path]] = None,
) -> str:
    """
    Apply ``updates`` to a note's frontmatter and return the new markdown.

    Keys mapped to None are removed; all other keys are set. The body and
    unrelated keys are preserved. A frontmatter block is created when the
    note has none and there is something to write.

    Raises:
        NoteParsingError: If the existing frontmatter cannot be parsed.
    """
    if not updates:
        return markdown

    match = FRONTMATTER_RE.match(markdown)
    if match:
        try:
            data = _round_trip_yaml.load(match.group(1))
        except RuamelYAMLError as e:
            raise NoteParsingError(
                f"Invalid YAML frontmatter: {e}", path
            ) from e
        if data is None:
            data = CommentedMap()
        if not isinstance(data, dict):
            raise NoteParsingError("Frontmatter must be a mapping.", path)
        body = markdown[match.end():]
    else:
        data = CommentedMap()
        body = markdown

    for key, value in updates.items():
        if value is None:
            data.pop(key, None)
        else:
            data[key] = value

    if not data:
        if not match:
            return markdown
        return f"---\n---\n{body}"

    stream = io.StringIO()
    _round_trip_yaml.dump(data, stream)
    return f"---\n{stream.getvalue()}---\n{body}"
