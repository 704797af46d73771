"""
Path Resolver for 7 Days to Die Modlet Patcher

This module parses and evaluates the path expressions used in patch xpath attributes.
Only the subset modlets need is supported:

    /items/item[@name='gunPistol']/property[@name='Tags'][0]

Each step is an element name (or *), an optional attribute equality predicate and an
optional 0-based positional index, in that order. Predicate values are opaque and
compared exactly. A trailing /@name step is split off by split_attribute_target()
before parsing.

Classes that call this module:
    - PatchLoader (validates xpath attributes at load time)
    - PatchExecutor (resolves targets)

Visual map:
[path_resolver.py] <- [patch_loader.py]
                   <- [patch_executor.py]
                   -> [document_model.py]
"""

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import List, Optional, Tuple, Union
from .exceptions import PathSyntaxError

NAME_PATTERN = re.compile(r"\*|[^\W\d][\w.\-]*(?::[^\W\d][\w.\-]*)?")
INDEX_PATTERN = re.compile(r"\d+")
ATTRIBUTE_STEP = re.compile(r"/@([^\W\d][\w.\-]*(?::[^\W\d][\w.\-]*)?)\s*$")


@dataclass(frozen=True)
class PathSegment:
    tag: str
    attribute: Optional[Tuple[str, str]] = None
    index: Optional[int] = None

    def matches(self, node) -> bool:
        if self.tag != '*' and node.tag != self.tag:
            return False
        if self.attribute is not None:
            name, value = self.attribute
            return node.attributes.get(name) == value
        return True

    def __str__(self) -> str:
        text = self.tag
        if self.attribute is not None:
            name, value = self.attribute
            quote = '"' if "'" in value else "'"
            text += f"[@{name}={quote}{value}{quote}]"
        if self.index is not None:
            text += f"[{self.index}]"
        return text


@dataclass(frozen=True)
class PathExpression:
    segments: Tuple[PathSegment, ...]
    text: str = ''

    def __str__(self) -> str:
        return self.text or '/' + '/'.join(str(segment) for segment in self.segments)

    def __len__(self) -> int:
        return len(self.segments)


def _skip_spaces(source: str, position: int) -> int:
    while position < len(source) and source[position].isspace():
        position += 1
    return position


def _read_predicate(source: str, position: int, text: str):
    """Read one [...] block starting at position; returns (predicate, next position)."""
    position = _skip_spaces(source, position + 1)

    if source.startswith('@', position):
        name_match = NAME_PATTERN.match(source, position + 1)
        if not name_match or name_match.group(0) == '*':
            raise PathSyntaxError(f"Expected an attribute name at position {position + 1} in '{text}'", text)
        position = _skip_spaces(source, name_match.end())
        if not source.startswith('=', position):
            raise PathSyntaxError(
                f"Expected '=' after @{name_match.group(0)} in '{text}' (only equality predicates are supported)",
                text)
        position = _skip_spaces(source, position + 1)
        if position >= len(source) or source[position] not in "'\"":
            raise PathSyntaxError(f"Attribute values must be quoted in '{text}'", text)
        quote = source[position]
        end = source.find(quote, position + 1)
        if end == -1:
            raise PathSyntaxError(f"Unterminated attribute value in '{text}'", text)
        predicate = (name_match.group(0), source[position + 1:end])
        position = _skip_spaces(source, end + 1)
    else:
        index_match = INDEX_PATTERN.match(source, position)
        if not index_match:
            raise PathSyntaxError(f"Unsupported predicate at position {position} in '{text}'", text)
        predicate = int(index_match.group(0))
        position = _skip_spaces(source, index_match.end())

    if not source.startswith(']', position):
        raise PathSyntaxError(f"Expected ']' at position {position} in '{text}'", text)
    return predicate, position + 1


@lru_cache(maxsize=1024)
def parse_path(text: str) -> PathExpression:
    """
    Parse a path expression.

    Args:
        text (str): The expression, e.g. /items/item[@name='a'][0]

    Returns:
        PathExpression: The parsed expression

    Raises:
        PathSyntaxError: If the expression is empty or uses unsupported syntax
    """
    if not isinstance(text, str) or not text.strip():
        raise PathSyntaxError("Path expression is empty", text if isinstance(text, str) else '')

    source = text.strip()
    segments = []
    position = 0
    while position < len(source):
        if source[position] != '/':
            raise PathSyntaxError(
                f"Expected '/' at position {position} in '{text}' (paths must be absolute)", text)
        position += 1
        if source.startswith('/', position):
            raise PathSyntaxError(f"Descendant steps ('//') are not supported in '{text}'", text)
        if source.startswith('@', position):
            raise PathSyntaxError(f"Attribute steps are only allowed at the end of '{text}'", text)

        name_match = NAME_PATTERN.match(source, position)
        if not name_match:
            raise PathSyntaxError(f"Expected an element name at position {position} in '{text}'", text)
        tag = name_match.group(0)
        position = name_match.end()

        attribute = None
        index = None
        while source.startswith('[', position):
            predicate, position = _read_predicate(source, position, text)
            if isinstance(predicate, int):
                if index is not None:
                    raise PathSyntaxError(f"Only one positional index is allowed per step in '{text}'", text)
                index = predicate
            else:
                if attribute is not None or index is not None:
                    raise PathSyntaxError(
                        f"Only one attribute predicate is allowed per step, before the index, in '{text}'", text)
                attribute = predicate
        segments.append(PathSegment(tag, attribute, index))

    return PathExpression(tuple(segments), source)


def split_attribute_target(text: str) -> Tuple[str, Optional[str]]:
    """
    Split a trailing /@name step off a path string.

    Returns:
        Tuple[str, Optional[str]]: The element path and the attribute name (None when absent)
    """
    match = ATTRIBUTE_STEP.search(text or '')
    if not match:
        return (text or '').strip(), None
    return text[:match.start()].strip(), match.group(1)


def _narrow(document, candidates: List[int], segment: PathSegment) -> List[int]:
    matched = [node_id for node_id in candidates if segment.matches(document.node(node_id))]
    if segment.index is not None:
        return [matched[segment.index]] if segment.index < len(matched) else []
    return matched


def resolve(document, expression: Union[PathExpression, str]) -> List[int]:
    """
    Evaluate an expression against a document.

    The first step is matched against the root element; each following step
    looks at the children of the previous step's matches. Removed (tombstoned)
    nodes take part in matching so callers can detect dangling references.

    Returns:
        List[int]: Matching node ids in document order; empty when nothing matches
    """
    if isinstance(expression, str):
        expression = parse_path(expression)
    if not expression.segments:
        return []

    current = _narrow(document, [document.root_id], expression.segments[0])
    for segment in expression.segments[1:]:
        if not current:
            break
        candidates = [child_id for node_id in current for child_id in document.raw_children_of(node_id)]
        current = _narrow(document, candidates, segment)
    return current


def resolve_live(document, expression: Union[PathExpression, str]) -> List[int]:
    """Like resolve(), without removed nodes."""
    return [node_id for node_id in resolve(document, expression) if not document.is_removed(node_id)]
