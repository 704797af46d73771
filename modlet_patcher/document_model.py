"""
Document Model for 7 Days to Die Modlet Patcher

This module holds the in-memory element tree that patches are applied to. Nodes live
in an arena keyed by a monotonic id; parents keep ordered lists of child ids instead
of references, so several operations can address overlapping subtrees safely.

Removed nodes are kept as tombstones for the rest of a merge run: they disappear from
children_of(), counts and serialization, but the path resolver still sees them so a
later operation that targets them can be reported as a conflict.

Classes that call this module:
    - PathResolver (path_resolver.py)
    - PatchExecutor (patch_executor.py)
    - PatchLoader (patch_loader.py) for NodeTemplate payloads
    - MergeOrchestrator (merge_orchestrator.py)

Visual map:
[document_model.py] <- [path_resolver.py]
                    <- [patch_executor.py]
                    <- [patch_loader.py]
                    <- [merge_orchestrator.py]
                    -> [lxml]
"""

import codecs
import itertools
import re
from typing import Dict, Iterable, Iterator, List, Optional, Tuple, Union
from lxml import etree
from .configuration import versioned
from .exceptions import StructuralError, XMLParseError
from .mc_logger import debug


def _make_parser() -> etree.XMLParser:
    # lxml parsers are not shared between threads, so build one per call
    return etree.XMLParser(
        remove_blank_text=True,
        remove_comments=True,
        remove_pis=True,
        resolve_entities=False,
        no_network=True,
    )


XML_DECLARATION = re.compile(r"^\s*<\?xml[^>]*\?>")


def as_xml_bytes(data: Union[bytes, str]) -> bytes:
    """
    Bytes for the lxml parser.

    A str is already decoded, so the encoding named in its XML declaration no longer
    applies; the declaration is dropped and the text is encoded as UTF-8.
    """
    if isinstance(data, str):
        data = XML_DECLARATION.sub('', data.lstrip('\ufeff'), count=1).encode('utf-8')
    return data


def _significant_text(text: Optional[str], has_children: bool) -> Optional[str]:
    if text is None:
        return None
    if has_children and not text.strip():
        return None
    return text


class NodeTemplate:
    """
    A detached element fragment.

    Used as the payload of append and insert operations. A template is never placed
    in a document itself; DocumentModel copies it in with fresh ids, so the same
    template can be inserted under many parents.
    """

    __slots__ = ('tag', 'attributes', 'text', 'children')

    def __init__(
        self,
        tag: str,
        attributes: Optional[Iterable[Tuple[str, str]]] = None,
        text: Optional[str] = None,
        children: Optional[Iterable['NodeTemplate']] = None,
    ):
        self.tag = tag
        self.attributes: Tuple[Tuple[str, str], ...] = tuple(attributes or ())
        self.text = text
        self.children: Tuple['NodeTemplate', ...] = tuple(children or ())

    @classmethod
    def from_element(cls, element) -> 'NodeTemplate':
        """Build a template from an lxml element, skipping comments and other non-element nodes."""
        children = [cls.from_element(child) for child in element if isinstance(child.tag, str)]
        return cls(
            element.tag,
            element.attrib.items(),
            _significant_text(element.text, bool(children)),
            children,
        )

    @classmethod
    def from_xml(cls, text: Union[str, bytes]) -> 'NodeTemplate':
        """Build a template from a standalone XML fragment with a single root element."""
        text = as_xml_bytes(text)
        try:
            return cls.from_element(etree.fromstring(text.strip(), _make_parser()))
        except (etree.XMLSyntaxError, ValueError) as e:
            raise XMLParseError(f"Invalid XML fragment: {e}") from e

    def __eq__(self, other) -> bool:
        if not isinstance(other, NodeTemplate):
            return NotImplemented
        return (self.tag, self.attributes, self.text, self.children) == \
            (other.tag, other.attributes, other.text, other.children)

    def __hash__(self) -> int:
        return hash((self.tag, self.attributes, self.text, self.children))

    def __repr__(self) -> str:
        return f"NodeTemplate(<{self.tag}>, {len(self.children)} children)"


class DocumentNode:
    """One element of a DocumentModel."""

    __slots__ = ('node_id', 'tag', 'attributes', 'text', 'parent_id', 'child_ids', 'removed')

    def __init__(self, node_id: int, tag: str, attributes=None, text: Optional[str] = None,
                 parent_id: Optional[int] = None):
        self.node_id = node_id
        self.tag = tag
        # Insertion ordered, so attribute order survives a round trip
        self.attributes: Dict[str, str] = dict(attributes or ())
        self.text = text
        self.parent_id = parent_id
        self.child_ids: List[int] = []
        self.removed = False

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.attributes.get(name, default)

    def __repr__(self) -> str:
        state = ' removed' if self.removed else ''
        return f"DocumentNode(#{self.node_id} <{self.tag}>{state})"


@versioned("1.0.0")
class DocumentModel:
    def __init__(self, root: NodeTemplate):
        self._nodes: Dict[int, DocumentNode] = {}
        self._ids = itertools.count()
        self.root_id = self._adopt(root, None)

    @classmethod
    def parse(cls, data: Union[bytes, str], source: str = '<memory>') -> 'DocumentModel':
        """
        Parse a well-formed XML document.

        Args:
            data (bytes | str): The XML content
            source (str): Name used in error messages

        Returns:
            DocumentModel: The parsed document

        Raises:
            XMLParseError: If the content is not well-formed XML
        """
        data = as_xml_bytes(data)
        if data.startswith(codecs.BOM_UTF8):
            data = data[len(codecs.BOM_UTF8):]
        # Remove any leading whitespace so the XML declaration stays at the start
        data = data.lstrip()

        try:
            root = etree.fromstring(data, _make_parser())
        except (etree.XMLSyntaxError, ValueError) as e:
            raise XMLParseError(f"{source}: {e}") from e

        document = cls(NodeTemplate.from_element(root))
        debug(f"[DocumentModel] Parsed {source}: <{root.tag}> with {len(document)} elements")
        return document

    def _adopt(self, template: NodeTemplate, parent_id: Optional[int]) -> int:
        node_id = next(self._ids)
        node = DocumentNode(node_id, template.tag, template.attributes, template.text, parent_id)
        self._nodes[node_id] = node
        for child in template.children:
            node.child_ids.append(self._adopt(child, node_id))
        return node_id

    # ------------------------------------------------------------------ queries

    @property
    def root(self) -> DocumentNode:
        return self._nodes[self.root_id]

    def node(self, node_id: int) -> DocumentNode:
        try:
            return self._nodes[node_id]
        except KeyError:
            raise StructuralError(f"Unknown node id {node_id}") from None

    def _live_node(self, node_id: int) -> DocumentNode:
        node = self.node(node_id)
        if node.removed:
            raise StructuralError(f"Node #{node_id} <{node.tag}> was removed")
        return node

    def children_of(self, node_id: int) -> List[int]:
        """Ids of the live children of a node, in document order."""
        return [child_id for child_id in self.node(node_id).child_ids if not self._nodes[child_id].removed]

    def raw_children_of(self, node_id: int) -> List[int]:
        """Ids of all children of a node, tombstones included."""
        return list(self.node(node_id).child_ids)

    def parent_of(self, node_id: int) -> Optional[int]:
        return self.node(node_id).parent_id

    def is_removed(self, node_id: int) -> bool:
        return self.node(node_id).removed

    def index_of(self, node_id: int) -> int:
        """Position of a live node among its parent's live children."""
        node = self._live_node(node_id)
        if node.parent_id is None:
            raise StructuralError("The document root has no siblings")
        return self.children_of(node.parent_id).index(node_id)

    def node_path(self, node_id: int) -> str:
        """
        Diagnostic path of a node, e.g. /items/item[3]/property[0].

        Indices count same-tag siblings from 0, tombstones included, so the
        path resolves back to the same node for the rest of the run.
        """
        parts = []
        current = self.node(node_id)
        while current.parent_id is not None:
            parent = self._nodes[current.parent_id]
            siblings = [child_id for child_id in parent.child_ids if self._nodes[child_id].tag == current.tag]
            parts.append(f"{current.tag}[{siblings.index(current.node_id)}]")
            current = parent
        parts.append(current.tag)
        return '/' + '/'.join(reversed(parts))

    def _walk(self, node_id: int, include_removed: bool = True) -> Iterator[int]:
        stack = [node_id]
        while stack:
            current = stack.pop()
            node = self._nodes[current]
            if node.removed and not include_removed:
                continue
            yield current
            stack.extend(reversed(node.child_ids))

    def iter_nodes(self) -> Iterator[DocumentNode]:
        """Live nodes in document order (depth-first, left to right)."""
        for node_id in self._walk(self.root_id, include_removed=False):
            yield self._nodes[node_id]

    def __len__(self) -> int:
        return sum(1 for _ in self._walk(self.root_id, include_removed=False))

    # ---------------------------------------------------------------- mutations

    def insert_child_at(self, parent_id: int, index: int, template: NodeTemplate) -> int:
        """
        Copy a template into the document as the index-th live child of parent_id.

        Returns:
            int: The id of the new node
        """
        parent = self._live_node(parent_id)
        live = self.children_of(parent_id)
        if index < 0 or index > len(live):
            raise StructuralError(
                f"Index {index} out of range for <{parent.tag}> with {len(live)} children")

        position = parent.child_ids.index(live[index]) if index < len(live) else len(parent.child_ids)
        new_id = self._adopt(template, parent_id)
        parent.child_ids.insert(position, new_id)
        return new_id

    def append_child(self, parent_id: int, template: NodeTemplate) -> int:
        return self.insert_child_at(parent_id, len(self.children_of(parent_id)), template)

    def remove_node(self, node_id: int) -> None:
        node = self._live_node(node_id)
        if node.parent_id is None:
            raise StructuralError("Cannot remove the document root")
        for descendant_id in self._walk(node_id):
            self._nodes[descendant_id].removed = True

    def set_attribute(self, node_id: int, name: str, value: str) -> None:
        if not name:
            raise StructuralError("Attribute name must not be empty")
        self._live_node(node_id).attributes[name] = str(value)

    def remove_attribute(self, node_id: int, name: str) -> bool:
        """Remove an attribute; returns False when the node did not carry it."""
        if not name:
            raise StructuralError("Attribute name must not be empty")
        return self._live_node(node_id).attributes.pop(name, None) is not None

    def set_text(self, node_id: int, text: Optional[str]) -> None:
        self._live_node(node_id).text = text

    # ------------------------------------------------------------ serialization

    def _build_element(self, node_id: int, parent=None):
        node = self._nodes[node_id]
        element = etree.Element(node.tag) if parent is None else etree.SubElement(parent, node.tag)
        for name, value in node.attributes.items():
            element.set(name, value)
        if node.text is not None:
            element.text = node.text
        for child_id in node.child_ids:
            if not self._nodes[child_id].removed:
                self._build_element(child_id, element)
        return element

    def to_element(self):
        """Build an lxml element tree of the live document."""
        return self._build_element(self.root_id)

    def serialize(self, pretty_print: bool = True, xml_declaration: bool = True,
                  encoding: str = 'UTF-8') -> bytes:
        return etree.tostring(
            self.to_element(),
            pretty_print=pretty_print,
            xml_declaration=xml_declaration,
            encoding=encoding,
        )
