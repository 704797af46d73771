"""
Patch Loader for 7 Days to Die Modlet Patcher

This class parses a modlet's Config/*.xml patch file into an ordered, validated list
of patch operations. Everything that can be checked without a target document is
checked here, and a malformed file is rejected as a whole.

Supported directives (matched case- and underscore-insensitively):
    append, insertBefore, insertAfter, setattribute, set, remove, removeattribute, csv

Classes that call this class:
    - modletPatcher.py (main script), through load_all

Methods called from this class:
    - load: Parse patch bytes
    - load_file: Read and parse a patch file
    - load_all: Parse many patch files concurrently

Visual map:
[patch_loader.py] <- [modletPatcher.py]
                  -> [path_resolver.py]
                  -> [patch_operations.py]
                  -> [lxml]
"""

import os
from concurrent.futures import ThreadPoolExecutor
from typing import List, NamedTuple, Optional, Sequence, Union
from lxml import etree
from .configuration import get_int_config, versioned
from .document_model import NodeTemplate, as_xml_bytes
from .exceptions import PatchParseError, PathSyntaxError
from .mc_logger import debug, error, info
from .patch_operations import CONTENT_KINDS, CsvOp, OperationKind, PatchDocument, PatchOperation
from .path_resolver import parse_path, split_attribute_target

DIRECTIVES = {
    'append': OperationKind.APPEND,
    'insertbefore': OperationKind.INSERT_BEFORE,
    'insertafter': OperationKind.INSERT_AFTER,
    'setattribute': OperationKind.SET_ATTRIBUTE,
    'set': OperationKind.SET_TEXT,
    'remove': OperationKind.REMOVE,
    'removeattribute': OperationKind.REMOVE_ATTRIBUTE,
    'csv': OperationKind.CSV,
}


def normalize_directive(tag: str) -> str:
    return tag.replace('_', '').replace('-', '').lower()


class PatchSource(NamedTuple):
    """A patch file to load: either raw bytes or a path on disk."""
    source_id: str
    data: Optional[bytes] = None
    path: Optional[str] = None
    modlet_name: str = ''


class LoadResult(NamedTuple):
    documents: List[PatchDocument]
    errors: List[PatchParseError]


@versioned("1.0.0")
class PatchLoader:
    def load(self, data: Union[bytes, str], source_id: str, modlet_name: Optional[str] = None) -> PatchDocument:
        """
        Parse a patch document.

        Args:
            data (bytes | str): The patch XML
            source_id (str): Identifier used in diagnostics, e.g. MyModlet/items.xml
            modlet_name (str, optional): Modlet the patch belongs to

        Returns:
            PatchDocument: The validated operations, in file order

        Raises:
            PatchParseError: If the XML or any directive is malformed
        """
        data = as_xml_bytes(data)

        parser = etree.XMLParser(remove_comments=True, remove_pis=True, resolve_entities=False, no_network=True)
        try:
            root = etree.fromstring(data.lstrip(b'\xef\xbb\xbf').lstrip(), parser)
        except etree.XMLSyntaxError as e:
            raise PatchParseError(f"Malformed patch XML: {e.msg}", source_id, line=e.lineno) from e
        except ValueError as e:
            raise PatchParseError(f"Malformed patch XML: {e}", source_id) from e

        if normalize_directive(root.tag) in DIRECTIVES:
            raise PatchParseError(
                f"<{root.tag}> must be wrapped in a root element such as <config>", source_id, 0, root.sourceline)

        directives = [child for child in root if isinstance(child.tag, str)]
        operations = tuple(
            self._parse_directive(directive, index, source_id)
            for index, directive in enumerate(directives)
        )
        document = PatchDocument(source_id, operations, modlet_name or '')
        debug(f"[PatchLoader] Loaded {len(operations)} operation(s) from {source_id}")
        return document

    def _parse_directive(self, element, index: int, source_id: str) -> PatchOperation:
        line = element.sourceline

        def fail(message: str) -> PatchParseError:
            return PatchParseError(message, source_id, index, line)

        kind = DIRECTIVES.get(normalize_directive(element.tag))
        if kind is None:
            raise fail(f"Unknown patch directive <{element.tag}>")

        xpath = element.get('xpath')
        if xpath is None or not xpath.strip():
            raise fail(f"<{element.tag}> requires a non-empty xpath attribute")

        element_path, attribute = split_attribute_target(xpath)
        try:
            path = parse_path(element_path)
        except PathSyntaxError as e:
            raise fail(f"Invalid xpath: {e}") from e

        children = [child for child in element if isinstance(child.tag, str)]
        text = element.text or ''

        if kind in CONTENT_KINDS:
            if attribute:
                raise fail(f"<{element.tag}> cannot target an attribute")
            stray = text.strip() or any((child.tail or '').strip() for child in element)
            if stray:
                raise fail(f"<{element.tag}> must contain only XML elements")
            if not children:
                raise fail(f"<{element.tag}> requires at least one element to insert")
            operation = PatchOperation(kind, path, tuple(NodeTemplate.from_element(child) for child in children),
                                       line=line)
        else:
            if children:
                raise fail(f"<{element.tag}> does not take element content")
            operation = self._build_value_operation(kind, element, path, attribute, text, line, fail)

        reason = operation.validate()
        if reason:
            raise fail(reason)
        return operation

    def _build_value_operation(self, kind, element, path, attribute, text, line, fail) -> PatchOperation:
        if kind is OperationKind.SET_TEXT:
            if attribute:
                return PatchOperation.set_attribute(path, attribute, text, line=line)
            return PatchOperation.set_text(path, text, line=line)

        if kind is OperationKind.SET_ATTRIBUTE:
            if attribute:
                raise fail("setattribute xpath must address an element; give the attribute in 'name'")
            name = (element.get('name') or '').strip()
            if not name:
                raise fail("setattribute requires a non-empty name attribute")
            return PatchOperation.set_attribute(path, name, text, line=line)

        if kind is OperationKind.REMOVE:
            if attribute:
                return PatchOperation.remove_attribute(path, attribute, line=line)
            return PatchOperation.remove(path, line=line)

        if not attribute:
            raise fail(f"<{element.tag}> xpath must end with an attribute step (/@name)")

        if kind is OperationKind.REMOVE_ATTRIBUTE:
            return PatchOperation.remove_attribute(path, attribute, line=line)

        # csv
        op_name = (element.get('op') or '').strip().lower()
        try:
            csv_op = CsvOp(op_name)
        except ValueError:
            raise fail(f"csv op must be 'add' or 'remove', got '{op_name}'") from None
        delimiter = element.get('delim', ',')
        if len(delimiter) != 1:
            raise fail("csv delim must be a single character")
        return PatchOperation.csv(path, attribute, text, csv_op, delimiter, line=line)

    def load_file(self, file_path: str, source_id: Optional[str] = None,
                  modlet_name: Optional[str] = None) -> PatchDocument:
        source_id = source_id or os.path.basename(file_path)
        try:
            with open(file_path, 'rb') as f:
                data = f.read()
        except OSError as e:
            raise PatchParseError(f"Unable to read patch file {file_path}: {e}", source_id) from e
        return self.load(data, source_id, modlet_name)

    def _load_source(self, source: PatchSource) -> Union[PatchDocument, PatchParseError]:
        try:
            if source.data is not None:
                return self.load(source.data, source.source_id, source.modlet_name)
            return self.load_file(source.path, source.source_id, source.modlet_name)
        except PatchParseError as e:
            error(f"[PatchLoader] {e}")
            return e

    def load_all(self, sources: Sequence[PatchSource], max_workers: Optional[int] = None) -> LoadResult:
        """
        Load many patch documents concurrently.

        A document that fails to parse is reported in errors and does not affect
        the others. Both lists keep the input order.
        """
        max_workers = max(1, max_workers or get_int_config('MAX_WORKERS', 4))
        with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix='patch-loader') as pool:
            loaded = list(pool.map(self._load_source, sources))

        documents = [item for item in loaded if isinstance(item, PatchDocument)]
        errors = [item for item in loaded if isinstance(item, PatchParseError)]
        info(f"[PatchLoader] Loaded {len(documents)} patch file(s), {len(errors)} failed")
        return LoadResult(documents, errors)
