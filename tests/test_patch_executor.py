"""Tests for applying single patch operations."""

from modlet_patcher.document_model import DocumentModel, NodeTemplate
from modlet_patcher.patch_executor import PatchExecutor
from modlet_patcher.patch_operations import CsvOp, OperationKind, Outcome, PatchOperation
from modlet_patcher.path_resolver import PathExpression, resolve


def _xml(document: DocumentModel) -> bytes:
    return document.serialize(pretty_print=False, xml_declaration=False)


def _names(document: DocumentModel, path: str):
    return [document.node(node_id).get("name") for node_id in resolve(document, path)
            if not document.is_removed(node_id)]


class TestSetAttribute:
    """Tests for SetAttribute."""

    def test_scenario_applied(self, executor: PatchExecutor):
        """Setting an attribute on a matched item."""
        document = DocumentModel.parse(b'<root><item id="a"/></root>')
        operation = PatchOperation.set_attribute("/root/item[@id='a']", "active", "true")

        result = executor.apply(document, operation, "Mod/root.xml", 0)

        assert result.outcome is Outcome.APPLIED
        assert result.node_paths == ("/root/item[0]",)
        assert _xml(document) == b'<root><item id="a" active="true"/></root>'

    def test_scenario_no_match(self, executor: PatchExecutor):
        """A predicate that matches nothing leaves the document unchanged."""
        document = DocumentModel.parse(b'<root><item id="a"/></root>')
        operation = PatchOperation.set_attribute("/root/item[@id='z']", "active", "true")

        result = executor.apply(document, operation)

        assert result.outcome is Outcome.NO_MATCH
        assert _xml(document) == b'<root><item id="a"/></root>'

    def test_idempotent(self, executor: PatchExecutor, items_xml: bytes):
        """Applying the same SetAttribute twice equals applying it once."""
        once = DocumentModel.parse(items_xml)
        twice = DocumentModel.parse(items_xml)
        operation = PatchOperation.set_attribute("/items/item[@name='gunPistol']", "tier", "2")

        executor.apply(once, operation)
        executor.apply(twice, operation)
        executor.apply(twice, operation)

        assert once.serialize() == twice.serialize()

    def test_fans_out(self, executor: PatchExecutor, items_document: DocumentModel):
        result = executor.apply(items_document, PatchOperation.set_attribute("/items/item", "tier", "1"))

        assert result.outcome is Outcome.APPLIED
        assert len(result.node_paths) == 3
        assert all(items_document.node(n).get("tier") == "1" for n in resolve(items_document, "/items/item"))

    def test_empty_name_is_error(self, executor: PatchExecutor, items_document: DocumentModel):
        """An empty attribute name is rejected before resolution."""
        before = items_document.serialize()
        result = executor.apply(items_document, PatchOperation.set_attribute("/items/item", "", "x"))

        assert result.outcome is Outcome.ERROR
        assert result.node_paths == ()
        assert items_document.serialize() == before


class TestAppend:
    """Tests for Append."""

    def test_fan_out_to_three_parents(self, executor: PatchExecutor, items_document: DocumentModel):
        """Appending under 3 matched parents adds exactly one identical child to each."""
        template = NodeTemplate.from_xml('<property name="Weight" value="5"/>')
        before = len(items_document)

        result = executor.apply(items_document, PatchOperation.append("/items/item", template))

        assert result.outcome is Outcome.APPLIED
        assert len(items_document) == before + 3
        added = resolve(items_document, "/items/item/property[@name='Weight']")
        assert len(added) == 3
        assert len({items_document.parent_of(node_id) for node_id in added}) == 3
        assert {tuple(items_document.node(node_id).attributes.items()) for node_id in added} == \
            {(("name", "Weight"), ("value", "5"))}

    def test_appends_as_last_child_in_order(self, executor: PatchExecutor, items_document: DocumentModel):
        first = NodeTemplate.from_xml('<item name="one"/>')
        second = NodeTemplate.from_xml('<item name="two"/>')

        executor.apply(items_document, PatchOperation.append("/items", first, second))

        assert _names(items_document, "/items/item") == ["gunPistol", "meleeClub", "meleeKnife", "one", "two"]

    def test_no_match(self, executor: PatchExecutor, items_document: DocumentModel):
        result = executor.apply(items_document, PatchOperation.append("/blocks", NodeTemplate("block")))

        assert result.outcome is Outcome.NO_MATCH

    def test_missing_content_is_error(self, executor: PatchExecutor, items_document: DocumentModel):
        result = executor.apply(items_document, PatchOperation.append("/items"))

        assert result.outcome is Outcome.ERROR


class TestInsert:
    """Tests for InsertBefore and InsertAfter."""

    def test_insert_before(self, executor: PatchExecutor, items_document: DocumentModel):
        operation = PatchOperation.insert_before("/items/item[@name='meleeClub']",
                                                 NodeTemplate("item", [("name", "a")]),
                                                 NodeTemplate("item", [("name", "b")]))
        result = executor.apply(items_document, operation)

        assert result.outcome is Outcome.APPLIED
        assert _names(items_document, "/items/item") == ["gunPistol", "a", "b", "meleeClub", "meleeKnife"]

    def test_insert_after(self, executor: PatchExecutor, items_document: DocumentModel):
        operation = PatchOperation.insert_after("/items/item[@name='meleeClub']",
                                                NodeTemplate("item", [("name", "a")]),
                                                NodeTemplate("item", [("name", "b")]))
        executor.apply(items_document, operation)

        assert _names(items_document, "/items/item") == ["gunPistol", "meleeClub", "a", "b", "meleeKnife"]

    def test_insert_before_each_match(self, executor: PatchExecutor, items_document: DocumentModel):
        operation = PatchOperation.insert_before("/items/item", NodeTemplate("item", [("name", "x")]))
        result = executor.apply(items_document, operation)

        assert result.outcome is Outcome.APPLIED
        assert len(result.node_paths) == 3
        assert _names(items_document, "/items/item") == \
            ["x", "gunPistol", "x", "meleeClub", "x", "meleeKnife"]

    def test_insert_after_each_match(self, executor: PatchExecutor, items_document: DocumentModel):
        operation = PatchOperation.insert_after("/items/item", NodeTemplate("item", [("name", "x")]))
        executor.apply(items_document, operation)

        assert _names(items_document, "/items/item") == \
            ["gunPistol", "x", "meleeClub", "x", "meleeKnife", "x"]

    def test_insert_next_to_root_is_error(self, executor: PatchExecutor, items_document: DocumentModel):
        before = items_document.serialize()
        result = executor.apply(items_document, PatchOperation.insert_before("/items", NodeTemplate("x")))

        assert result.outcome is Outcome.ERROR
        assert items_document.serialize() == before


class TestSetText:
    """Tests for SetText."""

    def test_replaces_text(self, executor: PatchExecutor):
        document = DocumentModel.parse(b"<windows><label name='a'>Old</label><label name='b'/></windows>")

        result = executor.apply(document, PatchOperation.set_text("/windows/label", "New"))

        assert result.outcome is Outcome.APPLIED
        assert _xml(document) == b'<windows><label name="a">New</label><label name="b">New</label></windows>'


class TestRemove:
    """Tests for Remove and RemoveAttribute."""

    def test_remove(self, executor: PatchExecutor, items_document: DocumentModel):
        result = executor.apply(items_document, PatchOperation.remove("/items/item[@name='meleeClub']"))

        assert result.outcome is Outcome.APPLIED
        assert result.node_paths == ("/items/item[1]",)
        assert _names(items_document, "/items/item") == ["gunPistol", "meleeKnife"]

    def test_remove_root_is_error(self, executor: PatchExecutor, items_document: DocumentModel):
        result = executor.apply(items_document, PatchOperation.remove("/items"))

        assert result.outcome is Outcome.ERROR
        assert len(_names(items_document, "/items/item")) == 3

    def test_removed_target_is_conflict(self, executor: PatchExecutor, items_document: DocumentModel):
        """Targeting a node removed earlier in the run is a conflict, not a miss."""
        executor.apply(items_document, PatchOperation.remove("/items/item[0]"))

        result = executor.apply(items_document, PatchOperation.set_attribute("/items/item[0]", "x", "1"))

        assert result.outcome is Outcome.CONFLICT
        assert result.node_paths == ("/items/item[0]",)

    def test_partially_removed_targets(self, executor: PatchExecutor, items_document: DocumentModel):
        """Live matches are still patched when only some matches were removed."""
        executor.apply(items_document, PatchOperation.remove("/items/item[@name='meleeClub']"))

        result = executor.apply(items_document, PatchOperation.set_attribute("/items/item", "tier", "1"))

        assert result.outcome is Outcome.APPLIED
        assert "skipped 1 removed" in result.detail

    def test_remove_attribute(self, executor: PatchExecutor, items_document: DocumentModel):
        result = executor.apply(items_document, PatchOperation.remove_attribute("/items/item/property", "value"))

        assert result.outcome is Outcome.APPLIED
        assert b"value=" not in items_document.serialize()

    def test_remove_missing_attribute(self, executor: PatchExecutor, items_document: DocumentModel):
        result = executor.apply(items_document, PatchOperation.remove_attribute("/items/item", "tier"))

        assert result.outcome is Outcome.NO_MATCH


class TestCsv:
    """Tests for the csv operation."""

    def test_add_values(self, executor: PatchExecutor, items_document: DocumentModel):
        operation = PatchOperation.csv("/items/item[@name='gunPistol']/property[@name='Tags']",
                                       "value", "sidearm,gun", CsvOp.ADD)
        result = executor.apply(items_document, operation)

        tags = resolve(items_document, "/items/item[@name='gunPistol']/property[@name='Tags']")[0]
        assert result.outcome is Outcome.APPLIED
        assert items_document.node(tags).get("value") == "gun,pistol,sidearm"

    def test_remove_values(self, executor: PatchExecutor, items_document: DocumentModel):
        operation = PatchOperation.csv("/items/item/property[@name='Tags']", "value", "melee", CsvOp.REMOVE)
        executor.apply(items_document, operation)

        values = [items_document.node(n).get("value")
                  for n in resolve(items_document, "/items/item/property[@name='Tags']")]
        assert values == ["gun,pistol", "", "blade"]

    def test_custom_delimiter(self, executor: PatchExecutor):
        document = DocumentModel.parse(b'<root><a tags="x;y"/></root>')
        executor.apply(document, PatchOperation.csv("/root/a", "tags", "z", CsvOp.ADD, ";"))

        assert _xml(document) == b'<root><a tags="x;y;z"/></root>'


class TestValidation:
    """Structural validation happens before resolution."""

    def test_empty_path_is_error(self, executor: PatchExecutor, items_document: DocumentModel):
        operation = PatchOperation(OperationKind.REMOVE, PathExpression(()))

        result = executor.apply(items_document, operation)

        assert result.outcome is Outcome.ERROR
