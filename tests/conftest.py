"""Pytest configuration and fixtures for Modlet Patcher tests."""

import os

# Keep test runs from creating log files in the working directory
os.environ["LOG_FILE"] = ""

from pathlib import Path
from typing import Callable

import pytest

from modlet_patcher.document_model import DocumentModel
from modlet_patcher.patch_executor import PatchExecutor
from modlet_patcher.patch_loader import PatchLoader
from modlet_patcher.patch_operations import PatchDocument


ITEMS_XML = b"""<?xml version="1.0" encoding="UTF-8"?>
<items>
  <item name="gunPistol">
    <property name="Tags" value="gun,pistol"/>
    <property name="Stacknumber" value="1"/>
  </item>
  <item name="meleeClub">
    <property name="Tags" value="melee"/>
  </item>
  <item name="meleeKnife">
    <property name="Tags" value="melee,blade"/>
  </item>
</items>
"""


@pytest.fixture
def items_xml() -> bytes:
    """Raw bytes of a small items.xml."""
    return ITEMS_XML


@pytest.fixture
def items_document() -> DocumentModel:
    """A parsed items.xml document."""
    return DocumentModel.parse(ITEMS_XML, source="items.xml")


@pytest.fixture
def loader() -> PatchLoader:
    return PatchLoader()


@pytest.fixture
def executor() -> PatchExecutor:
    return PatchExecutor()


@pytest.fixture
def make_patch(loader: PatchLoader) -> Callable[..., PatchDocument]:
    """Build a patch document from the directives inside a <config> element."""

    def _make(directives: str, source_id: str = "TestModlet/items.xml") -> PatchDocument:
        return loader.load(f"<config>{directives}</config>".encode("utf-8"), source_id)

    return _make


def _write(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


@pytest.fixture
def game_tree(tmp_path: Path) -> Path:
    """
    A game folder with Data/Config and two modlets in Mods.

    AlphaModlet adds an item and tags the pistol; BetaModlet targets the item
    AlphaModlet inserted, so it only works when applied after it.
    """
    _write(tmp_path / "Data" / "Config" / "items.xml", ITEMS_XML.decode("utf-8"))
    _write(tmp_path / "Data" / "Config" / "blocks.xml", "<blocks><block name=\"stone\"/></blocks>")

    _write(tmp_path / "Mods" / "AlphaModlet" / "ModInfo.xml", """<?xml version="1.0" encoding="UTF-8"?>
<xml>
  <Name value="AlphaModlet"/>
  <DisplayName value="Alpha Modlet"/>
  <Version value="1.0.0"/>
  <Author value="Tester"/>
</xml>
""")
    _write(tmp_path / "Mods" / "AlphaModlet" / "Config" / "items.xml", """<config>
  <append xpath="/items"><item name="gunRifle"><property name="Tags" value="gun"/></item></append>
  <csv xpath="/items/item[@name='gunPistol']/property[@name='Tags']/@value" op="add">sidearm</csv>
</config>
""")

    _write(tmp_path / "Mods" / "BetaModlet" / "ModInfo.xml", """<?xml version="1.0" encoding="UTF-8"?>
<xml>
  <ModInfo>
    <Name value="BetaModlet"/>
    <Version value="2.1"/>
  </ModInfo>
</xml>
""")
    _write(tmp_path / "Mods" / "BetaModlet" / "Config" / "items.xml", """<config>
  <setattribute xpath="/items/item[@name='gunRifle']" name="tier">3</setattribute>
</config>
""")
    return tmp_path
