"""
Modlet Finder for 7 Days to Die Modlet Patcher

This class searches for ModInfo.xml files and forms an ordered listing of modlets to be
applied. The order of the listing is the merge priority: paths are taken in the order
given, and modlets found under a parent folder are taken in sorted folder order, the
way the game loads its Mods folder.

Classes that call this class:
    - modletPatcher.py (main script)

Methods called from this class:
    - find_modlets: Called from the main script
    - get_summary: Called from the main script

Visual map:
[modlet_finder.py] -> [File System]
                   <- [modletPatcher.py]
"""

import os
from typing import Dict, List, Optional
from lxml import etree
from .configuration import MODINFO_FILE, SKIP_DIRECTORIES, get_config, versioned
from .mc_logger import debug, error, warning

DESCRIPTOR_FIELDS = ['Name', 'DisplayName', 'Description', 'Author', 'Version', 'Website']


@versioned("1.0.0")
class ModletFinder:
    def __init__(self, source_paths: List[str], additional_skip_dirs: Optional[List[str]] = None):
        self.source_paths = [os.path.abspath(path) for path in source_paths]
        self.skip_directories = set(SKIP_DIRECTORIES)
        configured = get_config('ADDITIONAL_SKIP_DIRECTORIES', '')
        self.skip_directories.update(d.strip() for d in configured.split(',') if d.strip())
        if additional_skip_dirs:
            self.skip_directories.update(additional_skip_dirs)
        self.modlets: List[Dict[str, str]] = []

    def find_modlets(self) -> List[Dict[str, str]]:
        """
        Search the source paths for ModInfo.xml files.

        Returns:
            List[Dict[str, str]]: Modlet descriptors in priority order
        """
        modlets = []
        seen = set()
        for source_path in self.source_paths:
            if not os.path.isdir(source_path):
                warning(f"[ModletFinder] Not a directory, skipping: {source_path}")
                continue
            for root, dirs, files in os.walk(source_path):
                # Remove directories to skip and keep the walk in load order
                dirs[:] = sorted(d for d in dirs if d not in self.skip_directories)

                modinfo_name = self._find_modinfo(files)
                if modinfo_name is None or root in seen:
                    continue
                seen.add(root)
                # A modlet does not contain other modlets
                dirs[:] = []

                modinfo_path = os.path.join(root, modinfo_name)
                debug(f"[ModletFinder] Found {modinfo_name} at: {modinfo_path}")
                modlet_info = self._parse_modinfo(modinfo_path)
                if modlet_info:
                    modlets.append(modlet_info)

        debug(f"[ModletFinder] Total modlets found: {len(modlets)}")
        self.modlets = modlets
        return modlets

    def _find_modinfo(self, files: List[str]) -> Optional[str]:
        for file_name in files:
            if file_name.lower() == MODINFO_FILE.lower():
                return file_name
        return None

    def _parse_modinfo(self, modinfo_path: str) -> Dict[str, str]:
        """
        Parse a ModInfo.xml file into a plain key/value record.

        Both descriptor layouts are accepted: fields directly under the root, or
        nested in a <ModInfo> element.

        Args:
            modinfo_path (str): Path to the ModInfo.xml file

        Returns:
            Dict[str, str]: Modlet information, empty when the file cannot be parsed
        """
        try:
            root = etree.parse(modinfo_path).getroot()
        except (etree.XMLSyntaxError, OSError) as e:
            error(f"[ModletFinder] Error parsing {MODINFO_FILE} at {modinfo_path}: {str(e)}")
            return {}

        modlet_path = os.path.dirname(modinfo_path)
        modlet_info = {}
        for field in DESCRIPTOR_FIELDS:
            element = root.find(field)
            if element is None:
                element = root.find(f'ModInfo/{field}')
            modlet_info[field.lower()] = element.get('value', '') if element is not None else ''

        if not modlet_info['name']:
            modlet_info['name'] = os.path.basename(modlet_path)
            warning(f"[ModletFinder] {modinfo_path} has no Name, using folder name '{modlet_info['name']}'")
        modlet_info['path'] = modlet_path

        debug(f"[ModletFinder] Parsed {modinfo_path}: {modlet_info}")
        return modlet_info

    def get_summary(self) -> str:
        """
        Return a summary of the modlet search results.

        Returns:
            str: A summary string
        """
        return f"[ModletFinder] Found {len(self.modlets)} modlets in {', '.join(self.source_paths)}"
