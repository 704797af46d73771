"""
File Locator for 7 Days to Die Modlet Patcher

This class finds the XML files on both sides of a merge: the game's base configuration
files and the patch files in each modlet's Config folder. Files are keyed by their
path relative to the Config folder, lower-cased, so items.xml in a modlet pairs up with
Data/Config/items.xml in the game.

Classes that call this class:
    - modletPatcher.py (main script)

Methods called from this class:
    - locate_base_files: Called with the game's Data/Config folder
    - locate_patch_files: Called once per modlet
    - get_summary: Called from the main script

Visual map:
[file_locator.py] -> [File System]
                  <- [modletPatcher.py]
"""

import os
from typing import Dict, List, Optional
from .configuration import MODINFO_FILE, MODLET_CONFIG_DIR, SKIP_DIRECTORIES, versioned
from .mc_logger import debug, warning


def config_key(relative_path: str) -> str:
    return relative_path.replace(os.sep, '/').lower()


@versioned("1.0.0")
class FileLocator:
    def __init__(self):
        self.base_files: Dict[str, str] = {}
        self.patch_files: List[str] = []

    def locate_files(self, path: str, file_type: str = '.xml', exclude: Optional[List[str]] = None) -> List[str]:
        """
        Locate files of a specific type below a directory.

        Args:
            path (str): The directory to search
            file_type (str): File suffix to look for
            exclude (List[str], optional): File names to leave out

        Returns:
            List[str]: Matching file paths, sorted
        """
        excluded = {name.lower() for name in (exclude or [])}
        found_files = []
        for root, dirs, files in os.walk(path):
            dirs[:] = sorted(d for d in dirs if d not in SKIP_DIRECTORIES)
            for file in sorted(files):
                if file.lower().endswith(file_type) and file.lower() not in excluded:
                    found_files.append(os.path.join(root, file))
        return found_files

    def _index(self, path: str, exclude: Optional[List[str]] = None) -> Dict[str, str]:
        return {
            config_key(os.path.relpath(file_path, path)): file_path
            for file_path in self.locate_files(path, '.xml', exclude)
        }

    def locate_base_files(self, game_config_path: str) -> Dict[str, str]:
        """
        Index the game's configuration files.

        Returns:
            Dict[str, str]: Relative key (e.g. 'items.xml', 'xui/windows.xml') -> file path
        """
        self.base_files = self._index(game_config_path)
        debug(f"[FileLocator] Found {len(self.base_files)} base files in {game_config_path}")
        return self.base_files

    def locate_patch_files(self, modlet_path: str) -> Dict[str, str]:
        """
        Index the patch files of one modlet.

        Returns:
            Dict[str, str]: Relative key -> file path, in sorted order
        """
        config_path = os.path.join(modlet_path, MODLET_CONFIG_DIR)
        if not os.path.isdir(config_path):
            warning(f"[FileLocator] Modlet has no {MODLET_CONFIG_DIR} folder: {modlet_path}")
            return {}
        patches = self._index(config_path, exclude=[MODINFO_FILE])
        self.patch_files.extend(patches.values())
        return patches

    def get_summary(self) -> str:
        """
        Returns a summary of the file locating results.

        Returns:
            str: A summary string
        """
        return f"[FileLocator] Found {len(self.base_files)} base XML files and {len(self.patch_files)} patch files"
