"""
Controller Loader.

Imports controller modules and collects the classes marked with
``@controller``. Sources may be:

- a directory (scanned recursively for ``*.py``, skipping ``_``-prefixed files)
- a single ``.py`` file
- a dotted module or package name (packages are walked recursively)
- an already-imported module
- a controller class
"""

import importlib
import importlib.util
import inspect
import logging
import pkgutil
import sys
from pathlib import Path
from types import ModuleType
from typing import Iterable, List, Union

from .controller.registry import CONTROLLER_MARKER
from .faults import RegistrationFault

logger = logging.getLogger("aerie.loader")

Source = Union[str, Path, ModuleType, type]


def is_controller(obj) -> bool:
    return inspect.isclass(obj) and CONTROLLER_MARKER in obj.__dict__


class ControllerLoader:
    """
    Collects controller classes from modules and directories.

    Classes are returned once each, in the order their sources were
    given and, within a module, in definition order.
    """

    def __init__(self, module_prefix: str = "aerie_controllers"):
        self.module_prefix = module_prefix

    def load(self, sources: Iterable[Source]) -> List[type]:
        discovered: List[type] = []

        for source in sources:
            for cls in self._load_source(source):
                if cls not in discovered:
                    discovered.append(cls)

        logger.info("Loaded %d controller(s)", len(discovered))
        return discovered

    def _load_source(self, source: Source) -> List[type]:
        if inspect.isclass(source):
            if not is_controller(source):
                raise RegistrationFault(
                    f"{source.__qualname__} is not a controller, decorate it with @controller",
                    code="NOT_A_CONTROLLER",
                )
            return [source]

        if isinstance(source, ModuleType):
            return self._scan_module(source)

        path = Path(source)
        if path.is_dir():
            return self._load_directory(path)
        if path.suffix == ".py":
            if not path.is_file():
                raise RegistrationFault(f"Controller file not found: {path}", code="CONTROLLER_SOURCE_MISSING")
            return self._scan_module(self._import_file(path, path.parent))

        return self._load_package(str(source))

    # ------------------------------------------------------------------
    # Files and directories
    # ------------------------------------------------------------------

    def _load_directory(self, root: Path) -> List[type]:
        found: List[type] = []
        for file in sorted(root.rglob("*.py")):
            relative = file.relative_to(root)
            if any(part.startswith(("_", ".")) for part in relative.parts):
                continue
            found.extend(self._scan_module(self._import_file(file, root)))
        return found

    def _import_file(self, file: Path, root: Path) -> ModuleType:
        relative = file.resolve().relative_to(root.resolve()).with_suffix("")
        root_token = root.resolve().name.replace("-", "_") or "root"
        name = ".".join([self.module_prefix, root_token, *relative.parts])

        module = sys.modules.get(name)
        if module is not None and getattr(module, "__file__", None) == str(file.resolve()):
            return module

        spec = importlib.util.spec_from_file_location(name, file.resolve())
        if spec is None or spec.loader is None:
            raise RegistrationFault(f"Cannot import controller file {file}", code="CONTROLLER_IMPORT_FAILED")

        module = importlib.util.module_from_spec(spec)
        sys.modules[name] = module
        try:
            spec.loader.exec_module(module)
        except Exception as exc:
            del sys.modules[name]
            raise RegistrationFault(
                f"Failed to import controller file {file}: {exc}",
                code="CONTROLLER_IMPORT_FAILED",
            ) from exc

        logger.debug("Imported controller module %s from %s", name, file)
        return module

    # ------------------------------------------------------------------
    # Packages
    # ------------------------------------------------------------------

    def _load_package(self, name: str) -> List[type]:
        try:
            module = importlib.import_module(name)
        except ImportError as exc:
            raise RegistrationFault(
                f"Cannot import controller module '{name}': {exc}",
                code="CONTROLLER_IMPORT_FAILED",
            ) from exc

        found = self._scan_module(module)
        if hasattr(module, "__path__"):
            for info in pkgutil.walk_packages(module.__path__, module.__name__ + "."):
                if info.name.rsplit(".", 1)[-1].startswith("_"):
                    continue
                found.extend(self._scan_module(importlib.import_module(info.name)))
        return found

    def _scan_module(self, module: ModuleType) -> List[type]:
        return [
            obj for obj in vars(module).values()
            if is_controller(obj) and obj.__module__ == module.__name__
        ]
