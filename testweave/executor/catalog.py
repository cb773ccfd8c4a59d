"""
Test Catalog.

Discovers test modules on disk, infers their category and resolves a unit's
locator to a fresh callable for every invocation.
"""

import fnmatch
import importlib.util
import re
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Union

from loguru import logger

from testweave.executor.errors import MalformedUnitError
from testweave.executor.types import TestUnit, UnitCategory

DEFAULT_PATTERNS = ("test_*.py", "*_test.py")
ENTRY_POINTS = ("run", "main", "test")

_module_counter = 0


def infer_category(path: Union[str, Path]) -> UnitCategory:
    """
    Infer a unit's category from its path.

    A ``ui``/``api`` directory segment wins; otherwise a ``ui``/``api`` token in
    the file name (``login_ui_test.py``, ``test_users.api.py``) is used.
    """
    path = Path(path)
    parts = [p.lower() for p in path.parts[:-1]]
    for category in (UnitCategory.UI, UnitCategory.API):
        if category.value in parts:
            return category

    tokens = path.stem.lower().replace(".", "_").split("_")
    for category in (UnitCategory.UI, UnitCategory.API):
        if category.value in tokens:
            return category
    return UnitCategory.UNKNOWN


class TestCatalog:
    """
    Supplies test units to the scheduler.

    Units discovered from disk carry their file path as locator. ``load``
    imports that file into a brand new module object on every call without
    registering it in ``sys.modules``, so each attempt runs freshly loaded
    code. Units registered with ``from_factories`` call their factory instead.

    Example:
        catalog = TestCatalog("tests/e2e")
        units = catalog.discover(category=UnitCategory.API)
        run = catalog.load(units[0])
    """

    __test__ = False

    def __init__(
        self,
        test_dir: Union[str, Path, None] = None,
        patterns: Sequence[str] = DEFAULT_PATTERNS,
    ) -> None:
        self.test_dir = Path(test_dir) if test_dir is not None else None
        self.patterns = tuple(patterns)
        self._factories: Dict[str, Callable[[], Callable[..., Any]]] = {}

    def discover(
        self, category: Optional[Union[UnitCategory, str]] = None
    ) -> List[TestUnit]:
        """
        Recursively discover test modules under ``test_dir``.

        Args:
            category: Only return units of this category.

        Returns:
            Units sorted by path.
        """
        if self.test_dir is None:
            return []
        if not self.test_dir.is_dir():
            logger.warning(f"Test directory does not exist: {self.test_dir}")
            return []

        wanted = UnitCategory(category) if category is not None else None

        files = set()
        for pattern in self.patterns:
            files.update(p for p in self.test_dir.rglob(pattern) if p.is_file())

        units = []
        for path in sorted(files):
            unit_category = infer_category(path.relative_to(self.test_dir))
            if wanted is not None and unit_category != wanted:
                continue
            units.append(TestUnit(name=path.stem, locator=path, category=unit_category))

        logger.info(f"Discovered {len(units)} test(s) in {self.test_dir}")
        return units

    def from_factories(
        self,
        factories: Dict[str, Callable[[], Callable[..., Any]]],
        category: UnitCategory = UnitCategory.UNKNOWN,
    ) -> List[TestUnit]:
        """
        Register in-memory units built by factories.

        Each factory is called once per attempt and must return the test callable.
        """
        units = []
        for name, factory in factories.items():
            self._factories[name] = factory
            units.append(TestUnit(name=name, locator=factory, category=category))
        return units

    @staticmethod
    def from_callables(
        tests: Iterable[Callable[..., Any]],
        category: UnitCategory = UnitCategory.UNKNOWN,
    ) -> List[TestUnit]:
        """Wrap plain test callables as units."""
        units = []
        for i, func in enumerate(tests):
            name = getattr(func, "__name__", f"test_{i}")
            units.append(TestUnit(name=name, locator=func, category=category))
        return units

    def load(self, unit: TestUnit) -> Callable[..., Any]:
        """
        Resolve a unit's locator to a fresh callable.

        Raises:
            MalformedUnitError: If the locator does not resolve to an invocable.
        """
        locator = unit.locator

        if isinstance(locator, (str, Path)):
            return self._load_module(unit, Path(locator))

        if callable(locator):
            if self._factories.get(unit.name) is locator:
                try:
                    func = locator()
                except Exception as e:
                    raise MalformedUnitError(unit.name, f"factory failed: {e}", cause=e)
                if not callable(func):
                    raise MalformedUnitError(
                        unit.name, f"factory returned {type(func).__name__}, not a callable"
                    )
                return func
            return locator

        raise MalformedUnitError(
            unit.name, f"unsupported locator type {type(locator).__name__}"
        )

    def _load_module(self, unit: TestUnit, path: Path) -> Callable[..., Any]:
        global _module_counter

        if not path.is_file():
            raise MalformedUnitError(unit.name, f"test file not found: {path}")

        _module_counter += 1
        module_name = f"testweave_unit_{path.stem}_{_module_counter}"
        spec = importlib.util.spec_from_file_location(module_name, path)
        if spec is None or spec.loader is None:
            raise MalformedUnitError(unit.name, f"cannot import {path}")

        module = importlib.util.module_from_spec(spec)
        try:
            spec.loader.exec_module(module)
        except Exception as e:
            raise MalformedUnitError(unit.name, f"import failed: {e}", cause=e)

        for attr in ENTRY_POINTS:
            func = getattr(module, attr, None)
            if callable(func):
                return func

        raise MalformedUnitError(
            unit.name,
            f"test module must define one of: {', '.join(ENTRY_POINTS)}",
        )


def filter_units(
    units: Iterable[TestUnit],
    include: Sequence[Union[UnitCategory, str]] = (),
    exclude: Sequence[str] = (),
    grep: Optional[str] = None,
) -> List[TestUnit]:
    """
    Filter units by category, excluded name patterns and a name regex.

    Args:
        units: Units to filter.
        include: Categories to keep; all categories when empty.
        exclude: Glob patterns matched against the unit name or file.
        grep: Regular expression a unit name must match.
    """
    categories = {UnitCategory(c) for c in include}
    pattern = re.compile(grep) if grep else None

    selected = []
    for unit in units:
        if categories and unit.category not in categories:
            continue
        if any(
            fnmatch.fnmatch(unit.name, glob) or (unit.file and fnmatch.fnmatch(unit.file, glob))
            for glob in exclude
        ):
            continue
        if pattern is not None and not pattern.search(unit.name):
            continue
        selected.append(unit)
    return selected
