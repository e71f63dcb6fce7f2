"""Regression tests for importing the data layer without the web stack installed."""

from __future__ import annotations

import importlib
import sys
import types
import unittest
from pathlib import Path


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


class CLIImportTests(unittest.TestCase):
    def tearDown(self) -> None:
        self._clear_roster_modules()

    @staticmethod
    def _clear_roster_modules() -> None:
        for name in [m for m in list(sys.modules.keys()) if m == "roster" or m.startswith("roster.")]:
            sys.modules.pop(name, None)

    def test_import_database_without_web_packages(self) -> None:
        """Importing roster.database should succeed even if fastapi and httpx are missing."""

        self._clear_roster_modules()

        saved: dict[str, types.ModuleType | None] = {}
        for name in ("fastapi", "httpx"):
            saved[name] = sys.modules.pop(name, None)
            sys.modules[name] = None  # type: ignore[assignment]
        try:
            database_module = importlib.import_module("roster.database")
            self.assertTrue(hasattr(database_module, "UserStore"))
            self.assertTrue(hasattr(database_module, "CompanyStore"))

            package = sys.modules.get("roster")
            self.assertIsNotNone(package)
            self.assertTrue(hasattr(package, "CompanyStore"))
        finally:
            for name, module in saved.items():
                sys.modules.pop(name, None)
                if module is not None:
                    sys.modules[name] = module


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
