from contextlib import (
    AbstractContextManager,
)
import json
import os
from pathlib import (
    Path,
)
import tempfile
from typing import (
    Optional,
)
from unittest import (
    TestCase,
)
import warnings

import layman
from layman.logging import (
    configure_test_logging,
    get_test_logger,
)
from layman.types import (
    AnyJSON,
)

log = get_test_logger(__name__)

package_dir = Path(layman.__file__).parent


# noinspection PyPep8Naming
def setUpModule():
    configure_test_logging(log)


class LaymanTestCase(TestCase):
    _catch_warnings: Optional[AbstractContextManager]
    _caught_warnings: list[warnings.WarningMessage]

    @classmethod
    def setUpClass(cls) -> None:
        super().setUpClass()
        catch_warnings = warnings.catch_warnings(record=True)
        # Use tuple assignment to modify state atomically
        cls._catch_warnings, cls._caught_warnings = catch_warnings, catch_warnings.__enter__()
        warnings.simplefilter('always')

    @classmethod
    def tearDownClass(cls) -> None:
        # Unset state atomically
        catch_warnings, caught_warnings = cls._catch_warnings, cls._caught_warnings
        cls._catch_warnings, cls._caught_warnings = None, None
        catch_warnings.__exit__(None, None, None)
        # Only warnings caused by our own code are considered
        unexpected = [
            str(w.message)
            for w in caught_warnings
            if Path(w.filename).is_relative_to(package_dir)
        ]
        assert not unexpected, unexpected
        super().tearDownClass()


class ProjectTestCase(LaymanTestCase):
    """
    Provides a scratch service root for each test.
    """
    root: Path

    def setUp(self) -> None:
        super().setUp()
        temp_dir = tempfile.TemporaryDirectory()
        self.addCleanup(temp_dir.cleanup)
        self.root = Path(temp_dir.name).resolve()

    def touch(self, *paths: str, content: str = '') -> None:
        for path in paths:
            path = self.root / path
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content)

    def write_json(self, path: str, doc: AnyJSON) -> None:
        self.touch(path, content=json.dumps(doc))

    def listdir(self, path: str) -> list[str]:
        return sorted(os.listdir(self.root / path))
