import json
import os
from pathlib import (
    Path,
)
import tempfile

from layman.types import (
    AnyJSON,
)


def write_json_atomically(path: Path, doc: AnyJSON, mode: int = 0o644):
    """
    Write the given JSON document to a file such that readers of the file
    either see its previous content or the complete new one.

    >>> from tempfile import TemporaryDirectory
    >>> with TemporaryDirectory() as d:
    ...     p = Path(d) / 'template.json'
    ...     write_json_atomically(p, {'Resources': {}})
    ...     p.read_text(), os.listdir(d)
    ('{\\n    "Resources": {}\\n}\\n', ['template.json'])
    """
    fd, temp_path = tempfile.mkstemp(dir=path.parent, prefix=path.name + '.')
    try:
        with os.fdopen(fd, 'w') as f:
            json.dump(doc, f, indent=4)
            f.write('\n')
        os.chmod(temp_path, mode)
        os.rename(temp_path, path)
    except BaseException:
        os.unlink(temp_path)
        raise
