import importlib.util
from pathlib import (
    Path,
)
from types import (
    ModuleType,
)

from layman import (
    config,
)


def load_module(path: Path, module_name: str) -> ModuleType:
    """
    Load a module from the .py file at the given path without affecting
    `sys.path` or `sys.modules`.

    :param path: the file system path to the module file

    :param module_name: the value to assign to the __name__ attribute of the
                        module
    """
    spec = importlib.util.spec_from_file_location(module_name, str(path))
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    assert str(path) == module.__file__
    assert module.__name__ == module_name
    return module


def load_script(script_name: str) -> ModuleType:
    """
    Load one of the scripts in the `scripts` directory of the project. The
    script's main guard is not triggered.
    """
    path = config.project_root / 'scripts' / f'{script_name}.py'
    return load_module(path, script_name)
