"""
Mapping of function handlers to the source files that serve as the entry
points of a bundler build.
"""
from collections.abc import (
    Iterable,
)
import glob
import logging
import os
from pathlib import (
    Path,
)
import re
from typing import (
    Optional,
)

import attrs

from layman.exceptions import (
    ResolutionError,
)
from layman.service import (
    Function,
    Service,
)

log = logging.getLogger(__name__)

#: A logical entry name mapped to the absolute path of its source file
Entries = dict[str, Path]

# handler   = directory stem [extension] ["." export]
# directory = *(segment "/")
# extension = ".js" | ".jsx" | ".ts" | ".tsx"
#
# Segments may contain dots, the stem may not.
_handler_re = re.compile(r'''
    (?P<directory>(?:[^/\n]+/)*)
    (?P<stem>[^./\n]+)
    (?P<extension>\.(?:jsx?|tsx?))?
    (?:\.(?P<export>[^/\n]+))?
''', re.VERBOSE)


@attrs.frozen(kw_only=True)
class Handler:
    directory: str
    stem: str
    extension: Optional[str] = None
    export: Optional[str] = None

    @property
    def base_name(self) -> str:
        return self.stem + (self.extension or '')

    @property
    def name(self) -> str:
        """
        The handler's module path, the part of the handler that names a
        source file, including the directory but without the export.
        """
        return self.directory + self.base_name

    def is_candidate(self, file_name: str) -> bool:
        """
        True if the file with the given name in the handler's directory could
        be the handler's source file. A handler that names an extension only
        matches the file of that exact name, otherwise any file whose name is
        the handler's stem followed by a single extension matches.

        >>> h = parse_handler('handlers/foo.main')
        >>> [h.is_candidate(f) for f in ['foo.js', 'foo.ts', 'foo.test.js', 'foobar.js', 'foo']]
        [True, True, False, False, False]

        >>> h = parse_handler('handlers/foo.ts.main')
        >>> [h.is_candidate(f) for f in ['foo.ts', 'foo.js', 'foo.ts.map']]
        [True, False, False]
        """
        if self.extension is None:
            base_name, _, extension = file_name.rpartition('.')
            return base_name == self.stem and extension != ''
        else:
            return file_name == self.base_name

    def select(self, file_names: Iterable[str], backup_file_type: str) -> str:
        """
        Pick the handler's source file from the given directory listing. If
        more than one file qualifies, the backup file type decides.

        >>> h = parse_handler('handlers/foo.main')
        >>> h.select(['foo.js', 'foo.test.js', 'bar.js'], 'ts')
        'foo.js'

        >>> h.select(['foo.js', 'foo.ts'], 'ts')
        'foo.ts'

        >>> h.select(['bar.js'], 'js')
        Traceback (most recent call last):
        ...
        layman.exceptions.ResolutionError: ('No source file for handler', 'handlers/foo')
        """
        candidates = [f for f in file_names if self.is_candidate(f)]
        if len(candidates) == 1:
            return candidates[0]
        elif candidates:
            return f'{self.base_name}.{backup_file_type}'
        else:
            raise ResolutionError('No source file for handler', self.name)


def parse_handler(handler: str) -> Handler:
    """
    Parse the handler declaration of a function.

    >>> parse_handler('handlers/foo.main')
    Handler(directory='handlers/', stem='foo', extension=None, export='main')

    >>> parse_handler('src/v1.2/foo.tsx.default')
    Handler(directory='src/v1.2/', stem='foo', extension='.tsx', export='default')

    A handler at the root of the service has no directory:

    >>> parse_handler('index.handler')
    Handler(directory='', stem='index', extension=None, export='handler')

    The export is optional:

    >>> parse_handler('handlers/foo').name
    'handlers/foo'

    >>> parse_handler('handlers/')
    Traceback (most recent call last):
    ...
    layman.exceptions.ResolutionError: ('Malformed handler', 'handlers/')

    >>> parse_handler('/abs/foo.main')
    Traceback (most recent call last):
    ...
    layman.exceptions.ResolutionError: ('Malformed handler', '/abs/foo.main')
    """
    match = _handler_re.fullmatch(handler)
    if match is None:
        raise ResolutionError('Malformed handler', handler)
    return Handler(**match.groupdict())


@attrs.frozen(kw_only=True)
class EntryResolver:
    """
    Maps the functions of a service to the source files a bundler needs to
    build in order to discover the dependencies of a given layer.
    """
    root: Path
    backup_file_type: str = 'js'

    def resolve(self, service: Service, resource_id: str) -> Entries:
        entries = {}
        for function in service.layered_functions(resource_id):
            try:
                entries.update(self._function_entries(function))
            except ResolutionError as e:
                log.debug('Skipping function %r: %s', function.name, e)
        log.debug('Entries for %s: %r', resource_id, entries)
        return entries

    def _function_entries(self, function: Function) -> Entries:
        entries = {
            path: (self.root / path).resolve()
            for path in self._expand(function.entries)
        }
        if function.handler is None:
            log.debug('Function %r has no handler', function.name)
            return entries
        handler = parse_handler(function.handler)
        directory = self.root / handler.directory
        try:
            file_names = sorted(os.listdir(directory))
        except OSError as e:
            raise ResolutionError('Cannot list handler directory', str(directory), e)
        file_name = handler.select(file_names, self.backup_file_type)
        entries[handler.name] = (directory / file_name).resolve()
        return entries

    def _expand(self, patterns: Iterable[str]) -> Iterable[str]:
        for pattern in patterns:
            matches = sorted(glob.glob(pattern, root_dir=self.root, recursive=True))
            if not matches:
                log.debug('Entry pattern %r matches no files', pattern)
            yield from matches

