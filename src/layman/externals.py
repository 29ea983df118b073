"""
Discovery of the external modules, the dependencies that a build deliberately
leaves unresolved so that they can be supplied at runtime by a layer.
"""
import logging
import re
from typing import (
    Optional,
)

import attrs

from layman.bundler import (
    BuildConfig,
    Bundler,
    Module,
    ModuleGraph,
)
from layman.collections import (
    OrderedSet,
)

log = logging.getLogger(__name__)

# As reported by `require('module').builtinModules` in Node.js 20, excluding
# subpath modules like `fs/promises` since only the first segment of a request
# is checked
builtin_modules = frozenset([
    '_http_agent', '_http_client', '_http_common', '_http_incoming',
    '_http_outgoing', '_http_server', '_stream_duplex', '_stream_passthrough',
    '_stream_readable', '_stream_transform', '_stream_wrap', '_stream_writable',
    '_tls_common', '_tls_wrap', 'assert', 'async_hooks', 'buffer',
    'child_process', 'cluster', 'console', 'constants', 'crypto', 'dgram',
    'diagnostics_channel', 'dns', 'domain', 'events', 'fs', 'http', 'http2',
    'https', 'inspector', 'module', 'net', 'os', 'path', 'perf_hooks',
    'process', 'punycode', 'querystring', 'readline', 'repl', 'stream',
    'string_decoder', 'sys', 'timers', 'tls', 'trace_events', 'tty', 'url',
    'util', 'v8', 'vm', 'wasi', 'worker_threads', 'zlib'
])


def is_builtin_module(name: str) -> bool:
    """
    >>> is_builtin_module('fs'), is_builtin_module('node:test')
    (True, True)

    >>> is_builtin_module('lodash'), is_builtin_module('@aws-sdk/client-s3')
    (False, False)
    """
    return name.startswith('node:') or name in builtin_modules


# identifier = "external " [type " "] '"' request '"'
#
# webpack 4 omits the type, webpack 5 includes it, e.g. `commonjs`.
_external_re = re.compile(r'external (?:[\w-]+ )?"(.*)"')


def external_request(identifier: str) -> Optional[str]:
    """
    The request of an external module, or None if the given module identifier
    doesn't denote an external module.

    >>> external_request('external "lodash/fp"')
    'lodash/fp'

    >>> external_request('external commonjs "@aws-sdk/client-s3"')
    '@aws-sdk/client-s3'

    >>> external_request('/src/handlers/foo.js') is None
    True
    """
    match = _external_re.fullmatch(identifier)
    return None if match is None else match[1]


def external_module_name(request: str) -> str:
    """
    The name of the package that satisfies the given request. For packages in
    a namespace that's the first two segments of the request, otherwise just
    the first.

    >>> external_module_name('lodash')
    'lodash'

    >>> external_module_name('pkg/sub/path')
    'pkg'

    >>> external_module_name('@scope/pkg/sub')
    '@scope/pkg'

    A namespace without a package is returned as is:

    >>> external_module_name('@scope')
    '@scope'
    """
    components = request.split('/')
    main = components[0]
    if main.startswith('@') and len(components) > 1:
        return f'{main}/{components[1]}'
    else:
        return main


def is_external_module(module: Module) -> bool:
    """
    >>> is_external_module(Module(identifier='external "aws-sdk"'))
    True

    >>> is_external_module(Module(identifier='external "fs/promises"'))
    False

    >>> is_external_module(Module(identifier='./src/index.js'))
    False
    """
    request = external_request(module.identifier)
    return request is not None and not is_builtin_module(external_module_name(request))


def external_module_names(graph: ModuleGraph) -> OrderedSet[str]:
    """
    The names of all external modules in the given module graph.

    >>> from layman.bundler import Chunk
    >>> def chunk(*identifiers):
    ...     return Chunk(modules=[Module(identifier=i) for i in identifiers])
    >>> external_module_names(ModuleGraph(chunks=[
    ...     chunk('external "@scope/pkg/a"', 'external "lodash"', './x.js'),
    ...     Chunk(modules=None),
    ...     chunk('external "@scope/pkg/b"', 'external "path"')
    ... ]))
    OrderedSet(['@scope/pkg', 'lodash'])

    >>> external_module_names(ModuleGraph(chunks=None))
    OrderedSet([])
    """
    names = OrderedSet()
    for chunk in graph.chunks or ():
        for module in chunk.modules or ():
            if is_external_module(module):
                names.add(external_module_name(external_request(module.identifier)))
    return names


@attrs.frozen(kw_only=True)
class DependencyDiscoverer:
    bundler: Bundler

    def discover(self, build: BuildConfig) -> OrderedSet[str]:
        """
        Build the given entries and return the names of the external modules
        reached by them. Build failures propagate.
        """
        if not build.entries:
            log.info('No entries to build in %s', build.root)
            return OrderedSet()
        graph = self.bundler.compile(build)
        names = external_module_names(graph)
        log.debug('Discovered external modules: %r', list(names))
        return names
