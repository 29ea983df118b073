"""
The interface to the bundler that compiles the entries of a layer into a
module graph, and an implementation of that interface for webpack.
"""
from abc import (
    ABCMeta,
    abstractmethod,
)
from collections.abc import (
    Mapping,
    Sequence,
)
import json
import logging
from pathlib import (
    Path,
)
import subprocess
import tempfile
from typing import (
    Optional,
    Self,
)

import attrs

from layman import (
    config,
)
from layman.exceptions import (
    BuildError,
)
from layman.types import (
    JSON,
)

log = logging.getLogger(__name__)


@attrs.frozen(kw_only=True)
class BuildConfig:
    """
    Everything needed for a single bundler run. Every discovery gets its own
    instance, so concurrent discoveries don't share any state.
    """
    #: The service root, the working directory of the build
    root: Path

    #: The location of the webpack configuration, relative to the root
    config_path: Path

    #: Replaces the entries of the webpack configuration
    entries: Mapping[str, Path]

    #: Whether to set the packaging label marker that webpack configurations
    #: may consult to alter their label output. The marker is only visible to
    #: the build it is passed to.
    packaging_labels: bool = True

    def entry_json(self) -> dict[str, str]:
        return {name: str(path) for name, path in self.entries.items()}


@attrs.frozen(kw_only=True)
class Module:
    identifier: str


@attrs.frozen(kw_only=True)
class Chunk:
    #: None if the bundler didn't report the modules of this chunk
    modules: Optional[Sequence[Module]]


@attrs.frozen(kw_only=True)
class ModuleGraph:
    #: None if the bundler didn't report any chunks
    chunks: Optional[Sequence[Chunk]]

    @classmethod
    def from_stats(cls, stats: JSON) -> Self:
        """
        Read the module graph from the JSON representation of webpack's build
        statistics.

        >>> g = ModuleGraph.from_stats({
        ...     'chunks': [
        ...         {'modules': [{'identifier': 'external "lodash"'}]},
        ...         {}
        ...     ]
        ... })
        >>> [c.modules for c in g.chunks]
        [(Module(identifier='external "lodash"'),), None]

        >>> ModuleGraph.from_stats({})
        ModuleGraph(chunks=None)
        """
        chunks = stats.get('chunks')
        if chunks is None:
            return cls(chunks=None)
        else:
            return cls(chunks=tuple(
                Chunk(modules=None if modules is None else tuple(
                    Module(identifier=module['identifier'])
                    for module in modules
                ))
                for modules in (chunk.get('modules') for chunk in chunks)
            ))


class Bundler(metaclass=ABCMeta):

    @abstractmethod
    def compile(self, build: BuildConfig) -> ModuleGraph:
        """
        Run a build to completion and return the resulting module graph.

        :raises BuildError: if the build fails
        """
        raise NotImplementedError


# Loads the webpack configuration, which may export an object, a function or
# a promise, replaces its entries and writes the build statistics to a file.
#
# Arguments: config path, entries as JSON, stats path, packaging labels (0/1)
#
_driver = '''
const path = require('path');
const [configPath, entries, statsPath, labels] = process.argv.slice(1);
const webpack = require(require.resolve('webpack', {paths: [process.cwd()]}));
if (labels === '1') {
  global['PACKAGING_LABELS'] = true;
}
(async () => {
  let config = require(path.resolve(configPath));
  if (typeof config === 'function') {
    config = config();
  }
  config = await config;
  config.entry = JSON.parse(entries);
  const stats = await new Promise((resolve, reject) => {
    webpack(config).run((err, stats) => err ? reject(err) : resolve(stats));
  });
  const json = stats.toJson({all: false, errors: true, chunks: true, chunkModules: true});
  require('fs').writeFileSync(statsPath, JSON.stringify(json));
})().catch(err => {
  console.error(err.stack || err);
  process.exit(2);
});
'''


@attrs.frozen(kw_only=True)
class WebpackBundler(Bundler):
    node: str = attrs.field(factory=lambda: config.node)

    def compile(self, build: BuildConfig) -> ModuleGraph:
        with tempfile.TemporaryDirectory() as temp_dir:
            stats_path = Path(temp_dir) / 'stats.json'
            args = [
                self.node,
                '-e',
                _driver,
                str(build.config_path),
                json.dumps(build.entry_json()),
                str(stats_path),
                '1' if build.packaging_labels else '0'
            ]
            log.info('Running webpack with %s for %i entries',
                     build.config_path, len(build.entries))
            process = subprocess.run(args,
                                     cwd=build.root,
                                     stderr=subprocess.PIPE,
                                     text=True,
                                     shell=False)
            if process.returncode != 0:
                raise BuildError(f'webpack exited with status {process.returncode}',
                                 process.stderr.splitlines())
            with open(stats_path) as f:
                stats = json.load(f)
        errors = stats.get('errors') or []
        if errors:
            raise BuildError('webpack failed to compile',
                             list(map(self._error_message, errors)))
        return ModuleGraph.from_stats(stats)

    def _error_message(self, error) -> str:
        # webpack 5 reports errors as objects, webpack 4 as strings
        return error['message'] if isinstance(error, dict) else str(error)
