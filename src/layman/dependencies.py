from collections.abc import (
    Iterable,
    Mapping,
    Sequence,
)
import json
import logging
from pathlib import (
    Path,
)
from typing import (
    Optional,
    Self,
)

import attrs

from layman import (
    require,
)
from layman.collections import (
    OrderedSet,
    unique,
)
from layman.exceptions import (
    ConfigurationError,
)
from layman.json import (
    json_dict,
)
from layman.options import (
    WebpackConfig,
)
from layman.service import (
    Function,
)
from layman.types import (
    AnyJSON,
)

log = logging.getLogger(__name__)


@attrs.frozen(kw_only=True)
class Manifest:
    """
    The declared dependencies of a project, split into a production and a
    development tier. The manifest only qualifies the names of the packages
    to be installed, it never decides which packages are installed.
    """
    dependencies: Mapping[str, str] = attrs.field(factory=dict)
    dev_dependencies: Mapping[str, str] = attrs.field(factory=dict)

    @classmethod
    def from_json(cls, json: AnyJSON) -> Self:
        """
        >>> Manifest.from_json(['lodash'])
        Traceback (most recent call last):
        ...
        layman.exceptions.ConfigurationError: ('Expected a JSON object', 'package.json', ['lodash'])
        """
        try:
            json = json_dict(json, 'package.json')
        except TypeError as e:
            raise ConfigurationError(*e.args)

        def tier(key: str) -> Mapping[str, str]:
            value = json.get(key) or {}
            require(isinstance(value, dict),
                    'Invalid dependency manifest section', key, value,
                    exception=ConfigurationError)
            return value

        return cls(dependencies=tier('dependencies'),
                   dev_dependencies=tier('devDependencies'))

    @classmethod
    def load(cls, path: Path) -> Self:
        log.debug('Loading dependency manifest from %s', path)
        with open(path) as f:
            return cls.from_json(json.load(f))

    def version(self, name: str) -> Optional[str]:
        return self.dependencies.get(name) or self.dev_dependencies.get(name) or None

    def qualify(self, name: str) -> str:
        """
        The install specifier for the package of the given name, qualified
        with the version range declared for it, if any.

        >>> m = Manifest(dependencies={'lodash': '^4.0.0'},
        ...              dev_dependencies={'lodash': '^3.0.0', 'jest': '29'})
        >>> m.qualify('lodash'), m.qualify('jest'), m.qualify('left-pad')
        ('lodash@^4.0.0', 'jest@29', 'left-pad')
        """
        version = self.version(name)
        return name if version is None else f'{name}@{version}'


@attrs.frozen(kw_only=True)
class ModuleOverrides:
    """
    Package names to be added to or removed from the discovered ones.
    Exclusion always wins.
    """
    include: Sequence[str] = ()
    exclude: Sequence[str] = ()

    @classmethod
    def create(cls,
               webpack: Optional[WebpackConfig],
               functions: Iterable[Function]
               ) -> Self:
        """
        Combine the layer-level overrides with those of the given functions.

        >>> f1 = Function(name='f1', handler=None, force_include=['pg'], force_exclude=['aws-sdk'])
        >>> f2 = Function(name='f2', handler=None, force_include=['pg', 'knex'])
        >>> ModuleOverrides.create(WebpackConfig(force_exclude=['knex']), [f1, f2])
        ModuleOverrides(include=('pg', 'knex'), exclude=('knex', 'aws-sdk'))
        """
        include, exclude = [], []
        if webpack is not None:
            include.extend(webpack.force_include)
            exclude.extend(webpack.force_exclude)
        for function in functions:
            include.extend(function.force_include)
            exclude.extend(function.force_exclude)
        return cls(include=tuple(unique(include)), exclude=tuple(unique(exclude)))


@attrs.frozen(kw_only=True)
class ModuleSetMerger:
    manifest: Manifest

    def merge(self,
              discovered: Iterable[str],
              overrides: ModuleOverrides
              ) -> OrderedSet[str]:
        """
        >>> merger = ModuleSetMerger(manifest=Manifest())
        >>> merger.merge(['a', 'b'], ModuleOverrides(include=['c', 'd'], exclude=['b', 'c']))
        OrderedSet(['a', 'd'])
        """
        names = OrderedSet(discovered)
        names.update(overrides.include)
        names.difference_update(overrides.exclude)
        return names

    def install_list(self,
                     discovered: Iterable[str],
                     overrides: ModuleOverrides
                     ) -> list[str]:
        """
        The install specifiers of the packages that make up a layer, in the
        order in which the packages were discovered or included.

        >>> merger = ModuleSetMerger(manifest=Manifest(dependencies={'lodash': '^4.0.0'}))
        >>> merger.install_list(['lodash', 'left-pad'], ModuleOverrides())
        ['lodash@^4.0.0', 'left-pad']
        """
        names = self.merge(discovered, overrides)
        packages = list(map(self.manifest.qualify, names))
        log.debug('Packages to install: %r', packages)
        return packages
