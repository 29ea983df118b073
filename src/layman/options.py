"""
Options recognized in the ``custom.layerConfig`` section of a service
descriptor. The section is parsed once, at the entry point of each lifecycle
hook, into the frozen structs defined here.
"""
from collections.abc import (
    Sequence,
)
from enum import (
    Enum,
)
import logging
from pathlib import (
    PurePosixPath,
)
from typing import (
    Any,
    Optional,
    Self,
)

import attrs

from layman.exceptions import (
    ConfigurationError,
)
from layman.json import (
    json_dict,
    json_str_list,
)
from layman.types import (
    AnyJSON,
    JSON,
)

log = logging.getLogger(__name__)


class Packager(Enum):
    npm = 'npm'
    yarn = 'yarn'

    @property
    def lockfile(self) -> str:
        return {
            Packager.npm: 'package-lock.json',
            Packager.yarn: 'yarn.lock'
        }[self]

    def install_command(self) -> list[str]:
        """
        The command that installs everything declared in the manifest in the
        current directory.

        >>> Packager.yarn.install_command()
        ['yarn', 'install']
        """
        return [self.value, 'install']

    def add_command(self, packages: Sequence[str]) -> list[str]:
        """
        The command that installs the given packages in the current directory.

        >>> Packager.npm.add_command(['lodash@^4.0.0', 'left-pad'])
        ['npm', 'install', 'lodash@^4.0.0', 'left-pad']

        >>> Packager.yarn.add_command(['left-pad'])
        ['yarn', 'add', 'left-pad']
        """
        verb = 'install' if self is Packager.npm else 'add'
        return [self.value, verb, *packages]


def _option(json: JSON, key: str, type_: type, default: Any, *path: str) -> Any:
    value = json.get(key, default)
    if not isinstance(value, type_):
        raise ConfigurationError('Invalid type of option', '.'.join((*path, key)), value)
    return value


def _warn_unknown(json: JSON, known: Sequence[str], *path: str):
    for key in json.keys() - set(known):
        log.warning('Ignoring unknown option %r', '.'.join((*path, key)))


@attrs.frozen(kw_only=True)
class WebpackConfig:
    config_path: PurePosixPath = PurePosixPath('webpack.config.js')
    discover_modules: bool = True
    backup_file_type: str = 'js'
    force_include: Sequence[str] = ()
    force_exclude: Sequence[str] = ()
    packaging_labels: bool = True

    @classmethod
    def from_json(cls, json: JSON) -> Self:
        """
        >>> WebpackConfig.from_json({})
        ... # doctest: +NORMALIZE_WHITESPACE
        WebpackConfig(config_path=PurePosixPath('webpack.config.js'),
                      discover_modules=True,
                      backup_file_type='js',
                      force_include=(),
                      force_exclude=(),
                      packaging_labels=True)

        >>> WebpackConfig.from_json({'forceInclude': 'pg', 'backupFileType': 'ts'})
        ... # doctest: +NORMALIZE_WHITESPACE
        WebpackConfig(config_path=PurePosixPath('webpack.config.js'),
                      discover_modules=True,
                      backup_file_type='ts',
                      force_include=('pg',),
                      force_exclude=(),
                      packaging_labels=True)

        >>> WebpackConfig.from_json({'discoverModules': 'yes'})
        Traceback (most recent call last):
        ...
        layman.exceptions.ConfigurationError: ('Invalid type of option', 'webpack.discoverModules', 'yes')
        """
        path = ('webpack',)
        _warn_unknown(json, [
            'configPath',
            'discoverModules',
            'backupFileType',
            'forceInclude',
            'forceExclude',
            'packagingLabels',
            # Superseded by the top-level `clean` option but still accepted
            'clean'
        ], *path)
        try:
            force_include = json_str_list(json.get('forceInclude'), *path, 'forceInclude')
            force_exclude = json_str_list(json.get('forceExclude'), *path, 'forceExclude')
        except TypeError as e:
            raise ConfigurationError(*e.args)
        config_path = _option(json, 'configPath', str, './webpack.config.js', *path)
        return cls(config_path=PurePosixPath(config_path),
                   discover_modules=_option(json, 'discoverModules', bool, True, *path),
                   backup_file_type=_option(json, 'backupFileType', str, 'js', *path),
                   force_include=tuple(force_include),
                   force_exclude=tuple(force_exclude),
                   packaging_labels=_option(json, 'packagingLabels', bool, True, *path))


@attrs.frozen(kw_only=True)
class LayerConfig:
    install_layers: bool = True
    export_layers: bool = True
    upgrade_layer_references: bool = True
    export_prefix: str = '${AWS::StackName}-'
    manage_node_folder: bool = False
    packager: Packager = Packager.npm
    clean: bool = True
    #: None selects the full install mode, in which the project's manifest and
    #: lockfile are installed into every layer as is.
    webpack: Optional[WebpackConfig] = attrs.field(factory=WebpackConfig)

    @classmethod
    def from_json(cls, json: Optional[AnyJSON]) -> Self:
        """
        Parse the ``custom.layerConfig`` section of a service descriptor.
        Every option is defaulted independently.

        >>> c = LayerConfig.from_json(None)
        >>> c.install_layers, c.packager, c.export_prefix, c.webpack.discover_modules
        (True, <Packager.npm: 'npm'>, '${AWS::StackName}-', True)

        >>> c = LayerConfig.from_json({'packager': 'yarn', 'webpack': False})
        >>> c.packager, c.webpack
        (<Packager.yarn: 'yarn'>, None)

        >>> LayerConfig.from_json({'packager': 'pnpm'})
        Traceback (most recent call last):
        ...
        layman.exceptions.ConfigurationError: ('Unsupported packager', 'pnpm')

        >>> LayerConfig.from_json({'exportPrefix': 42})
        Traceback (most recent call last):
        ...
        layman.exceptions.ConfigurationError: ('Invalid type of option', 'exportPrefix', 42)

        >>> LayerConfig.from_json([])
        Traceback (most recent call last):
        ...
        layman.exceptions.ConfigurationError: ('Expected a JSON object', 'custom.layerConfig', [])
        """
        try:
            json = json_dict(json, 'custom', 'layerConfig')
        except TypeError as e:
            raise ConfigurationError(*e.args)
        _warn_unknown(json, [
            'installLayers',
            'exportLayers',
            'upgradeLayerReferences',
            'exportPrefix',
            'manageNodeFolder',
            'packager',
            'clean',
            'webpack'
        ])
        packager = _option(json, 'packager', str, 'npm')
        try:
            packager = Packager(packager)
        except ValueError:
            raise ConfigurationError('Unsupported packager', packager)
        webpack = json.get('webpack', {})
        if webpack is None or webpack is False:
            webpack = None
        elif isinstance(webpack, dict):
            webpack = WebpackConfig.from_json(webpack)
        else:
            raise ConfigurationError('Invalid type of option', 'webpack', webpack)
        return cls(install_layers=_option(json, 'installLayers', bool, True),
                   export_layers=_option(json, 'exportLayers', bool, True),
                   upgrade_layer_references=_option(json, 'upgradeLayerReferences', bool, True),
                   export_prefix=_option(json, 'exportPrefix', str, '${AWS::StackName}-'),
                   manage_node_folder=_option(json, 'manageNodeFolder', bool, False),
                   packager=packager,
                   clean=_option(json, 'clean', bool, True),
                   webpack=webpack)
