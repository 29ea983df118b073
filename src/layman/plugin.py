"""
Integration with the lifecycle of the host: dependency layers are installed
when packaging begins and layer references are upgraded just before the
deployment.
"""
from collections.abc import (
    Callable,
    Mapping,
)
from concurrent.futures import (
    ThreadPoolExecutor,
)
from functools import (
    cached_property,
)
import logging
from typing import (
    Any,
    Optional,
)

from layman.bundler import (
    BuildConfig,
    Bundler,
    WebpackBundler,
)
from layman.collections import (
    OrderedSet,
)
from layman.dependencies import (
    Manifest,
    ModuleOverrides,
    ModuleSetMerger,
)
from layman.externals import (
    DependencyDiscoverer,
)
from layman.handlers import (
    EntryResolver,
)
from layman.installer import (
    LayerFolder,
    PackageInstaller,
)
from layman.logging import (
    configure_plugin_logging,
)
from layman.options import (
    LayerConfig,
)
from layman.service import (
    Layer,
    Service,
)
from layman.template import (
    TemplateTransformer,
    TransformResult,
)

log = logging.getLogger(__name__)


class LayerManagerPlugin:
    """
    :param service: the descriptor of the service being deployed

    :param options: the command line options passed to the host, only
                    ``verbose`` (or ``v``) is recognized

    :param bundler: the bundler that compiles the entries of a layer
    """

    def __init__(self,
                 service: Service,
                 options: Optional[Mapping[str, Any]] = None,
                 bundler: Optional[Bundler] = None
                 ) -> None:
        options = options or {}
        self.service = service
        self.bundler = WebpackBundler() if bundler is None else bundler
        configure_plugin_logging(verbose=bool(options.get('verbose') or options.get('v')))
        log.info('Invoking layer manager')
        self.hooks: Mapping[str, Callable[[], Any]] = {
            'package:initialize': self.install_layers,
            'before:deploy:deploy': self.transform_layer_resources
        }

    @cached_property
    def config(self) -> LayerConfig:
        config = LayerConfig.from_json(self.service.layer_config)
        log.debug('Config: %r', config)
        return config

    def install_layers(self) -> Optional[list[str]]:
        """
        Install the dependencies of all layers concurrently.

        :return: the names of the installed layers, or None if installation
                 is disabled
        """
        if not self.config.install_layers:
            log.debug('Skipping installation of layers as per config')
            return None
        layers = list(self.service.layers.values())
        with ThreadPoolExecutor(max_workers=max(1, len(layers)),
                                thread_name_prefix='layer') as tpe:
            futures = [(layer, tpe.submit(self.install_layer, layer)) for layer in layers]
        errors = []
        installed = []
        for layer, future in futures:
            e = future.exception()
            if e is None:
                if future.result():
                    installed.append(layer.name)
            else:
                log.error('Failed to install layer %r', layer.name, exc_info=e)
                errors.append(e)
        if errors:
            raise errors[0]
        log.info('Installed %i layers', len(installed))
        return installed

    def install_layer(self, layer: Layer) -> bool:
        """
        Run the installation pipeline for one layer.

        :return: False if the layer was skipped because it lacks a dependency
                 folder
        """
        config = self.config
        folder = LayerFolder(path=layer.dependencies_path,
                             managed=config.manage_node_folder)
        if not folder.prepare():
            return False
        installer = PackageInstaller(packager=config.packager)
        log.debug('Installing layer %s with %s', layer.path, config.packager.value)
        if config.webpack is None:
            folder.copy_manifests(self.service.root, config.packager)
            installer.install_all(folder)
        else:
            if folder.managed:
                folder.write_empty_manifest()
            installer.install(folder, self.resolve_packages(layer))
        if config.clean:
            folder.prune(self.service.package_exclude)
        return True

    def resolve_packages(self, layer: Layer) -> list[str]:
        """
        The install specifiers of the packages needed by the functions that
        use the given layer.
        """
        webpack = self.config.webpack
        assert webpack is not None
        root = self.service.root
        resource_id = layer.resource_id
        if webpack.discover_modules:
            resolver = EntryResolver(root=root, backup_file_type=webpack.backup_file_type)
            build = BuildConfig(root=root,
                                config_path=root / webpack.config_path,
                                entries=resolver.resolve(self.service, resource_id),
                                packaging_labels=webpack.packaging_labels)
            discoverer = DependencyDiscoverer(bundler=self.bundler)
            discovered = discoverer.discover(build)
        else:
            discovered = OrderedSet()
        overrides = ModuleOverrides.create(webpack, self.service.layered_functions(resource_id))
        merger = ModuleSetMerger(manifest=Manifest.load(root / 'package.json'))
        return merger.install_list(discovered, overrides)

    def transform_layer_resources(self) -> TransformResult:
        """
        Upgrade the layer references in the template compiled by the provider
        and replace the template with the result.
        """
        config = self.config
        transformer = TemplateTransformer(export_layers=config.export_layers,
                                          export_prefix=config.export_prefix,
                                          upgrade_layer_references=config.upgrade_layer_references)
        provider = self.service.provider
        result = transformer.transform(provider.compiled_template,
                                       self.service.layers.values())
        provider.compiled_template = result.template
        return result
