import subprocess
from threading import (
    Lock,
)
from unittest.mock import (
    patch,
)

import attrs

from layman.bundler import (
    BuildConfig,
    Bundler,
    Chunk,
    Module,
    ModuleGraph,
)
from layman.exceptions import (
    BuildError,
    ConfigurationError,
    TemplateError,
)
from layman.logging import (
    configure_test_logging,
    get_test_logger,
)
from layman.plugin import (
    LayerManagerPlugin,
)
from layman.service import (
    Service,
)
from layman.types import (
    JSON,
)
from layman_test_case import (
    ProjectTestCase,
)

log = get_test_logger(__name__)


# noinspection PyPep8Naming
def setUpModule():
    configure_test_logging(log)


@attrs.define
class FakeBundler(Bundler):
    """
    Reports each entry as requiring the external modules listed for it, and
    fails for entries without such a listing.
    """
    externals: dict[str, list[str]]
    builds: list[BuildConfig] = attrs.field(factory=list)
    lock: Lock = attrs.field(factory=Lock)

    def compile(self, build: BuildConfig) -> ModuleGraph:
        with self.lock:
            self.builds.append(build)
        chunks = []
        for name in build.entries:
            try:
                requests = self.externals[name]
            except KeyError:
                raise BuildError('webpack failed to compile', [f'Cannot build {name}'])
            chunks.append(Chunk(modules=[
                Module(identifier=f'external "{request}"')
                for request in requests
            ]))
        return ModuleGraph(chunks=chunks)


class TestLayerManagerPlugin(ProjectTestCase):

    def setUp(self):
        super().setUp()
        self.touch('handlers/foo.js',
                   'handlers/bar.ts',
                   'layers/foo/nodejs/README.md',
                   'layers/bar/nodejs/README.md')
        self.write_json('package.json', {
            'dependencies': {
                'lodash': '^4.0.0',
                'pg': '^8.0.0'
            }
        })
        self.bundler = FakeBundler(externals={
            'handlers/foo': ['lodash/fp', 'aws-sdk', 'fs'],
            'handlers/bar': ['pg', 'lodash']
        })

    def _service(self, layer_config: JSON = None, **layers: JSON) -> Service:
        json = {
            'functions': {
                'foo': {
                    'handler': 'handlers/foo.main',
                    'layers': [{'Ref': 'FooLambdaLayer'}],
                    'forceExclude': 'aws-sdk'
                },
                'bar': {
                    'handler': 'handlers/bar.main',
                    'layers': [{'Ref': 'BarLambdaLayer'}]
                }
            },
            'layers': layers or {
                'foo': {'path': 'layers/foo'},
                'bar': {'path': 'layers/bar'}
            },
            'package': {
                'exclude': ['**/*.md']
            }
        }
        if layer_config is not None:
            json['custom'] = {'layerConfig': layer_config}
        return Service.from_json(json, self.root)

    def _install(self, service: Service, bundler: Bundler = None):
        plugin = LayerManagerPlugin(service, {}, self.bundler if bundler is None else bundler)
        with patch.object(subprocess, 'run') as run:
            installed = plugin.hooks['package:initialize']()
        commands = {
            str(call.kwargs['cwd'].relative_to(self.root)): call.args[0]
            for call in run.call_args_list
        }
        return installed, commands

    def test_install_layers(self):
        installed, commands = self._install(self._service())
        self.assertEqual(['foo', 'bar'], installed)
        self.assertEqual({
            'layers/foo/nodejs': ['npm', 'install', 'lodash@^4.0.0'],
            'layers/bar/nodejs': ['npm', 'install', 'pg@^8.0.0', 'lodash@^4.0.0']
        }, commands)
        builds = {
            tuple(build.entries.keys()): build
            for build in self.bundler.builds
        }
        self.assertEqual({('handlers/foo',), ('handlers/bar',)}, builds.keys())
        build = builds['handlers/bar',]
        self.assertEqual(self.root / 'handlers' / 'bar.ts', build.entries['handlers/bar'])
        self.assertEqual(self.root / 'webpack.config.js', build.config_path)
        self.assertEqual(self.root, build.root)
        self.assertTrue(build.packaging_labels)
        # Cleanup ran
        self.assertEqual([], self.listdir('layers/foo/nodejs'))

    def test_layer_overrides(self):
        service = self._service({
            'clean': False,
            'packager': 'yarn',
            'webpack': {
                'forceInclude': ['knex'],
                'forceExclude': ['pg'],
                'packagingLabels': False
            }
        })
        installed, commands = self._install(service)
        self.assertEqual({
            'layers/foo/nodejs': ['yarn', 'add', 'lodash@^4.0.0', 'knex'],
            'layers/bar/nodejs': ['yarn', 'add', 'lodash@^4.0.0', 'knex']
        }, commands)
        self.assertFalse(any(build.packaging_labels for build in self.bundler.builds))
        self.assertEqual(['README.md'], self.listdir('layers/foo/nodejs'))

    def test_without_discovery(self):
        service = self._service({'webpack': {'discoverModules': False}})
        installed, commands = self._install(service)
        self.assertEqual(['foo', 'bar'], installed)
        self.assertEqual([], self.bundler.builds)
        # Neither layer has packages to install
        self.assertEqual({}, commands)

    def test_skipped_layer(self):
        service = self._service(foo={'path': 'layers/foo'}, baz={'path': 'layers/baz'})
        self.touch('layers/baz/README.md')
        installed, commands = self._install(service)
        self.assertEqual(['foo'], installed)
        self.assertEqual(['layers/foo/nodejs'], list(commands.keys()))
        # A skipped layer is not cleaned up
        self.assertEqual(['README.md'], self.listdir('layers/baz'))

    def test_managed_folder(self):
        service = self._service({'manageNodeFolder': True},
                                foo={'path': 'layers/foo'},
                                baz={'path': 'layers/baz'})
        installed, commands = self._install(service)
        self.assertEqual(['foo', 'baz'], installed)
        self.assertEqual({
            'layers/foo/nodejs': ['npm', 'install', 'lodash@^4.0.0']
        }, commands)
        for layer in ('foo', 'baz'):
            path = self.root / 'layers' / layer / 'nodejs'
            self.assertEqual(['package.json'], self.listdir(path))
            self.assertEqual('{}', (path / 'package.json').read_text())

    def test_full_install(self):
        self.touch('yarn.lock')
        service = self._service({'webpack': False, 'packager': 'yarn'})
        installed, commands = self._install(service)
        self.assertEqual(['foo', 'bar'], installed)
        self.assertEqual({
            'layers/foo/nodejs': ['yarn', 'install'],
            'layers/bar/nodejs': ['yarn', 'install']
        }, commands)
        self.assertEqual([], self.bundler.builds)
        self.assertEqual(['package.json', 'yarn.lock'], self.listdir('layers/bar/nodejs'))

    def test_installation_disabled(self):
        installed, commands = self._install(self._service({'installLayers': False}))
        self.assertIsNone(installed)
        self.assertEqual({}, commands)
        self.assertEqual([], self.bundler.builds)

    def test_build_failure(self):
        del self.bundler.externals['handlers/bar']
        plugin = LayerManagerPlugin(self._service(), {}, self.bundler)
        with patch.object(subprocess, 'run') as run:
            with self.assertLogs('layman.plugin', level='ERROR') as logs:
                with self.assertRaises(BuildError) as cm:
                    plugin.install_layers()
        self.assertEqual(['Cannot build handlers/bar'], cm.exception.details)
        self.assertEqual(1, len(logs.records))
        self.assertIn("'bar'", logs.output[0])
        # The other layer is installed regardless
        [call] = run.call_args_list
        self.assertEqual(['npm', 'install', 'lodash@^4.0.0'], call.args[0])
        # The failed layer is not cleaned up
        self.assertEqual(['README.md'], self.listdir('layers/bar/nodejs'))

    def test_layer_without_path(self):
        plugin = LayerManagerPlugin(self._service(foo={}), {}, self.bundler)
        with patch.object(subprocess, 'run') as run:
            with self.assertLogs('layman.plugin', level='ERROR'):
                with self.assertRaises(ConfigurationError):
                    plugin.install_layers()
        run.assert_not_called()

    def test_missing_manifest(self):
        (self.root / 'package.json').unlink()
        plugin = LayerManagerPlugin(self._service(), {}, self.bundler)
        with patch.object(subprocess, 'run') as run:
            with self.assertLogs('layman.plugin', level='ERROR'):
                with self.assertRaises(FileNotFoundError):
                    plugin.install_layers()
        run.assert_not_called()

    def test_transform_layer_resources(self):
        service = self._service({'exportPrefix': 'prod-'})
        template = {
            'Resources': {
                'FooLambdaFunction': {
                    'Type': 'AWS::Lambda::Function',
                    'Properties': {
                        'Layers': [{'Ref': 'FooLambdaLayer'}]
                    }
                }
            },
            'Outputs': {
                'FooLambdaLayerQualifiedArn': {
                    'Value': {'Ref': 'FooLambdaLayerVersion1'}
                }
            }
        }
        service.provider.compiled_template = template
        plugin = LayerManagerPlugin(service, {'verbose': True}, self.bundler)
        result = plugin.hooks['before:deploy:deploy']()
        self.assertIs(result.template, service.provider.compiled_template)
        self.assertIsNot(template, service.provider.compiled_template)
        resources = service.provider.compiled_template['Resources']
        self.assertEqual([{'Ref': 'FooLambdaLayerVersion1'}],
                         resources['FooLambdaFunction']['Properties']['Layers'])
        self.assertEqual(1, len(result.exported_layers))
        self.assertEqual(1, len(result.upgraded_layer_references))

    def test_missing_template(self):
        plugin = LayerManagerPlugin(self._service(), {}, self.bundler)
        with self.assertRaises(TemplateError):
            plugin.transform_layer_resources()
