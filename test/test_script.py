import json
import os
from pathlib import (
    Path,
)
from unittest.mock import (
    patch,
)

from layman.logging import (
    configure_test_logging,
    get_test_logger,
)
from layman.modules import (
    load_script,
)
from layman_test_case import (
    ProjectTestCase,
)

log = get_test_logger(__name__)

project_root = Path(__file__).parent.parent


# noinspection PyPep8Naming
def setUpModule():
    configure_test_logging(log)


class TestLayerManagerScript(ProjectTestCase):

    def setUp(self):
        super().setUp()
        with patch.dict(os.environ, LAYMAN_PROJECT_ROOT=str(project_root)):
            self.script = load_script('layer_manager')
        # Logging is configured by the test runner already
        patcher = patch.object(self.script, 'configure_script_logging')
        patcher.start()
        self.addCleanup(patcher.stop)
        self.write_json('service.json', {
            'functions': {
                'foo': {
                    'handler': 'handlers/foo.main',
                    'layers': [{'Ref': 'FooLambdaLayer'}]
                }
            },
            'layers': {
                'foo': {'path': 'layers/foo'}
            },
            'custom': {
                'layerConfig': {
                    'exportLayers': False
                }
            }
        })

    def test_deploy(self):
        self.write_json('template.json', {
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
                    'Value': {'Ref': 'FooLambdaLayerVersion7'}
                }
            }
        })
        template_path = self.root / 'template.json'
        self.script.main(['deploy', str(self.root / 'service.json'),
                          '--template', str(template_path)])
        with open(template_path) as f:
            template = json.load(f)
        self.assertEqual({
            'Resources': {
                'FooLambdaFunction': {
                    'Type': 'AWS::Lambda::Function',
                    'Properties': {
                        'Layers': [{'Ref': 'FooLambdaLayerVersion7'}]
                    }
                }
            },
            'Outputs': {
                'FooLambdaLayerQualifiedArn': {
                    'Value': {'Ref': 'FooLambdaLayerVersion7'}
                }
            }
        }, template)

    def test_deploy_without_template(self):
        with self.assertRaises(SystemExit):
            self.script.main(['deploy', str(self.root / 'service.json')])

    def test_package(self):
        with patch.object(self.script, 'LayerManagerPlugin') as plugin_cls:
            self.script.main(['package', str(self.root / 'service.json'), '-v'])
        (service, options), _ = plugin_cls.call_args
        self.assertEqual(self.root, service.root)
        self.assertEqual({'verbose': True}, options)
        plugin_cls.return_value.hooks['package:initialize'].assert_called_once_with()
