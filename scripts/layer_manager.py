"""
Run one phase of the layer manager against a service descriptor, for hosts
that don't load the plugin in-process. The descriptor is typically the output
of `serverless print --format json`.
"""
from argparse import (
    ArgumentParser,
)
import json
import logging
from pathlib import (
    Path,
)
import sys

from layman.files import (
    write_json_atomically,
)
from layman.logging import (
    configure_script_logging,
)
from layman.plugin import (
    LayerManagerPlugin,
)
from layman.service import (
    load_service,
)

log = logging.getLogger(__name__)


def main(argv):
    parser = ArgumentParser(description=__doc__)
    parser.add_argument('phase',
                        choices=['package', 'deploy'],
                        help='package: install the dependency layers, '
                             'deploy: upgrade the layer references in the template')
    parser.add_argument('service',
                        type=Path,
                        help='path to the service descriptor (JSON or YAML)')
    parser.add_argument('--template',
                        type=Path,
                        help='path to the compiled CloudFormation template, '
                             'transformed in place during the deploy phase')
    parser.add_argument('--root',
                        type=Path,
                        help='the service root, defaults to the directory '
                             'containing the service descriptor')
    parser.add_argument('--verbose', '-v',
                        action='store_true',
                        help='log at debug level')
    options = parser.parse_args(argv)
    configure_script_logging(log, verbose=options.verbose)
    service = load_service(options.service, root=options.root)
    if options.phase == 'deploy':
        if options.template is None:
            parser.error('The deploy phase requires --template')
        with open(options.template) as f:
            service.provider.compiled_template = json.load(f)
    plugin = LayerManagerPlugin(service, {'verbose': options.verbose})
    if options.phase == 'package':
        plugin.hooks['package:initialize']()
    else:
        result = plugin.hooks['before:deploy:deploy']()
        log.info('Exported %i layers and upgraded %i layer references',
                 len(result.exported_layers),
                 len(result.upgraded_layer_references))
        write_json_atomically(options.template, result.template)


if __name__ == '__main__':
    main(sys.argv[1:])
