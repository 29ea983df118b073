"""
The parts of a Serverless Framework service descriptor that are relevant for
managing dependency layers.
"""
from collections.abc import (
    Mapping,
    Sequence,
)
import logging
from pathlib import (
    Path,
)
from typing import (
    Optional,
    Self,
)

import attrs
import yaml

from layman import (
    require,
)
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
    MutableJSON,
)

log = logging.getLogger(__name__)

#: A layer reference of a function, either a literal ARN or resource ID, or an
#: intrinsic function such as ``{"Ref": "FooLambdaLayer"}``
#:
LayerReference = AnyJSON


def normalize_name(name: str) -> str:
    """
    Translate the name of a layer into the prefix of the logical IDs of the
    CloudFormation resources generated for that layer, the same way the
    Serverless Framework does it.

    >>> normalize_name('foo')
    'Foo'

    >>> normalize_name('fooBar')
    'FooBar'

    >>> normalize_name('node-deps_v2')
    'NodeDashdepsUnderscorev2'

    >>> normalize_name('')
    Traceback (most recent call last):
    ...
    layman.RequirementError: Layer names must not be empty
    """
    require(name != '', 'Layer names must not be empty')
    name = name.replace('-', 'Dash').replace('_', 'Underscore')
    return name[0].upper() + name[1:]


@attrs.frozen(kw_only=True)
class Layer:
    name: str
    #: None if the descriptor omits the path, which is a configuration error
    #: only for the installation of this layer
    path: Optional[Path]

    @property
    def resource_id(self) -> str:
        """
        The unversioned (alias) resource ID of this layer.

        >>> Layer(name='foo', path=Path('layers/foo')).resource_id
        'FooLambdaLayer'
        """
        return normalize_name(self.name) + 'LambdaLayer'

    @property
    def output_id(self) -> str:
        """
        The name of the template output that references the versioned
        resource of this layer.

        >>> Layer(name='foo', path=Path('layers/foo')).output_id
        'FooLambdaLayerQualifiedArn'
        """
        return self.resource_id + 'QualifiedArn'

    @property
    def dependencies_path(self) -> Path:
        """
        >>> Layer(name='foo', path=Path('layers/foo')).dependencies_path
        PosixPath('layers/foo/nodejs')

        >>> Layer(name='foo', path=None).dependencies_path
        Traceback (most recent call last):
        ...
        layman.exceptions.ConfigurationError: ('Layer is missing a path', 'foo')
        """
        require(self.path is not None,
                'Layer is missing a path', self.name,
                exception=ConfigurationError)
        return self.path / 'nodejs'

    @classmethod
    def from_json(cls, name: str, json: AnyJSON, root: Path) -> Self:
        try:
            json = json_dict(json, 'layers', name)
        except TypeError as e:
            raise ConfigurationError(*e.args)
        path = json.get('path')
        require(path is None or isinstance(path, str),
                'Invalid type of option', f'layers.{name}.path', path,
                exception=ConfigurationError)
        return cls(name=name, path=None if path is None else root / path)


def is_layer_reference(reference: LayerReference, resource_id: str) -> bool:
    """
    True, if the given layer reference of a function refers to the resource
    with the given ID.

    >>> is_layer_reference({'Ref': 'FooLambdaLayer'}, 'FooLambdaLayer')
    True

    >>> is_layer_reference('FooLambdaLayer', 'FooLambdaLayer')
    True

    >>> is_layer_reference({'Ref': 'FooLambdaLayerVersion3'}, 'FooLambdaLayer')
    False

    >>> is_layer_reference('arn:aws:lambda:us-east-1:123:layer:foo:1', 'FooLambdaLayer')
    False
    """
    if isinstance(reference, Mapping):
        return reference.get('Ref') == resource_id
    else:
        return reference == resource_id


@attrs.frozen(kw_only=True)
class Function:
    name: str
    handler: Optional[str]
    layers: Sequence[LayerReference] = ()
    entries: Sequence[str] = ()
    force_include: Sequence[str] = ()
    force_exclude: Sequence[str] = ()
    should_layer: bool = True

    def uses_layer(self, resource_id: str) -> bool:
        return any(is_layer_reference(layer, resource_id) for layer in self.layers)

    @classmethod
    def from_json(cls, name: str, json: AnyJSON) -> Self:
        """
        >>> f = Function.from_json('foo', {
        ...     'handler': 'handlers/foo.main',
        ...     'layers': [{'Ref': 'FooLambdaLayer'}],
        ...     'entry': 'lib/*.js',
        ...     'forceExclude': ['aws-sdk']
        ... })
        >>> f.entries, f.force_exclude, f.should_layer, f.uses_layer('FooLambdaLayer')
        (('lib/*.js',), ('aws-sdk',), True, True)

        >>> Function.from_json('foo', {'shouldLayer': 'no'})
        Traceback (most recent call last):
        ...
        layman.exceptions.ConfigurationError: ('Invalid type of option', 'functions.foo.shouldLayer', 'no')
        """
        path = ('functions', name)
        try:
            json = json_dict(json, *path)
            layers = json.get('layers') or []
            require(isinstance(layers, list),
                    'Expected a list', '.'.join((*path, 'layers')), layers,
                    exception=TypeError)
            handler = json.get('handler')
            require(handler is None or isinstance(handler, str),
                    'Expected a string', '.'.join((*path, 'handler')), handler,
                    exception=TypeError)
            entries = json_str_list(json.get('entry'), *path, 'entry')
            force_include = json_str_list(json.get('forceInclude'), *path, 'forceInclude')
            force_exclude = json_str_list(json.get('forceExclude'), *path, 'forceExclude')
        except TypeError as e:
            raise ConfigurationError(*e.args)
        should_layer = json.get('shouldLayer', True)
        require(isinstance(should_layer, bool),
                'Invalid type of option', '.'.join((*path, 'shouldLayer')), should_layer,
                exception=ConfigurationError)
        return cls(name=name,
                   handler=handler,
                   layers=tuple(layers),
                   entries=tuple(entries),
                   force_include=tuple(force_include),
                   force_exclude=tuple(force_exclude),
                   should_layer=should_layer)


@attrs.define(kw_only=True)
class Provider:
    #: The CloudFormation template compiled by the provider. Only present
    #: after the provider's packaging phase.
    compiled_template: Optional[MutableJSON] = None


@attrs.define(kw_only=True)
class Service:
    root: Path
    functions: Mapping[str, Function] = attrs.field(factory=dict)
    layers: Mapping[str, Layer] = attrs.field(factory=dict)
    custom: JSON = attrs.field(factory=dict)
    package_exclude: Sequence[str] = ()
    provider: Provider = attrs.field(factory=Provider)

    @property
    def layer_config(self) -> Optional[AnyJSON]:
        return self.custom.get('layerConfig')

    def layered_functions(self, resource_id: str) -> list[Function]:
        """
        The functions that participate in layering and that reference the
        layer resource with the given ID, in declaration order.
        """
        return [
            function
            for function in self.functions.values()
            if function.should_layer and function.uses_layer(resource_id)
        ]

    @classmethod
    def from_json(cls, json: JSON, root: Path) -> Self:
        try:
            functions = json_dict(json.get('functions'), 'functions')
            layers = json_dict(json.get('layers'), 'layers')
            custom = json_dict(json.get('custom'), 'custom')
            package = json_dict(json.get('package'), 'package')
            package_exclude = json_str_list(package.get('exclude'), 'package', 'exclude')
            provider = json_dict(json.get('provider'), 'provider')
        except TypeError as e:
            raise ConfigurationError(*e.args)
        template = provider.get('compiledCloudFormationTemplate')
        return cls(root=root,
                   functions={
                       name: Function.from_json(name, function)
                       for name, function in functions.items()
                   },
                   layers={
                       name: Layer.from_json(name, layer, root)
                       for name, layer in layers.items()
                   },
                   custom=custom,
                   package_exclude=tuple(package_exclude),
                   provider=Provider(compiled_template=template))


def load_service(path: Path, root: Optional[Path] = None) -> Service:
    """
    Load a service descriptor from the given file. YAML being a superset of
    JSON, the output of ``serverless print --format json`` can be read, too.
    Unresolved CloudFormation tags like ``!Ref`` are not supported.
    """
    log.info('Loading service descriptor from %s', path)
    with open(path) as f:
        json = yaml.safe_load(f)
    require(isinstance(json, dict),
            'The service descriptor must be an object', str(path),
            exception=ConfigurationError)
    return Service.from_json(json, path.parent if root is None else root)
