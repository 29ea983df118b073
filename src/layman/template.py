"""
Post-processing of the CloudFormation template compiled by the provider, so
that functions reference the versioned resource of a layer instead of its
unversioned alias.
"""
from collections.abc import (
    Iterable,
    Mapping,
)
import json
import logging

import attrs

from layman import (
    require,
)
from layman.exceptions import (
    TemplateError,
)
from layman.json import (
    copy_json,
)
from layman.service import (
    Layer,
)
from layman.types import (
    JSON,
    MutableJSON,
)

log = logging.getLogger(__name__)

function_resource_type = 'AWS::Lambda::Function'


@attrs.frozen(kw_only=True)
class ReferenceUpgrade:
    #: The logical ID of the function resource whose layer reference was
    #: rewritten
    function: str
    old: str
    new: str


@attrs.frozen(kw_only=True)
class TransformResult:
    template: MutableJSON

    #: The template outputs that an export name was attached to
    exported_layers: list[MutableJSON] = attrs.field(factory=list)

    upgraded_layer_references: list[ReferenceUpgrade] = attrs.field(factory=list)


@attrs.frozen(kw_only=True)
class TemplateTransformer:
    """
    >>> from pathlib import Path
    >>> t = TemplateTransformer(export_prefix='prod-')
    >>> result = t.transform({
    ...     'Outputs': {
    ...         'FooLambdaLayerQualifiedArn': {
    ...             'Value': {'Ref': 'FooLambdaLayerVersion3'}
    ...         }
    ...     },
    ...     'Resources': {
    ...         'BarLambdaFunction': {
    ...             'Type': 'AWS::Lambda::Function',
    ...             'Properties': {
    ...                 'Layers': [{'Ref': 'FooLambdaLayer'}, 'arn:aws:lambda:::layer:baz:1']
    ...             }
    ...         }
    ...     }
    ... }, [Layer(name='foo', path=Path('layers/foo'))])
    >>> print(json.dumps(result.template, indent=4))
    {
        "Outputs": {
            "FooLambdaLayerQualifiedArn": {
                "Value": {
                    "Ref": "FooLambdaLayerVersion3"
                },
                "Export": {
                    "Name": {
                        "Fn::Sub": "prod-FooLambdaLayerQualifiedArn"
                    }
                }
            }
        },
        "Resources": {
            "BarLambdaFunction": {
                "Type": "AWS::Lambda::Function",
                "Properties": {
                    "Layers": [
                        {
                            "Ref": "FooLambdaLayerVersion3"
                        },
                        "arn:aws:lambda:::layer:baz:1"
                    ]
                }
            }
        }
    }
    >>> result.upgraded_layer_references
    [ReferenceUpgrade(function='BarLambdaFunction', old='FooLambdaLayer', new='FooLambdaLayerVersion3')]
    """
    export_layers: bool = True
    export_prefix: str = '${AWS::StackName}-'
    upgrade_layer_references: bool = True

    def transform(self, template: JSON, layers: Iterable[Layer]) -> TransformResult:
        """
        Return a transformed copy of the given template. The argument is not
        modified.
        """
        require(template is not None,
                'The compiled template is missing',
                exception=TemplateError)
        result = TransformResult(template=copy_json(template))
        for layer in layers:
            self._transform_layer(result, layer)
        log.debug('Template after transformation:\n%s',
                  json.dumps(result.template, indent=2))
        return result

    def _transform_layer(self, result: TransformResult, layer: Layer):
        template = result.template
        outputs = template.get('Outputs')
        if not isinstance(outputs, Mapping):
            log.info('Template has no outputs, skipping layer %r', layer.name)
            return
        export_name = layer.output_id
        output = outputs.get(export_name)
        if output is None:
            log.debug('No output %r, skipping layer %r', export_name, layer.name)
            return
        elif not isinstance(output, Mapping):
            log.info('Output %r is not an object, skipping layer %r', export_name, layer.name)
            return

        if self.export_layers:
            output['Export'] = {
                'Name': {
                    'Fn::Sub': self.export_prefix + export_name
                }
            }
            result.exported_layers.append(output)

        if self.upgrade_layer_references:
            resource_ref = layer.resource_id
            value = output.get('Value')
            versioned_ref = value.get('Ref') if isinstance(value, Mapping) else None
            if versioned_ref is None:
                log.info('Output %r does not reference a resource, '
                         'skipping upgrade of layer %r', export_name, layer.name)
            elif versioned_ref != resource_ref:
                log.info('Replacing references to %s with %s', resource_ref, versioned_ref)
                resources = template.get('Resources') or {}
                for resource_id, resource in resources.items():
                    upgrades = self._upgrade_resource(resource, resource_ref, versioned_ref)
                    for _ in range(upgrades):
                        log.debug('%s: Updating reference to layer version %s',
                                  resource_id, versioned_ref)
                        result.upgraded_layer_references.append(
                            ReferenceUpgrade(function=resource_id,
                                             old=resource_ref,
                                             new=versioned_ref)
                        )

    def _upgrade_resource(self,
                          resource: MutableJSON,
                          resource_ref: str,
                          versioned_ref: str
                          ) -> int:
        """
        Rewrite the references to the given unversioned resource among the
        layers of the given resource, if it is a function.

        :return: the number of rewritten references
        """
        if resource.get('Type') != function_resource_type:
            return 0
        properties = resource.get('Properties') or {}
        layers = properties.get('Layers') or []
        upgrades = 0
        for i, layer in enumerate(layers):
            if isinstance(layer, Mapping) and layer.get('Ref') == resource_ref:
                layers[i] = {**layer, 'Ref': versioned_ref}
                upgrades += 1
        return upgrades
