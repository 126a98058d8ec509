"""JSON schema for a step's generated variables."""

from typing import Any, Dict, Iterable

from ..model import GeneratedVariable

JSON_SCHEMA_DRAFT = 'http://json-schema.org/draft-07/schema#'


def build_schema(variables: Iterable[GeneratedVariable]) -> Dict[str, Any]:
    """
    Build the structured-output constraint for a generation call.

    Every variable becomes a string property. Required variables are listed
    in ``required``, options become ``enum`` and patterns become ``pattern``.
    No other properties are allowed.
    """
    schema: Dict[str, Any] = {
        '$schema': JSON_SCHEMA_DRAFT,
        'type': 'object',
        'required': [],
        'properties': {},
        'additionalProperties': False,
    }

    for variable in variables:
        if variable.required:
            schema['required'].append(variable.name)
        prop: Dict[str, Any] = {'type': 'string'}
        if variable.options:
            prop['enum'] = list(variable.options)
        if variable.pattern:
            prop['pattern'] = variable.pattern
        schema['properties'][variable.name] = prop

    return schema
