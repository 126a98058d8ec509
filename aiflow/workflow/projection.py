"""Return projection of a step's final scope."""

from typing import Any, Dict, Mapping, Union

from ..model import ReturnProjection
from ..variables.substitution import TemplateResolver

Projected = Union[str, Dict[Any, Any]]


def project(projection: ReturnProjection, scope: Mapping[str, str], resolver: TemplateResolver) -> Projected:
    """
    Compute a declared return value.

    A leaf resolves its template against ``scope``. A structured projection
    builds an ordered dict; unnamed items are keyed by their position, i.e.
    the number of entries already present.
    """
    if projection.is_leaf:
        return resolver.resolve(projection.template or "", scope)

    result: Dict[Any, Any] = {}
    for item in projection.items:
        key = item.name if item.name else len(result)
        result[key] = project(item.projection, scope, resolver)
    return result
