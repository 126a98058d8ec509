"""
Template handling: ${...} substitution and <<<...>>> block transforms.
"""

from .substitution import TemplateResolver, autocamel
from .blocks import BlockTransformer

__all__ = ['TemplateResolver', 'BlockTransformer', 'autocamel']
