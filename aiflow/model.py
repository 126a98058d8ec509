"""
Workflow data model.

Defines the in-memory step tree produced by the loader and consumed by the
step interpreter. All types are immutable once built.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Pattern, Tuple, Union


class Postprocess(str, Enum):
    """Postprocessing applied to downloaded text."""
    NONE = "none"
    HTML2MD = "html2md"
    HTML2TEXT = "html2text"


@dataclass(frozen=True)
class LocalVariable:
    """Variable with a literal or templated value, resolved at step entry."""
    name: str
    value: str = ""


@dataclass(frozen=True)
class GeneratedVariable:
    """
    Variable filled in by the generation backend.

    Attributes:
        name: Property name in the generated result
        pattern: Regex the value must match (re.search, DOTALL)
        required: Whether an empty value fails validation
        options: Closed list of allowed values (empty = any)
    """
    name: str
    pattern: Optional[str] = None
    required: bool = False
    options: Tuple[str, ...] = ()

    def compiled_pattern(self) -> Optional[Pattern]:
        if not self.pattern:
            return None
        return re.compile(self.pattern, re.DOTALL)


@dataclass(frozen=True)
class DownloadedVariable:
    """
    Variable whose value is fetched from a templated locator.

    Attributes:
        name: Variable name
        source: Templated URL
        postprocess: Conversion applied to the fetched text
        limit: Maximum length in characters, applied after postprocessing
    """
    name: str
    source: str
    postprocess: Postprocess = Postprocess.NONE
    limit: Optional[int] = None


Variable = Union[LocalVariable, GeneratedVariable, DownloadedVariable]


@dataclass(frozen=True)
class Validator:
    """
    Check run against a candidate result.

    A validator with a pattern is deterministic; without one the judgment
    text is put to the generation backend as a yes/no question.
    """
    text: str
    pattern: Optional[str] = None
    expect: str = "yes"

    @property
    def is_pattern(self) -> bool:
        return bool(self.pattern)


@dataclass(frozen=True)
class ReturnItem:
    """Named (or positional, when name is None) member of a structured projection."""
    projection: "ReturnProjection"
    name: Optional[str] = None


@dataclass(frozen=True)
class ReturnProjection:
    """Either a templated leaf string or an ordered list of items."""
    template: Optional[str] = None
    items: Tuple[ReturnItem, ...] = ()

    @property
    def is_leaf(self) -> bool:
        return not self.items


@dataclass(frozen=True)
class Step:
    """One node of the workflow tree."""
    name: str = ""
    prompt: Optional[str] = None
    variables: Tuple[Variable, ...] = ()
    validators: Tuple[Validator, ...] = ()
    returns: Optional[ReturnProjection] = None
    children: Tuple["Step", ...] = ()

    @property
    def local_variables(self) -> List[LocalVariable]:
        return [v for v in self.variables if isinstance(v, LocalVariable)]

    @property
    def generated_variables(self) -> List[GeneratedVariable]:
        """Generated declarations; a later declaration replaces an earlier one of the same name."""
        by_name: Dict[str, GeneratedVariable] = {}
        for v in self.variables:
            if isinstance(v, GeneratedVariable):
                by_name.pop(v.name, None)
                by_name[v.name] = v
        return list(by_name.values())

    @property
    def downloaded_variables(self) -> List[DownloadedVariable]:
        return [v for v in self.variables if isinstance(v, DownloadedVariable)]

    @property
    def label(self) -> str:
        return self.name or "<unnamed>"


@dataclass(frozen=True)
class WorkflowDocument:
    """
    A loaded workflow.

    Attributes:
        root: The root step
        name: Workflow name
        backend: Backend selector passed to every generation call
        backends: Backend configurations declared by the workflow
        context: Initial scope values
    """
    root: Step
    name: str = ""
    version: str = "1"
    backend: str = "workflow"
    backends: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    context: Dict[str, str] = field(default_factory=dict)
