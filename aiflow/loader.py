"""Workflow loader and strict definition validation.

Workflows are written in YAML, or in the namespaced XML vocabulary
(``<ai>``, ``<var>``, ``<test>``, ``<return>``) for ``.xml`` files. Both are
normalized to the same raw structure and then validated into a
WorkflowDocument. All problems are collected before raising.
"""

import re
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
import yaml

from aiflow.exceptions import ValidationError, WorkflowValidationError
from aiflow.model import (
    DownloadedVariable,
    GeneratedVariable,
    LocalVariable,
    Postprocess,
    ReturnItem,
    ReturnProjection,
    Step,
    Validator,
    Variable,
    WorkflowDocument,
)
from aiflow.workflow.scope import to_text


class PreservingLoader(yaml.SafeLoader):
    """YAML loader that keeps 'yes', 'no', 'on' and 'off' as strings."""
    pass


# Validators expect the literal strings 'yes'/'no'; only true/false stay booleans
PreservingLoader.yaml_implicit_resolvers = dict(PreservingLoader.yaml_implicit_resolvers)
for _first in 'yYnNoO':
    if _first in PreservingLoader.yaml_implicit_resolvers:
        PreservingLoader.yaml_implicit_resolvers[_first] = [
            (tag, regexp) for tag, regexp in PreservingLoader.yaml_implicit_resolvers[_first]
            if tag != 'tag:yaml.org,2002:bool'
        ]


class WorkflowLoader:
    """Loads and validates workflow definitions."""

    SUPPORTED_VERSIONS = {"1"}
    XML_NAMESPACE = 'http://www.zolinga.org/ai/workflow'
    NAME_PATTERN = re.compile(r'^[^\s${}|]+$')

    TOP_LEVEL_FIELDS = {'version', 'name', 'backend', 'backends', 'context', 'root'}
    STEP_FIELDS = {'name', 'prompt', 'vars', 'tests', 'return', 'steps'}
    VAR_FIELDS = {
        'name', 'source', 'generate', 'value', 'url', 'pattern', 'required',
        'options', 'postprocess', 'limit',
    }
    VAR_SOURCES = {'local', 'ai', 'download'}
    TEST_FIELDS = {'text', 'pattern', 'expect'}
    RETURN_FIELDS = {'name', 'value', 'items'}
    BACKEND_FIELDS = {'uri', 'model', 'timeout_sec', 'options'}

    def __init__(self):
        """Initialize loader."""
        self.errors: List[ValidationError] = []

    def load(self, workflow_path: Path) -> WorkflowDocument:
        """Load and validate a workflow file."""
        self.errors = []
        workflow_path = Path(workflow_path)
        try:
            text = workflow_path.read_text(encoding='utf-8')
        except OSError as e:
            self._add_error(f"Failed to load workflow: {e}")
            self._raise_validation_errors()

        if workflow_path.suffix.lower() == '.xml':
            return self.loads_xml(text)
        return self.loads_yaml(text)

    def loads_yaml(self, text: str) -> WorkflowDocument:
        """Validate a workflow given as YAML text."""
        self.errors = []
        try:
            workflow = yaml.load(text, Loader=PreservingLoader)
        except yaml.YAMLError as e:
            self._add_error(f"Failed to load workflow: {e}")
            self._raise_validation_errors()

        if workflow is None or not isinstance(workflow, dict):
            self._add_error("Workflow must be a YAML object/dictionary")
            self._raise_validation_errors()

        return self._build_document(workflow)

    def loads_xml(self, text: str) -> WorkflowDocument:
        """Validate a workflow given in the XML vocabulary."""
        self.errors = []
        try:
            root = ET.fromstring(text)
        except ET.ParseError as e:
            self._add_error(f"Failed to load workflow: {e}")
            self._raise_validation_errors()

        if self._local_name(root) != 'ai':
            self._add_error(f"XML root element must be <ai>, got <{self._local_name(root)}>")
            self._raise_validation_errors()

        workflow: Dict[str, Any] = {
            'version': root.get('version', '1'),
            'root': self._xml_step(root),
        }
        for attr in ('name', 'backend'):
            if root.get(attr) is not None:
                workflow[attr] = root.get(attr)

        return self._build_document(workflow)

    def from_dict(self, workflow: Dict[str, Any]) -> WorkflowDocument:
        """Validate a raw workflow mapping and build the document."""
        self.errors = []
        return self._build_document(workflow)

    def _build_document(self, workflow: Dict[str, Any]) -> WorkflowDocument:
        version = workflow.get('version')
        if version is None:
            self._add_error("'version' field is required")
            version = ""
        else:
            version = str(version)
            if version not in self.SUPPORTED_VERSIONS:
                self._add_error(f"Unsupported version '{version}'. Supported: {sorted(self.SUPPORTED_VERSIONS)}")

        if version:
            for key in workflow.keys():
                if key not in self.TOP_LEVEL_FIELDS:
                    self._add_error(f"Unknown field '{key}' at version '{version}'")

        name = self._optional_string(workflow, 'name', 'workflow') or ""
        backend = self._optional_string(workflow, 'backend', 'workflow') or "workflow"
        backends = self._validate_backends(workflow.get('backends', {}))
        context = self._validate_context(workflow.get('context', {}))

        root = None
        if 'root' not in workflow:
            self._add_error("'root' field is required")
        else:
            root = self._build_step(workflow['root'], 'root')

        if self.errors or root is None:
            self._raise_validation_errors()

        return WorkflowDocument(
            root=root,
            name=name,
            version=version,
            backend=backend,
            backends=backends,
            context=context,
        )

    # XML normalization

    def _local_name(self, element: ET.Element) -> str:
        tag = element.tag
        if tag.startswith('{'):
            namespace, _, local = tag[1:].partition('}')
            if namespace != self.XML_NAMESPACE:
                self._add_error(f"Unexpected XML namespace '{namespace}'")
            return local
        return tag

    def _children(self, element: ET.Element, name: str) -> List[ET.Element]:
        return [child for child in element if self._local_name(child) == name]

    @staticmethod
    def _element_value(element: ET.Element) -> Optional[str]:
        if element.get('value') is not None:
            return element.get('value')
        if element.text is not None or len(element):
            return ''.join(element.itertext())
        return None

    def _xml_step(self, element: ET.Element) -> Dict[str, Any]:
        step: Dict[str, Any] = {}
        if element.get('name'):
            step['name'] = element.get('name')

        prompts = self._children(element, 'prompt')
        if element.get('prompt'):
            step['prompt'] = element.get('prompt')
        elif prompts:
            step['prompt'] = ''.join(prompts[0].itertext())

        variables = []
        for node in self._children(element, 'var'):
            var: Dict[str, Any] = {
                key: node.get(key) for key in ('name', 'source', 'generate', 'pattern', 'required', 'postprocess', 'limit')
                if node.get(key) is not None
            }
            options = [self._element_value(option) or '' for option in self._children(node, 'option')]
            if options:
                var['options'] = options
            else:
                value = self._element_value(node)
                if value is not None:
                    var['value'] = value
            variables.append(var)
        if variables:
            step['vars'] = variables

        tests = []
        for node in self._children(element, 'test'):
            test: Dict[str, Any] = {'text': ''.join(node.itertext())}
            for key in ('pattern', 'expect'):
                if node.get(key) is not None:
                    test[key] = node.get(key)
            tests.append(test)
        if tests:
            step['tests'] = tests

        returns = self._children(element, 'return')
        if returns:
            step['return'] = self._xml_return(returns[0])

        children = [self._xml_step(child) for child in self._children(element, 'ai')]
        if children:
            step['steps'] = children

        return step

    def _xml_return(self, element: ET.Element) -> Any:
        items = self._children(element, 'item')
        if not items:
            return {'value': self._element_value(element) or ''}

        raw_items = []
        for item in items:
            raw = self._xml_return(item)
            if item.get('name'):
                raw['name'] = item.get('name')
            raw_items.append(raw)
        return {'items': raw_items}

    # Validation

    def _optional_string(self, raw: Dict[str, Any], key: str, context: str) -> Optional[str]:
        value = raw.get(key)
        if value is None:
            return None
        if not isinstance(value, str):
            self._add_error(f"'{key}' must be a string, got {type(value).__name__}", context)
            return None
        return value

    def _validate_backends(self, backends: Any) -> Dict[str, Dict[str, Any]]:
        if not isinstance(backends, dict):
            self._add_error("'backends' must be a dictionary")
            return {}

        for name, config in backends.items():
            if not isinstance(config, dict):
                self._add_error(f"Backend '{name}' must be a dictionary")
                continue
            for key in config.keys():
                if key not in self.BACKEND_FIELDS:
                    self._add_error(f"Backend '{name}': unknown field '{key}'")
            if 'options' in config and not isinstance(config['options'], dict):
                self._add_error(f"Backend '{name}': options must be a dictionary")
        return backends

    def _validate_context(self, context: Any) -> Dict[str, str]:
        if not isinstance(context, dict):
            self._add_error("'context' must be a dictionary")
            return {}
        return {str(key): to_text(value) for key, value in context.items()}

    def _check_pattern(self, pattern: Any, path: str) -> Optional[str]:
        if pattern is None or pattern == "":
            return None
        if not isinstance(pattern, str):
            self._add_error("pattern must be a string", path)
            return None
        try:
            re.compile(pattern)
        except re.error as e:
            self._add_error(f"invalid pattern {pattern!r}: {e}", path)
        return pattern

    def _flag(self, value: Any, field_name: str, path: str) -> bool:
        if value in (True, 'yes', 'true', '1', 1):
            return True
        if value in (False, None, '', 'no', 'false', '0', 0):
            return False
        self._add_error(f"'{field_name}' must be yes or no, got {value!r}", path)
        return False

    def _build_step(self, raw: Any, path: str) -> Optional[Step]:
        if not isinstance(raw, dict):
            self._add_error("step must be a dictionary", path)
            return None

        for key in raw.keys():
            if key not in self.STEP_FIELDS:
                self._add_error(f"unknown step field '{key}'", path)

        name = raw.get('name') or ""
        if not isinstance(name, str):
            self._add_error(f"step name must be a string, got {type(name).__name__}", path)
            name = ""
        if name:
            path = f"{path}[{name}]"

        prompt = raw.get('prompt')
        if prompt is not None and not isinstance(prompt, str):
            self._add_error("prompt must be a string", path)
            prompt = None

        variables = tuple(
            var for var in (
                self._build_variable(item, f"{path}.vars[{i}]")
                for i, item in enumerate(self._list_field(raw, 'vars', path))
            ) if var is not None
        )

        validators = tuple(
            validator for validator in (
                self._build_validator(item, f"{path}.tests[{i}]")
                for i, item in enumerate(self._list_field(raw, 'tests', path))
            ) if validator is not None
        )

        returns = None
        if 'return' in raw:
            returns = self._build_return(raw['return'], f"{path}.return")

        children = tuple(
            child for child in (
                self._build_step(item, f"{path}.steps[{i}]")
                for i, item in enumerate(self._list_field(raw, 'steps', path))
            ) if child is not None
        )

        self._check_text_results(children, returns, path)

        return Step(
            name=name,
            prompt=prompt or None,
            variables=variables,
            validators=validators,
            returns=returns,
            children=children,
        )

    def _list_field(self, raw: Dict[str, Any], key: str, path: str) -> List[Any]:
        value = raw.get(key)
        if value is None:
            return []
        if not isinstance(value, list):
            self._add_error(f"'{key}' must be a list", path)
            return []
        return value

    def _build_variable(self, raw: Any, path: str) -> Optional[Variable]:
        if not isinstance(raw, dict):
            self._add_error("variable must be a dictionary", path)
            return None

        for key in raw.keys():
            if key not in self.VAR_FIELDS:
                self._add_error(f"unknown variable field '{key}'", path)

        name = raw.get('name')
        if not isinstance(name, str) or not self.NAME_PATTERN.match(name):
            self._add_error(f"variable name {name!r} must be a non-empty string without spaces, braces or pipes", path)
            return None

        source = raw.get('source') or 'local'
        if self._flag(raw.get('generate'), 'generate', path):
            source = 'ai'
        if source not in self.VAR_SOURCES:
            self._add_error(f"variable '{name}': unknown source '{source}'", path)
            return None

        if source == 'ai':
            options = raw.get('options') or []
            if not isinstance(options, list):
                self._add_error(f"variable '{name}': options must be a list", path)
                options = []
            return GeneratedVariable(
                name=name,
                pattern=self._check_pattern(raw.get('pattern'), path),
                required=self._flag(raw.get('required'), 'required', path),
                options=tuple(to_text(option) for option in options),
            )

        if source == 'download':
            return self._build_download(name, raw, path)

        return LocalVariable(name=name, value=to_text(raw.get('value')))

    def _build_download(self, name: str, raw: Dict[str, Any], path: str) -> Optional[DownloadedVariable]:
        locator = raw.get('url', raw.get('value'))
        if not isinstance(locator, str) or not locator.strip():
            self._add_error(f"download variable '{name}' requires a url", path)
            return None

        try:
            mode = Postprocess(raw.get('postprocess') or 'none')
        except ValueError:
            self._add_error(
                f"download variable '{name}': unknown postprocess '{raw.get('postprocess')}'. "
                f"Supported: {[m.value for m in Postprocess]}",
                path,
            )
            mode = Postprocess.NONE

        limit = raw.get('limit')
        if limit is not None:
            try:
                limit = int(limit)
                if limit <= 0:
                    raise ValueError(limit)
            except (TypeError, ValueError):
                self._add_error(f"download variable '{name}': limit must be a positive integer", path)
                limit = None

        return DownloadedVariable(name=name, source=locator.strip(), postprocess=mode, limit=limit)

    def _build_validator(self, raw: Any, path: str) -> Optional[Validator]:
        if isinstance(raw, str):
            raw = {'text': raw}
        if not isinstance(raw, dict):
            self._add_error("test must be a dictionary or a string", path)
            return None

        for key in raw.keys():
            if key not in self.TEST_FIELDS:
                self._add_error(f"unknown test field '{key}'", path)

        text = raw.get('text')
        if not isinstance(text, str):
            self._add_error("test requires 'text'", path)
            return None

        expect = raw.get('expect') or 'yes'
        if expect not in ('yes', 'no'):
            self._add_error(f"test expect must be 'yes' or 'no', got {expect!r}", path)
            expect = 'yes'

        return Validator(text=text, pattern=self._check_pattern(raw.get('pattern'), path), expect=expect)

    def _build_return(self, raw: Any, path: str) -> ReturnProjection:
        if raw is None or isinstance(raw, (str, int, float, bool)):
            return ReturnProjection(template=to_text(raw))

        if isinstance(raw, list):
            return ReturnProjection(items=self._build_items(raw, path))

        if isinstance(raw, dict):
            for key in raw.keys():
                if key not in self.RETURN_FIELDS:
                    self._add_error(f"unknown return field '{key}'", path)
            if 'items' in raw:
                if 'value' in raw:
                    self._add_error("return cannot have both 'value' and 'items'", path)
                if not isinstance(raw['items'], list):
                    self._add_error("return items must be a list", path)
                    return ReturnProjection()
                return ReturnProjection(items=self._build_items(raw['items'], path))
            return ReturnProjection(template=to_text(raw.get('value')))

        self._add_error(f"return must be a string, list or dictionary, got {type(raw).__name__}", path)
        return ReturnProjection()

    def _build_items(self, raw_items: List[Any], path: str) -> Tuple[ReturnItem, ...]:
        items = []
        for i, raw in enumerate(raw_items):
            item_path = f"{path}.items[{i}]"
            name = None
            if isinstance(raw, dict):
                name = raw.get('name')
                if name is not None and not isinstance(name, str):
                    self._add_error("return item name must be a string", item_path)
                    name = None
                raw = {key: value for key, value in raw.items() if key != 'name'}
            items.append(ReturnItem(projection=self._build_return(raw, item_path), name=name or None))
        return tuple(items)

    @staticmethod
    def yields_text(step: Step) -> bool:
        """Whether running ``step`` produces a plain string instead of a map."""
        if step.returns is not None:
            return step.returns.is_leaf
        return bool(step.children) and WorkflowLoader.yields_text(step.children[-1])

    def _check_text_results(self, children: Tuple[Step, ...], returns: Optional[ReturnProjection], path: str):
        """A child producing a plain string must be the last child of a step without a return."""
        for i, child in enumerate(children):
            if not self.yields_text(child):
                continue
            if i < len(children) - 1:
                self._add_error(
                    f"step '{child.label}' returns a plain string but is followed by another step",
                    f"{path}.steps[{i}]",
                )
            elif returns is not None:
                self._add_error(
                    f"step '{child.label}' returns a plain string but its parent declares a return",
                    f"{path}.steps[{i}]",
                )

    def _add_error(self, message: str, path: str = "", exit_code: int = 2):
        """Add validation error."""
        self.errors.append(ValidationError(message, path, exit_code))

    def _raise_validation_errors(self):
        """Raise WorkflowValidationError with accumulated errors."""
        raise WorkflowValidationError(self.errors)
