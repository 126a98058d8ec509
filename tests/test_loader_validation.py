"""
Tests for workflow loading and strict definition validation.
Covers the YAML and XML formats and the error collection.
"""

import tempfile
from pathlib import Path

import pytest

from aiflow.exceptions import WorkflowValidationError
from aiflow.loader import WorkflowLoader
from aiflow.model import (
    DownloadedVariable,
    GeneratedVariable,
    LocalVariable,
    Postprocess,
)


VALID_YAML = """
version: "1"
name: article
backend: writer
backends:
  writer:
    model: qwen3
context:
  topic: owls
  count: 3
root:
  name: write
  prompt: "Write about ${topic}"
  vars:
    - name: title
      source: ai
      required: yes
      pattern: "^[A-Z]"
    - name: mood
      generate: yes
      options: [happy, sad, no]
    - name: page
      source: download
      url: "https://example.com/${topic}"
      postprocess: html2md
      limit: 2000
    - name: signature
      value: "-- ${topic}"
  tests:
    - text: "Is '${title}' a good title?"
    - text: "${title}"
      pattern: "profanity"
      expect: no
  return:
    - name: title
      value: "${title}"
    - "${mood}"
"""


class TestYamlLoader:
    """YAML workflow loading."""

    def setup_method(self):
        self.loader = WorkflowLoader()

    def test_valid_workflow(self):
        document = self.loader.loads_yaml(VALID_YAML)

        assert document.name == 'article'
        assert document.backend == 'writer'
        assert document.backends == {'writer': {'model': 'qwen3'}}
        assert document.context == {'topic': 'owls', 'count': '3'}

        root = document.root
        assert root.name == 'write'
        assert root.prompt == 'Write about ${topic}'

        title, mood = root.generated_variables
        assert title == GeneratedVariable(name='title', pattern='^[A-Z]', required=True)
        # 'no' stays a string instead of becoming False
        assert mood.options == ('happy', 'sad', 'no')

        assert root.downloaded_variables == [DownloadedVariable(
            name='page', source='https://example.com/${topic}', postprocess=Postprocess.HTML2MD, limit=2000,
        )]
        assert root.local_variables == [LocalVariable(name='signature', value='-- ${topic}')]

        first, second = root.validators
        assert not first.is_pattern
        assert second.pattern == 'profanity'
        assert second.expect == 'no'

        name_item, positional = root.returns.items
        assert name_item.name == 'title'
        assert name_item.projection.template == '${title}'
        assert positional.name is None

    def test_load_from_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / 'workflow.yaml'
            path.write_text(VALID_YAML)
            document = self.loader.load(path)
        assert document.root.name == 'write'

    def test_missing_file(self):
        with pytest.raises(WorkflowValidationError) as exc_info:
            self.loader.load(Path('/nonexistent/workflow.yaml'))
        assert 'Failed to load workflow' in str(exc_info.value)

    def test_string_tests_and_leaf_return(self):
        document = self.loader.loads_yaml("""
version: "1"
root:
  tests:
    - "Is it true?"
  return: "${answer}"
""")
        assert document.root.validators[0].text == 'Is it true?'
        assert document.root.returns.is_leaf
        assert document.backend == 'workflow'

    def test_nested_steps_and_return_items(self):
        document = self.loader.loads_yaml("""
version: "1"
root:
  steps:
    - name: first
      return:
        items:
          - name: a
            value: "${a}"
          - name: nested
            items:
              - "${b}"
    - name: second
      return: "${a}"
""")
        first, second = document.root.children
        nested = first.returns.items[1]
        assert nested.name == 'nested'
        assert nested.projection.items[0].projection.template == '${b}'
        assert second.returns.is_leaf

    @pytest.mark.parametrize("text,fragment", [
        ('root: {}', "'version' field is required"),
        ('version: "2"\nroot: {}', "Unsupported version '2'"),
        ('version: "1"', "'root' field is required"),
        ('version: "1"\nroot: {}\nextra: 1', "Unknown field 'extra'"),
        ('version: "1"\nroot:\n  promt: hi', "unknown step field 'promt'"),
        ('version: "1"\nroot:\n  vars:\n    - name: x\n      source: ai\n      pattern: "(["', "invalid pattern"),
        ('version: "1"\nroot:\n  vars:\n    - name: x\n      source: download', "requires a url"),
        ('version: "1"\nroot:\n  vars:\n    - name: x\n      source: download\n      url: u\n      postprocess: pdf',
         "unknown postprocess 'pdf'"),
        ('version: "1"\nroot:\n  vars:\n    - name: x\n      source: download\n      url: u\n      limit: -1',
         "limit must be a positive integer"),
        ('version: "1"\nroot:\n  vars:\n    - name: "has space"', "must be a non-empty string"),
        ('version: "1"\nroot:\n  vars:\n    - name: x\n      source: magic', "unknown source 'magic'"),
        ('version: "1"\nroot:\n  tests:\n    - text: t\n      expect: maybe', "expect must be 'yes' or 'no'"),
        ('version: "1"\nroot:\n  tests:\n    - pattern: x', "test requires 'text'"),
        ('version: "1"\nbackends:\n  w:\n    url: x\nroot: {}', "unknown field 'url'"),
        ('version: "1"\nroot:\n  steps:\n    - return: "a"\n    - name: b', "followed by another step"),
        ('version: "1"\nroot:\n  return: "${x}"\n  steps:\n    - return: "a"', "its parent declares a return"),
        ('- just\n- a list', "must be a YAML object"),
        ('version: "1"\nroot: [unclosed', "Failed to load workflow"),
    ])
    def test_invalid_workflows(self, text, fragment):
        with pytest.raises(WorkflowValidationError) as exc_info:
            self.loader.loads_yaml(text)
        assert fragment in str(exc_info.value)
        assert exc_info.value.exit_code == 2

    def test_errors_are_collected(self):
        with pytest.raises(WorkflowValidationError) as exc_info:
            self.loader.loads_yaml("""
version: "1"
root:
  bogus: 1
  vars:
    - name: x
      source: download
  steps:
    - tests:
        - expect: yes
""")
        assert len(exc_info.value.errors) == 3
        paths = [error.path for error in exc_info.value.errors]
        assert 'root.steps[0].tests[0]' in paths

    def test_trailing_leaf_child_accepted(self):
        document = self.loader.loads_yaml("""
version: "1"
root:
  steps:
    - name: a
      return:
        - name: x
          value: "1"
    - name: b
      return: "${x}"
""")
        assert WorkflowLoader.yields_text(document.root)

    def test_from_dict(self):
        document = self.loader.from_dict({'version': '1', 'root': {'prompt': 'hi'}})
        assert document.root.prompt == 'hi'


VALID_XML = """<?xml version="1.0"?>
<ai xmlns="http://www.zolinga.org/ai/workflow" name="story" backend="writer">
    <prompt>Write a story about ${topic}</prompt>
    <var name="topic">dragons</var>
    <var name="title" generate="yes" required="yes" pattern="^\\S"/>
    <var name="genre" generate="yes">
        <option>fantasy</option>
        <option value="sci-fi"/>
    </var>
    <test>Is '${title}' exciting?</test>
    <test pattern="^The" expect="no">${title}</test>
    <ai name="summary" prompt="Summarize ${title}">
        <var name="summary" source="ai"/>
        <return>
            <item name="title">${title}</item>
            <item>${summary}</item>
        </return>
    </ai>
</ai>
"""


class TestXmlLoader:
    """XML workflow loading."""

    def setup_method(self):
        self.loader = WorkflowLoader()

    def test_valid_workflow(self):
        document = self.loader.loads_xml(VALID_XML)

        assert document.name == 'story'
        assert document.backend == 'writer'

        root = document.root
        assert root.prompt == 'Write a story about ${topic}'
        assert root.local_variables == [LocalVariable(name='topic', value='dragons')]

        title, genre = root.generated_variables
        assert title.required
        assert title.pattern == '^\\S'
        assert genre.options == ('fantasy', 'sci-fi')

        judged, pattern = root.validators
        assert judged.text == "Is '${title}' exciting?"
        assert pattern.pattern == '^The'
        assert pattern.expect == 'no'

        (child,) = root.children
        assert child.name == 'summary'
        assert child.prompt == 'Summarize ${title}'
        assert [v.name for v in child.generated_variables] == ['summary']
        named, positional = child.returns.items
        assert named.name == 'title'
        assert positional.name is None
        assert positional.projection.template == '${summary}'

    def test_load_from_xml_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / 'workflow.xml'
            path.write_text(VALID_XML)
            document = self.loader.load(path)
        assert document.name == 'story'

    def test_wrong_root_element(self):
        with pytest.raises(WorkflowValidationError) as exc_info:
            self.loader.loads_xml('<workflow xmlns="http://www.zolinga.org/ai/workflow"/>')
        assert 'must be <ai>' in str(exc_info.value)

    def test_wrong_namespace(self):
        with pytest.raises(WorkflowValidationError) as exc_info:
            self.loader.loads_xml('<ai xmlns="http://example.com/other"/>')
        assert 'Unexpected XML namespace' in str(exc_info.value)

    def test_malformed_xml(self):
        with pytest.raises(WorkflowValidationError):
            self.loader.loads_xml('<ai>')
