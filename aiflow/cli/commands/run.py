"""Run command implementation."""

import json
import logging
import sys
from argparse import Namespace
from pathlib import Path
from typing import Any, Dict

from aiflow.exceptions import WorkflowError, WorkflowValidationError
from aiflow.exec.retry import RetryPolicy
from aiflow.loader import WorkflowLoader
from aiflow.model import WorkflowDocument
from aiflow.providers.registry import BackendRegistry
from aiflow.providers.types import BackendConfig
from aiflow.variables.blocks import BlockTransformer
from aiflow.workflow.engine import WorkflowEngine


logger = logging.getLogger(__name__)


def parse_context(args: Namespace) -> Dict[str, str]:
    """Parse initial variables from command line arguments."""
    context = {}

    # Parse context from JSON file
    if args.context_file:
        context_file = Path(args.context_file)
        if not context_file.exists():
            raise FileNotFoundError(f"Context file not found: {context_file}")

        with open(context_file, 'r') as f:
            file_context = json.load(f)
            if not isinstance(file_context, dict):
                raise ValueError(f"Context file must contain a JSON object, got {type(file_context).__name__}")

            # Convert all values to strings
            for key, value in file_context.items():
                context[str(key)] = str(value)

    # KEY=VALUE pairs win over the file
    if args.context:
        for item in args.context:
            if '=' not in item:
                raise ValueError(f"Invalid context format: {item}. Expected KEY=VALUE")
            key, value = item.split('=', 1)
            context[key] = value

    return context


def build_registry(args: Namespace, document: WorkflowDocument) -> BackendRegistry:
    """Create the backend registry from environment, CLI overrides and the workflow."""
    registry = BackendRegistry()

    if args.backend_uri or args.model:
        default = registry.get('default')
        registry.register(BackendConfig(
            name='default',
            uri=args.backend_uri or default.uri,
            model=args.model or default.model,
            timeout_sec=default.timeout_sec,
            options=default.options,
        ))

    errors = registry.register_from_workflow(document.backends)
    if errors:
        raise ValueError(f"Backend registration errors: {'; '.join(errors)}")
    return registry


def transform_result(result: Any, transformer: BlockTransformer) -> Any:
    """Apply block transforms to every string in a result."""
    if isinstance(result, str):
        return transformer.transform(result)
    if isinstance(result, dict):
        return {key: transform_result(value, transformer) for key, value in result.items()}
    return result


def format_result(result: Any) -> str:
    if isinstance(result, str):
        return result
    return json.dumps(result, indent=2, ensure_ascii=False)


def run_workflow(args: Namespace) -> int:
    """
    Run a workflow and print its result.

    Exit codes: 0 success, 2 invalid workflow or arguments, 1 runtime failure.
    """
    # Set up logging
    log_level = getattr(logging, args.log_level.upper().replace('WARN', 'WARNING'))
    if args.debug:
        log_level = logging.DEBUG
    elif args.quiet:
        log_level = logging.ERROR
    elif args.verbose:
        log_level = logging.DEBUG

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    try:
        workflow_path = Path(args.workflow).resolve()
        if not workflow_path.exists():
            logger.error(f"Workflow file not found: {workflow_path}")
            return 1

        logger.info(f"Loading workflow: {workflow_path}")
        loader = WorkflowLoader()
        try:
            document = loader.load(workflow_path)
        except WorkflowValidationError as e:
            for error in e.errors:
                where = f" ({error.path})" if error.path else ""
                logger.error(f"Validation error{where}: {error.message}")
            return e.exit_code

        if args.dry_run:
            logger.info("[DRY RUN] Workflow validation successful")
            return 0

        context = parse_context(args)
        engine = WorkflowEngine(
            document,
            build_registry(args, document),
            retry_policy=RetryPolicy(max_attempts=args.max_retries + 1, delay_ms=args.retry_delay),
            backend_selector=args.backend,
        )
        result = engine.run(context)

        if args.transform_blocks:
            result = transform_result(result, BlockTransformer())

        output = format_result(result)
        if args.output:
            Path(args.output).write_text(output, encoding='utf-8')
            logger.info(f"Result written to {args.output}")
        else:
            sys.stdout.write(output + "\n")

        return 0

    except FileNotFoundError as e:
        logger.error(f"File not found: {e}")
        return 1
    except WorkflowError as e:
        logger.error(f"Workflow failed: {e}")
        return 1
    except ValueError as e:
        logger.error(f"Validation error: {e}")
        return 2
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        return 1
