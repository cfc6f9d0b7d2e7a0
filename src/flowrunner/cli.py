"""
Command-line interface for flowrunner.

Provides terminal access to:
- Workflow validation
- One-off workflow runs
- The node kind table
- The HTTP server
"""

import sys
import json
import argparse
from pathlib import Path
from typing import Any

from flowrunner.errors import InvalidGraph
from flowrunner.node_registry import get_default_registry
from flowrunner.observability import setup_logging
from flowrunner.workflow_runtime import WorkflowGraph, WorkflowRegistry, WorkflowExecutor


def load_definition(path: str) -> Any:
    """Read a workflow JSON file."""
    return json.loads(Path(path).read_text(encoding="utf-8"))


def cmd_validate(args: argparse.Namespace) -> int:
    """Validate a workflow definition."""
    try:
        graph = WorkflowGraph(load_definition(args.file))
    except InvalidGraph as e:
        print(f"Invalid workflow: {args.file}")
        for problem in e.problems:
            print(f"  - {problem}")
        return 1
    except (OSError, ValueError) as e:
        print(f"Error reading {args.file}: {e}")
        return 1

    print(f"Valid workflow: {graph.name}")
    print(f"Trigger: {graph.trigger_node.id}")
    print(f"Nodes: {len(graph.node_ids)}, edges: {len(graph.edges)}")
    return 0


def cmd_run(args: argparse.Namespace) -> int:
    """Run a workflow definition once and print the run as JSON."""
    setup_logging()

    try:
        definition = load_definition(args.file)
        payload = json.loads(args.payload) if args.payload else None
    except (OSError, ValueError) as e:
        print(f"Error reading input: {e}")
        return 1

    executor = WorkflowExecutor(WorkflowRegistry(), max_workers=1)
    try:
        run = executor.execute(definition, payload)
    except InvalidGraph as e:
        print(f"Invalid workflow: {e}")
        for problem in e.problems:
            print(f"  - {problem}")
        return 1
    finally:
        executor.shutdown()

    print(json.dumps(run.to_dict(), indent=2, default=str))
    return 0 if run.is_success else 1


def cmd_nodes(args: argparse.Namespace) -> int:
    """List the available node kinds."""
    definitions = get_default_registry().list_nodes()

    if args.json:
        print(json.dumps([d.model_dump() for d in definitions], indent=2))
        return 0

    for definition in definitions:
        outputs = ", ".join(definition.outputs) or "-"
        print(f"{definition.kind:<14} {definition.display_name:<18} outputs: {outputs}")
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    """Start the HTTP API."""
    import uvicorn

    uvicorn.run("flowrunner.api.main:app", host=args.host, port=args.port)
    return 0


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="flowrunner",
        description="Workflow automation runtime",
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # validate command
    validate_parser = subparsers.add_parser("validate", help="Validate a workflow JSON file")
    validate_parser.add_argument("file", help="Workflow JSON file")

    # run command
    run_parser = subparsers.add_parser("run", help="Run a workflow JSON file once")
    run_parser.add_argument("file", help="Workflow JSON file")
    run_parser.add_argument("--payload", help="Trigger payload as JSON")

    # nodes command
    nodes_parser = subparsers.add_parser("nodes", help="List node kinds")
    nodes_parser.add_argument("--json", action="store_true", help="Print full definitions as JSON")

    # serve command
    serve_parser = subparsers.add_parser("serve", help="Start the HTTP API")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Bind address")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port")

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    if args.command == "validate":
        return cmd_validate(args)
    elif args.command == "run":
        return cmd_run(args)
    elif args.command == "nodes":
        return cmd_nodes(args)
    elif args.command == "serve":
        return cmd_serve(args)
    else:
        print(f"Unknown command: {args.command}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
