"""Runtime wiring and the command-line interface for the memory assistant."""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional, TextIO

from .clients import LLMClient
from .config import AI_MODEL, API_TIMEOUT, DEFAULT_DB_PATH, DEFAULT_PROVIDER, INITIAL_MESSAGE
from .errors import MemoryImportError, StorageError, ValidationError
from .manager import CompletionClient, MemoryManager
from .schemas import Memory, PipelineResult
from .storage import KeyValueDatabase, MemoryStore, export_filename

logger = logging.getLogger(__name__)


@dataclass
class PocketMemRuntime:
    """Build the store, client and manager from plain settings."""

    db_path: str = DEFAULT_DB_PATH
    llm_url: Optional[str] = None
    llm_model: str = AI_MODEL
    llm_provider: str = DEFAULT_PROVIDER
    api_key_env: Optional[str] = None
    timeout: float = API_TIMEOUT
    llm_client: Optional[CompletionClient] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if self.db_path != ":memory:":
            path = Path(self.db_path).expanduser()
            path.resolve().parent.mkdir(parents=True, exist_ok=True)
            self.db_path = str(path)

        self.database = KeyValueDatabase(self.db_path)
        self.store = MemoryStore(self.database)
        self.store.load()

        if self.llm_client is None:
            self.llm_client = LLMClient(
                base_url=self.llm_url,
                model=self.llm_model,
                provider=self.llm_provider,
                api_key_env=self.api_key_env,
                timeout=self.timeout,
            )
        self.manager = MemoryManager(store=self.store, llm_client=self.llm_client)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def submit(self, text: str) -> PipelineResult:
        return self.manager.submit(text)

    def export_to(self, output: Optional[Path] = None) -> Path:
        target = output or Path(export_filename())
        target.write_bytes(self.store.export_all())
        logger.info("Exported %s memories to %s", len(self.store), target)
        return target

    def import_from(self, source: Path) -> int:
        payload = source.read_bytes()
        return len(self.store.import_all(payload))

    def close(self) -> None:
        self.database.close()


def _format_memory(memory: Memory) -> str:
    return f"[{memory.id}] {memory.what}: {memory.value} (created {memory.created_at})"


def _print_memories(memories: Iterable[Memory], out: TextIO) -> None:
    items = list(memories)
    print(f"Saved Memories ({len(items)})", file=out)
    if not items:
        print("No memories saved yet", file=out)
    for memory in items:
        print(_format_memory(memory), file=out)


def _run_chat(runtime: PocketMemRuntime, stream: Iterable[str], out: TextIO) -> None:
    print(INITIAL_MESSAGE, file=out)
    for raw_line in stream:
        line = raw_line.strip()
        if not line:
            continue
        if line in {":quit", ":q", ":exit"}:
            break
        if line == ":list":
            _print_memories(runtime.store.memories, out)
            continue
        print(runtime.submit(line).render(), file=out)


def _confirm(question: str, stream: TextIO, out: TextIO) -> bool:
    print(f"{question} [y/N] ", end="", file=out, flush=True)
    answer = stream.readline().strip().lower()
    return answer in {"y", "yes"}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pocketmem", description="Personal memory assistant")
    parser.add_argument("--db", default=DEFAULT_DB_PATH, help="SQLite file holding the memories")
    parser.add_argument("--llm-url", default=None, help="Base URL of an OpenAI-compatible server")
    parser.add_argument("--llm-model", default=AI_MODEL, help="Model name used for every request")
    parser.add_argument(
        "--llm-provider",
        choices=["openai", "deepseek", "vllm"],
        default=DEFAULT_PROVIDER,
        help="LLM provider type",
    )
    parser.add_argument("--api-key-env", default=None, help="Environment variable holding the API key")
    parser.add_argument("--timeout", type=float, default=API_TIMEOUT, help="Request timeout in seconds")
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging to trace prompt/response payloads.",
    )

    sub = parser.add_subparsers(dest="command")
    sub.add_parser("chat", help="Interactive session (default)")
    ask = sub.add_parser("ask", help="Run a single statement or question")
    ask.add_argument("text", nargs="+")
    sub.add_parser("list", help="Show stored memories")
    edit = sub.add_parser("edit", help="Change a memory's label and value")
    edit.add_argument("id")
    edit.add_argument("--what", required=True)
    edit.add_argument("--value", required=True)
    delete = sub.add_parser("delete", help="Remove a memory")
    delete.add_argument("id")
    export = sub.add_parser("export", help="Write all memories to a JSON file")
    export.add_argument("--output", type=Path, default=None)
    imp = sub.add_parser("import", help="Replace all memories with a JSON file")
    imp.add_argument("path", type=Path)
    imp.add_argument("--yes", action="store_true", help="Skip the overwrite confirmation")
    sub.add_parser("restore-backup", help="Undo the last import")
    return parser


def main(
    argv: Optional[Iterable[str]] = None,
    *,
    stdin: Optional[TextIO] = None,
    stdout: Optional[TextIO] = None,
    llm_client: Optional[CompletionClient] = None,
) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    stdin = stdin or sys.stdin
    out = stdout or sys.stdout

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    try:
        runtime = PocketMemRuntime(
            db_path=str(args.db),
            llm_url=args.llm_url,
            llm_model=args.llm_model,
            llm_provider=args.llm_provider,
            api_key_env=args.api_key_env,
            timeout=args.timeout,
            llm_client=llm_client,
        )
    except StorageError as exc:
        logger.error("%s", exc)
        return 1

    command = args.command or "chat"
    try:
        if command == "chat":
            _run_chat(runtime, stdin, out)
        elif command == "ask":
            result = runtime.submit(" ".join(args.text))
            print(result.render(), file=out)
            return 0 if result.ok else 1
        elif command == "list":
            _print_memories(runtime.store.memories, out)
        elif command == "edit":
            if runtime.store.get(args.id) is None:
                print(f"No memory with id {args.id}", file=out)
                return 1
            runtime.store.edit(args.id, args.what, args.value)
            print(f"Updated {args.id}", file=out)
        elif command == "delete":
            runtime.store.delete(args.id)
            print(f"Deleted {args.id}", file=out)
        elif command == "export":
            target = runtime.export_to(args.output)
            print(f"Exported {len(runtime.store)} memories to {target}", file=out)
        elif command == "import":
            if runtime.store.memories and not args.yes:
                question = f"Replace {len(runtime.store)} stored memories with {args.path}?"
                if not _confirm(question, stdin, out):
                    print("Import cancelled.", file=out)
                    return 1
            count = runtime.import_from(args.path)
            print(f"Imported {count} memories", file=out)
        elif command == "restore-backup":
            runtime.store.restore_backup()
            print(f"Restored {len(runtime.store)} memories", file=out)
    except (ValidationError, MemoryImportError, StorageError) as exc:
        print(f"Error: {exc}", file=out)
        return 1
    except OSError as exc:
        print(f"Error: {exc}", file=out)
        return 1
    finally:
        # Pipeline results already carry the warning.
        if command not in {"chat", "ask"} and runtime.store.last_warning:
            print(runtime.store.last_warning, file=out)
        runtime.close()

    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
