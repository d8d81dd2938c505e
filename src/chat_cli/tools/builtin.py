"""Registration of the built-in tool set."""

from dataclasses import dataclass, field
from functools import partial

import httpx

from chat_cli.config import AppConfig
from chat_cli.tools.adapters import BuiltinAdapter
from chat_cli.tools.filesystem import (
    describe_list_directory,
    describe_read_file,
    describe_replace,
    describe_write_file,
    list_directory_executor,
    list_directory_tool,
    read_file_executor,
    read_file_tool,
    replace_executor,
    replace_tool,
    write_file_executor,
    write_file_tool,
)
from chat_cli.tools.memory import (
    FactStore,
    describe_save_memory,
    save_memory_executor,
    save_memory_tool,
)
from chat_cli.tools.registry import ToolRegistry
from chat_cli.tools.search import (
    describe_glob,
    describe_read_many_files,
    describe_search_file_content,
    glob_executor,
    glob_tool,
    read_many_files_executor,
    read_many_files_tool,
    search_file_content_executor,
    search_file_content_tool,
)
from chat_cli.tools.shell import (
    ShellProcessArena,
    describe_run_shell_command,
    run_shell_command_executor,
    run_shell_command_tool,
)
from chat_cli.tools.web import describe_web_fetch, web_fetch_executor, web_fetch_tool


@dataclass
class BuiltinToolContext:
    """Runtime state the built-in executors are bound to."""

    config: AppConfig
    arena: ShellProcessArena = field(default_factory=ShellProcessArena)
    fact_store: FactStore | None = None
    http_transport: httpx.AsyncBaseTransport | None = None

    def __post_init__(self) -> None:
        if self.fact_store is None:
            self.fact_store = FactStore(self.config.memory_file)


def build_builtin_adapters(context: BuiltinToolContext) -> list[BuiltinAdapter]:
    """Adapters for every built-in tool, in registration order."""
    config = context.config
    root = config.project_root
    timeout = config.tool_timeout_seconds
    return [
        BuiltinAdapter(
            list_directory_tool, list_directory_executor, describe_list_directory, timeout
        ),
        BuiltinAdapter(
            read_file_tool,
            partial(read_file_executor, max_size_mb=config.read_file_max_size_mb),
            describe_read_file,
            timeout,
        ),
        BuiltinAdapter(
            search_file_content_tool,
            partial(search_file_content_executor, root=root),
            describe_search_file_content,
            timeout,
        ),
        BuiltinAdapter(glob_tool, partial(glob_executor, root=root), describe_glob, timeout),
        BuiltinAdapter(replace_tool, replace_executor, describe_replace, timeout),
        BuiltinAdapter(
            write_file_tool,
            partial(write_file_executor, create_parents=config.write_file_create_parents),
            describe_write_file,
            timeout,
        ),
        BuiltinAdapter(
            web_fetch_tool,
            partial(
                web_fetch_executor,
                timeout_seconds=config.web_fetch_timeout_seconds,
                max_content_chars=config.web_fetch_max_content_chars,
                transport=context.http_transport,
            ),
            describe_web_fetch,
            timeout,
        ),
        BuiltinAdapter(
            read_many_files_tool,
            partial(read_many_files_executor, root=root),
            describe_read_many_files,
            timeout,
        ),
        # The shell executor enforces its own timeout and kills the process group.
        BuiltinAdapter(
            run_shell_command_tool,
            partial(
                run_shell_command_executor,
                project_root=root,
                arena=context.arena,
                timeout_seconds=config.shell_timeout_seconds,
                output_limit_bytes=config.shell_output_limit_bytes,
            ),
            describe_run_shell_command,
            None,
        ),
        BuiltinAdapter(
            save_memory_tool,
            partial(save_memory_executor, store=context.fact_store),
            describe_save_memory,
            timeout,
        ),
    ]


def register_builtin_tools(registry: ToolRegistry, context: BuiltinToolContext) -> None:
    """Register every built-in tool.

    Raises:
        DuplicateNameError: If a built-in name is already taken.
    """
    for adapter in build_builtin_adapters(context):
        registry.register(adapter.definition, adapter)
