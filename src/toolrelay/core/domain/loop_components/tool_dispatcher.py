"""Tool dispatch for the agent loop."""

from __future__ import annotations

import asyncio
import time
from collections import OrderedDict
from typing import Any

import structlog

from toolrelay.core.domain.errors import (
    CancelledError,
    ToolExecutionError,
    ToolNotFoundError,
    ToolrelayError,
    ToolServerConnectionError,
    ToolTimeoutError,
    tool_error_result,
)
from toolrelay.core.domain.models import ToolCallRequest, ToolCallResult
from toolrelay.core.interfaces.logging import LoggerProtocol
from toolrelay.core.interfaces.tools import ToolServerRegistryProtocol

QUALIFIED_NAME_SEPARATOR = ":"


class ToolDispatcher:
    """Execute planned tool calls against registered tool servers.

    Guarantees:
    - One ``ToolCallResult`` per request, in request order
    - A failing call never aborts the batch
    - Calls to different servers run concurrently, calls to the same server
      run one after another
    """

    def __init__(
        self,
        *,
        registry: ToolServerRegistryProtocol,
        logger: LoggerProtocol | None = None,
    ) -> None:
        self._registry = registry
        self._logger = logger or structlog.get_logger(__name__).bind(
            component="tool_dispatcher"
        )
        self._tool_index: dict[str, str] | None = None
        self._indexed_servers: tuple[str, ...] = ()
        self._index_version = 0

    @property
    def index_version(self) -> int:
        """Incremented every time the tool index is rebuilt."""
        return self._index_version

    async def tool_index(self, refresh: bool = False) -> dict[str, str]:
        """Map tool names to the server advertising them.

        The first server to advertise a name wins; later duplicates are only
        reachable through a qualified ``server:tool`` name.

        The index is cached only when every server listed its tools, and it
        is rebuilt when the registry's set of servers changes.
        """
        servers = tuple(self._registry.server_names())
        if (
            self._tool_index is not None
            and not refresh
            and servers == self._indexed_servers
        ):
            return self._tool_index

        index: dict[str, str] = {}
        complete = True
        for server_name in servers:
            try:
                descriptors = await self._registry.list_tools(server_name)
            except ToolrelayError as error:
                complete = False
                self._logger.warning(
                    "tool_listing_failed",
                    server=server_name,
                    error=str(error),
                    error_type=error.kind,
                )
                continue
            for descriptor in descriptors:
                if descriptor.name in index:
                    self._logger.debug(
                        "duplicate_tool_name",
                        tool=descriptor.name,
                        kept_server=index[descriptor.name],
                        ignored_server=server_name,
                    )
                    continue
                index[descriptor.name] = server_name

        self._index_version += 1
        self._tool_index = index if complete else None
        self._indexed_servers = servers
        return index

    async def resolve(self, tool_name: str) -> tuple[str, str] | None:
        """Resolve a requested name to ``(server_name, tool_name)``.

        A miss against a cached index rebuilds it once before giving up.
        """
        if QUALIFIED_NAME_SEPARATOR in tool_name:
            server, _, bare = tool_name.partition(QUALIFIED_NAME_SEPARATOR)
            if server in self._registry.server_names() and bare:
                return server, bare

        was_cached = self._tool_index is not None
        index = await self.tool_index()
        server_name = index.get(tool_name)
        if server_name is None and was_cached:
            server_name = (await self.tool_index(refresh=True)).get(tool_name)
        if server_name is None:
            return None
        return server_name, tool_name

    async def execute(
        self,
        requests: list[ToolCallRequest],
        *,
        timeout: float,
        cancel_event: asyncio.Event | None = None,
    ) -> list[ToolCallResult]:
        """Execute a batch of tool calls.

        Args:
            requests: Tool calls in the order the model planned them.
            timeout: Per-call timeout in seconds.
            cancel_event: When set, calls that have not started yet are
                reported as cancelled. In-flight calls finish.

        Returns:
            Results in request order, one per request.
        """
        results: list[ToolCallResult | None] = [None] * len(requests)
        groups: OrderedDict[str, list[tuple[int, str, ToolCallRequest]]] = OrderedDict()

        for position, request in enumerate(requests):
            resolved = await self.resolve(request.name)
            if resolved is None:
                error = ToolNotFoundError(
                    f"Tool not found: {request.name}", tool_name=request.name
                )
                self._log_failure(request, "", error)
                results[position] = tool_error_result(error, tool_name=request.name)
                continue
            server_name, bare_name = resolved
            groups.setdefault(server_name, []).append((position, bare_name, request))

        if groups:
            self._logger.info(
                "tool_batch_dispatch",
                calls=len(requests),
                servers=list(groups.keys()),
            )

        group_results = await asyncio.gather(
            *(
                self._run_server_group(server_name, calls, timeout, cancel_event)
                for server_name, calls in groups.items()
            )
        )
        for batch in group_results:
            for position, result in batch:
                results[position] = result

        return [result for result in results if result is not None]

    async def _run_server_group(
        self,
        server_name: str,
        calls: list[tuple[int, str, ToolCallRequest]],
        timeout: float,
        cancel_event: asyncio.Event | None,
    ) -> list[tuple[int, ToolCallResult]]:
        """Run all calls for one server sequentially."""
        outcomes: list[tuple[int, ToolCallResult]] = []
        connection_error: ToolServerConnectionError | None = None

        for position, bare_name, request in calls:
            if connection_error is not None:
                outcomes.append(
                    (
                        position,
                        tool_error_result(
                            connection_error, tool_name=request.name, server_name=server_name
                        ),
                    )
                )
                continue

            if cancel_event is not None and cancel_event.is_set():
                error = CancelledError(
                    f"Tool call '{request.name}' not started: loop cancelled",
                    details={"tool_name": request.name},
                )
                self._log_failure(request, server_name, error)
                outcomes.append(
                    (
                        position,
                        tool_error_result(error, tool_name=request.name, server_name=server_name),
                    )
                )
                continue

            try:
                result = await self._call_one(server_name, bare_name, request, timeout)
            except ToolServerConnectionError as error:
                connection_error = error
                self._log_failure(request, server_name, error)
                result = tool_error_result(
                    error, tool_name=request.name, server_name=server_name
                )
            outcomes.append((position, result))

        return outcomes

    async def _call_one(
        self,
        server_name: str,
        bare_name: str,
        request: ToolCallRequest,
        timeout: float,
    ) -> ToolCallResult:
        """Execute one call. Only connection faults escape as exceptions."""
        self._logger.info(
            "tool_execute",
            tool=request.name,
            server=server_name,
            args_keys=list(request.arguments.keys()),
        )
        start_time = time.time()

        def elapsed_ms() -> int:
            return int((time.time() - start_time) * 1000)

        try:
            outcome = await asyncio.wait_for(
                self._registry.call_tool(
                    server_name, bare_name, dict(request.arguments), timeout
                ),
                timeout=timeout,
            )
        except ToolServerConnectionError:
            raise
        except asyncio.TimeoutError:
            error: ToolrelayError = ToolTimeoutError(
                f"Tool '{request.name}' timed out after {timeout:g}s",
                tool_name=request.name,
                server_name=server_name,
                details={"timeout_seconds": timeout},
            )
            self._log_failure(request, server_name, error)
            return tool_error_result(
                error, tool_name=request.name, server_name=server_name, duration_ms=elapsed_ms()
            )
        except ToolrelayError as error:
            self._log_failure(request, server_name, error)
            return tool_error_result(
                error, tool_name=request.name, server_name=server_name, duration_ms=elapsed_ms()
            )
        except Exception as exc:
            error = ToolExecutionError(
                f"Tool '{request.name}' raised {type(exc).__name__}: {exc}",
                tool_name=request.name,
                server_name=server_name,
            )
            self._log_failure(request, server_name, error)
            return tool_error_result(
                error, tool_name=request.name, server_name=server_name, duration_ms=elapsed_ms()
            )

        if outcome.is_error:
            error = ToolExecutionError(
                outcome.content or f"Tool '{request.name}' reported an error",
                tool_name=request.name,
                server_name=server_name,
            )
            self._log_failure(request, server_name, error)
            return ToolCallResult(
                tool_name=request.name,
                server_name=server_name,
                success=False,
                content=outcome.content,
                error=str(error),
                error_type=error.kind,
                duration_ms=elapsed_ms(),
            )

        self._logger.info(
            "tool_complete",
            tool=request.name,
            server=server_name,
            latency_ms=elapsed_ms(),
        )
        return ToolCallResult(
            tool_name=request.name,
            server_name=server_name,
            success=True,
            content=outcome.content,
            duration_ms=elapsed_ms(),
        )

    def _log_failure(
        self, request: ToolCallRequest, server_name: str, error: ToolrelayError
    ) -> None:
        self._logger.warning(
            "tool_call_failed",
            tool=request.name,
            server=server_name or None,
            error_type=error.kind,
            error=str(error)[:200],
        )


def summarize_results(results: list[ToolCallResult]) -> dict[str, Any]:
    """Aggregate counts for logging."""
    failed = [r for r in results if not r.success]
    return {
        "total": len(results),
        "succeeded": len(results) - len(failed),
        "failed": len(failed),
        "failed_kinds": sorted({r.error_type or "unknown" for r in failed}),
    }
