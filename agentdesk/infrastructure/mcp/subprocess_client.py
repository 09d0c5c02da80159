"""
stdio client for the AgentDesk MCP tool server.

Messages are newline-delimited JSON-RPC 2.0 on the child's stdin/stdout.
Requests are serialized by a lock, so at most one is in flight; anything
read while waiting that is not the matching response (log and progress
notifications) is dropped. The child inherits our stderr.
"""

import asyncio
import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "2024-11-05"
CLIENT_INFO = {"name": "agentdesk-agent", "version": "0.3.0"}
DEFAULT_TIMEOUT = 30
# A whole tool result arrives as one line; account and transaction lists can be large
STREAM_LIMIT = 16 * 1024 * 1024


@dataclass
class MCPToolSchema:
    name: str
    description: str | None = None
    inputSchema: dict[str, Any] = field(default_factory=dict)


@dataclass
class MCPToolResult:
    content: list[dict[str, Any]] = field(default_factory=list)
    isError: bool = False

    @classmethod
    def failure(cls, text: str) -> "MCPToolResult":
        return cls(content=[{"type": "text", "text": text}], isError=True)


def _encode(message: dict[str, Any]) -> bytes:
    return (json.dumps({"jsonrpc": "2.0", **message}) + "\n").encode()


class MCPSubprocessClient:
    """
    Spawn ``command`` and talk MCP to it.

    ``connect`` returns False instead of raising so the caller decides
    whether a missing tool server is fatal for the agent run.
    """

    def __init__(
        self,
        command: str,
        args: list[str] | None = None,
        env: dict[str, str] | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.command = command
        self.args = args or []
        self.env = env or {}
        self.timeout = timeout
        self.server_info: dict[str, Any] | None = None
        self._proc: asyncio.subprocess.Process | None = None
        self._next_id = 0
        self._lock = asyncio.Lock()

    @property
    def is_connected(self) -> bool:
        return self._proc is not None and self._proc.returncode is None

    async def connect(self) -> bool:
        logger.info(f"Launching tool server: {self.command} {' '.join(self.args)}")
        try:
            self._proc = await asyncio.create_subprocess_exec(
                self.command,
                *self.args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                env={**os.environ, **self.env},
                limit=STREAM_LIMIT,
            )
        except FileNotFoundError:
            logger.error(f"Tool server command not found: {self.command}")
            return False

        response = await self._request(
            "initialize",
            {
                "protocolVersion": PROTOCOL_VERSION,
                "capabilities": {},
                "clientInfo": CLIENT_INFO,
            },
        )
        if not response or "result" not in response:
            logger.error(f"Tool server handshake failed: {response}")
            await self.disconnect()
            return False

        self.server_info = response["result"].get("serverInfo", {})
        await self._write({"method": "notifications/initialized", "params": {}})
        logger.info(f"Tool server ready: {self.server_info}")
        return True

    async def disconnect(self) -> None:
        proc, self._proc, self.server_info = self._proc, None, None
        if proc is None or proc.returncode is not None:
            return
        try:
            proc.terminate()
            try:
                await asyncio.wait_for(proc.wait(), timeout=5)
            except TimeoutError:
                logger.warning("Tool server ignored SIGTERM, killing it")
                proc.kill()
                await proc.wait()
        except ProcessLookupError:
            pass

    async def list_tools(self) -> list[MCPToolSchema]:
        response = await self._request("tools/list", {})
        if not response or "result" not in response:
            return []
        return [
            MCPToolSchema(
                name=tool.get("name", ""),
                description=tool.get("description"),
                inputSchema=tool.get("inputSchema") or {},
            )
            for tool in response["result"].get("tools", [])
        ]

    async def call_tool(
        self, name: str, arguments: dict[str, Any], timeout: float | None = None
    ) -> MCPToolResult:
        logger.info(f"Tool call: {name}")
        response = await self._request(
            "tools/call", {"name": name, "arguments": arguments}, timeout=timeout
        )
        if not response:
            return MCPToolResult.failure("Unknown error")
        if "result" in response:
            result = response["result"]
            return MCPToolResult(
                content=result.get("content", []), isError=result.get("isError", False)
            )
        error = response.get("error")
        message = error.get("message", str(error)) if isinstance(error, dict) else error
        return MCPToolResult.failure(f"Error: {message}")

    async def _write(self, message: dict[str, Any]) -> None:
        self._proc.stdin.write(_encode(message))
        await self._proc.stdin.drain()

    async def _request(
        self, method: str, params: dict[str, Any], timeout: float | None = None
    ) -> dict[str, Any] | None:
        """Send one request and return the raw response, or None if none arrived."""
        if not self.is_connected:
            logger.error(f"Tool server not running; dropping {method}")
            return None

        async with self._lock:
            self._next_id += 1
            request_id = self._next_id
            try:
                await self._write({"id": request_id, "method": method, "params": params})
                return await asyncio.wait_for(
                    self._read_until(request_id), timeout=timeout or self.timeout
                )
            except TimeoutError:
                logger.error(f"Tool server did not answer {method} within {timeout or self.timeout}s")
            except json.JSONDecodeError as e:
                logger.error(f"Tool server wrote invalid JSON: {e}")
            except (BrokenPipeError, ConnectionResetError) as e:
                logger.error(f"Tool server pipe closed during {method}: {e}")
            return None

    async def _read_until(self, request_id: int) -> dict[str, Any] | None:
        while line := await self._proc.stdout.readline():
            if not line.strip():
                continue
            message = json.loads(line)
            if message.get("id") == request_id:
                return message
        logger.error("Tool server closed its stdout")
        return None
