"""Child-process plumbing for CLI-backed runtimes.

stdout and stderr are merged into one stream; stdin is only opened when the
runtime has to feed the CLI its prompt.
"""

from __future__ import annotations

import asyncio
import logging

log = logging.getLogger("transport")


class SubprocessTransport:
    def __init__(self):
        self.process: asyncio.subprocess.Process | None = None
        self.cancelled = False

    async def start(
        self,
        cmd: list[str],
        *,
        cwd: str,
        stdout_limit: int,
        env: dict[str, str] | None = None,
        with_stdin: bool = False,
    ) -> asyncio.StreamReader:
        self.process = await asyncio.create_subprocess_exec(
            *cmd,
            stdin=asyncio.subprocess.PIPE if with_stdin else asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
            cwd=cwd,
            env=env,
            limit=stdout_limit,
        )

        if self.process.stdout is None:
            raise RuntimeError("Subprocess stdout missing")

        return self.process.stdout

    async def write_text(self, text: str) -> None:
        if not self.process or self.process.stdin is None:
            raise RuntimeError("Subprocess stdin missing")
        self.process.stdin.write(text.encode())
        await self.process.stdin.drain()

    def close_stdin(self) -> None:
        if self.process and self.process.stdin and not self.process.stdin.is_closing():
            self.process.stdin.close()

    async def wait(self) -> int:
        if not self.process:
            return 0
        await self.process.wait()
        return int(self.process.returncode or 0)

    def cancel(self) -> None:
        self.cancelled = True
        if self.process and self.process.returncode is None:
            try:
                self.process.terminate()
            except ProcessLookupError:
                pass

    async def cancel_and_kill(self, timeout: float = 5.0) -> None:
        """Make sure the CLI is gone: SIGTERM, then SIGKILL after ``timeout``."""
        proc = self.process
        if proc is None or proc.returncode is not None:
            return
        self.cancel()
        try:
            await asyncio.wait_for(proc.wait(), timeout=timeout)
            return
        except asyncio.TimeoutError:
            log.warning(f"CLI pid {proc.pid} ignored SIGTERM for {timeout:.0f}s; killing")
        try:
            proc.kill()
        except ProcessLookupError:
            return
        await proc.wait()
