"""Process state machine for managed fixture processes.

Handles:
- Spawning the binary in its own process group
- Draining and teeing stdout/stderr on a background thread
- Waiting for readiness (output marker or health endpoint), timeout or exit
- Graceful stop with escalation to SIGKILL
- Cleanup of the directory created during defaulting

Lifecycle: NOT_STARTED -> STARTING -> READY -> STOPPING -> STOPPED, or
STARTING -> FAILED. A ProcessState is single-use.
"""

from __future__ import annotations

import codecs
import io
import logging
import os
import re
import selectors
import signal
import subprocess
import threading
import time
from collections.abc import Callable, Sequence
from enum import Enum
from typing import IO, Any, Union

from ..errors import (
    ConfigurationError,
    EarlyExitError,
    FixtureError,
    StartTimeoutError,
    StopError,
    tail_message,
)
from .defaulting import DefaultedProcessInput, remove_owned_dir
from .health import HealthProbe

logger = logging.getLogger(__name__)

ReadinessMarker = Union[str, re.Pattern]

OUTPUT_BUFFER_LIMIT = 64 * 1024
OUTPUT_TAIL_LIMIT = 4 * 1024
READ_CHUNK_SIZE = 4096
POLL_INTERVAL = 0.1
PUMP_JOIN_TIMEOUT = 5.0


class ProcessPhase(Enum):
    """Lifecycle phase of a managed process."""

    NOT_STARTED = "not_started"
    STARTING = "starting"
    READY = "ready"
    STOPPING = "stopping"
    STOPPED = "stopped"
    FAILED = "failed"


class _Stream:
    """One child pipe with its sink and scan buffer."""

    def __init__(self, label: str, pipe: IO[bytes], sink: IO[Any] | None):
        self.label = label
        self.pipe = pipe
        self.sink = sink
        self.decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self.text = ""


class OutputPump(threading.Thread):
    """Drain a child's output pipes until EOF.

    Output is read in raw chunks, never assuming line buffering. Each chunk
    is written to the stream's sink, appended to a rolling per-stream
    buffer that is scanned for the readiness marker, and to a combined tail
    kept for error reports. Draining continues after the marker is found so
    the child never blocks on a full pipe.
    """

    def __init__(
        self,
        name: str,
        stdout: IO[bytes],
        stderr: IO[bytes],
        out: IO[Any] | None = None,
        err: IO[Any] | None = None,
        marker: ReadinessMarker | None = None,
        on_event: Callable[[], None] | None = None,
    ):
        super().__init__(name=f"{name}-output", daemon=True)
        self.marker = marker
        self._streams = [_Stream("stdout", stdout, out), _Stream("stderr", stderr, err)]
        self._on_event = on_event or (lambda: None)
        self._lock = threading.Lock()
        self._tail = ""
        self._matched = threading.Event()
        self._ready_message: str | None = None
        self._closing = threading.Event()

    @property
    def matched(self) -> bool:
        """Whether the readiness marker has been seen."""
        return self._matched.is_set()

    @property
    def ready_message(self) -> str | None:
        """Output line that contained the readiness marker."""
        return self._ready_message

    def output_tail(self) -> str:
        """Most recent combined output, decoded."""
        with self._lock:
            return self._tail

    def close(self) -> None:
        """Ask the pump to stop even if the pipes are still open."""
        self._closing.set()

    def run(self) -> None:
        selector = selectors.DefaultSelector()
        for stream in self._streams:
            selector.register(stream.pipe, selectors.EVENT_READ, stream)
        try:
            while selector.get_map() and not self._closing.is_set():
                for key, _ in selector.select(timeout=POLL_INTERVAL):
                    stream = key.data
                    try:
                        chunk = os.read(key.fd, READ_CHUNK_SIZE)
                    except OSError:
                        chunk = b""
                    if not chunk:
                        selector.unregister(key.fileobj)
                        self._feed(stream, b"", final=True)
                        continue
                    self._feed(stream, chunk)
        finally:
            selector.close()
            for stream in self._streams:
                stream.pipe.close()
            self._on_event()

    def _feed(self, stream: _Stream, chunk: bytes, final: bool = False) -> None:
        text = stream.decoder.decode(chunk, final=final)
        if not text and not chunk:
            return
        self._write_sink(stream, chunk, text)
        if not text:
            return
        stream.text = (stream.text + text)[-OUTPUT_BUFFER_LIMIT:]
        with self._lock:
            self._tail = (self._tail + text)[-OUTPUT_TAIL_LIMIT:]
        if self.marker is not None and not self._matched.is_set():
            message = _find_marker(stream.text, self.marker)
            if message is not None:
                self._ready_message = message
                self._matched.set()
                self._on_event()

    def _write_sink(self, stream: _Stream, chunk: bytes, text: str) -> None:
        sink = stream.sink
        if sink is None:
            return
        try:
            if isinstance(sink, io.TextIOBase):
                if text:
                    sink.write(text)
            elif chunk:
                sink.write(chunk)
        except (OSError, ValueError) as e:
            logger.warning(f"Dropping {stream.label} sink for {self.name}: {e}")
            stream.sink = None


def _find_marker(text: str, marker: ReadinessMarker) -> str | None:
    if isinstance(marker, str):
        index = text.find(marker)
        end = index + len(marker)
    else:
        match = marker.search(text)
        if match is None:
            return None
        index, end = match.start(), match.end()
    if index < 0:
        return None
    line_start = text.rfind("\n", 0, index) + 1
    line_end = text.find("\n", end)
    return text[line_start : line_end if line_end >= 0 else len(text)].rstrip("\r")


class ProcessState:
    """Own one managed child process from spawn to teardown."""

    def __init__(
        self,
        name: str,
        defaulted: DefaultedProcessInput,
        args: Sequence[str] = (),
        start_message: ReadinessMarker | None = None,
        health_check_url: str = "",
    ):
        """Initialize process state.

        Args:
            name: Component name for logs and errors
            defaulted: Resolved inputs (binary, URL, directory, timeouts)
            args: Rendered command-line arguments
            start_message: Substring or compiled pattern signalling readiness
            health_check_url: If set, readiness is a 200 from this URL
                instead of the start message
        """
        if start_message is None and not health_check_url:
            raise ConfigurationError(
                message="Either a start message or a health check URL is required",
                component=name,
            )
        self.name = name
        self.input = defaulted
        self.args = list(args)
        self.start_message = start_message
        self.health_check_url = health_check_url

        self._phase = ProcessPhase.NOT_STARTED
        self._process: subprocess.Popen[bytes] | None = None
        self._pump: OutputPump | None = None
        self._wake = threading.Event()
        self._sinks: list[IO[Any]] = []
        self._ready_url: str | None = None
        self._started_at = 0.0

    @property
    def phase(self) -> ProcessPhase:
        return self._phase

    @property
    def pid(self) -> int | None:
        """PID of the child, once spawned."""
        return self._process.pid if self._process else None

    @property
    def exit_code(self) -> int | None:
        """Exit status, negative for a signal, None while running."""
        return self._process.poll() if self._process else None

    @property
    def ready_url(self) -> str | None:
        """URL confirmed by readiness, None before READY."""
        return self._ready_url

    @property
    def ready_message(self) -> str | None:
        """Output line that carried the readiness marker."""
        return self._pump.ready_message if self._pump else None

    def output_tail(self) -> str:
        """Most recent combined stdout/stderr of the child."""
        return self._pump.output_tail() if self._pump else ""

    def start(self, out: IO[Any] | None = None, err: IO[Any] | None = None) -> None:
        """Launch the process and block until it is ready.

        Args:
            out: Sink receiving the child's stdout
            err: Sink receiving the child's stderr

        Raises:
            FixtureError: If this state was already started.
            ConfigurationError: If the binary cannot be executed.
            StartTimeoutError: If readiness was not reached in time.
            EarlyExitError: If the process exited before becoming ready.
        """
        if self._phase is not ProcessPhase.NOT_STARTED:
            raise FixtureError(
                message=f"Cannot start from phase {self._phase.value}", component=self.name
            )
        self._phase = ProcessPhase.STARTING
        self._sinks = [sink for sink in (out, err) if sink is not None]

        command = [str(self.input.path), *self.args]
        self._started_at = time.monotonic()
        try:
            self._process = subprocess.Popen(
                command,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                start_new_session=True,
            )
        except OSError as e:
            self._release()
            self._phase = ProcessPhase.FAILED
            raise ConfigurationError(
                message=f"Cannot execute {self.input.path}: {e}", component=self.name
            ) from e

        logger.info(f"Started {self.name} (PID {self._process.pid}): {' '.join(command)}")

        self._pump = OutputPump(
            self.name,
            self._process.stdout,
            self._process.stderr,
            out=out,
            err=err,
            marker=None if self.health_check_url else self.start_message,
            on_event=self._wake.set,
        )
        self._pump.start()
        try:
            self._wait_for_ready()
        except BaseException:
            if self._phase is ProcessPhase.STARTING:
                self._abort()
            raise

    def stop(self) -> None:
        """Stop the process gracefully, escalating to SIGKILL.

        No-op unless the process is running. Idempotent.

        Raises:
            FixtureError: If called while start() is still waiting.
            StopError: If the process could not be killed.
        """
        if self._phase in (
            ProcessPhase.NOT_STARTED,
            ProcessPhase.STOPPED,
            ProcessPhase.FAILED,
        ):
            return
        if self._phase is ProcessPhase.STARTING:
            raise FixtureError(
                message="Cannot stop while start is in progress", component=self.name
            )

        self._phase = ProcessPhase.STOPPING
        try:
            self._terminate()
        finally:
            self._release()
        self._phase = ProcessPhase.STOPPED

    def _wait_for_ready(self) -> None:
        assert self._process is not None and self._pump is not None
        deadline = self._started_at + self.input.start_timeout
        probe = HealthProbe(self.health_check_url) if self.health_check_url else None
        try:
            while True:
                self._wake.clear()
                if self._is_ready(probe):
                    self._mark_ready()
                    return

                exit_code = self._process.poll()
                if exit_code is not None:
                    self._handle_early_exit(exit_code)
                    return

                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    self._handle_timeout()
                self._wake.wait(min(remaining, POLL_INTERVAL))
        finally:
            if probe is not None:
                probe.close()

    def _is_ready(self, probe: HealthProbe | None) -> bool:
        assert self._pump is not None
        if probe is None:
            return self._pump.matched
        return probe.check().healthy

    def _mark_ready(self) -> None:
        self._ready_url = str(self.input.url)
        self._phase = ProcessPhase.READY
        elapsed = time.monotonic() - self._started_at
        logger.info(f"{self.name} ready at {self._ready_url} after {elapsed:.2f}s")

    def _handle_early_exit(self, exit_code: int) -> None:
        assert self._pump is not None
        # Output written right before exit may still be in the pipe
        self._pump.join(PUMP_JOIN_TIMEOUT)
        if not self.health_check_url and self._pump.matched:
            self._mark_ready()
            return

        tail = self._pump.output_tail()
        self._abort()
        logger.error(f"{self.name} exited with status {exit_code} before becoming ready")
        raise EarlyExitError(
            message=tail_message(
                f"Process exited with status {exit_code} before becoming ready", tail
            ),
            component=self.name,
            exit_code=exit_code,
            output_tail=tail,
        )

    def _handle_timeout(self) -> None:
        assert self._pump is not None
        timeout = self.input.start_timeout
        logger.error(f"{self.name} did not become ready within {timeout}s, killing it")
        self._abort()
        tail = self._pump.output_tail()
        raise StartTimeoutError(
            message=tail_message(f"Process did not become ready within {timeout}s", tail),
            component=self.name,
            timeout=timeout,
            output_tail=tail,
        )

    def _abort(self) -> None:
        """Kill whatever is left of the process group and release resources."""
        self._signal_group(signal.SIGKILL, quiet=True)
        if self._process is not None:
            self._process.wait()
        self._release()
        self._phase = ProcessPhase.FAILED

    def _terminate(self) -> None:
        process = self._process
        assert process is not None

        if process.poll() is None:
            logger.info(f"Sending SIGTERM to {self.name} (PID {process.pid})")
            self._signal_group(signal.SIGTERM, quiet=True)
            try:
                process.wait(timeout=self.input.stop_timeout)
            except subprocess.TimeoutExpired:
                logger.warning(
                    f"{self.name} did not exit within {self.input.stop_timeout}s, "
                    f"sending SIGKILL"
                )
                try:
                    self._signal_group(signal.SIGKILL)
                except OSError as e:
                    raise StopError(
                        message=f"Failed to kill process: {e}",
                        component=self.name,
                        pid=process.pid,
                    ) from e
                process.wait()
                logger.info(f"{self.name} force-killed (PID {process.pid})")
                return

        # The leader is gone; sweep anything it left in its group
        self._signal_group(signal.SIGKILL, quiet=True)
        logger.info(f"{self.name} stopped (was PID {process.pid})")

    def _signal_group(self, sig: signal.Signals, quiet: bool = False) -> None:
        if self._process is None:
            return
        try:
            os.killpg(self._process.pid, sig)
        except ProcessLookupError:
            pass  # Already gone
        except OSError as e:
            if not quiet:
                raise
            logger.debug(f"Could not send {sig.name} to {self.name}: {e}")

    def _release(self) -> None:
        """Join the pump, flush sinks, remove the owned directory. Best-effort."""
        if self._pump is not None and self._pump.is_alive():
            self._pump.join(PUMP_JOIN_TIMEOUT)
            if self._pump.is_alive():
                logger.warning(f"Output of {self.name} still open after exit, closing it")
                self._pump.close()
                self._pump.join(PUMP_JOIN_TIMEOUT)

        for sink in self._sinks:
            try:
                sink.flush()
            except (OSError, ValueError) as e:
                logger.debug(f"Could not flush sink of {self.name}: {e}")

        remove_owned_dir(self.input)
