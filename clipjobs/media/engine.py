from __future__ import annotations

import logging
import os
import shutil
import subprocess
import tempfile
import threading
from concurrent.futures import Future
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, List, Optional, Sequence

from clipjobs.config import get_settings
from clipjobs.errors import EngineError, EngineUnavailable


@dataclass(frozen=True)
class EngineInfo:
    path: str
    version: str


class FFmpegEngine:
    """Batch filter-graph transform: input media + arguments -> output media.

    The binary is resolved once. The first caller performs the load while
    concurrent callers wait on the same future; a failed load is cleared so
    the next caller tries again.
    """

    def __init__(
        self,
        binary: str = "ffmpeg",
        timeout: float = 300.0,
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
        which: Callable[[str], Optional[str]] = shutil.which,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.binary = binary
        self.timeout = timeout
        self._runner = runner
        self._which = which
        self.log = logger or logging.getLogger(__name__)
        self._lock = threading.Lock()
        self._loading: Future[EngineInfo] | None = None

    def load(self) -> EngineInfo:
        with self._lock:
            future = self._loading
            owner = future is None
            if owner:
                future = self._loading = Future()
        if not owner:
            return future.result()
        try:
            info = self._locate()
        except Exception as exc:
            with self._lock:
                self._loading = None
            future.set_exception(exc)
            raise
        future.set_result(info)
        self.log.info("video engine loaded", extra={"path": info.path, "version": info.version})
        return info

    def run(
        self,
        inputs: Sequence[bytes],
        args: Sequence[str],
        input_suffix: str = ".mp4",
        output_suffix: str = ".mp4",
    ) -> bytes:
        if not inputs:
            raise EngineError("at least one input is required")
        info = self.load()
        with tempfile.TemporaryDirectory(prefix="clipjobs-") as workdir:
            command: List[str] = [info.path, "-hide_banner", "-loglevel", "error", "-y"]
            for idx, data in enumerate(inputs):
                path = os.path.join(workdir, f"input{idx}{input_suffix}")
                with open(path, "wb") as handle:
                    handle.write(data)
                command.extend(["-i", path])
            output_path = os.path.join(workdir, f"output{output_suffix}")
            command.extend(args)
            command.append(output_path)

            self.log.debug("running video engine", extra={"command": command})
            try:
                result = self._runner(command, capture_output=True, timeout=self.timeout, check=False)
            except subprocess.TimeoutExpired as exc:
                raise EngineError(f"video engine timed out after {self.timeout}s") from exc
            except OSError as exc:
                raise EngineUnavailable(f"video engine could not start: {exc}") from exc
            if result.returncode != 0:
                stderr = (result.stderr or b"").decode("utf-8", errors="replace").strip()
                self.log.error("video engine failed", extra={"returncode": result.returncode, "stderr": stderr[-2000:]})
                raise EngineError(f"video engine failed: {stderr[-500:] or result.returncode}")
            if not os.path.exists(output_path):
                raise EngineError("video engine produced no output")
            with open(output_path, "rb") as handle:
                return handle.read()

    def _locate(self) -> EngineInfo:
        path = self._which(self.binary)
        if not path:
            raise EngineUnavailable(f"{self.binary} is not installed on this server")
        try:
            result = self._runner([path, "-version"], capture_output=True, timeout=30, check=False)
        except (OSError, subprocess.TimeoutExpired) as exc:
            raise EngineUnavailable(f"{self.binary} could not be started: {exc}") from exc
        if result.returncode != 0:
            raise EngineUnavailable(f"{self.binary} -version exited with {result.returncode}")
        first_line = (result.stdout or b"").decode("utf-8", errors="replace").splitlines()
        return EngineInfo(path=path, version=first_line[0] if first_line else "unknown")


@lru_cache(maxsize=1)
def get_engine() -> FFmpegEngine:
    settings = get_settings()
    return FFmpegEngine(binary=settings.ffmpeg_binary, timeout=settings.ffmpeg_timeout)
