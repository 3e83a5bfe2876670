"""External Mermaid CLI renderer (``mmdc``) producing image bytes."""

from __future__ import annotations

import logging
import shlex
import subprocess
import tempfile
from pathlib import Path

from mesflow.core.exceptions import RenderError, UnsupportedFormatError

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = ("png", "svg", "pdf")


class MermaidCliRenderer:
    """Production IRenderer that shells out to the Mermaid CLI.

    Failures are reported as RenderError with the CLI's stderr; nothing is retried.
    """

    def __init__(self, command: str = "mmdc", width: int = 2400, height: int = 3000,
                 background: str = "white", timeout: int = 120) -> None:
        self._command = shlex.split(command)
        self._width = width
        self._height = height
        self._background = background
        self._timeout = timeout

    def render(self, source: str, fmt: str = "png") -> bytes:
        if fmt not in SUPPORTED_FORMATS:
            raise UnsupportedFormatError(fmt, SUPPORTED_FORMATS)

        with tempfile.TemporaryDirectory(prefix="mesflow-render-") as tmp:
            src_path = Path(tmp) / "workflow.mmd"
            out_path = Path(tmp) / f"workflow.{fmt}"
            src_path.write_text(source, encoding="utf-8")

            cmd = [
                *self._command,
                "-i", str(src_path),
                "-o", str(out_path),
                "-b", self._background,
                "-w", str(self._width),
                "-H", str(self._height),
            ]
            logger.debug("Rendering diagram: %s", " ".join(cmd))
            try:
                subprocess.run(cmd, check=True, capture_output=True, text=True, timeout=self._timeout)
            except FileNotFoundError as exc:
                raise RenderError(f"Renderer command not found: {self._command[0]}") from exc
            except subprocess.TimeoutExpired as exc:
                raise RenderError(f"Renderer timed out after {self._timeout}s") from exc
            except subprocess.CalledProcessError as exc:
                stderr = (exc.stderr or "").strip()
                raise RenderError(f"Renderer exited with status {exc.returncode}: {stderr}") from exc

            if not out_path.exists():
                raise RenderError(f"Renderer produced no {fmt} output")
            return out_path.read_bytes()
