"""Tests for the Mermaid CLI renderer (subprocess patched)."""

from __future__ import annotations

import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from mesflow.core.exceptions import RenderError, UnsupportedFormatError
from mesflow.rendering.renderer import MermaidCliRenderer


def _fake_mmdc(output: bytes = b"IMG"):
    def run(cmd, **kwargs):
        out = Path(cmd[cmd.index("-o") + 1])
        out.write_bytes(output)
        return subprocess.CompletedProcess(cmd, 0, "", "")
    return run


class TestRender:
    def test_returns_output_bytes(self):
        renderer = MermaidCliRenderer()
        with patch("mesflow.rendering.renderer.subprocess.run", side_effect=_fake_mmdc(b"PNGDATA")):
            assert renderer.render("graph TD\n  A --> B\n", "png") == b"PNGDATA"

    def test_command_line(self):
        renderer = MermaidCliRenderer(command="npx mmdc", width=800, height=600, background="transparent")
        with patch("mesflow.rendering.renderer.subprocess.run", side_effect=_fake_mmdc()) as run:
            renderer.render("graph TD", "svg")
        cmd = run.call_args.args[0]
        assert cmd[:2] == ["npx", "mmdc"]
        assert cmd[cmd.index("-b") + 1] == "transparent"
        assert cmd[cmd.index("-w") + 1] == "800"
        assert cmd[cmd.index("-H") + 1] == "600"
        assert cmd[cmd.index("-o") + 1].endswith("workflow.svg")
        assert run.call_args.kwargs["check"] is True

    def test_source_written_to_input_file(self):
        seen = {}

        def run(cmd, **kwargs):
            seen["source"] = Path(cmd[cmd.index("-i") + 1]).read_text(encoding="utf-8")
            return _fake_mmdc()(cmd, **kwargs)

        with patch("mesflow.rendering.renderer.subprocess.run", side_effect=run):
            MermaidCliRenderer().render("graph TD\n  A --> B\n")
        assert seen["source"] == "graph TD\n  A --> B\n"

    def test_unsupported_format(self):
        with pytest.raises(UnsupportedFormatError):
            MermaidCliRenderer().render("graph TD", "gif")


class TestFailures:
    def test_missing_command(self):
        with patch("mesflow.rendering.renderer.subprocess.run", side_effect=FileNotFoundError):
            with pytest.raises(RenderError, match="not found"):
                MermaidCliRenderer().render("graph TD")

    def test_nonzero_exit_includes_stderr(self):
        error = subprocess.CalledProcessError(1, ["mmdc"], stderr="Parse error on line 2")
        with patch("mesflow.rendering.renderer.subprocess.run", side_effect=error):
            with pytest.raises(RenderError, match="Parse error on line 2"):
                MermaidCliRenderer().render("graph TD")

    def test_timeout(self):
        with patch("mesflow.rendering.renderer.subprocess.run",
                   side_effect=subprocess.TimeoutExpired(["mmdc"], 5)):
            with pytest.raises(RenderError, match="timed out"):
                MermaidCliRenderer(timeout=5).render("graph TD")

    def test_no_output_file(self):
        completed = subprocess.CompletedProcess(["mmdc"], 0, "", "")
        with patch("mesflow.rendering.renderer.subprocess.run", return_value=completed):
            with pytest.raises(RenderError, match="no png output"):
                MermaidCliRenderer().render("graph TD")
