"""
Console log tagging for pack runs.

Run:
  pytest -q tests/test_logging.py
"""

from pathlib import Path

from kpack.config.loader import PackOptions
from kpack.core.orchestrator import Packager
from kpack.errors import ManifestError
from kpack.utils.logging import ConsoleLog


def _write(p: Path, content: str = "") -> None:
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(content, encoding="utf-8")


def test_lines_carry_the_current_step(capsys):
    log = ConsoleLog()
    log.info("before")
    log.enter("copy-files")
    log.info("copied 3 application file(s)")
    log.warn("slow disk")
    log.leave()
    log.info("after")

    assert capsys.readouterr().out.splitlines() == [
        "[kpack ✅] before",
        "[kpack ✅ copy-files] copied 3 application file(s)",
        "[kpack ⚠️ copy-files] slow disk",
        "[kpack ✅] after",
    ]


def test_debug_only_when_verbose(capsys):
    ConsoleLog().debug("hidden")
    assert capsys.readouterr().out == ""

    log = ConsoleLog(verbose=True)
    log.enter("partition")
    log.debug("excluded  bin/\n  app.dll")
    out = capsys.readouterr().out
    assert "[kpack 🔎 partition] 🗂️ begin" in out
    assert "[kpack 🔎 partition] excluded bin/ app.dll" in out


def test_failure_goes_to_stderr_with_step(capsys):
    ConsoleLog().failed("load-manifest", ManifestError("no project.json", path="/p"))
    captured = capsys.readouterr()
    assert captured.out == ""
    assert captured.err.startswith("[kpack ❌ load-manifest] pack failed at load-manifest: ")


def test_pack_run_tags_each_step(tmp_path: Path, capsys):
    project = tmp_path / "App"
    _write(project / "project.json", '{"webroot": "public", "commands": {"run": "run"}}')
    _write(project / "Program.cs", "class Program {}")
    _write(project / "public" / "index.html", "<html />")

    Packager(PackOptions(project_dir=project, out_dir=tmp_path / "out")).run()

    out = capsys.readouterr().out
    assert "[kpack 📦] packing " in out
    assert "[kpack ✅ copy-files] copied " in out
    assert "[kpack ✅ write-settings] wrote wwwroot/web.config" in out
    assert "[kpack ✅ write-launchers] wrote 2 launcher script(s)" in out
    assert "[kpack 🏁] pack complete: " in out
