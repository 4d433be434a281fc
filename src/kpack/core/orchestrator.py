from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, List, Optional, Tuple, Union

from kpack.config.loader import PackConfig, PackOptions
from kpack.core.discovery import Partition, PartitionConfig, TreePartitioner
from kpack.core.exclusion import ExclusionSet, build_exclusion_set
from kpack.core.writer import copy_file, ensure_dir
from kpack.errors import FileSystemError, PackError
from kpack.io.global_writer import write_global_json
from kpack.io.manifest_writer import webroot_for, write_manifest_copy
from kpack.io.script_writer import write_launchers
from kpack.io.settings_writer import SettingsValues, find_settings_source, write_settings_document
from kpack.manifest.reader import LoadedManifest, load_manifest
from kpack.runtime.bundler import RuntimeIdentity, bundle_runtime
from kpack.utils.logging import ConsoleLog


@dataclass
class PackResult:
    out_dir: Path
    app_dir: Path
    public_dir: Optional[Path] = None
    app_files: int = 0
    public_files: int = 0
    launchers: List[Path] = field(default_factory=list)
    runtime_dir: Optional[Path] = None


@contextmanager
def _step(name: str, log: ConsoleLog) -> Iterator[None]:
    """Tag failures and log lines with the pipeline step; OSErrors become FileSystemError."""
    log.enter(name)
    try:
        yield
    except PackError as e:
        if e.step is None:
            e.step = name
        raise
    except OSError as e:
        path = e.filename if getattr(e, "filename", None) else None
        raise FileSystemError(e.strerror or str(e), path=str(path) if path else None, step=name) from e
    finally:
        log.leave()


class Packager:
    """
    Pack pipeline:
      load-manifest → compile-patterns → partition → copy-files → write-global
      → write-manifest → write-settings → write-launchers → bundle-runtime

    Fail-fast: the first failing step aborts the run and whatever was already
    written stays on disk.
    """

    def __init__(self, options: PackOptions, config: Optional[PackConfig] = None, log: Optional[ConsoleLog] = None) -> None:
        self.options = options
        self.config = config or PackConfig()
        self.log = log or ConsoleLog("kpack")

    # -- derived settings -----------------------------------------------------
    def _public_out(self) -> str:
        return self.options.public_out or self.config.public_out

    def _webroot(self, manifest: LoadedManifest) -> Optional[str]:
        for cand in (self.options.webroot, manifest.model.webroot):
            if cand is not None and cand.strip():
                return cand
        return None

    def _reserved_dirs(self) -> List[Union[str, Path]]:
        project = self.options.project_dir
        reserved: List[Union[str, Path]] = list(self.config.default_excludes)
        reserved.append(self.config.packages_dir_name)
        if self.options.packages_dir is not None:
            reserved.append(Path(self.options.packages_dir).resolve())
        reserved.append(Path(self.options.out_dir).resolve())
        self.log.debug(f"reserved directories under {project}: {reserved}")
        return reserved

    # -- steps ----------------------------------------------------------------
    def _copy(self, partition: Partition, app_dir: Path, public_dir: Optional[Path], manifest_rel: str) -> Tuple[int, int]:
        app_count = 0
        public_count = 0
        for entry in partition.entries:
            if entry.app_dest is not None:
                # The manifest copy is written by the write-manifest step.
                if entry.app_dest != manifest_rel:
                    copy_file(entry.source, app_dir / entry.app_dest)
                app_count += 1
            if entry.public_dest is not None and public_dir is not None:
                copy_file(entry.source, public_dir / entry.public_dest)
                public_count += 1
        return app_count, public_count

    def run(self) -> PackResult:
        opts = self.options
        cfg = self.config
        project_dir = Path(opts.project_dir).resolve()
        out_dir = Path(opts.out_dir).resolve()

        self.log.packing(project_dir, out_dir)

        with _step("load-manifest", self.log):
            manifest = load_manifest(project_dir, cfg.manifest_name)
        project = manifest.project_name
        webroot = self._webroot(manifest)
        public_out = self._public_out()
        self.log.debug(f"project={project} webroot={webroot!r} public_out={public_out!r} runtime={opts.runtime!r}")

        with _step("compile-patterns", self.log):
            exclusions: ExclusionSet = build_exclusion_set(
                manifest.model.pack_exclude, project_dir, self._reserved_dirs()
            )
            for pat in exclusions.patterns:
                kind = "directory" if pat.shorthand else "glob"
                self.log.debug(f"packExclude {pat.source!r} → {kind} {'/'.join(s.text for s in pat.segments)}")

        with _step("partition", self.log):
            partition = TreePartitioner(
                PartitionConfig(
                    root=project_dir,
                    exclusions=exclusions,
                    webroot=webroot,
                    manifest_name=cfg.manifest_name,
                    follow_symlinks=cfg.follow_symlinks,
                )
            ).partition()
            for rel in partition.excluded:
                self.log.debug(f"excluded {rel}")
            if partition.has_public_tree and not partition.webroot_exists:
                self.log.warn(f"webroot '{webroot}' does not exist; the public tree will only hold {cfg.settings_document}")

        approot = out_dir / "approot"
        app_dir = approot / "src" / project
        public_dir = out_dir / public_out if partition.has_public_tree else None
        result = PackResult(out_dir=out_dir, app_dir=app_dir, public_dir=public_dir)

        with _step("copy-files", self.log):
            ensure_dir(app_dir)
            if public_dir is not None:
                ensure_dir(public_dir)
            result.app_files, result.public_files = self._copy(partition, app_dir, public_dir, cfg.manifest_name)
            self.log.info(f"copied {result.app_files} application file(s), {result.public_files} public file(s)")

        with _step("write-global", self.log):
            write_global_json(approot, cfg.packages_dir_name)

        with _step("write-manifest", self.log):
            new_webroot = webroot_for(out_dir, project, public_out) if public_dir is not None else None
            write_manifest_copy(manifest.path, app_dir / cfg.manifest_name, new_webroot)

        identity = RuntimeIdentity.parse(opts.runtime) if opts.runtime else None

        if public_dir is not None:
            with _step("write-settings", self.log):
                values = SettingsValues.for_layout(
                    out_dir,
                    public_out,
                    project,
                    cfg.packages_dir_name,
                    runtime_version=identity.version if identity else "",
                    runtime_flavor=identity.flavor if identity else "",
                )
                source = find_settings_source(project_dir, partition.webroot or (), cfg.settings_document)
                write_settings_document(public_dir / cfg.settings_document, values, source)
                self.log.info(f"wrote {public_out}/{cfg.settings_document}" + (f" (merged {source.name})" if source else ""))

        with _step("write-launchers", self.log):
            result.launchers = write_launchers(out_dir, project, manifest.model.commands, opts.runtime)
            if result.launchers:
                self.log.info(f"wrote {len(result.launchers)} launcher script(s)")

        if opts.runtime:
            with _step("bundle-runtime", self.log):
                result.runtime_dir = bundle_runtime(opts.runtime, opts.runtime_homes, approot)
                self.log.info(f"bundled runtime {opts.runtime}")

        self.log.complete(out_dir, result.app_files, result.public_files)
        return result


__all__ = ["Packager", "PackResult"]
