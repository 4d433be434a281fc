from __future__ import annotations

import argparse
import os
from pathlib import Path
from typing import List, Mapping, Optional, Tuple

from kpack import __version__
from kpack.config.loader import PackOptions, load_pack_config
from kpack.core.orchestrator import Packager
from kpack.errors import PackError
from kpack.utils.logging import ConsoleLog

ENV_PACKAGES = "KRE_PACKAGES"
ENV_HOME = "KRE_HOME"
ENV_TRACE = "KRE_TRACE"


# ------------------------------------------------------------------------------
# Environment resolution (the pack core never reads the environment itself)
# ------------------------------------------------------------------------------

def _runtime_homes(environ: Mapping[str, str]) -> Tuple[Path, ...]:
    raw = environ.get(ENV_HOME, "")
    homes = [Path(p).expanduser() for p in raw.split(os.pathsep) if p.strip()]
    if not homes:
        homes = [Path("~/.kre").expanduser()]
    return tuple(homes)


def _packages_dir(environ: Mapping[str, str], project_dir: Path, default_name: str) -> Path:
    raw = environ.get(ENV_PACKAGES, "").strip()
    return Path(raw).expanduser() if raw else project_dir / default_name


def _trace_enabled(environ: Mapping[str, str]) -> bool:
    return environ.get(ENV_TRACE, "").strip().lower() in {"1", "true", "yes", "on"}


# ------------------------------------------------------------------------------
# Parser
# ------------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kpack",
        description="Package an application into a self-contained, deployable directory.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="command", required=True)

    pack = sub.add_parser("pack", help="Pack a project into an output directory.")
    pack.add_argument(
        "project",
        nargs="?",
        type=Path,
        default=Path.cwd(),
        help="Project directory containing project.json (default: current directory).",
    )
    pack.add_argument(
        "--out",
        type=Path,
        required=True,
        help="Output directory. Existing unrelated content is left in place.",
    )
    pack.add_argument(
        "--wwwroot",
        type=str,
        default=None,
        help="Public root, relative to the project (overrides the manifest's webroot).",
    )
    pack.add_argument(
        "--wwwroot-out",
        dest="wwwroot_out",
        type=str,
        default=None,
        help="Name of the public directory in the output (default: wwwroot).",
    )
    pack.add_argument(
        "--runtime",
        type=str,
        default=None,
        help="Runtime package to embed, e.g. KRE-CLR-amd64.1.0.0-beta1.",
    )
    pack.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Tool configuration file (default: <project>/kpack.yml when present).",
    )
    pack.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=False,
        help="Debug logging (also enabled by KRE_TRACE=1).",
    )
    return parser


# ------------------------------------------------------------------------------
# Main
# ------------------------------------------------------------------------------

def main(argv: Optional[List[str]] = None, environ: Optional[Mapping[str, str]] = None) -> int:
    args = build_parser().parse_args(argv)
    env = os.environ if environ is None else environ
    log = ConsoleLog("kpack", verbose=bool(args.verbose) or _trace_enabled(env))

    project_dir: Path = args.project.expanduser().resolve()
    step = "configure"
    try:
        config = load_pack_config(project_dir, args.config)
        options = PackOptions(
            project_dir=project_dir,
            out_dir=args.out.expanduser().resolve(),
            webroot=args.wwwroot,
            public_out=args.wwwroot_out,
            runtime=args.runtime,
            packages_dir=_packages_dir(env, project_dir, config.packages_dir_name),
            runtime_homes=_runtime_homes(env),
        )
        step = "pack"
        result = Packager(options, config, log).run()
    except PackError as e:
        log.failed(e.step or step, e)
        return e.exit_code

    log.info(f"application: {result.app_dir}")
    if result.public_dir is not None:
        log.info(f"public: {result.public_dir}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
