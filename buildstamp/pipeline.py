"""One build-step invocation: collect everything, then write the artifact."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Mapping, Optional, Union

from .aggregate import collect
from .config import BuildConfig, load_config
from .constants import Defaults, EnvVars
from .emitter import write_artifact
from .model import BuildDescriptor

logger = logging.getLogger(__name__)


def default_output_path(env: Mapping[str, str]) -> Path:
    out_dir = (env.get(EnvVars.OUT_DIR) or "").strip()
    return Path(out_dir or ".") / Defaults.ARTIFACT_NAME


def resolve_source_dir(env: Mapping[str, str], source_dir: Union[str, Path, None] = None) -> Path:
    if source_dir is not None:
        return Path(source_dir)
    configured = (env.get(EnvVars.SOURCE_DIR) or "").strip()
    return Path(configured) if configured else Path(os.getcwd())


def generate(
    out_path: Union[str, Path, None] = None,
    env: Optional[Mapping[str, str]] = None,
    config: Optional[BuildConfig] = None,
    source_dir: Union[str, Path, None] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> BuildDescriptor:
    """Collect build information and write the generated module.

    Nothing is written unless every enabled probe either succeeded or
    reported that its input is unavailable.

    Args:
        out_path: Where to write; defaults to ``$BUILD_OUT_DIR/_built.py``.
        env: Build environment; defaults to ``os.environ``.
        config: Resolved configuration; loaded from the source directory
            (and ``overrides``) when not given.
        source_dir: Project directory; defaults to BUILD_SOURCE_DIR or cwd.
        overrides: Settings applied on top of the loaded configuration.

    Returns:
        The descriptor that was written.

    Raises:
        BuildstampError: Any probe failed or the output is not writable.
    """
    env = os.environ if env is None else env
    root = resolve_source_dir(env, source_dir)
    if config is None:
        config = load_config(root, overrides)
    elif overrides:
        config = config.with_overrides(overrides)

    descriptor = collect(config, env, root)
    target = Path(out_path) if out_path is not None else default_output_path(env)
    write_artifact(descriptor, target, config)
    return descriptor
