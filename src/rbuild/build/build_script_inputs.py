"""Build script outputs as compile action inputs."""

from dataclasses import dataclass
from typing import Optional

from ..providers.dep_info import BuildInfo
from ..providers.files import File


@dataclass(frozen=True)
class BuildScriptInputs:
    """What a build script run contributes to a compile action.

    Attributes:
        inputs: Extra files the action depends on
        out_dir: Path of the build script's output directory
        build_env_file: Environment file passed with ``--env-file``
        build_flags_files: Flag files passed with ``--arg-file``, in order
    """

    inputs: tuple[File, ...] = ()
    out_dir: Optional[str] = None
    build_env_file: Optional[File] = None
    build_flags_files: tuple[File, ...] = ()


def gather_build_script_inputs(build_info: Optional[BuildInfo]) -> BuildScriptInputs:
    """Fold the outputs of a build script into compile inputs.

    The output directory and the link flags file become inputs, the
    compiler flags file and the link flags file are read by the process
    wrapper (in that order).
    """
    if build_info is None:
        return BuildScriptInputs()
    return BuildScriptInputs(
        inputs=(build_info.out_dir, build_info.link_flags),
        out_dir=build_info.out_dir.path,
        build_env_file=build_info.rustc_env,
        build_flags_files=(build_info.flags, build_info.link_flags),
    )
