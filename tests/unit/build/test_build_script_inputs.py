"""Tests for folding build script outputs into compile inputs."""

from rbuild.build.build_script_inputs import BuildScriptInputs, gather_build_script_inputs


class TestGatherBuildScriptInputs:
    """gather_build_script_inputs()"""

    def test_without_build_script(self):
        """No BuildInfo contributes nothing."""
        assert gather_build_script_inputs(None) == BuildScriptInputs()

    def test_with_build_script(self, build_script):
        """Out dir and link flags are inputs; flags then link flags are flag files."""
        info = build_script().build_info
        gathered = gather_build_script_inputs(info)
        assert gathered.inputs == (info.out_dir, info.link_flags)
        assert gathered.out_dir == "rbuild-out/bin/app/build_script.out_dir"
        assert gathered.build_env_file == info.rustc_env
        assert gathered.build_flags_files == (info.flags, info.link_flags)
