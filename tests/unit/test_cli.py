"""
Tests for the command-line entry point.
"""

import stat

from amalgam.__main__ import main
from amalgam.compiler.driver import MergeDriver
from amalgam.shared.errors import MergeImplementationError

PACKAGE = {
    "app/__init__.py": "",
    "app/main.py": """
        import json

        from app import util


        def run():
            return json.dumps(util.double(2))
    """,
    "app/util.py": """
        def double(x):
            return x * 2
    """,
}


def _args(source_root, tmp_path, *extra):
    return [
        "--source-root", str(source_root),
        "--destination-root", str(tmp_path / "build"),
        *extra,
    ]


class TestUsage:

    def test_no_arguments(self, capsys, tmp_path):
        assert main([]) == 2
        err = capsys.readouterr().err
        assert "usage:" in err
        assert "ROOT_MODULE TARGET_MODULE" in err

    def test_three_positionals(self, capsys, tmp_path):
        assert main(["a", "b", "c", "--destination-root", str(tmp_path / "build")]) == 2
        assert not (tmp_path / "build").exists()


class TestMerge:

    def test_writes_output(self, write_package, source_root, tmp_path):
        write_package(PACKAGE)
        assert main(["app.main", "service", *_args(source_root, tmp_path)]) == 0
        output = tmp_path / "build" / "service" / "plugin.py"
        text = output.read_text()
        assert text.startswith('"""main"""\n')
        assert "def util_double(x):" in text
        assert "json.dumps(util_double(2))" in text
        assert stat.S_IMODE(output.stat().st_mode) == 0o666

    def test_file_and_module_name(self, write_package, source_root, tmp_path):
        write_package(PACKAGE)
        argv = ["app.main", "service", "--file-name", "bundle.py", "--module-name", "bundle",
                *_args(source_root, tmp_path)]
        assert main(argv) == 0
        text = (tmp_path / "build" / "service" / "bundle.py").read_text()
        assert text.startswith('"""bundle"""\n')

    def test_keep_prefix(self, write_package, source_root, tmp_path):
        write_package(PACKAGE)
        assert main(["app.main", "service", "--keep", "app.util", *_args(source_root, tmp_path)]) == 0
        text = (tmp_path / "build" / "service" / "plugin.py").read_text()
        assert "from app import util" in text
        assert "util_double" not in text

    def test_root_module_option(self, write_package, source_root, tmp_path):
        write_package(PACKAGE)
        assert main(["app.main", "service", "--root-module", "other", *_args(source_root, tmp_path)]) == 0
        text = (tmp_path / "build" / "service" / "plugin.py").read_text()
        assert "from app import util" in text

    def test_missing_module(self, capsys, source_root, tmp_path):
        assert main(["app.nowhere", "service", *_args(source_root, tmp_path)]) == 1
        err = capsys.readouterr().err
        assert "error[M0101]" in err
        assert "app.nowhere" in err
        assert not (tmp_path / "build").exists()

    def test_formatter_failure(self, write_package, source_root, tmp_path, capsys):
        write_package(PACKAGE)
        argv = ["app.main", "service", "--formatter", "amalgam-no-such-formatter",
                *_args(source_root, tmp_path)]
        assert main(argv) == 1
        assert "error[M0301]" in capsys.readouterr().err
        assert not (tmp_path / "build").exists()

    def test_internal_error_is_rendered(self, write_package, source_root, tmp_path, capsys, monkeypatch):
        write_package(PACKAGE)

        def broken_merge(self, root):
            raise MergeImplementationError("overlapping rewrites in app/main.py at offset 3")

        monkeypatch.setattr(MergeDriver, "merge", broken_merge)
        assert main(["app.main", "service", *_args(source_root, tmp_path)]) == 1
        err = capsys.readouterr().err
        assert "error[M9999]: internal error: overlapping rewrites" in err
        assert "Traceback" not in err
        assert not (tmp_path / "build").exists()
