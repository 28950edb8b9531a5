import os
import tempfile
import unittest
from unittest.mock import patch

from vendorbuild.dependencies import DEFAULT_DEPENDENCY_SPECS, get_dependency_specs
from vendorbuild.models import DependencySpec, ResolvedDependency
from vendorbuild.utils import dependency_locator
from vendorbuild.utils.dependency_locator import (
    candidate_roots,
    find_marker,
    locate,
    locate_all,
    normalize_layout,
)


def touch(path):
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w") as f:
        f.write("")
    return path


class TestLocate(unittest.TestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = self._tmp.name
        self.first = os.path.join(self.tmp, "first")
        self.second = os.path.join(self.tmp, "second")

    def tearDown(self):
        self._tmp.cleanup()

    def test_exact_marker_in_first_matching_root(self):
        touch(os.path.join(self.second, "lib", "libcrypto.so"))
        spec = DependencySpec("openssl", roots=(self.first, self.second), markers=("libcrypto.so",))

        found = locate(spec, env={})

        self.assertEqual(found.root, self.second)
        self.assertEqual(found.lib_dir, os.path.join(self.second, "lib"))
        self.assertEqual(found.include_dir, os.path.join(self.second, "include"))
        self.assertEqual(found.library, os.path.join(self.second, "lib", "libcrypto.so"))
        self.assertEqual(found.source, self.second)

    def test_priority_order_wins(self):
        touch(os.path.join(self.first, "lib", "libcrypto.a"))
        touch(os.path.join(self.second, "lib", "libcrypto.a"))
        spec = DependencySpec("openssl", roots=(self.first, self.second), markers=("libcrypto.a",))

        self.assertEqual(locate(spec, env={}).root, self.first)

    def test_lib_subdir_order(self):
        touch(os.path.join(self.first, "lib64", "libncurses.so"))
        spec = DependencySpec("ncurses", roots=(self.first,), markers=("libncurses.so",))

        self.assertEqual(locate(spec, env={}).lib_dir, os.path.join(self.first, "lib64"))

    def test_versioned_glob_marker(self):
        touch(os.path.join(self.first, "lib", "libicuuc.so.74.2"))
        spec = DependencySpec("icu", roots=(self.first,), markers=("libicuuc*",))

        found = locate(spec, env={})

        self.assertIsNotNone(found)
        self.assertTrue(found.library.endswith("libicuuc.so.74.2"))

    def test_absent_dependency_is_none_not_an_error(self):
        spec = DependencySpec("icu", roots=(self.first, "/definitely/not/here"), markers=("libicuuc*",))
        self.assertIsNone(locate(spec, env={}))

    def test_env_root(self):
        touch(os.path.join(self.first, "lib", "libcrypto.a"))
        spec = DependencySpec("openssl", roots=("env:OPENSSL_ROOT_DIR", self.second), markers=("libcrypto.a",))

        found = locate(spec, env={"OPENSSL_ROOT_DIR": self.first})

        self.assertEqual(found.root, self.first)
        self.assertEqual(found.source, "env:OPENSSL_ROOT_DIR")

    def test_unset_env_root_is_skipped(self):
        self.assertEqual(list(candidate_roots(DependencySpec("x", roots=("env:NOPE",)), env={})), [])

    def test_windows_drive_is_a_literal_path(self):
        spec = DependencySpec("openssl", roots=("C:\\OpenSSL-Win64",))
        self.assertEqual(list(candidate_roots(spec, env={})), [("C:\\OpenSSL-Win64", "C:\\OpenSSL-Win64", [])])

    @patch.object(dependency_locator, "_pkg_config_root")
    def test_pkg_config_root_and_libdir(self, mock_pkg_config):
        multiarch = os.path.join(self.first, "lib", "x86_64-linux-gnu")
        touch(os.path.join(multiarch, "libcrypto.so"))
        mock_pkg_config.return_value = (self.first, [multiarch])
        spec = DependencySpec("openssl", roots=("pkg-config:openssl",), markers=("libcrypto.so",))

        found = locate(spec, env={})

        self.assertEqual(found.lib_dir, multiarch)
        self.assertEqual(found.source, "pkg-config:openssl")

    @patch.object(dependency_locator, "_brew_root", return_value=None)
    def test_brew_without_formula_falls_through(self, mock_brew):
        touch(os.path.join(self.second, "lib", "libcrypto.dylib"))
        spec = DependencySpec("openssl", roots=("brew:openssl", self.second), markers=("libcrypto.dylib",))

        self.assertEqual(locate(spec, env={}).root, self.second)
        mock_brew.assert_called_once_with("openssl", {}, x86_64=False)

    def test_find_marker_ignores_directories(self):
        os.makedirs(os.path.join(self.first, "libicuuc-data"))
        self.assertIsNone(find_marker(self.first, ("libicuuc*",)))

    def test_locate_all_reports_presence_and_absence(self):
        touch(os.path.join(self.first, "lib", "libx.a"))
        specs = {
            "x": DependencySpec("x", roots=(self.first,), markers=("libx.a",)),
            "y": DependencySpec("y", roots=(self.first,), markers=("liby.a",)),
        }

        resolved = locate_all(specs, env={}, quiet=True)

        self.assertEqual(resolved["x"].root, self.first)
        self.assertIsNone(resolved["y"])


class TestNormalizeLayout(unittest.TestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.root = self._tmp.name
        touch(os.path.join(self.root, "lib64", "icuuc.lib"))
        touch(os.path.join(self.root, "lib64", "icuin.lib"))
        touch(os.path.join(self.root, "lib64", "README.txt"))
        self.spec = DependencySpec(
            "icu", roots=(self.root,), lib_subdirs=("lib", "lib64"), markers=("icuuc*.lib",),
            relocate_for=("meson",), relocate_patterns=("icu*.lib",),
        )
        self.found = ResolvedDependency(
            "icu", self.root, os.path.join(self.root, "lib64"), os.path.join(self.root, "include"),
            library=os.path.join(self.root, "lib64", "icuuc.lib"),
        )

    def tearDown(self):
        self._tmp.cleanup()

    def test_copies_into_lib_for_listed_build_system(self):
        relocated = normalize_layout(self.found, self.spec, "meson")

        self.assertEqual(relocated.lib_dir, os.path.join(self.root, "lib"))
        self.assertEqual(sorted(os.listdir(os.path.join(self.root, "lib"))), ["icuin.lib", "icuuc.lib"])
        self.assertEqual(relocated.library, os.path.join(self.root, "lib", "icuuc.lib"))

    def test_other_build_systems_untouched(self):
        self.assertIs(normalize_layout(self.found, self.spec, "msvc"), self.found)
        self.assertFalse(os.path.exists(os.path.join(self.root, "lib")))

    def test_absent_dependency_passes_through(self):
        self.assertIsNone(normalize_layout(None, self.spec, "meson"))


class TestDependencySpecs(unittest.TestCase):

    def test_every_platform_has_the_three_dependencies(self):
        for platform, specs in DEFAULT_DEPENDENCY_SPECS.items():
            with self.subTest(platform=platform):
                self.assertEqual(set(specs), {"openssl", "icu", "ncurses"})

    def test_config_overrides_and_extra_roots(self):
        conf = {"dependencies": {
            "openssl": {"extra_roots": ["/opt/ssl"], "markers": ["libssl.a"]},
            "zstd": {"roots": ["/opt/zstd"], "markers": ["libzstd.a"]},
        }}

        specs = get_dependency_specs("linux", conf)

        self.assertEqual(specs["openssl"].roots[0], "/opt/ssl")
        self.assertEqual(specs["openssl"].markers, ("libssl.a",))
        self.assertEqual(specs["zstd"].roots, ("/opt/zstd",))

    def test_new_dependency_without_markers_is_ignored(self):
        specs = get_dependency_specs("linux", {"dependencies": {"zstd": {"roots": ["/opt/zstd"]}}})
        self.assertNotIn("zstd", specs)

    def test_unknown_platform_falls_back_to_linux(self):
        self.assertEqual(get_dependency_specs("plan9"), DEFAULT_DEPENDENCY_SPECS["linux"])


if __name__ == '__main__':
    unittest.main()
