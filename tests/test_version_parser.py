import unittest

from vendorbuild.errors import VersionParseError
from vendorbuild.models import Stage
from vendorbuild.utils.version_parser import is_archive, parse_archive_name, strip_archive_extension


class TestParseArchiveName(unittest.TestCase):

    def test_three_part_versions(self):
        self.assertEqual(parse_archive_name("pkg-1.2.3.tar.gz"), ("pkg", "1.2.3", 1))
        self.assertEqual(parse_archive_name("mysql-8.0.36.tar.gz"), ("mysql", "8.0.36", 8))

    def test_two_part_versions(self):
        self.assertEqual(parse_archive_name("pkg-2.0.tar.gz"), ("pkg", "2.0", 2))
        self.assertEqual(parse_archive_name("postgresql-16.2.tar.bz2"), ("postgresql", "16.2", 16))

    def test_hyphenated_package_name(self):
        self.assertEqual(parse_archive_name("mongo-tools-100.9.4.tgz"), ("mongo-tools", "100.9.4", 100))

    def test_every_supported_extension(self):
        for ext in (".tar.gz", ".tgz", ".tar.xz", ".tar.bz2", ".zip"):
            with self.subTest(ext=ext):
                self.assertEqual(parse_archive_name(f"pkg-3.1{ext}"), ("pkg", "3.1", 3))

    def test_full_path_is_accepted(self):
        self.assertEqual(parse_archive_name("/srv/vendor/pkg-9.9.tar.gz"), ("pkg", "9.9", 9))

    def test_suffix_is_ignored(self):
        self.assertEqual(parse_archive_name("pkg-17.0rc1.tar.gz"), ("pkg", "17.0", 17))
        self.assertEqual(parse_archive_name("pkg-2.1.0-beta.tar.gz"), ("pkg", "2.1.0", 2))

    def test_multi_digit_components_kept_exactly(self):
        self.assertEqual(parse_archive_name("pkg-10.20.300.tar.gz"), ("pkg", "10.20.300", 10))

    def test_rejects_names_without_version(self):
        for name in ("pkg.tar.gz", "pkg-latest.tar.gz", "pkg-1.tar.gz", "1.2.3.tar.gz", "pkg-1.2.3.4.tar.gz"):
            with self.subTest(name=name):
                with self.assertRaises(VersionParseError) as ctx:
                    parse_archive_name(name)
                self.assertEqual(ctx.exception.stage, Stage.PARSE)
                self.assertEqual(ctx.exception.archive, name)

    def test_rejects_unsupported_extension(self):
        with self.assertRaises(VersionParseError):
            parse_archive_name("pkg-1.2.3.rar")


class TestArchiveHelpers(unittest.TestCase):

    def test_is_archive(self):
        self.assertTrue(is_archive("pkg-1.0.TAR.GZ"))
        self.assertTrue(is_archive("pkg-1.0.zip"))
        self.assertFalse(is_archive("pkg-1.0.tar"))
        self.assertFalse(is_archive("notes.txt"))

    def test_strip_archive_extension(self):
        self.assertEqual(strip_archive_extension("pkg-1.0.tar.xz"), "pkg-1.0")
        self.assertEqual(strip_archive_extension("pkg-1.0"), "pkg-1.0")


if __name__ == '__main__':
    unittest.main()
