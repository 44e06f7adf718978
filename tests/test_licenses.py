import unittest

from pkg_collector.domain.licenses import correct_license, extract_license, normalize_license


class TestNormalizeLicense(unittest.TestCase):
    def test_valid_identifier_is_kept(self) -> None:
        self.assertEqual(normalize_license("foo", "MIT"), "MIT")
        self.assertEqual(normalize_license("foo", "Apache-2.0"), "Apache-2.0")

    def test_deprecated_object_form(self) -> None:
        license = {"type": "MIT", "url": "http://opensource.org/licenses/MIT"}

        self.assertEqual(normalize_license("foo", license), "MIT")

    def test_free_form_names_are_corrected(self) -> None:
        self.assertEqual(normalize_license("foo", "Apache 2.0"), "Apache-2.0")
        self.assertEqual(normalize_license("foo", "Apache License, Version 2.0"), "Apache-2.0")
        self.assertEqual(normalize_license("foo", "MIT License"), "MIT")

    def test_uncorrectable_license_is_discarded(self) -> None:
        self.assertIsNone(normalize_license("foo", "Some proprietary terms of my own"))

    def test_unparsable_expressions_are_discarded(self) -> None:
        for license in ["MIT OR", "BSD-3-Clause AND"]:
            with self.subTest(license=license):
                self.assertIsNone(normalize_license("foo", license))

    def test_slash_form_is_corrected(self) -> None:
        self.assertEqual(normalize_license("foo", "mit/x11"), "MIT")

    def test_invalid_types_are_discarded(self) -> None:
        for license in [None, "", "   ", 123, {"url": "http://example.com"}, ["MIT"]]:
            with self.subTest(license=license):
                self.assertIsNone(normalize_license("foo", license))


class TestCorrectLicense(unittest.TestCase):
    def test_aliases(self) -> None:
        self.assertEqual(correct_license("GPLv3"), "GPL-3.0-only")
        self.assertEqual(correct_license("New BSD License"), "BSD-3-Clause")
        self.assertIsNone(correct_license("whatever"))


class TestExtractLicense(unittest.TestCase):
    def test_array_is_joined_with_or(self) -> None:
        package_json = {"name": "foo", "licenses": ["MIT", "Apache-2.0"]}

        self.assertEqual(extract_license(package_json), "MIT OR Apache-2.0")

    def test_array_of_objects(self) -> None:
        package_json = {
            "name": "foo",
            "licenses": [
                {"type": "MIT", "url": "http://opensource.org/licenses/MIT"},
                {"type": "Apache 2.0", "url": "http://www.apache.org/licenses/LICENSE-2.0"},
            ],
        }

        self.assertEqual(extract_license(package_json), "MIT OR Apache-2.0")

    def test_array_drops_invalid_entries(self) -> None:
        package_json = {"name": "foo", "licenses": ["MIT", "Some proprietary terms of my own"]}

        self.assertEqual(extract_license(package_json), "MIT")

    def test_unrecoverable_input_yields_none(self) -> None:
        self.assertIsNone(extract_license({"name": "foo"}))
        self.assertIsNone(extract_license({"name": "foo", "license": "Some proprietary terms of my own"}))
        self.assertIsNone(extract_license({"name": "foo", "licenses": []}))
        self.assertIsNone(extract_license({"name": "foo", "licenses": [None, 42]}))
        self.assertIsNone(extract_license({"name": "foo", "license": "MIT OR"}))

    def test_license_takes_precedence_over_licenses(self) -> None:
        package_json = {"name": "foo", "license": "ISC", "licenses": ["MIT"]}

        self.assertEqual(extract_license(package_json), "ISC")
