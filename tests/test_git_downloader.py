import json
import os
import tempfile
import unittest

from pkg_collector.application.downloaders.git import GitDownloader
from pkg_collector.domain.exceptions import GitCommandError, RetryableError
from pkg_collector.domain.models import Disposition, DownloadOptions


class _FakeGitClient:
    """Mimics a clone by creating a .git folder, then runs the configured hooks."""

    def __init__(self, clone=None, checkout=None) -> None:
        self.on_clone = clone
        self.on_checkout = checkout
        self.calls = []

    async def clone(self, url, dest_dir) -> None:
        self.calls.append(("clone", url))
        if self.on_clone:
            self.on_clone(dest_dir)
        os.makedirs(os.path.join(dest_dir, ".git"), exist_ok=True)

    async def checkout(self, ref, cwd) -> None:
        self.calls.append(("checkout", ref))
        if self.on_checkout:
            self.on_checkout(cwd)


def _write_json(path, data) -> None:
    with open(path, "w") as file:
        json.dump(data, file)


def _read_json(path):
    with open(path) as file:
        return json.load(file)


def _fail(stderr):
    def _raise(_dir):
        raise GitCommandError(["git"], 128, stderr)
    return _raise


class TestGitDownloader(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp_dir = self._tmp.name

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_detects_github_gitlab_and_bitbucket(self) -> None:
        downloader = GitDownloader(_FakeGitClient())

        for url in [
            "git://github.com/IndigoUnited/node-cross-spawn.git",
            "git@github.com:IndigoUnited/node-cross-spawn.git",
            "https://github.com/IndigoUnited/node-cross-spawn.git",
            "git@bitbucket.org:fvdm/node-xml2json.git",
            "https://bitbucket.org/fvdm/node-xml2json.git",
            "git@gitlab.com:codium/angular-ui-select.git",
            "https://gitlab.com/codium/angular-ui-select.git",
        ]:
            with self.subTest(url=url):
                self.assertTrue(downloader.detect({"repository": {"type": "git", "url": url}}))

        self.assertFalse(downloader.detect(
            {"repository": {"type": "git", "url": "https://foo.com/IndigoUnited/node-cross-spawn.git"}}
        ))

    async def test_clones_and_checks_out_ref(self) -> None:
        git_client = _FakeGitClient(
            checkout=lambda cwd: _write_json(os.path.join(cwd, "package.json"), {"version": "0.2.2"}),
        )
        downloader = GitDownloader(git_client)

        outcome = await downloader.acquire({
            "name": "xml2json",
            "repository": {"type": "git", "url": "git@bitbucket.org:fvdm/node-xml2json.git"},
            "gitHead": "4c8dc5c636f7bbb746ed519a39bb1b183a27064d",
        }, self.tmp_dir)

        self.assertEqual(outcome.disposition, Disposition.ACQUIRED)
        self.assertEqual(git_client.calls, [
            ("clone", "https://bitbucket.org/fvdm/node-xml2json.git"),
            ("checkout", "4c8dc5c636f7bbb746ed519a39bb1b183a27064d"),
        ])
        self.assertEqual(_read_json(os.path.join(self.tmp_dir, "package.json"))["version"], "0.2.2")

    async def test_without_ref_skips_checkout(self) -> None:
        git_client = _FakeGitClient()
        downloader = GitDownloader(git_client)

        await downloader.acquire({
            "name": "cross-spawn",
            "repository": {"type": "git", "url": "git://github.com/IndigoUnited/node-cross-spawn.git"},
        }, self.tmp_dir)

        self.assertEqual([call[0] for call in git_client.calls], ["clone"])

    async def test_missing_commit_does_not_fail(self) -> None:
        def _clone(dest_dir):
            _write_json(os.path.join(dest_dir, "packageJson.json"), {})
            open(os.path.join(dest_dir, "appveyor.yml"), "w").close()

        downloader = GitDownloader(_FakeGitClient(
            clone=_clone,
            checkout=_fail("fatal: reference is not a tree: somecommithashthatwillneverexist00000000"),
        ))

        with self.assertLogs("pkg_collector.application.downloaders.git", level="WARNING"):
            outcome = await downloader.acquire({
                "name": "cross-spawn",
                "repository": {"type": "git", "url": "git://github.com/IndigoUnited/node-cross-spawn.git"},
                "gitHead": "a" * 40,
            }, self.tmp_dir)

        self.assertEqual(outcome.disposition, Disposition.ACQUIRED)
        self.assertTrue(os.path.exists(os.path.join(self.tmp_dir, "package.json")))
        self.assertTrue(os.path.exists(os.path.join(self.tmp_dir, "appveyor.yml")))

    async def test_missing_branch_override_does_not_fail(self) -> None:
        git_client = _FakeGitClient(
            checkout=_fail("error: pathspec 'foo' did not match any file(s) known to git."),
        )
        downloader = GitDownloader(git_client)

        with self.assertLogs("pkg_collector.application.downloaders.git", level="WARNING"):
            await downloader.acquire(
                {
                    "name": "cross-spawn",
                    "repository": {"type": "git", "url": "git://github.com/IndigoUnited/node-cross-spawn.git"},
                },
                self.tmp_dir,
                DownloadOptions(ref_overrides={"cross-spawn": "foo"}),
            )

        self.assertIn(("checkout", "foo"), git_client.calls)
        self.assertTrue(os.path.exists(os.path.join(self.tmp_dir, "package.json")))

    async def test_unavailable_repositories(self) -> None:
        for stderr in [
            "\nline\nERROR: Repository not found.\nline\nline",
            "\nline\nfatal: Authentication failed for `url`.\nline\nline",
            "\nline\nfatal: unable to access url: The requested URL returned error: `code`",
        ]:
            with self.subTest(stderr=stderr):
                with tempfile.TemporaryDirectory() as tmp_dir:
                    downloader = GitDownloader(_FakeGitClient(clone=_fail(stderr)))

                    with self.assertLogs("pkg_collector.application.downloaders.git", level="WARNING"):
                        outcome = await downloader.acquire({
                            "name": "cool-module",
                            "repository": {"type": "git", "url": "git://github.com/some-org/repo-404.git"},
                        }, tmp_dir)

                    self.assertEqual(outcome.disposition, Disposition.UNAVAILABLE)
                    self.assertEqual(os.listdir(tmp_dir), ["package.json"])
                    self.assertEqual(_read_json(os.path.join(tmp_dir, "package.json"))["name"], "cool-module")

    async def test_unknown_clone_error_is_retryable(self) -> None:
        downloader = GitDownloader(_FakeGitClient(clone=_fail("fatal: early EOF")))

        with self.assertRaises(RetryableError):
            await downloader.acquire({
                "name": "cool-module",
                "repository": {"type": "git", "url": "git://github.com/some-org/repo.git"},
            }, self.tmp_dir)

    async def test_unknown_checkout_error_is_retryable_and_git_dir_is_removed(self) -> None:
        downloader = GitDownloader(_FakeGitClient(checkout=_fail("fatal: index file corrupt")))

        with self.assertRaises(RetryableError):
            await downloader.acquire({
                "name": "cool-module",
                "repository": {"type": "git", "url": "git://github.com/some-org/repo.git"},
                "gitHead": "abc",
            }, self.tmp_dir)

        self.assertFalse(os.path.exists(os.path.join(self.tmp_dir, ".git")))

    async def test_deletes_git_folder(self) -> None:
        downloader = GitDownloader(_FakeGitClient())

        await downloader.acquire({
            "name": "cross-spawn",
            "repository": {"type": "git", "url": "git://github.com/IndigoUnited/node-cross-spawn.git"},
        }, self.tmp_dir)

        self.assertFalse(os.path.exists(os.path.join(self.tmp_dir, ".git")))
        self.assertEqual(os.listdir(self.tmp_dir), ["package.json"])

    async def test_merges_package_json(self) -> None:
        downloader = GitDownloader(_FakeGitClient(
            checkout=lambda cwd: _write_json(os.path.join(cwd, "package.json"), {
                "name": "cross-spawn",
                "version": "1.0.0",
                "description": "Cross platform child_process#spawn and child_process#spawnSync",
            }),
        ))
        package_json = {
            "name": "cool-module",
            "version": "0.1.0",
            "repository": {"type": "git", "url": "git://github.com/IndigoUnited/node-cross-spawn.git"},
            "gitHead": "5fb20ce2f44d9947fcf59e8809fe6cb1d767433b",
        }

        outcome = await downloader.acquire(package_json, self.tmp_dir)

        written = _read_json(os.path.join(self.tmp_dir, "package.json"))
        self.assertEqual(written["name"], "cool-module")
        self.assertEqual(written["version"], "0.1.0")
        self.assertEqual(written["description"], "Cross platform child_process#spawn and child_process#spawnSync")
        self.assertEqual(outcome.descriptor, written)
        self.assertEqual(
            outcome.enrichment,
            {"description": "Cross platform child_process#spawn and child_process#spawnSync"},
        )

    async def test_unsupported_repository_writes_descriptor_only(self) -> None:
        git_client = _FakeGitClient()
        downloader = GitDownloader(git_client)

        outcome = await downloader.acquire({"name": "cool-module"}, self.tmp_dir)

        self.assertEqual(outcome.disposition, Disposition.UNAVAILABLE)
        self.assertEqual(git_client.calls, [])
        self.assertEqual(os.listdir(self.tmp_dir), ["package.json"])
