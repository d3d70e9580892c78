import base64
import hashlib
import json
import re
from typing import Callable
from unittest.mock import MagicMock

import httpx
import pytest

from sitesmith.github.client import GitHubClient
from sitesmith.github.committer import BlobTreeCommitter
from sitesmith.models import FileSet
from sitesmith.store.run_registry import RunRegistry

OWNER = "acme"


def _sha(*parts: object) -> str:
    digest = hashlib.sha1()
    for part in parts:
        digest.update(part if isinstance(part, bytes) else str(part).encode("utf-8"))
    return digest.hexdigest()


class FakeGitHost:
    """In-memory Git host speaking the subset of the GitHub API the client uses.

    Blobs, trees and commits are content addressed. Refs follow GitHub's
    rules: creating an existing ref and non-fast-forward updates answer 422,
    reading a ref of a repository with no commits answers 409.
    """

    def __init__(self, owner: str = OWNER) -> None:
        self.owner = owner
        self.repos: dict[str, dict] = {}
        self.blobs: dict[str, bytes] = {}
        self.trees: dict[str, dict[str, str]] = {}
        self.commits: dict[str, dict] = {}
        self.requests: list[tuple[str, str]] = []
        self._failures: list[tuple[str, re.Pattern, int, str]] = []
        self._hooks: list[tuple[str, re.Pattern, Callable[[], None]]] = []

    # ------------------------------------------------------------------
    # Test helpers

    def add_repo(self, name: str, auto_init: bool = True) -> None:
        self.repos[name] = {"refs": {}}
        if auto_init:
            blob = self._put_blob(b"# " + name.encode("utf-8") + b"\n")
            tree = self._put_tree({"README.md": blob})
            commit = self._put_commit(tree, [], "Initial commit")
            self.repos[name]["refs"]["main"] = commit

    def fail_once(self, method: str, path_pattern: str, status: int, message: str = "boom") -> None:
        self._failures.append((method, re.compile(path_pattern), status, message))

    def before_once(self, method: str, path_pattern: str, hook: Callable[[], None]) -> None:
        self._hooks.append((method, re.compile(path_pattern), hook))

    def head(self, repo: str, branch: str = "main") -> str | None:
        return self.repos[repo]["refs"].get(branch)

    def files(self, repo: str, branch: str = "main") -> dict[str, str]:
        head = self.head(repo, branch)
        if head is None:
            return {}
        tree = self.trees[self.commits[head]["tree"]]
        return {path: self.blobs[sha].decode("utf-8") for path, sha in tree.items()}

    def history(self, repo: str, branch: str = "main") -> list[str]:
        """Commit SHAs from the branch tip back to the root, first parents only."""
        shas = []
        current = self.head(repo, branch)
        while current is not None:
            shas.append(current)
            parents = self.commits[current]["parents"]
            current = parents[0] if parents else None
        return shas

    def count(self, method: str, path_fragment: str) -> int:
        return sum(1 for m, p in self.requests if m == method and path_fragment in p)

    def commit_directly(self, repo: str, files: dict[str, str], branch: str = "main") -> str:
        """Advance a branch as another writer would."""
        head = self.head(repo, branch)
        base = dict(self.trees[self.commits[head]["tree"]]) if head else {}
        for path, content in files.items():
            base[path] = self._put_blob(content.encode("utf-8"))
        commit = self._put_commit(self._put_tree(base), [head] if head else [], "external")
        self.repos[repo]["refs"][branch] = commit
        return commit

    # ------------------------------------------------------------------
    # Storage

    def _put_blob(self, content: bytes) -> str:
        sha = _sha(b"blob", content)
        self.blobs[sha] = content
        return sha

    def _put_tree(self, entries: dict[str, str]) -> str:
        sha = _sha("tree", json.dumps(sorted(entries.items())))
        self.trees[sha] = dict(entries)
        return sha

    def _put_commit(self, tree: str, parents: list[str], message: str) -> str:
        sha = _sha("commit", tree, ",".join(parents), message, len(self.commits))
        self.commits[sha] = {"tree": tree, "parents": list(parents), "message": message}
        return sha

    def _is_ancestor(self, ancestor: str, descendant: str) -> bool:
        stack = [descendant]
        while stack:
            current = stack.pop()
            if current == ancestor:
                return True
            stack.extend(self.commits[current]["parents"])
        return False

    # ------------------------------------------------------------------
    # HTTP

    def handle(self, request: httpx.Request) -> httpx.Response:
        method = request.method
        path = request.url.path
        self.requests.append((method, path))

        for index, (m, pattern, hook) in enumerate(self._hooks):
            if m == method and pattern.search(path):
                del self._hooks[index]
                hook()
                break

        for index, (m, pattern, status, message) in enumerate(self._failures):
            if m == method and pattern.search(path):
                del self._failures[index]
                return httpx.Response(status, json={"message": message})

        body = json.loads(request.content) if request.content else {}

        if method == "POST" and re.fullmatch(r"/(user|orgs/[^/]+)/repos", path):
            return self._create_repo(body)

        match = re.fullmatch(r"/repos/([^/]+)/([^/]+)/(.+)", path)
        if not match or match.group(2) not in self.repos:
            return httpx.Response(404, json={"message": "Not Found"})
        repo, rest = match.group(2), match.group(3)

        if method == "POST" and rest == "git/blobs":
            return httpx.Response(201, json={"sha": self._put_blob(base64.b64decode(body["content"]))})
        if method == "POST" and rest == "git/trees":
            return self._create_tree(body)
        if method == "POST" and rest == "git/commits":
            sha = self._put_commit(body["tree"], body["parents"], body["message"])
            return httpx.Response(201, json={"sha": sha})
        if method == "GET" and rest.startswith("git/commits/"):
            sha = rest.rsplit("/", 1)[1]
            if sha not in self.commits:
                return httpx.Response(404, json={"message": "Not Found"})
            return httpx.Response(200, json={"sha": sha, "tree": {"sha": self.commits[sha]["tree"]}})
        if method == "GET" and rest.startswith("git/ref/heads/"):
            return self._get_ref(repo, rest[len("git/ref/heads/"):])
        if method == "POST" and rest == "git/refs":
            return self._create_ref(repo, body)
        if method == "PATCH" and rest.startswith("git/refs/heads/"):
            return self._update_ref(repo, rest[len("git/refs/heads/"):], body)
        if method == "GET" and rest.startswith("contents/"):
            return self._get_content(repo, rest[len("contents/"):], request.url.params.get("ref", "main"))

        return httpx.Response(404, json={"message": "Not Found"})

    def _create_repo(self, body: dict) -> httpx.Response:
        name = body["name"]
        if name in self.repos:
            return httpx.Response(422, json={"message": "Repository creation failed."})
        self.add_repo(name, auto_init=body.get("auto_init", False))
        return httpx.Response(
            201,
            json={
                "name": name,
                "html_url": f"https://github.com/{self.owner}/{name}",
                "default_branch": "main",
                "owner": {"login": self.owner},
            },
        )

    def _create_tree(self, body: dict) -> httpx.Response:
        entries = dict(self.trees[body["base_tree"]]) if body.get("base_tree") else {}
        for item in body["tree"]:
            if item["sha"] is None:
                entries.pop(item["path"], None)
            else:
                entries[item["path"]] = item["sha"]
        return httpx.Response(201, json={"sha": self._put_tree(entries)})

    def _get_ref(self, repo: str, branch: str) -> httpx.Response:
        refs = self.repos[repo]["refs"]
        if not refs:
            return httpx.Response(409, json={"message": "Git Repository is empty."})
        if branch not in refs:
            return httpx.Response(404, json={"message": "Not Found"})
        return httpx.Response(200, json={"ref": f"refs/heads/{branch}", "object": {"sha": refs[branch]}})

    def _create_ref(self, repo: str, body: dict) -> httpx.Response:
        branch = body["ref"][len("refs/heads/"):]
        refs = self.repos[repo]["refs"]
        if branch in refs:
            return httpx.Response(422, json={"message": "Reference already exists"})
        refs[branch] = body["sha"]
        return httpx.Response(201, json={"ref": body["ref"], "object": {"sha": body["sha"]}})

    def _update_ref(self, repo: str, branch: str, body: dict) -> httpx.Response:
        refs = self.repos[repo]["refs"]
        if branch not in refs:
            return httpx.Response(422, json={"message": "Reference does not exist"})
        if not body.get("force") and not self._is_ancestor(refs[branch], body["sha"]):
            return httpx.Response(422, json={"message": "Update is not a fast forward"})
        refs[branch] = body["sha"]
        return httpx.Response(200, json={"object": {"sha": body["sha"]}})

    def _get_content(self, repo: str, path: str, ref: str) -> httpx.Response:
        head = self.repos[repo]["refs"].get(ref)
        if head is None:
            return httpx.Response(404, json={"message": "Not Found"})
        tree = self.trees[self.commits[head]["tree"]]
        if path not in tree:
            return httpx.Response(404, json={"message": "Not Found"})
        return httpx.Response(200, json={"type": "file", "path": path, "sha": tree[path]})


@pytest.fixture
def git_host():
    host = FakeGitHost()
    host.add_repo("site")
    host.add_repo("empty", auto_init=False)
    return host


@pytest.fixture
def github_client(git_host):
    client = GitHubClient(token="test-token", transport=httpx.MockTransport(git_host.handle))
    yield client
    client.close()


@pytest.fixture
def committer(github_client):
    return BlobTreeCommitter(github_client)


@pytest.fixture
def registry():
    return RunRegistry()


@pytest.fixture
def site_files():
    return FileSet.from_pairs(
        [
            ("package.json", '{"name": "site", "scripts": {"build": "next build"}}'),
            ("app/page.tsx", "export default function Page() { return <main>Hi</main>; }"),
            ("app/layout.tsx", "export default function Layout({ children }) { return children; }"),
        ]
    )


@pytest.fixture
def mock_generator(site_files):
    generator = MagicMock()
    generator.generate.return_value = site_files
    return generator
