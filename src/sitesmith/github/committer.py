"""Atomic multi-file commits via the Git Data API.

All file changes of one call land in a single tree and a single commit, so a
reader of the branch sees either the old tree or the complete new one.
"""

import logging
from typing import Iterable, Literal

from sitesmith.exceptions import InternalInvariantViolation
from sitesmith.github.client import GitHubClient
from sitesmith.github.exceptions import (
    PartialBlobFailure,
    RemoteConflict,
    RemoteError,
    RemoteNotFound,
)
from sitesmith.models import (
    CommitPlan,
    CommitResult,
    FileEntry,
    FileSet,
    normalize_path,
)

logger = logging.getLogger(__name__)

# Tip resolutions per commit; every one after the first follows a lost ref race.
MAX_REF_ATTEMPTS = 3


class BlobTreeCommitter:
    """Produces one commit per call and advances a branch ref to it."""

    def __init__(self, client: GitHubClient) -> None:
        self.client = client

    def commit(
        self,
        owner: str,
        repo: str,
        branch: str,
        file_set: FileSet,
        message: str,
        deletions: Iterable[str] = (),
    ) -> CommitResult:
        """Commit ``file_set`` (and optional deletions) to ``branch`` atomically.

        Flow:
        1. Normalise and deduplicate paths (last write wins)
        2. Upload one blob per file, sequentially
        3. Resolve the branch tip; a missing branch means no parent
        4. Build one tree layered on the base tree
        5. Create one commit
        6. Create the ref, falling back to a fast-forward update
        7. If the branch moved since step 3, rebase onto the new tip and
           repeat steps 3-6, at most MAX_REF_ATTEMPTS times

        Args:
            owner: Repository owner login.
            repo: Repository name.
            branch: Branch to create or advance.
            file_set: Files to add or replace.
            message: Commit message.
            deletions: Paths to remove from the base tree.

        Returns:
            CommitResult with the new commit SHA and whether the ref was
            created or updated.

        Raises:
            InternalInvariantViolation: If there is nothing to commit.
            PartialBlobFailure: If the blob upload for a path fails.
            RemoteConflict: If the branch kept moving through every rebase.
            RemoteUnavailable: On transport errors and 5xx responses.
        """
        normalized = file_set.normalized()
        removed = _normalize_deletions(deletions, exclude=set(normalized.paths()))
        if not normalized.files and not removed:
            raise InternalInvariantViolation(
                f"Empty file set reached the committer for {owner}/{repo}@{branch}"
            )

        plan = CommitPlan(owner=owner, repo=repo, branch=branch, deletions=removed)
        plan.blobs = self._upload_blobs(owner, repo, normalized.files)

        for ref_attempt in range(1, MAX_REF_ATTEMPTS + 1):
            self._resolve_base(plan)
            commit_sha = self._create_commit(plan, message)
            try:
                advanced = self._advance_ref(owner, repo, branch, commit_sha)
                break
            except RemoteConflict:
                if ref_attempt == MAX_REF_ATTEMPTS:
                    raise
                logger.warning(
                    "Branch %s of %s/%s moved during commit; rebasing (%d/%d)",
                    branch,
                    owner,
                    repo,
                    ref_attempt,
                    MAX_REF_ATTEMPTS,
                )

        logger.info(
            "Committed %d file(s), %d deletion(s) to %s/%s@%s as %s (%s)",
            len(plan.blobs),
            len(plan.deletions),
            owner,
            repo,
            branch,
            commit_sha[:7],
            advanced,
        )
        return CommitResult(commit_id=commit_sha, branch_advanced=advanced)

    def upsert_path(
        self,
        owner: str,
        repo: str,
        branch: str,
        entry: FileEntry,
        message: str,
    ) -> tuple[Literal["created", "updated"], CommitResult]:
        """Commit a single file, reporting whether it existed beforehand."""
        path = normalize_path(entry.path)
        existing_sha = self.client.get_file_sha(owner, repo, path, branch)
        result = self.commit(owner, repo, branch, FileSet(files=[entry]), message)
        return ("updated" if existing_sha else "created"), result

    def delete_path(
        self,
        owner: str,
        repo: str,
        branch: str,
        path: str,
        message: str,
    ) -> CommitResult:
        """Commit the removal of a single file.

        Raises:
            RemoteNotFound: If the file does not exist on the branch.
        """
        normalized = normalize_path(path)
        if self.client.get_file_sha(owner, repo, normalized, branch) is None:
            raise RemoteNotFound(f"File not found: {normalized}", status_code=404)
        return self.commit(owner, repo, branch, FileSet(), message, deletions=[normalized])

    # ------------------------------------------------------------------
    # Helpers

    def _upload_blobs(
        self,
        owner: str,
        repo: str,
        files: list[FileEntry],
    ) -> list[tuple[str, str]]:
        blobs: list[tuple[str, str]] = []
        for entry in files:
            try:
                blob_sha = self.client.create_blob(owner, repo, entry.base64_content())
            except RemoteError as exc:
                raise PartialBlobFailure(entry.path, exc) from exc
            blobs.append((entry.path, blob_sha))
        return blobs

    def _create_commit(self, plan: CommitPlan, message: str) -> str:
        """Create the tree over the plan's base and a commit on its parent."""
        entries: list[tuple[str, str | None]] = list(plan.blobs)
        entries.extend((path, None) for path in plan.deletions)
        tree_sha = self.client.create_tree(
            plan.owner, plan.repo, entries, base_tree=plan.base_tree_id
        )
        parents = [plan.parent_commit_id] if plan.parent_commit_id else []
        return self.client.create_commit(plan.owner, plan.repo, message, tree_sha, parents)

    def _resolve_base(self, plan: CommitPlan) -> None:
        plan.parent_commit_id = None
        plan.base_tree_id = None
        try:
            parent_sha = self.client.get_ref(plan.owner, plan.repo, plan.branch)
        except RemoteNotFound:
            # Empty repository: first commit has no parent and no base tree.
            logger.info(
                "Branch %s not found on %s/%s; creating root commit",
                plan.branch,
                plan.owner,
                plan.repo,
            )
            return
        plan.parent_commit_id = parent_sha
        plan.base_tree_id = self.client.get_commit_tree(plan.owner, plan.repo, parent_sha)

    def _advance_ref(
        self,
        owner: str,
        repo: str,
        branch: str,
        commit_sha: str,
    ) -> Literal["created", "updated"]:
        try:
            self.client.create_ref(owner, repo, branch, commit_sha)
            return "created"
        except RemoteConflict:
            logger.debug("Ref heads/%s already exists; updating instead", branch)
        self.client.update_ref(owner, repo, branch, commit_sha, force=False)
        return "updated"


def _normalize_deletions(paths: Iterable[str], exclude: set[str]) -> list[str]:
    # A path both written and deleted in one call keeps the write.
    seen: set[str] = set()
    result: list[str] = []
    for raw in paths:
        path = normalize_path(raw)
        if not path or path in exclude or path in seen:
            continue
        seen.add(path)
        result.append(path)
    return result
