"""
Git transport for litebrite snapshots.

Uses git plumbing commands to store snapshots on a dedicated branch
without touching the working tree or the index, so the user's checkout
is never disturbed.

The implementation uses:
- `git hash-object -w` to store the snapshot as a blob
- `git mktree` to create tree objects
- `git commit-tree` to create commits with zero, one or two parents
- `git update-ref <ref> <new> <old>` to move the branch atomically
- `git fetch` / `git push` without force to exchange the branch
- `git merge-base` for ancestry checks
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path, PurePosixPath

from litebrite.core.exceptions import (
    GitError,
    IOFailureError,
    NotFoundError,
    TransportRejectedError,
    TransportTimeoutError,
    TransportUnavailableError,
)

logger = logging.getLogger(__name__)

PUSH_REJECTION_MARKERS = ("rejected", "non-fast-forward", "fetch first", "stale info")


class GitTransport:
    """
    Transport that keeps snapshots on a git branch.

    Example:
        >>> transport = GitTransport(project_dir=Path("."))
        >>> if transport.fetch():
        ...     data = transport.read_snapshot(transport.remote_head())
    """

    DEFAULT_BRANCH = "litebrite"
    DEFAULT_REMOTE = "origin"
    DEFAULT_SNAPSHOT_FILE = "store.json"
    DEFAULT_TIMEOUT = 60

    def __init__(
        self,
        project_dir: Path | None = None,
        branch_name: str = DEFAULT_BRANCH,
        remote_name: str = DEFAULT_REMOTE,
        snapshot_file: str = DEFAULT_SNAPSHOT_FILE,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        """
        Initialize the git transport.

        Args:
            project_dir: Root directory of the git repository.
                        Defaults to current working directory.
            branch_name: Name of the litebrite branch (default: "litebrite").
            remote_name: Remote to exchange the branch with (default: "origin").
            snapshot_file: Path of the snapshot inside the branch tree.
            timeout: Seconds before a git command is abandoned.
        """
        self.project_dir = (project_dir or Path.cwd()).resolve()
        self.branch_name = branch_name
        self.remote_name = remote_name
        self.snapshot_file = snapshot_file
        self.timeout = timeout

    @property
    def branch_ref(self) -> str:
        """Full git ref for the local branch."""
        return f"refs/heads/{self.branch_name}"

    @property
    def tracking_ref(self) -> str:
        """Full git ref for the remote-tracking branch."""
        return f"refs/remotes/{self.remote_name}/{self.branch_name}"

    # ------------------------------------------------------------------
    # Subprocess plumbing
    # ------------------------------------------------------------------

    def _exec(
        self,
        args: list[str],
        *,
        input_data: str | bytes | None = None,
        binary: bool = False,
    ) -> subprocess.CompletedProcess:
        """Run git; stdout and stderr are bytes when *binary* is set."""
        cmd = ["git"] + args

        logger.debug("Running git command: %s", " ".join(cmd))

        text_kwargs = {} if binary else {"text": True, "encoding": "utf-8"}
        try:
            return subprocess.run(
                cmd,
                cwd=self.project_dir,
                capture_output=True,
                timeout=self.timeout,
                input=input_data,
                **text_kwargs,
            )
        except subprocess.TimeoutExpired as e:
            raise TransportTimeoutError(
                f"Git command timed out after {self.timeout}s: {' '.join(cmd)}", command=cmd
            ) from e
        except FileNotFoundError as e:
            raise GitError("git not found in PATH", command=cmd) from e

    def _run_git(self, args: list[str], *, input_data: str | None = None) -> str:
        """
        Run a git command and return its stdout.

        Args:
            args: Git command arguments (without "git" prefix).
            input_data: Optional stdin data to pass to the command.

        Returns:
            Command stdout as string.

        Raises:
            GitError: If the command exits non-zero.
            TransportTimeoutError: If the command times out.
        """
        result = self._exec(args, input_data=input_data)
        if result.returncode != 0:
            stderr = result.stderr.strip() if result.stderr else ""
            raise GitError(
                f"Git command failed: git {' '.join(args)}: {stderr}",
                command=["git"] + args,
                stderr=stderr,
            )
        return (result.stdout or "").strip()

    def _resolve_ref(self, ref: str) -> str | None:
        """Get the commit SHA of a ref, or None if it doesn't exist."""
        result = self._exec(["rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}"])
        if result.returncode != 0:
            return None
        return result.stdout.strip() or None

    def _hash_blob(self, data: bytes) -> str:
        """Write *data* verbatim as a blob and return its SHA."""
        args = ["hash-object", "-w", "--stdin"]
        result = self._exec(args, input_data=data, binary=True)
        if result.returncode != 0:
            stderr = result.stderr.decode("utf-8", errors="replace").strip()
            raise GitError(
                f"Git command failed: git {' '.join(args)}: {stderr}",
                command=["git"] + args,
                stderr=stderr,
            )
        return result.stdout.decode("ascii").strip()

    def _create_tree_for_path(self, blob_sha: str, file_path: str) -> str:
        """
        Create a tree object hierarchy for a file at the given path.

        git mktree does not accept paths with slashes, so nested paths are
        built from the innermost directory outwards.

        Args:
            blob_sha: SHA of the blob to include in the tree.
            file_path: Relative path like 'store.json' or '.litebrite/store.json'.

        Returns:
            SHA of the root tree.
        """
        parts = list(PurePosixPath(file_path).parts)

        tree_entry = f"100644 blob {blob_sha}\t{parts[-1]}\n"
        current_tree_sha = self._run_git(["mktree"], input_data=tree_entry)

        for dirname in reversed(parts[:-1]):
            tree_entry = f"040000 tree {current_tree_sha}\t{dirname}\n"
            current_tree_sha = self._run_git(["mktree"], input_data=tree_entry)

        return current_tree_sha

    # ------------------------------------------------------------------
    # Transport protocol
    # ------------------------------------------------------------------

    def has_remote(self) -> bool:
        remotes = self._run_git(["remote"]).splitlines()
        return self.remote_name in (name.strip() for name in remotes)

    def local_head_exists(self) -> bool:
        return self.local_head() is not None

    def remote_head_exists(self) -> bool:
        return self.remote_head() is not None

    def local_head(self) -> str | None:
        return self._resolve_ref(self.branch_ref)

    def remote_head(self) -> str | None:
        return self._resolve_ref(self.tracking_ref)

    def fetch(self) -> bool:
        """
        Fetch the litebrite branch into its remote-tracking ref.

        Fetching into the tracking ref rather than the local branch lets
        the controller compare local and remote even after they diverged.

        Returns:
            True if the remote branch exists, False if it was never pushed.

        Raises:
            TransportUnavailableError: If the remote is not configured.
            GitError: If git fetch fails for reasons other than a missing branch.
        """
        if not self.has_remote():
            raise TransportUnavailableError(
                f"no remote named '{self.remote_name}' is configured", remote=self.remote_name
            )
        try:
            self._run_git(
                [
                    "fetch",
                    "--no-tags",
                    self.remote_name,
                    f"+{self.branch_ref}:{self.tracking_ref}",
                ]
            )
            return True
        except GitError as e:
            if "couldn't find remote ref" not in e.stderr.lower():
                raise
        if self.remote_head_exists():
            # Branch deleted on the remote; drop the stale tracking ref.
            self._run_git(["update-ref", "-d", self.tracking_ref])
        return False

    def read_snapshot(self, ref: str) -> bytes:
        # Raw bytes; decoding belongs to Document.from_json
        result = self._exec(["cat-file", "blob", f"{ref}:{self.snapshot_file}"], binary=True)
        if result.returncode != 0:
            stderr = result.stderr.decode("utf-8", errors="replace").strip()
            raise NotFoundError(
                f"no snapshot '{self.snapshot_file}' at {ref}", ref=ref, stderr=stderr
            )
        return result.stdout

    def write_snapshot(self, data: bytes, parents: list[str], message: str) -> str:
        blob_sha = self._hash_blob(data)
        logger.debug("Created blob: %s", blob_sha)

        tree_sha = self._create_tree_for_path(blob_sha, self.snapshot_file)
        logger.debug("Created tree: %s", tree_sha)

        args = ["commit-tree", tree_sha]
        for parent in parents:
            args += ["-p", parent]
        args += ["-m", message]
        commit_sha = self._run_git(args)
        logger.debug("Created commit: %s", commit_sha)
        return commit_sha

    def update_head(self, expected: str | None, new: str) -> None:
        try:
            self._run_git(["update-ref", self.branch_ref, new, expected or ""])
        except GitError as e:
            raise TransportRejectedError(
                f"{self.branch_name} moved concurrently (expected {expected or 'no branch'})",
                expected=expected,
                stderr=e.stderr,
            ) from e
        logger.debug("Moved %s to %s", self.branch_name, new[:8])

    def push(self) -> None:
        """
        Push the local branch without force.

        Raises:
            TransportUnavailableError: If the remote is not configured.
            NotFoundError: If the local branch does not exist.
            TransportRejectedError: If the remote branch moved since the last fetch.
            GitError: On any other push failure.
        """
        if not self.has_remote():
            raise TransportUnavailableError(
                f"no remote named '{self.remote_name}' is configured", remote=self.remote_name
            )
        local = self.local_head()
        if local is None:
            raise NotFoundError(f"nothing to push: branch {self.branch_name} does not exist")
        try:
            self._run_git(["push", self.remote_name, f"{self.branch_ref}:{self.branch_ref}"])
        except GitError as e:
            stderr = e.stderr.lower()
            if any(marker in stderr for marker in PUSH_REJECTION_MARKERS):
                raise TransportRejectedError(
                    f"push of {self.branch_name} rejected: remote has newer changes",
                    stderr=e.stderr,
                ) from e
            raise
        self._run_git(["update-ref", self.tracking_ref, local])
        logger.info("Pushed %s to %s (%s)", self.branch_name, self.remote_name, local[:8])

    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        result = self._exec(["merge-base", "--is-ancestor", ancestor, descendant])
        if result.returncode == 0:
            return True
        if result.returncode == 1:
            return False
        raise GitError(
            f"Git command failed: git merge-base --is-ancestor {ancestor} {descendant}",
            command=["git", "merge-base", "--is-ancestor", ancestor, descendant],
            stderr=result.stderr.strip(),
        )

    def merge_base(self, a: str, b: str) -> str | None:
        result = self._exec(["merge-base", a, b])
        if result.returncode == 0:
            return result.stdout.strip() or None
        if result.returncode == 1 and not result.stderr.strip():
            return None
        raise GitError(
            f"Git command failed: git merge-base {a} {b}",
            command=["git", "merge-base", a, b],
            stderr=result.stderr.strip(),
        )

    def current_actor_identity(self) -> str:
        try:
            name = self._run_git(["config", "user.name"])
        except GitError as e:
            raise IOFailureError(
                "no actor identity: set LB_ACTOR or git config user.name", stderr=e.stderr
            ) from e
        if not name:
            raise IOFailureError("no actor identity: set LB_ACTOR or git config user.name")
        return name
