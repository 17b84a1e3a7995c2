"""Versioned document store backends.

This module provides the transactional file store that holds definition
documents and CSV attachments. Writes happen inside batches; the outermost
``end_batch`` turns the batch's touched paths into one change set. The
local backend only records the change set while the git backend commits it.
"""

from __future__ import annotations

from contextlib import contextmanager
import os
from pathlib import Path, PurePosixPath
import shutil
import subprocess
import threading
from typing import BinaryIO, Iterator

from core.constants import DEFAULT_COMMIT_AUTHOR, DEFAULT_COMMIT_MESSAGE, GIT_METADATA_DIR_NAME
from core.errors import DashbuilderDependencyError, DashbuilderStoreError
from core.logging_config import get_logger
from core.types import CommitOption

_LOGGER = get_logger(__name__)


class LocalDocumentStore:
    """Directory-backed document store with batch bookkeeping.

    Batches are exclusive to the calling thread: ``start_batch`` acquires a
    re-entrant lock that the matching ``end_batch`` releases, so nested
    batches on one thread fold into the outermost change set.
    """

    def __init__(self, root: Path, default_author: str = DEFAULT_COMMIT_AUTHOR) -> None:
        self._root = root.expanduser().resolve()
        self._default_author = default_author
        self._batch_lock = threading.RLock()
        self._batch_depth = 0
        self._batch_commit: CommitOption | None = None
        self._batch_paths: set[str] = set()
        try:
            self._root.mkdir(parents=True, exist_ok=True)
        except OSError as error:
            raise DashbuilderStoreError(
                f"Failed to create definition store root at {self._root}: {error}. "
                "Check the data root permissions."
            ) from error

    @property
    def root(self) -> Path:
        """Absolute store root directory."""
        return self._root

    def resolve(self, name: str) -> str:
        """Resolve a file name into a normalized store path.

        Args:
            name: File name or relative path.

        Returns:
            Relative POSIX store path.

        Raises:
            DashbuilderStoreError: If the path escapes the store root.
        """
        store_path = PurePosixPath(name.replace("\\", "/"))
        if store_path.is_absolute() or ".." in store_path.parts or not store_path.parts:
            raise DashbuilderStoreError(
                f"Invalid store path '{name}': expected a relative path inside the store."
            )
        return store_path.as_posix()

    def exists(self, path: str) -> bool:
        """Return whether a store path exists."""
        return self._absolute(path).exists()

    def read_text(self, path: str) -> str:
        """Read a whole store file as UTF-8 text.

        Raises:
            DashbuilderStoreError: If the file cannot be read.
        """
        try:
            return self._absolute(path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as error:
            raise DashbuilderStoreError(f"Failed to read store file {path}: {error}.") from error

    def read_bytes(self, path: str) -> bytes:
        """Read a whole store file as bytes.

        Raises:
            DashbuilderStoreError: If the file cannot be read.
        """
        try:
            return self._absolute(path).read_bytes()
        except OSError as error:
            raise DashbuilderStoreError(f"Failed to read store file {path}: {error}.") from error

    def open_input(self, path: str) -> BinaryIO:
        """Open a binary input stream on a store file.

        Raises:
            DashbuilderStoreError: If the file cannot be opened.
        """
        try:
            return self._absolute(path).open("rb")
        except OSError as error:
            raise DashbuilderStoreError(f"Failed to open store file {path}: {error}.") from error

    def write_text(self, path: str, content: str) -> None:
        """Write a whole store file from UTF-8 text."""
        self.write_bytes(path, content.encode("utf-8"))

    def write_bytes(self, path: str, content: bytes) -> None:
        """Write a whole store file.

        Args:
            path: Store path.
            content: Full file content.

        Raises:
            DashbuilderStoreError: If the write fails.
        """
        target = self._absolute(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(content)
        except OSError as error:
            raise DashbuilderStoreError(
                f"Failed to write store file {path}: {error}. Check store permissions."
            ) from error
        self._track(path)

    def delete_if_exists(self, path: str, non_empty_directories: bool = False) -> bool:
        """Delete a store file or directory when present.

        Args:
            path: Store path.
            non_empty_directories: Allow recursive deletion of directories.

        Returns:
            Whether anything was deleted.

        Raises:
            DashbuilderStoreError: If deletion fails.
        """
        target = self._absolute(path)
        if not target.exists():
            return False
        try:
            if target.is_dir():
                if non_empty_directories:
                    shutil.rmtree(target)
                else:
                    target.rmdir()
            else:
                target.unlink()
        except OSError as error:
            raise DashbuilderStoreError(f"Failed to delete store path {path}: {error}.") from error
        self._track(path)
        return True

    def walk_files(self) -> Iterator[str]:
        """Yield every regular file under the root as a store path.

        Files are yielded in sorted order; VCS metadata is skipped.
        """
        for file_path in sorted(self._root.rglob("*")):
            relative_path = file_path.relative_to(self._root)
            if relative_path.parts[0] == GIT_METADATA_DIR_NAME:
                continue
            if file_path.is_file():
                yield relative_path.as_posix()

    def start_batch(self, commit: CommitOption | None = None) -> None:
        """Open a batch, optionally attributed to an author and message."""
        self._batch_lock.acquire()
        self._batch_depth += 1
        if self._batch_depth == 1:
            self._batch_commit = commit
            self._batch_paths = set()

    def end_batch(self) -> None:
        """Close the current batch and commit at the outermost level.

        Raises:
            DashbuilderStoreError: If no batch is open or the commit fails.
        """
        if self._batch_depth == 0:
            raise DashbuilderStoreError("end_batch called without a matching start_batch.")
        try:
            self._batch_depth -= 1
            if self._batch_depth == 0:
                paths = tuple(sorted(self._batch_paths))
                commit = self._batch_commit or CommitOption(
                    author=self._default_author,
                    message=DEFAULT_COMMIT_MESSAGE,
                )
                self._batch_paths = set()
                self._batch_commit = None
                if paths:
                    self._commit(paths, commit)
        finally:
            self._batch_lock.release()

    @contextmanager
    def batch(self, commit: CommitOption | None = None) -> Iterator[None]:
        """Run the enclosed block inside one batch."""
        self.start_batch(commit)
        try:
            yield
        finally:
            self.end_batch()

    def _commit(self, paths: tuple[str, ...], commit: CommitOption) -> None:
        _LOGGER.info(
            "store_batch_committed",
            root=str(self._root),
            author=commit.author,
            message=commit.message,
            paths=list(paths),
        )

    def _track(self, path: str) -> None:
        if self._batch_depth > 0:
            self._batch_paths.add(self.resolve(path))

    def _absolute(self, path: str) -> Path:
        return self._root / self.resolve(path)


class GitDocumentStore(LocalDocumentStore):
    """Document store that records every batch as one git commit."""

    def __init__(self, root: Path, default_author: str = DEFAULT_COMMIT_AUTHOR) -> None:
        super().__init__(root, default_author)
        self._git = _resolve_git_executable()
        if not (self.root / GIT_METADATA_DIR_NAME).exists():
            self._run_git("init", "--quiet")
            _LOGGER.info("git_store_initialized", root=str(self.root))

    def _commit(self, paths: tuple[str, ...], commit: CommitOption) -> None:
        # whole-tree add: a path written and deleted in one batch is not a valid pathspec
        self._run_git("add", "--all")
        staged = self._run_git("diff", "--cached", "--quiet", check=False)
        if staged.returncode == 0:
            _LOGGER.debug("git_commit_skipped", root=str(self.root), paths=list(paths))
            return
        self._run_git(
            "commit",
            "--quiet",
            "--no-verify",
            f"--author={commit.author} <{_author_email(commit.author)}>",
            "-m",
            commit.message,
            commit_author=commit.author,
        )
        super()._commit(paths, commit)

    def _run_git(
        self,
        *args: str,
        check: bool = True,
        commit_author: str | None = None,
    ) -> subprocess.CompletedProcess[str]:
        """Run one git command inside the store root.

        Args:
            *args: Git arguments.
            check: Raise when the command exits non-zero.
            commit_author: Author name exported as committer identity.

        Returns:
            Completed process with captured text output.

        Raises:
            DashbuilderStoreError: If the command cannot run or fails.
        """
        author = commit_author or self._default_author
        env = dict(os.environ)
        env.setdefault("GIT_COMMITTER_NAME", author)
        env.setdefault("GIT_COMMITTER_EMAIL", _author_email(author))
        env.setdefault("GIT_AUTHOR_NAME", author)
        env.setdefault("GIT_AUTHOR_EMAIL", _author_email(author))
        command = [self._git, *args]
        try:
            result = subprocess.run(
                command,
                cwd=self.root,
                env=env,
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as error:
            raise DashbuilderStoreError(
                f"Failed to run git in {self.root}: {error}. Check the git installation."
            ) from error
        if check and result.returncode != 0:
            raise DashbuilderStoreError(
                f"git {' '.join(args[:1])} failed in {self.root} "
                f"(code={result.returncode}): {result.stderr.strip()}"
            )
        return result


def _resolve_git_executable() -> str:
    """Locate the git executable on PATH.

    Raises:
        DashbuilderDependencyError: If git is not installed.
    """
    executable = shutil.which("git")
    if executable is None:
        raise DashbuilderDependencyError(
            "The git store backend requires the 'git' executable on PATH. "
            "Install git or set DASHBUILDER_STORE_BACKEND=local."
        )
    return executable


def _author_email(author: str) -> str:
    slug = "".join(char if char.isalnum() else "-" for char in author.strip().lower())
    return f"{slug.strip('-') or 'anonymous'}@dashbuilder.local"
