"""Repository client.

``Client`` wraps a GitPython ``Repo`` and exposes the lifecycle operations an
automation agent needs: init/open/clone, add, commit, fetch, pull, push,
checkout and branch handling.  Each operation is a thin pass-through to
GitPython; errors are wrapped into ``gtc.errors`` types and "already up to
date" conditions are never reported as failures.

Submodule handling comes from ``SubmoduleMixin``; a few operations fall back
to the git CLI through ``GitRunner``.
"""

from __future__ import annotations

import logging
import os
import shutil
from collections.abc import Iterable, Mapping
from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from datetime import datetime, timezone

from git import (
    Actor,
    GitCommandError,
    Head,
    InvalidGitRepositoryError,
    NoSuchPathError,
    RemoteReference,
    Repo,
    TagReference,
)

from ..config import Config
from ..constants import DEFAULT_BRANCH, DEFAULT_REMOTE
from ..errors import (
    CloneError,
    GtcError,
    NotInitializedError,
    ReferenceNotFoundError,
    RepositoryNotFoundError,
)
from ..policy.redaction import redact_secrets
from ..process.git_runner import GitRunner
from . import files, refs
from .auth import AuthMethod
from .info import Info, collect_info
from .submodules import SubmoduleMixin

logger = logging.getLogger(__name__)

NO_AUTH_WARNING = "no authentication parameter was found. no auth method will be used"

# Push every local branch to the branch of the same name
PUSH_ALL_REFSPEC = "refs/heads/*:refs/heads/*"


@dataclass
class ClientOpt:
    """Options describing the working repository a client manages."""

    dir_path: str = ""
    origin_url: str = ""
    revision: str = ""
    create_branch: bool = False
    author_name: str = ""
    author_email: str = ""
    auth: AuthMethod | None = field(default=None, repr=False)


def _environment_for(auth: AuthMethod | None, config: Config) -> dict[str, str]:
    env = config.git_environment()
    if auth is not None:
        env.update(auth.environment())
    else:
        env["GIT_TERMINAL_PROMPT"] = "0"
    return env


def _secrets_for(auth: AuthMethod | None) -> list[str]:
    return auth.secrets() if auth is not None else []


class Client(SubmoduleMixin):
    """Client for a single working repository.

    Construct one with ``Client.init``, ``Client.open`` or ``Client.clone``.
    A ``Client`` built directly without a ``repo`` reports itself as not
    initialised and raises ``NotInitializedError`` from every operation that
    needs the repository.
    """

    def __init__(self, opt: ClientOpt, repo: Repo | None = None, config: Config | None = None) -> None:
        self.opt = opt
        self.repo = repo
        self.config = config or Config.load_from_env()

    def __repr__(self) -> str:
        return f"Client(dir_path={self.opt.dir_path!r}, revision={self.opt.revision!r})"

    # ------------------------------------------------------------------
    # Construction

    @classmethod
    def init(cls, opt: ClientOpt, config: Config | None = None) -> Client:
        """Create a new repository at ``opt.dir_path``.

        The initial branch is ``opt.revision``, or ``master`` when unset.
        """
        config = config or Config.load_from_env()
        try:
            repo = Repo.init(opt.dir_path, mkdir=True, initial_branch=opt.revision or DEFAULT_BRANCH)
        except GitCommandError as exc:
            raise GtcError(f"failed to init {opt.dir_path}: {exc}") from exc
        logger.debug("initialised repository at %s", opt.dir_path)
        return cls(opt, repo, config)

    @classmethod
    def open(cls, opt: ClientOpt, config: Config | None = None) -> Client:
        """Open the existing repository at ``opt.dir_path``."""
        try:
            repo = Repo(opt.dir_path)
        except (InvalidGitRepositoryError, NoSuchPathError) as exc:
            raise RepositoryNotFoundError(f"failed to open {opt.dir_path}") from exc
        return cls(opt, repo, config)

    @classmethod
    def clone(cls, opt: ClientOpt, config: Config | None = None) -> Client:
        """Clone ``opt.origin_url`` into ``opt.dir_path`` at ``opt.revision``.

        Submodules are cloned recursively.  When the revision does not exist
        on the remote and ``opt.create_branch`` is set, the default branch is
        cloned instead and ``opt.revision`` is created locally from it.
        """
        config = config or Config.load_from_env()
        if opt.auth is None:
            logger.warning(NO_AUTH_WARNING)
        env = _environment_for(opt.auth, config)
        secrets = _secrets_for(opt.auth)

        kwargs: dict[str, object] = {"recurse_submodules": True}
        if opt.revision:
            kwargs["branch"] = opt.revision
        try:
            repo = Repo.clone_from(opt.origin_url, opt.dir_path, env=env, **kwargs)
            return cls(opt, repo, config)
        except GitCommandError as exc:
            if not opt.create_branch:
                raise CloneError(f"failed to clone: {redact_secrets(str(exc), secrets)}") from exc
            logger.info(
                "revision %s not found on %s, cloning default branch",
                opt.revision,
                redact_secrets(opt.origin_url, secrets),
            )

        try:
            repo = Repo.clone_from(opt.origin_url, opt.dir_path, env=env, recurse_submodules=True)
        except GitCommandError as exc:
            raise CloneError(f"failed to clone: {redact_secrets(str(exc), secrets)}") from exc
        client = cls(opt, repo, config)
        client.checkout(opt.revision, force=True)
        return client

    # ------------------------------------------------------------------
    # Helpers

    @property
    def dir_path(self) -> str:
        if self.repo is not None and self.repo.working_tree_dir:
            return str(self.repo.working_tree_dir)
        return self.opt.dir_path

    def _require_repo(self) -> Repo:
        if self.repo is None:
            raise NotInitializedError("this repository is not initialized")
        return self.repo

    def _git_env(self) -> dict[str, str]:
        return _environment_for(self.opt.auth, self.config)

    def _environment(self) -> AbstractContextManager[None]:
        """Apply auth and protocol settings to GitPython's git commands."""
        return self._require_repo().git.custom_environment(**self._git_env())

    def _runner(self, auth: AuthMethod | None = None) -> GitRunner:
        secrets = _secrets_for(self.opt.auth) + _secrets_for(auth)
        env = self._git_env()
        if auth is not None:
            env.update(auth.environment())
        return GitRunner(self.dir_path, self.config, env=env, secrets=secrets)

    def _wrap(self, action: str, exc: BaseException) -> GtcError:
        return GtcError(f"failed to {action}: {redact_secrets(str(exc), _secrets_for(self.opt.auth))}")

    def _find_head(self, name: str) -> Head | None:
        return next((head for head in self._require_repo().heads if head.name == name), None)

    def _active_branch_name(self) -> str | None:
        repo = self._require_repo()
        if repo.head.is_detached:
            return None
        return repo.head.ref.name

    # ------------------------------------------------------------------
    # State

    def initialized(self) -> bool:
        """Return ``True`` when a repository with a working tree is open."""
        return self.repo is not None and self.repo.working_tree_dir is not None

    def initialized_with_remote(self) -> bool:
        """Return ``True`` when ``origin`` can be fetched."""
        if self.repo is None:
            return False
        try:
            self.fetch()
        except GtcError as exc:
            logger.debug("remote check failed for %s: %s", self.dir_path, exc)
            return False
        return True

    def is_clean(self) -> bool:
        """Return ``True`` when there are no staged, unstaged or untracked changes."""
        return not self._require_repo().is_dirty(index=True, working_tree=True, untracked_files=True)

    def info(self) -> Info:
        return collect_info(self._require_repo())

    def set_config_value(self, section: str, option: str, value: str) -> None:
        """Write ``section.option = value`` into the repository's own config."""
        with self._require_repo().config_writer("repository") as writer:
            writer.set_value(section, option, value)

    def clean(self) -> None:
        """Delete the working directory."""
        if self.repo is not None:
            self.repo.close()
            self.repo = None
        if os.path.exists(self.opt.dir_path):
            shutil.rmtree(self.opt.dir_path)

    # ------------------------------------------------------------------
    # Index and commits

    def add(self, file_path: str) -> None:
        """Stage ``file_path`` (relative to the working tree)."""
        repo = self._require_repo()
        try:
            repo.index.add([file_path])
        except (OSError, GitCommandError) as exc:
            raise self._wrap(f"add {file_path}", exc) from exc

    def commit(self, message: str) -> str:
        """Commit the index as the configured author.  Returns the new sha."""
        return self._commit(message, datetime.now(timezone.utc))

    def _commit(self, message: str, date: datetime) -> str:
        repo = self._require_repo()
        actor = Actor(self.opt.author_name, self.opt.author_email) if self.opt.author_name else None
        try:
            commit = repo.index.commit(
                message,
                author=actor,
                committer=actor,
                author_date=date,
                commit_date=date,
            )
        except (GitCommandError, OSError, ValueError) as exc:
            raise self._wrap("commit", exc) from exc
        logger.debug("created commit %s in %s", commit.hexsha, self.dir_path)
        return commit.hexsha

    def commit_files(self, files_to_commit: Mapping[str, bytes], message: str) -> str | None:
        """Write, stage and commit ``files_to_commit``.

        Returns the new commit sha, or ``None`` if the tree was already
        clean after staging.
        """
        for path, blob in files_to_commit.items():
            files.write_file(self.dir_path, path, blob)
            self.add(path)
        if self.is_clean():
            return None
        return self.commit(message)

    def read_files(
        self,
        paths: Iterable[str],
        ignore_file: Iterable[str] = (),
        ignore_dir: Iterable[str] = (),
        absolute_path: bool = False,
    ) -> dict[str, bytes]:
        return files.read_files(self.dir_path, paths, ignore_file, ignore_dir, absolute_path)

    # ------------------------------------------------------------------
    # Remote operations

    def fetch(self) -> None:
        """Fetch ``origin``.  Nothing to fetch is not an error."""
        repo = self._require_repo()
        try:
            with self._environment():
                repo.remote(DEFAULT_REMOTE).fetch(recurse_submodules="no")
        except (GitCommandError, ValueError, AssertionError) as exc:
            raise self._wrap("fetch", exc) from exc

    def pull(self, branch: str) -> None:
        """Fast-forward ``branch`` from ``origin``, updating submodules."""
        if self.opt.auth is None:
            logger.warning(NO_AUTH_WARNING)
        repo = self._require_repo()
        try:
            with self._environment():
                repo.git.pull("--ff-only", "--recurse-submodules", DEFAULT_REMOTE, branch)
        except GitCommandError as exc:
            raise self._wrap(f"pull {branch}", exc) from exc

    def pull_all(self) -> None:
        """Fast-forward the current branch from its upstream."""
        if self.opt.auth is None:
            logger.warning(NO_AUTH_WARNING)
        repo = self._require_repo()
        try:
            with self._environment():
                repo.git.pull("--ff-only", "--recurse-submodules")
        except GitCommandError as exc:
            raise self._wrap("pull", exc) from exc

    def push(self) -> None:
        """Push every local branch to ``origin``."""
        repo = self._require_repo()
        try:
            with self._environment():
                repo.remote(DEFAULT_REMOTE).push(PUSH_ALL_REFSPEC).raise_if_error()
        except (GitCommandError, ValueError) as exc:
            raise self._wrap("push", exc) from exc

    def mirror_branch(self, src: str, dst: str) -> None:
        """Push ``origin/<src>`` to ``origin`` as branch ``dst``."""
        self._require_repo()
        self._runner().check(["push", DEFAULT_REMOTE, f"remotes/{DEFAULT_REMOTE}/{src}:refs/heads/{dst}"])

    # ------------------------------------------------------------------
    # Branches

    def checkout(self, name: str, force: bool = False) -> None:
        """Switch to branch ``name``.

        A branch that only exists as ``origin/<name>`` is created as a
        tracking branch.  With ``force`` a missing branch is created at
        ``HEAD`` and local changes are discarded.
        """
        repo = self._require_repo()
        head = self._find_head(name)
        try:
            if head is None:
                remote_path = f"refs/remotes/{DEFAULT_REMOTE}/{name}"
                if refs.resolve_commit(repo, remote_path) is not None:
                    remote_ref = RemoteReference(repo, remote_path)
                    head = repo.create_head(name, remote_ref)
                    head.set_tracking_branch(remote_ref)
                elif force:
                    head = repo.create_head(name)
                else:
                    raise ReferenceNotFoundError(f"branch {name} not found")
            head.checkout(force=force)
        except (GitCommandError, ValueError) as exc:
            raise self._wrap(f"checkout {name}", exc) from exc

    def create_branch(self, dst: str, recreate: bool = False) -> None:
        """Create branch ``dst`` at ``HEAD`` and switch to it.

        With ``recreate`` an existing ``dst`` is deleted first, unless it is
        the branch currently checked out.
        """
        repo = self._require_repo()
        head = self._find_head(dst)
        if recreate and head is not None and self._active_branch_name() != dst:
            repo.delete_head(head, force=True)
            head = None
        if head is None:
            try:
                repo.create_head(dst)
            except (GitCommandError, ValueError) as exc:
                raise self._wrap(f"create branch {dst}", exc) from exc
        self.checkout(dst, force=True)

    # ------------------------------------------------------------------
    # References

    def get_revision_reference_name(self, name: str) -> str:
        return refs.get_revision_reference_name(self._require_repo(), name)

    def get_hash(self, base: str, refer_remote: bool = False) -> str:
        return refs.get_hash(self._require_repo(), base, refer_remote)

    def get_latest_tag_reference(self, refer_remote: bool = False) -> TagReference:
        """Return the most recently authored tag.

        With ``refer_remote`` tags are fetched from ``origin`` first, so tags
        that only exist remotely are considered too.
        """
        repo = self._require_repo()
        if refer_remote:
            try:
                with self._environment():
                    repo.git.fetch("--tags", "--force", "--recurse-submodules=no", DEFAULT_REMOTE)
            except GitCommandError as exc:
                raise self._wrap("fetch tags", exc) from exc
        return refs.get_latest_tag_reference(repo)

    # ------------------------------------------------------------------
    # Submodules

    def add_client_as_submodule(self, name: str, sub_client: Client) -> None:
        """Register ``sub_client``'s origin as submodule ``name``."""
        self.submodule_add(name, sub_client.opt.origin_url, sub_client.opt.revision, sub_client.opt.auth)
