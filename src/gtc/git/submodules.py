"""Submodule management.

``SubmoduleMixin`` adds submodule operations to ``Client``:

- ``submodule_add`` registers a new submodule through the git CLI
- ``submodule_update`` initialises every submodule and moves it to the tip of
  its tracked branch, or with ``remote=True`` to the remote branch named like
  the client revision
- ``submodule_sync_up_to_date`` does a remote update and commits and pushes
  the new submodule pointers when anything moved

A pass over the submodules is restarted when git reports that a reference or
lock changed underneath it.  Restarts are bounded by
``Config.submodule_retry_limit``.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from typing import TYPE_CHECKING
from urllib.parse import quote, urlsplit

from git import GitCommandError, Repo, Submodule

from ..constants import DEFAULT_BRANCH, DEFAULT_REMOTE
from ..errors import GtcError, ReferenceChangedError, ReferenceNotFoundError
from ..policy.redaction import redact_secrets
from .auth import AuthMethod, is_local_url, mk_auth_method_injected_url, strip_credentials
from .refs import resolve_commit

if TYPE_CHECKING:
    from ..config import Config
    from ..process.git_runner import GitRunner
    from .client import ClientOpt

logger = logging.getLogger(__name__)

# Fragments of git error output that mean a ref or lock moved during the pass
REFERENCE_CHANGED_MARKERS = (
    "cannot lock ref",
    "reference has changed",
    ".lock': file exists",
    "unable to update local ref",
)


def is_reference_changed(exc: BaseException) -> bool:
    """Return ``True`` if ``exc`` was caused by a concurrently changed ref."""
    text = f"{exc} {getattr(exc, 'stderr', '') or ''}".lower()
    return any(marker in text for marker in REFERENCE_CHANGED_MARKERS)


class SubmoduleMixin:
    """Submodule operations shared by ``Client``."""

    opt: ClientOpt
    repo: Repo | None
    config: Config

    if TYPE_CHECKING:
        # provided by Client
        def _require_repo(self) -> Repo: ...

        def _runner(self, auth: AuthMethod | None = None) -> GitRunner: ...

        def _git_env(self) -> dict[str, str]: ...

        def _active_branch_name(self) -> str | None: ...

        def is_clean(self) -> bool: ...

        def commit(self, message: str) -> str: ...

        def push(self) -> None: ...

    # ------------------------------------------------------------------
    # Auth rewriting

    def replace_to_auth_url(self, url: str, auth: AuthMethod | None) -> None:
        """Make git substitute an authenticated base URL for ``url``'s host.

        Writes ``url.<scheme>://<user>:<pass>@<host>/.insteadOf
        <scheme>://<host>/`` into the repository config so that nested
        clones and fetches pick up the credentials.
        """
        if auth is None or not auth.is_basic or is_local_url(url):
            return
        repo = self._require_repo()
        parts = urlsplit(url)
        host = parts.netloc.rsplit("@", 1)[-1]
        new_url = f"{parts.scheme}://{quote(auth.username, safe='')}:{quote(auth.password, safe='')}@{host}/"
        instead_of = f"{parts.scheme}://{host}/"
        with repo.config_writer() as writer:
            writer.set_value(f'url "{new_url}"', "insteadOf", instead_of)
        if self.config.debug:
            out = self._runner(auth).check(["config", "--list"])
            logger.info("git config after auth rewrite:\n%s", out)

    def submodule_update_auth(self, path: str, url: str, auth: AuthMethod | None) -> None:
        """Point submodule ``path`` at its credential-free URL and register auth.

        Only basic credentials against network URLs are handled.  Local paths,
        ``file://`` URLs and SSH keys need no rewriting.
        """
        if auth is None or not auth.is_basic or is_local_url(url):
            return
        self.replace_to_auth_url(url, auth)
        self._runner(auth).check(["submodule", "set-url", "--", path, strip_credentials(url)])
        if self.config.debug:
            gitmodules = os.path.join(self._require_repo().working_tree_dir or "", ".gitmodules")
            if os.path.exists(gitmodules):
                with open(gitmodules, encoding="utf-8") as fh:
                    logger.info(".gitmodules:\n%s", redact_secrets(fh.read(), auth.secrets()))

    # ------------------------------------------------------------------
    # Add

    def submodule_add(self, name: str, url: str, revision: str, auth: AuthMethod | None = None) -> None:
        """Add ``url`` as submodule ``name`` tracking branch ``revision``.

        Nothing happens if a submodule with that name is already registered.
        """
        repo = self._require_repo()
        if any(sub.name == name for sub in repo.submodules):
            logger.info("submodule %s already exists", name)
            return

        repository_url = mk_auth_method_injected_url(url, auth)
        cmd = ["submodule", "add"]
        if revision:
            cmd += ["-b", revision]
        cmd += ["--", repository_url, name]
        # Local file transports are refused by git >= 2.38.1 unless allowed;
        # only CI and tests enable this. See
        # https://bugs.launchpad.net/ubuntu/+source/git/+bug/1993586
        if self.config.submodule_protocol_file_allow:
            cmd = ["-c", "protocol.file.allow=always", *cmd]
        self._runner(auth).check(cmd)
        self.submodule_update_auth(name, url, auth)

    # ------------------------------------------------------------------
    # Update

    def submodule_update(self, remote: bool = False) -> None:
        """Bring every submodule up to date.

        With ``remote=False`` each submodule is initialised, checked out at
        the recorded commit and then fast-forwarded to the tip of the branch
        it tracks.  With ``remote=True`` each submodule is force-fetched and
        checked out at ``origin/<revision>``, where revision is the client's.
        """
        if remote:
            self._with_reference_retry("submodule update --remote", self._submodule_use_remote)
        else:
            self._with_reference_retry("submodule update", self._submodule_update_pass)

    def submodule_sync_up_to_date(self, message: str) -> str | None:
        """Update submodules from their remotes and publish the new pointers.

        Returns the new commit sha, or ``None`` when nothing changed.
        """
        self.submodule_update(remote=True)
        if self.is_clean():
            logger.info("submodules already up to date")
            return None

        try:
            self._runner().check(["add", "-A"])
        except GtcError as exc:
            raise GtcError(f"failed to add stage: {exc}") from exc
        sha = self.commit(message)
        self.push()
        logger.info("committed submodule update %s", sha)
        return sha

    # ------------------------------------------------------------------
    # Internals

    def _with_reference_retry(self, operation: str, fn: Callable[[], None]) -> None:
        attempts = self.config.submodule_retry_limit + 1
        last_exc: BaseException | None = None
        for attempt in range(1, attempts + 1):
            try:
                fn()
                return
            except (GtcError, GitCommandError) as exc:
                if isinstance(exc, ReferenceChangedError) or not is_reference_changed(exc):
                    raise
                last_exc = exc
                logger.warning(
                    "%s: reference changed during update (attempt %d/%d)", operation, attempt, attempts
                )
        raise ReferenceChangedError(
            f"{operation}: reference kept changing after {attempts} attempts"
        ) from last_exc

    def _refresh_submodule_auth(self, sub: Submodule) -> None:
        try:
            self.submodule_update_auth(sub.path, sub.url, self.opt.auth)
        except GtcError as exc:
            # an auth rewrite failure must not block the update itself
            logger.error("failed to update auth for submodule %s: %s", sub.path, exc)

    def _init_submodule(self, sub: Submodule) -> None:
        self._runner().check(["submodule", "update", "--init", "--", sub.path])

    def _fetch_submodule(self, sub: Submodule, sub_repo: Repo) -> None:
        try:
            with sub_repo.git.custom_environment(**self._git_env()):
                sub_repo.remote(DEFAULT_REMOTE).fetch(force=True, recurse_submodules="no")
        except (GitCommandError, ValueError, AssertionError) as exc:
            raise GtcError(f"failed to pull submodule {sub.path}: {redact_secrets(str(exc))}") from exc

    def _checkout_submodule(self, sub: Submodule, sub_repo: Repo, sha: str) -> None:
        try:
            sub_repo.git.checkout(sha, force=True)
        except GitCommandError as exc:
            raise GtcError(f"failed to checkout submodule {sub.path}: {exc}") from exc

    def _tracked_branch(self, sub: Submodule, sub_repo: Repo) -> str:
        """Branch a submodule follows: .gitmodules, then origin/HEAD, then master."""
        result = self._runner().run(["config", "--file", ".gitmodules", "--get", f"submodule.{sub.name}.branch"])
        branch = str(result["stdout"]).strip() if result["exit_code"] == 0 else ""
        if branch == ".":
            # "." means the same branch as the superproject
            branch = self._active_branch_name() or ""
        if branch:
            return branch
        try:
            head = sub_repo.git.symbolic_ref("--short", f"refs/remotes/{DEFAULT_REMOTE}/HEAD")
        except GitCommandError:
            return DEFAULT_BRANCH
        return head.split("/", 1)[-1]

    def _submodule_update_pass(self) -> None:
        repo = self._require_repo()
        for sub in repo.submodules:
            self._refresh_submodule_auth(sub)
            self._init_submodule(sub)
            sub_repo = sub.module()
            self._fetch_submodule(sub, sub_repo)

            branch = self._tracked_branch(sub, sub_repo)
            target = resolve_commit(sub_repo, f"refs/remotes/{DEFAULT_REMOTE}/{branch}")
            if target is None:
                raise ReferenceNotFoundError(f"failed to resolve {DEFAULT_REMOTE}/{branch} in submodule {sub.path}")
            current = sub_repo.head.commit.hexsha
            if current == target:
                continue
            try:
                fast_forward = sub_repo.is_ancestor(current, target)
            except GitCommandError as exc:
                raise GtcError(f"failed to pull submodule {sub.path}: {redact_secrets(str(exc))}") from exc
            if not fast_forward:
                raise GtcError(f"failed to pull submodule {sub.path}: non-fast-forward update")
            self._checkout_submodule(sub, sub_repo, target)
            logger.info("submodule %s fast-forwarded to %s", sub.path, target)

    def _submodule_use_remote(self) -> None:
        repo = self._require_repo()
        revision = self.opt.revision or self._active_branch_name() or DEFAULT_BRANCH
        for sub in repo.submodules:
            self._refresh_submodule_auth(sub)
            if not sub.module_exists():
                self._init_submodule(sub)
            sub_repo = sub.module()
            self._fetch_submodule(sub, sub_repo)

            ref = f"refs/remotes/{DEFAULT_REMOTE}/{revision}"
            target = resolve_commit(sub_repo, ref)
            if target is None:
                raise ReferenceNotFoundError(
                    f"failed to resolve revision of remote branch {ref} in submodule {sub.path}"
                )
            self._checkout_submodule(sub, sub_repo, target)
            logger.debug("submodule %s attached to %s (%s)", sub.path, ref, target)
