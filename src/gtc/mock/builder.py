"""Mock repository builder.

``new_mock`` turns a ``MockOpt`` into a real repository on disk: an optional
remote (itself a mock) is built first, then the local repository is cloned
from it or initialised, and commits, branches, staged and unstaged files are
laid down in that order.
"""

from __future__ import annotations

import logging
import secrets
import string
import tempfile
from dataclasses import dataclass, field

from ..config import Config
from ..constants import DEFAULT_BRANCH, MOCK_AUTHOR_EMAIL, MOCK_AUTHOR_NAME, MOCK_DIR_PREFIX
from ..git import files
from ..git.client import Client, ClientOpt
from ..git.info import Info

logger = logging.getLogger(__name__)

_TEST_NAME_ALPHABET = string.ascii_lowercase + string.digits


@dataclass
class MockCommit:
    message: str = ""
    files: dict[str, bytes] = field(default_factory=dict)


@dataclass
class MockOpt:
    """Description of a mock repository.

    ``remote`` describes a mock to build and clone from; ``rc`` reuses an
    existing client as the remote instead.  ``base_dir`` is the parent of the
    temporary directory, the system temp dir when unset.
    """

    origin_url: str = ""
    current_branch: str = DEFAULT_BRANCH
    branches: list[str] = field(default_factory=list)
    commits: list[MockCommit] = field(default_factory=list)
    staged_file: dict[str, bytes] = field(default_factory=dict)
    unstaged_file: dict[str, bytes] = field(default_factory=dict)
    remote: MockOpt | None = None
    rc: Client | None = None
    base_dir: str | None = None


@dataclass
class Mock:
    """A built mock: the local client and, when there is one, the remote.

    ``owns_remote`` is set when the remote was built for this mock; only
    then does ``clean`` delete it.
    """

    c: Client
    rc: Client | None = None
    owns_remote: bool = False

    def dir_path(self) -> str:
        return self.c.opt.dir_path

    def client_opt(self) -> ClientOpt:
        return self.c.opt

    def remote_client_opt(self) -> ClientOpt:
        if self.rc is None:
            raise ValueError("mock has no remote")
        return self.rc.opt

    def random_commit_local(self, branch: str, push: bool = False) -> str | None:
        """Commit a uniquely named file on ``branch`` of the local repository."""
        sha = _random_commit(self.c, branch)
        if push:
            self.c.push()
        return sha

    def random_commit_remote(self, branch: str) -> str | None:
        """Commit a uniquely named file on ``branch`` of the remote repository."""
        if self.rc is None:
            raise ValueError("mock has no remote")
        return _random_commit(self.rc, branch)

    def info(self) -> Info:
        info = self.c.info()
        if self.rc is not None:
            info.remote = self.rc.info()
        return info

    def clean(self) -> None:
        self.c.clean()
        if self.rc is not None and self.owns_remote:
            self.rc.clean()

    def compose(self, opt: MockOpt) -> None:
        c = self.c
        if self.rc is not None:
            c.pull(opt.current_branch)

        for commit in opt.commits:
            for name, blob in commit.files.items():
                files.write_file(c.dir_path, name, blob)
                c.add(name)
            c.commit(commit.message)

        for branch in opt.branches:
            c.create_branch(branch, recreate=False)
            c.checkout(opt.current_branch, force=False)

        for name, blob in opt.staged_file.items():
            files.write_file(c.dir_path, name, blob)
            c.add(name)

        for name, blob in opt.unstaged_file.items():
            files.write_file(c.dir_path, name, blob)


def _random_commit(client: Client, branch: str) -> str | None:
    client.checkout(branch, force=True)
    filename = mk_test_name()
    return client.commit_files({filename: filename.encode()}, filename)


def _accept_pushes(client: Client) -> None:
    # lets clones push to the branch this non-bare repository has checked out
    client.set_config_value("receive", "denyCurrentBranch", "updateInstead")


def mk_test_name() -> str:
    """Return ``unittest-`` followed by 10 random lowercase letters or digits."""
    suffix = "".join(secrets.choice(_TEST_NAME_ALPHABET) for _ in range(10))
    return f"unittest-{suffix}"


def new_mock(opt: MockOpt, config: Config | None = None) -> Mock:
    """Build the repository described by ``opt`` in a fresh temporary directory."""
    rc: Client | None = None
    owns_remote = False
    if opt.rc is not None:
        rc = opt.rc
    elif opt.remote is not None:
        rc = new_mock(opt.remote, config).c
        owns_remote = True

    dir_path = tempfile.mkdtemp(prefix=MOCK_DIR_PREFIX, dir=opt.base_dir)
    client_opt = ClientOpt(
        dir_path=dir_path,
        origin_url=rc.opt.dir_path if rc is not None else "",
        revision=opt.current_branch,
        create_branch=False,
        author_name=MOCK_AUTHOR_NAME,
        author_email=MOCK_AUTHOR_EMAIL,
    )
    if rc is not None:
        c = Client.clone(client_opt, config)
    else:
        c = Client.init(client_opt, config)
    _accept_pushes(c)
    logger.debug("built mock repository at %s", dir_path)

    mock = Mock(c=c, rc=rc, owns_remote=owns_remote)
    mock.compose(opt)
    return mock
