"""Repository snapshots.

``collect_info`` walks a repository and every initialised submodule below it
and records the current commit, the hash of each local branch and the
working-tree status.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from git import InvalidGitRepositoryError, NoSuchPathError, Repo

from ..errors import ReferenceNotFoundError

logger = logging.getLogger(__name__)


@dataclass
class Info:
    """Snapshot of a repository and its nested submodules."""

    dir_path: str
    current: str
    branch_hashes: dict[str, str] = field(default_factory=dict)
    status: list[str] = field(default_factory=list)
    submodules: dict[str, Info] = field(default_factory=dict)
    remote: Info | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "dir_path": self.dir_path,
            "current": self.current,
            "branch_hashes": dict(self.branch_hashes),
            "status": list(self.status),
            "submodules": {path: sub.to_dict() for path, sub in self.submodules.items()},
            "remote": self.remote.to_dict() if self.remote is not None else None,
        }


def collect_info(repo: Repo) -> Info:
    """Build an ``Info`` for ``repo``, recursing into its submodules.

    Raises ``ReferenceNotFoundError`` when ``HEAD`` does not point to a commit
    yet.  Submodules that were never initialised have no repository to
    describe and are skipped.
    """
    try:
        current = repo.head.commit.hexsha
    except ValueError as exc:
        raise ReferenceNotFoundError(f"HEAD of {repo.working_tree_dir} does not point to a commit") from exc

    branch_hashes = {head.name: head.commit.hexsha for head in repo.heads}
    # porcelain keeps the two-column XY code that callers match on
    status = repo.git.status("--porcelain").splitlines()

    submodules: dict[str, Info] = {}
    for sub in repo.submodules:
        try:
            sub_repo = sub.module()
        except (InvalidGitRepositoryError, NoSuchPathError):
            logger.debug("submodule %s is not initialised, skipping", sub.path)
            continue
        submodules[sub.path] = collect_info(sub_repo)

    return Info(
        dir_path=str(repo.working_tree_dir),
        current=current,
        branch_hashes=branch_hashes,
        status=status,
        submodules=submodules,
    )
