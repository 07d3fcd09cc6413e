"""
Linked repository checkouts for Drive Backup.

A "<name>.git.json" pointer file in Drive names an external git repository
({"url": "..."}). The backup keeps a working copy of it in "<name>" next to
the pointer, cloning it once and pulling on every run after that.
"""

import json
import logging
from pathlib import Path

import git
from git.exc import GitCommandError, InvalidGitRepositoryError, NoSuchPathError

from ..core.errors import RepoError
from .variants import BackupVariant

logger = logging.getLogger(__name__)


def read_remote_url(pointer_path: Path) -> str:
    """Read the repository URL out of a pointer file."""
    try:
        with open(pointer_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        raise RepoError(f'Cannot read repository pointer "{pointer_path}": {e}') from e

    url = data.get("url") if isinstance(data, dict) else None
    if not url or not isinstance(url, str):
        raise RepoError(f'Repository pointer "{pointer_path}" has no "url"')
    return url


class RepoSyncer:
    """Clones or fast-forwards the working copy behind a repo-link variant."""

    def sync(self, variant: BackupVariant) -> str:
        """
        Bring the working copy of a linked repository up to date.

        The pointer file must already be on disk at variant.local_file_path.

        Returns:
            "cloned" or "pulled"

        Raises:
            RepoError: If the working copy is not a repository, its remotes
                don't look like ours, or a git command fails
        """
        if variant.repo_dir_path is None:
            raise RepoError(f"{variant.display_path} is not a repository link")

        remote_url = read_remote_url(variant.local_file_path)
        repo_dir = variant.repo_dir_path

        if not repo_dir.exists():
            logger.info("Cloning %s into %s", remote_url, repo_dir)
            try:
                git.Repo.clone_from(remote_url, str(repo_dir))
            except GitCommandError as e:
                raise RepoError(f'Cloning "{remote_url}" failed: {e}') from e
            return "cloned"

        try:
            repo = git.Repo(str(repo_dir))
        except (InvalidGitRepositoryError, NoSuchPathError) as e:
            raise RepoError(f'"{repo_dir}" does not seem to be a repo') from e

        remotes = list(repo.remotes)
        if len(remotes) != 1:
            raise RepoError(f'"{repo_dir}"-repo must have exactly one remote, found {len(remotes)}')
        origin = remotes[0]
        if origin.name != "origin":
            raise RepoError(f'"{repo_dir}"-repo does not have a remote called "origin"')

        fetch_urls = list(origin.urls)
        if not fetch_urls:
            raise RepoError(f'"{repo_dir}"-repo does not have a fetch URL for remote "origin"')

        try:
            if fetch_urls[0] != remote_url:
                logger.info("Repointing origin of %s to %s", repo_dir, remote_url)
                repo.delete_remote(origin)
                origin = repo.create_remote("origin", remote_url)
            origin.pull()
        except GitCommandError as e:
            raise RepoError(f'Updating "{repo_dir}" failed: {e}') from e
        return "pulled"
