"""GitHub API client used to create upload targets."""

import logging

from github import Auth, Github, GithubException, UnknownObjectException
from rich.console import Console

from ..errors import ExternalOperationFailed

logger = logging.getLogger(__name__)
console = Console(stderr=True)


class GitHubClient:
    """Client for creating and locating repositories on GitHub."""

    platform = "github"

    def __init__(self, token: str, use_ssh: bool = False, gh: Github | None = None):
        self.gh = gh or Github(auth=Auth.Token(token))
        self.use_ssh = use_ssh

    def _push_url(self, repo) -> str:
        return repo.ssh_url if self.use_ssh else repo.clone_url

    def ensure_repository(
        self,
        full_name: str,
        private: bool = True,
        description: str | None = None,
    ) -> str:
        """Return the push URL of ``owner/name``, creating the repository if needed."""
        owner, _, name = full_name.partition("/")
        if not owner or not name or "/" in name:
            raise ValueError(f"Expected <owner>/<name>, got {full_name!r}")

        try:
            repo = self.gh.get_repo(full_name)
            logger.info("GitHub repository %s already exists", full_name)
            return self._push_url(repo)
        except UnknownObjectException:
            pass
        except GithubException as e:
            raise ExternalOperationFailed(f"GitHub lookup of {full_name} failed: {e}") from e

        try:
            user = self.gh.get_user()
            if user.login == owner:
                creator = user
            else:
                creator = self.gh.get_organization(owner)
            repo = creator.create_repo(
                name,
                private=private,
                description=description or "",
            )
        except GithubException as e:
            raise ExternalOperationFailed(f"Could not create GitHub repository {full_name}: {e}") from e

        console.print(f"[green]✓[/green] Created GitHub repository {repo.full_name}")
        return self._push_url(repo)
