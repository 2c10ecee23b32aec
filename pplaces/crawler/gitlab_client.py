"""GitLab API client used to create upload targets."""

import logging

import gitlab
from rich.console import Console

from ..errors import ExternalOperationFailed

logger = logging.getLogger(__name__)
console = Console(stderr=True)


class GitLabClient:
    """Client for creating and locating projects on GitLab."""

    platform = "gitlab"

    def __init__(
        self,
        url: str,
        token: str,
        use_ssh: bool = False,
        gl: gitlab.Gitlab | None = None,
    ):
        self.url = url
        self.gl = gl or gitlab.Gitlab(url, private_token=token)
        self.use_ssh = use_ssh

    def _push_url(self, project) -> str:
        return project.ssh_url_to_repo if self.use_ssh else project.http_url_to_repo

    def ensure_repository(
        self,
        full_path: str,
        private: bool = True,
        description: str | None = None,
    ) -> str:
        """Return the push URL of ``namespace/name``, creating the project if needed."""
        namespace, _, name = full_path.rpartition("/")
        if not namespace or not name:
            raise ValueError(f"Expected <namespace>/<name>, got {full_path!r}")

        try:
            project = self.gl.projects.get(full_path)
            logger.info("GitLab project %s already exists", full_path)
            return self._push_url(project)
        except gitlab.exceptions.GitlabGetError as e:
            if e.response_code != 404:
                raise ExternalOperationFailed(f"GitLab lookup of {full_path} failed: {e}") from e

        data = {
            "name": name,
            "path": name,
            "visibility": "private" if private else "public",
        }
        if description:
            data["description"] = description

        try:
            self.gl.auth()
            if namespace != self.gl.user.username:
                data["namespace_id"] = self.gl.namespaces.get(namespace).id
            project = self.gl.projects.create(data)
        except gitlab.exceptions.GitlabError as e:
            raise ExternalOperationFailed(f"Could not create GitLab project {full_path}: {e}") from e

        console.print(f"[green]✓[/green] Created GitLab project {project.path_with_namespace} on {self.url}")
        return self._push_url(project)
