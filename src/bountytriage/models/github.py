"""GitHub webhook payload models. Unknown fields are ignored."""

from pydantic import BaseModel, ConfigDict, Field


class _GitHubModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class GitHubUser(_GitHubModel):
    login: str | None = None
    id: int | None = None


class GitHubLabel(_GitHubModel):
    name: str | None = None
    color: str | None = None


class GitHubPullRequestRef(_GitHubModel):
    url: str | None = None
    html_url: str | None = None


class GitHubRepository(_GitHubModel):
    id: int | None = None
    name: str | None = None
    full_name: str | None = None
    clone_url: str | None = None
    html_url: str | None = None
    default_branch: str | None = None
    language: str | None = None
    is_private: bool | None = Field(None, alias="private")


class GitHubIssue(_GitHubModel):
    id: int | None = None
    number: int | None = None
    title: str | None = None
    body: str | None = None
    state: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    user: GitHubUser | None = None
    labels: list[GitHubLabel] = Field(default_factory=list)
    pull_request: GitHubPullRequestRef | None = None


class GitHubIssueEvent(_GitHubModel):
    """Payload of an ``issues`` webhook delivery."""

    action: str | None = None
    issue: GitHubIssue | None = None
    repository: GitHubRepository | None = None
    sender: GitHubUser | None = None

    def is_pull_request(self) -> bool:
        return self.issue is not None and self.issue.pull_request is not None

    def is_open(self) -> bool:
        return self.issue is not None and self.issue.state == "open"

    def repository_url(self) -> str | None:
        if self.repository is None or not self.repository.full_name:
            return None
        return f"https://github.com/{self.repository.full_name}"


class GitHubCommit(_GitHubModel):
    id: str | None = None
    message: str | None = None
    added: list[str] = Field(default_factory=list)
    modified: list[str] = Field(default_factory=list)
    removed: list[str] = Field(default_factory=list)


class GitHubPushEvent(_GitHubModel):
    """Payload of a ``push`` webhook delivery."""

    ref: str | None = None
    repository: GitHubRepository | None = None
    commits: list[GitHubCommit] = Field(default_factory=list)
    pusher: GitHubUser | None = None
    head_commit: GitHubCommit | None = None

    def branch_name(self) -> str | None:
        if self.ref and self.ref.startswith("refs/heads/"):
            return self.ref[len("refs/heads/"):]
        return self.ref
