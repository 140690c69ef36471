"""GitHub tools over the REST API, authenticated with the vault's ``github`` token."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Literal

from pydantic import BaseModel, Field

from toolgate.core.registry import ToolSpec
from toolgate.tools.upstream import request_json

if TYPE_CHECKING:
    from toolgate.core.services import Services

CATEGORY = "github"

GITHUB_API = "https://api.github.com"
GITHUB_CREDENTIAL = "github"
GITHUB_API_VERSION = "2022-11-28"

# Owner and repo names go into URL paths.
NAME_PATTERN = r"^[A-Za-z0-9_.-]+$"


class RepoRef(BaseModel):
    owner: str = Field(..., pattern=NAME_PATTERN)
    repo: str = Field(..., pattern=NAME_PATTERN)


class CreateIssueInput(RepoRef):
    title: str = Field(..., min_length=1)
    body: str | None = None
    labels: list[str] | None = None
    assignees: list[str] | None = None


class CreatePullRequestInput(RepoRef):
    title: str = Field(..., min_length=1)
    head: str = Field(..., description="Branch containing the changes.")
    base: str = Field(..., description="Branch to merge into, e.g. main.")
    body: str | None = None
    draft: bool = False


class SearchCodeInput(BaseModel):
    query: str = Field(..., min_length=1)
    owner: str | None = Field(None, pattern=NAME_PATTERN)
    repo: str | None = Field(None, pattern=NAME_PATTERN)
    language: str | None = None
    limit: int = Field(10, ge=1, le=100)


class ListReposInput(BaseModel):
    owner: str | None = Field(None, pattern=NAME_PATTERN, description="User or org. Defaults to the token's user.")
    type: Literal["all", "owner", "member"] = "all"
    sort: Literal["created", "updated", "pushed", "full_name"] = "updated"
    limit: int = Field(30, ge=1, le=100)


def build_tools(svc: Services) -> dict[str, ToolSpec]:

    async def github_request(method: str, path: str, *, params: dict | None = None, body: Any = None) -> Any:
        token = await svc.vault.get(GITHUB_CREDENTIAL)
        return await request_json(
            svc.http, "GitHub", method, f"{GITHUB_API}{path}",
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": GITHUB_API_VERSION,
            },
            params=params,
            json=body,
        )

    async def create_issue(args: CreateIssueInput) -> dict:
        payload = args.model_dump(exclude={"owner", "repo"}, exclude_none=True)
        data = await github_request("POST", f"/repos/{args.owner}/{args.repo}/issues", body=payload)
        return {"issue_number": data["number"], "url": data["html_url"], "state": data["state"]}

    async def create_pr(args: CreatePullRequestInput) -> dict:
        payload = args.model_dump(exclude={"owner", "repo"}, exclude_none=True)
        data = await github_request("POST", f"/repos/{args.owner}/{args.repo}/pulls", body=payload)
        return {"pr_number": data["number"], "url": data["html_url"], "state": data["state"]}

    async def search_code(args: SearchCodeInput) -> dict:
        query = args.query
        if args.owner and args.repo:
            query += f" repo:{args.owner}/{args.repo}"
        elif args.owner:
            query += f" user:{args.owner}"
        if args.language:
            query += f" language:{args.language}"
        data = await github_request("GET", "/search/code", params={"q": query, "per_page": args.limit})
        return {
            "total_count": data.get("total_count", 0),
            "items": data.get("items") or [],
            "query": query,
        }

    async def list_repos(args: ListReposInput) -> dict:
        path = f"/users/{args.owner}/repos" if args.owner else "/user/repos"
        data = await github_request(
            "GET", path, params={"type": args.type, "sort": args.sort, "per_page": args.limit},
        ) or []
        repos = [
            {
                "name": r.get("name"),
                "full_name": r.get("full_name"),
                "description": r.get("description"),
                "url": r.get("html_url"),
                "private": r.get("private"),
                "updated_at": r.get("updated_at"),
            }
            for r in data
        ]
        return {"repositories": repos, "count": len(repos)}

    return {
        "create_issue": ToolSpec(
            name="create_issue", category=CATEGORY,
            description="Create an issue in a GitHub repository.",
            input_model=CreateIssueInput, handler=create_issue,
            examples=("create_issue owner=acme repo=site title='Broken footer link'",),
        ),
        "create_pr": ToolSpec(
            name="create_pr", category=CATEGORY,
            description="Open a pull request from head into base.",
            input_model=CreatePullRequestInput, handler=create_pr,
        ),
        "search_code": ToolSpec(
            name="search_code", category=CATEGORY,
            description="Search code on GitHub, optionally scoped to an owner, repo or language.",
            input_model=SearchCodeInput, handler=search_code,
        ),
        "list_repos": ToolSpec(
            name="list_repos", category=CATEGORY,
            description="List repositories for a user or organization.",
            input_model=ListReposInput, handler=list_repos,
        ),
    }
