"""
CI Monitor Agent
================
Reads the check runs of a pull request from the GitHub API and turns them
into a CheckSnapshot.

One call to poll() is one point-in-time read. The monitor never retries or
sleeps; backoff between reads is the IterationController's job.

Check run mapping:
    not in required_checks (when configured)   → ignored
    required check that never reported         → pending
    status != "completed"                      → pending
    conclusion in success / neutral / skipped  → passed
    any other conclusion                       → failed (RawFailure)
"""
import re
import time
import logging
from typing import Any, Dict, List, Optional, Protocol, Sequence

import httpx

from pr_iterate.core.errors import InvalidTarget, PollFailed
from pr_iterate.models.check_snapshot import CheckSnapshot, RawFailure

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"

_PASSING_CONCLUSIONS = {"success", "neutral", "skipped"}

# GitHub caps check-runs pages at 100 entries
_PAGE_SIZE = 100
_MAX_PAGES = 10


class CheckPoller(Protocol):
    """Status source boundary used by the IterationController."""

    async def verify_target(self, target_id: str) -> None: ...

    async def poll(self, target_id: str) -> CheckSnapshot: ...


def _pr_number(target_id: str) -> int:
    value = str(target_id).strip().lstrip("#")
    if not value.isdigit() or int(value) <= 0:
        raise InvalidTarget(f"Target {target_id!r} is not a pull request number")
    return int(value)


class GitHubCheckPoller:
    """
    Polls GitHub check runs for the head commit of a pull request.
    """

    def __init__(
        self,
        repository: str,
        github_token: str = "",
        required_checks: Optional[Sequence[str]] = None,
        api_url: str = GITHUB_API_URL,
        request_timeout: float = 20.0,
    ) -> None:
        self.repository = repository.strip().strip("/")
        self.api_url = api_url.rstrip("/")
        self.required_checks = list(required_checks or [])
        self.request_timeout = request_timeout
        self.headers = {
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": "pr-iterate",
        }
        if github_token:
            self.headers["Authorization"] = f"token {github_token}"

    @classmethod
    def from_config(cls, config) -> "GitHubCheckPoller":
        return cls(
            repository=config.repository,
            github_token=config.github_token,
            required_checks=config.required_checks,
        )

    @staticmethod
    def extract_repo_path(repo_url: str) -> str:
        """Extract 'owner/repo' from a GitHub URL, or return the input if already in that form."""
        match = re.search(r"github\.com[:/](.+?)(?:\.git)?/?$", repo_url)
        if match:
            return match.group(1).rstrip("/")
        return repo_url.strip().strip("/")

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(headers=self.headers, timeout=self.request_timeout)

    async def _get_json(self, client: httpx.AsyncClient, url: str, params: Optional[dict] = None) -> Any:
        try:
            response = await client.get(url, params=params)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as http_err:
            status_code = http_err.response.status_code
            raise PollFailed(f"GitHub returned HTTP {status_code} for {url}") from http_err
        except httpx.HTTPError as exc:
            raise PollFailed(f"GitHub request failed for {url}: {exc}") from exc
        except ValueError as exc:
            raise PollFailed(f"GitHub returned malformed JSON for {url}: {exc}") from exc

    def _pull_url(self, number: int) -> str:
        return f"{self.api_url}/repos/{self.repository}/pulls/{number}"

    async def verify_target(self, target_id: str) -> None:
        """Raise InvalidTarget if the PR does not exist, PollFailed on transport errors."""
        number = _pr_number(target_id)
        if not self.repository:
            raise InvalidTarget("No repository configured for the target pull request")

        async with self._client() as client:
            try:
                await self._get_json(client, self._pull_url(number))
            except PollFailed as exc:
                cause = exc.__cause__
                if isinstance(cause, httpx.HTTPStatusError) and cause.response.status_code == 404:
                    raise InvalidTarget(
                        f"Pull request #{number} not found in {self.repository}"
                    ) from exc
                raise

    async def poll(self, target_id: str) -> CheckSnapshot:
        number = _pr_number(target_id)

        async with self._client() as client:
            pull = await self._get_json(client, self._pull_url(number))
            try:
                head_sha = pull["head"]["sha"]
            except (KeyError, TypeError) as exc:
                raise PollFailed(f"Pull request #{number} payload has no head SHA") from exc

            check_runs = await self._fetch_check_runs(client, head_sha)

        snapshot = self.build_snapshot(check_runs)
        logger.info(
            "PR #%d @ %s: %d passed, %d failed, %d pending",
            number, head_sha[:7], len(snapshot.passed), len(snapshot.failed), len(snapshot.pending),
        )
        return snapshot

    async def _fetch_check_runs(self, client: httpx.AsyncClient, sha: str) -> List[Dict[str, Any]]:
        url = f"{self.api_url}/repos/{self.repository}/commits/{sha}/check-runs"
        runs: List[Dict[str, Any]] = []
        for page in range(1, _MAX_PAGES + 1):
            data = await self._get_json(client, url, params={"per_page": _PAGE_SIZE, "page": page})
            if not isinstance(data, dict):
                raise PollFailed(f"Unexpected check-runs payload for {sha}")
            items = data.get("check_runs", [])
            runs.extend(items)
            total = data.get("total_count", 0)
            if len(items) < _PAGE_SIZE or len(runs) >= total:
                break
        else:
            if total > len(runs):
                logger.warning(
                    "Check runs for %s truncated at %d of %d (page limit %d)",
                    sha[:7], len(runs), total, _MAX_PAGES,
                )
        return runs

    def _is_considered(self, name: str) -> bool:
        return not self.required_checks or name in self.required_checks

    def build_snapshot(self, check_runs: List[Dict[str, Any]], polled_at: Optional[float] = None) -> CheckSnapshot:
        """Map raw GitHub check-run dicts to a CheckSnapshot."""
        passed: List[str] = []
        failed: List[RawFailure] = []
        pending: List[str] = []

        for run in check_runs:
            name = run.get("name", "unknown")
            if not self._is_considered(name):
                continue

            if run.get("status") != "completed":
                pending.append(name)
                continue

            conclusion = run.get("conclusion") or ""
            if conclusion in _PASSING_CONCLUSIONS:
                passed.append(name)
                continue

            output = run.get("output") or {}
            detail = " ".join(
                part.strip() for part in (output.get("title") or "", output.get("summary") or "") if part
            )
            app = run.get("app") or {}
            failed.append(RawFailure(
                name=name,
                label=app.get("name", "") or "",
                conclusion=conclusion,
                detail=detail or f"{name} concluded with {conclusion or 'no conclusion'}",
                details_url=run.get("details_url") or run.get("html_url") or "",
            ))

        # A required check that has not reported yet is still pending
        seen = {run.get("name", "unknown") for run in check_runs}
        pending.extend(name for name in self.required_checks if name not in seen)

        return CheckSnapshot(
            all_passed=not failed and not pending,
            passed=passed,
            failed=failed,
            pending=pending,
            polled_at=polled_at if polled_at is not None else time.time(),
        )
