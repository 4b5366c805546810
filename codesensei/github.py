import logging
import re
from datetime import datetime, timezone
from urllib.parse import quote, urlparse

import requests

from .errors import GitHubError, InvalidRepositoryUrlError, RateLimitError, RepositoryNotFoundError
from .ingestion import collect_files, decode_text
from .models import RepoMetadata, TreeEntry

logger = logging.getLogger(__name__)

_SEGMENT = re.compile(r'^[A-Za-z0-9_.-]+$')


def parse_repo_url(github_url):
    """Extract owner and repo name from a GitHub URL"""
    url = (github_url or '').strip()
    if not url:
        raise InvalidRepositoryUrlError()
    if '://' not in url:
        url = 'https://' + url
    parsed = urlparse(url)
    if parsed.netloc.lower() not in ('github.com', 'www.github.com'):
        raise InvalidRepositoryUrlError()

    path_parts = [part for part in parsed.path.strip('/').split('/') if part]
    if len(path_parts) < 2:
        raise InvalidRepositoryUrlError()
    owner, repo = path_parts[0], path_parts[1]
    if repo.endswith('.git'):
        repo = repo[:-4]
    if not _SEGMENT.match(owner) or not _SEGMENT.match(repo):
        raise InvalidRepositoryUrlError()
    return owner, repo


def format_reset_time(response):
    """Human-readable reset time from the X-RateLimit-Reset header"""
    raw = response.headers.get('X-RateLimit-Reset')
    try:
        reset = datetime.fromtimestamp(int(raw), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        return 'unknown'
    return reset.strftime('%H:%M:%S UTC')


class GitHubClient:
    def __init__(self, settings, session=None):
        self.api_base = settings.github_api_base
        self.raw_base = settings.github_raw_base
        self.default_token = settings.github_token
        self.timeout = settings.request_timeout
        self.session = session or requests.Session()

    def _headers(self, token=None):
        headers = {'Accept': 'application/vnd.github.v3+json'}
        token = token or self.default_token
        if token:
            headers['Authorization'] = f'token {token}'
        return headers

    def _get(self, url, token=None, **kwargs):
        try:
            return self.session.get(url, headers=self._headers(token), timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.error("GitHub request failed for %s: %s", url, e)
            raise GitHubError(f"Could not reach GitHub: {e}") from e

    def _json(self, response, what):
        """Decoded JSON object body; anything else is a generic GitHub failure"""
        try:
            data = response.json()
        except ValueError as e:
            raise GitHubError(f"Unexpected response from GitHub while fetching {what}") from e
        if not isinstance(data, dict):
            raise GitHubError(f"Unexpected response from GitHub while fetching {what}")
        return data

    def fetch_repo_metadata(self, owner, repo, token=None):
        """Resolve repository metadata, including the default branch"""
        response = self._get(f"{self.api_base}/repos/{owner}/{repo}", token)
        if response.status_code == 403:
            raise RateLimitError(format_reset_time(response))
        if not response.ok:
            logger.error("GitHub metadata error %s for %s/%s", response.status_code, owner, repo)
            raise RepositoryNotFoundError()

        data = self._json(response, "repository metadata")
        branch = data.get('default_branch') or 'main'
        return RepoMetadata(
            name=data.get('name', repo),
            owner=(data.get('owner') or {}).get('login', owner),
            description=data.get('description') or 'No description provided.',
            stars=data.get('stargazers_count', 0),
            default_branch=branch,
            updated_at=data.get('updated_at') or '',
            last_commit_hash=self.fetch_last_commit_hash(owner, repo, branch, token),
        )

    def fetch_last_commit_hash(self, owner, repo, branch, token=None):
        try:
            response = self._get(f"{self.api_base}/repos/{owner}/{repo}/commits/{branch}", token)
        except GitHubError:
            return 'unknown'
        if not response.ok:
            logger.warning("Could not fetch commit hash for %s/%s (%s)", owner, repo, response.status_code)
            return 'unknown'
        try:
            sha = response.json().get('sha')
        except (ValueError, AttributeError) as e:
            logger.warning("Unreadable commit response for %s/%s: %s", owner, repo, e)
            return 'unknown'
        return (sha or 'unknown')[:7]

    def list_tree(self, owner, repo, branch, token=None):
        """Recursive tree listing; any failure here is fatal to ingestion"""
        response = self._get(
            f"{self.api_base}/repos/{owner}/{repo}/git/trees/{branch}",
            token,
            params={'recursive': '1'},
        )
        if response.status_code == 403:
            raise RateLimitError(format_reset_time(response))
        if response.status_code == 404:
            raise RepositoryNotFoundError()
        if not response.ok:
            raise GitHubError(f"Failed to fetch repo tree (Status: {response.status_code})")

        data = self._json(response, "repository tree")
        if data.get('truncated'):
            logger.warning("Tree listing for %s/%s was truncated by GitHub", owner, repo)
        return [
            TreeEntry(
                path=node['path'],
                type=node.get('type', 'blob'),
                size=node.get('size', 0),
                url=node.get('url', ''),
            )
            for node in data.get('tree') or []
            if isinstance(node, dict) and node.get('path')
        ]

    def fetch_blob_content(self, owner, repo, branch, path, token=None):
        """Raw file content from the content mirror, which does not count against the API rate limit"""
        url = f"{self.raw_base}/{owner}/{repo}/{quote(branch)}/{quote(path)}"
        response = self.session.get(url, headers=self._headers(token), timeout=self.timeout)
        response.raise_for_status()
        return decode_text(response.content)

    def fetch_project_files(self, owner, repo, branch, token=None):
        entries = self.list_tree(owner, repo, branch, token)
        return collect_files(
            entries,
            lambda entry: self.fetch_blob_content(owner, repo, branch, entry.path, token),
        )
