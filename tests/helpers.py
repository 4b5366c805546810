from __future__ import annotations

import io
import json
import zipfile
from itertools import count

import requests

from codesensei.models import IngestionResult, RepoMetadata

TOKEN = "good-token"
OTHER_TOKEN = "other-token"


def make_response(status: int, body=None, content: bytes | None = None, headers=None) -> requests.Response:
    response = requests.Response()
    response.status_code = status
    response.url = "https://example.test/"
    if content is None:
        content = json.dumps(body if body is not None else {}).encode("utf-8")
    response._content = content
    response.headers.update(headers or {})
    return response


def make_zip(members: dict) -> io.BytesIO:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, data in members.items():
            archive.writestr(name, data)
    buffer.seek(0)
    return buffer


def read_events(response) -> list:
    body = response.get_data(as_text=True)
    return [
        json.loads(chunk[len("data: "):])
        for chunk in body.split("\n\n")
        if chunk.startswith("data: ")
    ]


class FakeSession:
    """Routes GET/POST calls by URL to canned responses or exceptions."""

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.calls = []

    def _dispatch(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        outcome = self.routes.get(url)
        if outcome is None:
            return make_response(404, {"message": "Not Found"})
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def get(self, url, **kwargs):
        return self._dispatch("GET", url, **kwargs)

    def post(self, url=None, **kwargs):
        return self._dispatch("POST", url, **kwargs)


class FakeRepository:
    def __init__(self):
        self.users = {}
        self.projects = {}
        self.messages = []
        self._ids = count(1)

    def create_user_profile(self, uid, user_data):
        if uid in self.users:
            self.users[uid]["logins"] += 1
            return False
        self.users[uid] = {**user_data, "projectsAnalyzed": 0, "logins": 1}
        return True

    def get_user_profile(self, uid):
        profile = self.users.get(uid)
        return {**profile, "id": uid} if profile else None

    def create_project(self, uid, project_data):
        project_id = f"project-{next(self._ids)}"
        self.projects[project_id] = {**project_data, "userId": uid, "id": project_id}
        self.users.setdefault(uid, {"projectsAnalyzed": 0, "logins": 0})
        self.users[uid]["projectsAnalyzed"] += 1
        return project_id

    def list_user_projects(self, uid):
        owned = [project for project in self.projects.values() if project["userId"] == uid]
        return list(reversed(owned))

    def get_project(self, project_id):
        return self.projects.get(project_id)

    def save_chat_message(self, project_id, uid, role, content, files=None):
        self.messages.append({
            "id": f"m{len(self.messages) + 1}",
            "projectId": project_id,
            "userId": uid,
            "role": role,
            "content": content,
            "files": files or [],
        })

    def get_chat_history(self, project_id):
        return [message for message in self.messages if message["projectId"] == project_id]


class FakeGitHub:
    def __init__(self, metadata=None, result=None, error=None):
        self.metadata = metadata or RepoMetadata(
            name="demo", owner="octo", description="Demo repository", stars=3,
            default_branch="main", updated_at="2024-01-01T00:00:00Z", last_commit_hash="abc1234",
        )
        self.result = result if result is not None else IngestionResult()
        self.error = error
        self.calls = []

    def fetch_repo_metadata(self, owner, repo, token=None):
        self.calls.append(("metadata", owner, repo, token))
        if self.error is not None:
            raise self.error
        return self.metadata

    def fetch_project_files(self, owner, repo, branch, token=None):
        self.calls.append(("files", owner, repo, branch, token))
        return self.result


class FakeLLM:
    def __init__(self):
        self.contexts = []

    def ask(self, question, project_id, description, store):
        self.contexts.append(store.context_for(project_id))
        return f"answer to: {question}"

    def architecture_diagram(self, context):
        return "graph TD\nA[Client] --> B[API]"


def verify_token(token):
    if token == TOKEN:
        return {"uid": "user-1", "email": "dev@example.com", "name": "Dev",
                "firebase": {"sign_in_provider": "google.com"}}
    if token == OTHER_TOKEN:
        return {"uid": "user-2", "firebase": {"sign_in_provider": "anonymous"}}
    raise ValueError("invalid token")


