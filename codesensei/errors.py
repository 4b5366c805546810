class CodeSenseiError(Exception):
    """Base error; carries the HTTP status and a short machine-readable code"""
    status_code = 500
    code = 'internal_error'
    default_message = 'An unexpected error occurred.'

    def __init__(self, message=None):
        super().__init__(message or self.default_message)

    @property
    def message(self):
        return str(self)

    def to_dict(self):
        return {'error': self.message, 'code': self.code}


class InvalidRepositoryUrlError(CodeSenseiError):
    status_code = 400
    code = 'invalid_url'
    default_message = 'Invalid GitHub URL format. Expected format: https://github.com/owner/repo'


class GitHubError(CodeSenseiError):
    status_code = 502
    code = 'github_error'
    default_message = 'Failed to fetch repository from GitHub.'


class RateLimitError(GitHubError):
    status_code = 429
    code = 'rate_limited'

    def __init__(self, reset_time='unknown'):
        self.reset_time = reset_time
        super().__init__(f"GitHub API rate limit exceeded. Try again after {reset_time}.")

    def to_dict(self):
        payload = super().to_dict()
        payload['reset_time'] = self.reset_time
        return payload


class RepositoryNotFoundError(GitHubError):
    status_code = 404
    code = 'not_found'
    default_message = 'Repository not found or private.'


class EmptyProjectError(CodeSenseiError):
    status_code = 422
    code = 'empty_project'
    default_message = 'Repository appears to be empty or inaccessible.'


class InvalidUploadError(CodeSenseiError):
    status_code = 400
    code = 'invalid_upload'
    default_message = 'Upload must be a ZIP archive or a folder of files.'


class AuthenticationError(CodeSenseiError):
    status_code = 401
    code = 'unauthenticated'
    default_message = 'User not authenticated. Please log in.'


class ProjectNotFoundError(CodeSenseiError):
    status_code = 404
    code = 'project_not_found'
    default_message = 'Project not found.'
