import json
import logging
from datetime import datetime

from flask import Flask, Response, g, jsonify, request
from flask_cors import CORS
from google.api_core import exceptions as google_exceptions

from .auth import require_user, verify_firebase_token
from .config import Settings
from .context_store import ContextStore
from .db import ProjectRepository, init_firestore
from .errors import CodeSenseiError, EmptyProjectError, InvalidUploadError, ProjectNotFoundError
from .github import GitHubClient, parse_repo_url
from .ingestion import detect_stack, files_from_uploads, files_from_zip
from .llm import LLMClient

logger = logging.getLogger(__name__)

GREETING = "Hi! I'm CodeSensei. Ask me anything about your indexed code!"


def emit_progress(data):
    """Emit progress data as Server-Sent Events"""
    return f"data: {json.dumps(data)}\n\n"


def create_app(settings=None, repository=None, store=None, github=None, llm=None, verify_token=None):
    """Application factory; collaborators default to the real Firebase/GitHub/LLM clients"""
    settings = settings or Settings.from_env()
    if repository is None:
        repository = ProjectRepository(init_firestore(settings.firebase_credentials))
    store = store if store is not None else ContextStore()
    github = github or GitHubClient(settings)
    llm = llm or LLMClient(settings)
    login_required = require_user(verify_token or verify_firebase_token)

    app = Flask(__name__)
    app.config['MAX_CONTENT_LENGTH'] = settings.max_upload_mb * 1024 * 1024
    CORS(app, resources={r"/*": {"origins": settings.cors_origins}})
    app.extensions['context_store'] = store

    @app.errorhandler(CodeSenseiError)
    def handle_codesensei_error(e):
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(google_exceptions.GoogleAPICallError)
    def handle_firestore_error(e):
        logger.error("Firestore error: %s", e)
        # Missing composite indexes and security rules need operator action
        if isinstance(e, (google_exceptions.FailedPrecondition, google_exceptions.PermissionDenied)):
            return jsonify({"error": e.message, "code": "database_config"}), 503
        return jsonify({"error": "Database request failed.", "code": "database_error"}), 502

    def owned_project(project_id):
        project = repository.get_project(project_id)
        if not project or project.get('userId') != g.uid:
            raise ProjectNotFoundError()
        return project

    def project_status(project):
        return {**project, 'indexed_files': store.file_count(project['id'])}

    @app.route('/health', methods=['GET'])
    def health_check():
        return jsonify({"status": "healthy", "timestamp": datetime.now().isoformat()})

    @app.route('/auth/session', methods=['POST'])
    @login_required
    def start_session():
        created = repository.create_user_profile(g.uid, {
            'email': g.user.get('email'),
            'name': g.user.get('name') or g.user.get('email') or 'Guest',
            'isAnonymous': g.user.get('firebase', {}).get('sign_in_provider') == 'anonymous',
        })
        return jsonify({
            "uid": g.uid,
            "created": created,
            "profile": repository.get_user_profile(g.uid),
        }), 200

    @app.route('/projects', methods=['GET'])
    @login_required
    def list_projects():
        projects = repository.list_user_projects(g.uid)
        return jsonify({"projects": [project_status(project) for project in projects]})

    @app.route('/projects/github', methods=['POST'])
    @login_required
    def import_github_project():
        data = request.get_json(silent=True) or {}
        github_url = data.get('github_url')
        token = data.get('token') or None
        owner, repo = parse_repo_url(github_url)
        uid = g.uid

        def generate():
            try:
                yield emit_progress({"progress": 5, "status": "Fetching repository metadata..."})
                metadata = github.fetch_repo_metadata(owner, repo, token)

                yield emit_progress({"progress": 30, "status": "Reading project files...",
                                     "branch": metadata.default_branch})
                result = github.fetch_project_files(owner, repo, metadata.default_branch, token)
                if not result.files:
                    raise EmptyProjectError()
                if result.failed:
                    yield emit_progress({"progress": 70, "status": f"Skipped {result.skipped} unreadable files",
                                         "skipped": result.failed})

                yield emit_progress({"progress": 80, "status": "Syncing to cloud..."})
                project_id = repository.create_project(uid, {
                    'name': metadata.name,
                    'stack': detect_stack(result.files) or ["Auto-Detecting Stack..."],
                    'progress': 10,
                    'description': metadata.description or f"GitHub Repository: {metadata.owner}/{metadata.name}",
                    'sourceType': 'github',
                    'githubData': {
                        'url': github_url,
                        'owner': metadata.owner,
                        'repoName': metadata.name,
                        'branch': metadata.default_branch,
                        'stars': metadata.stars,
                        'lastCommitHash': metadata.last_commit_hash,
                        'lastUpdated': metadata.updated_at,
                        'isPrivate': bool(token),
                    },
                })

                store.index(project_id, result.files)
                yield emit_progress({
                    "progress": 100,
                    "status": "Repository successfully indexed and synced.",
                    "complete": True,
                    "project_id": project_id,
                    "indexed_files": store.file_count(project_id),
                })
            except CodeSenseiError as e:
                logger.warning("GitHub import of %s/%s failed: %s", owner, repo, e)
                yield emit_progress(e.to_dict())
            except google_exceptions.GoogleAPICallError as e:
                logger.error("Firestore error while importing %s/%s: %s", owner, repo, e)
                yield emit_progress({"error": e.message, "code": "database_error"})
            except Exception as e:
                logger.exception("Unexpected error while importing %s/%s", owner, repo)
                yield emit_progress({"error": f"Unexpected error: {str(e)}", "code": "internal_error"})

        return Response(generate(), mimetype='text/event-stream')

    @app.route('/projects/local', methods=['POST'])
    @login_required
    def upload_local_project():
        archive = request.files.get('archive')
        uploads = request.files.getlist('files')
        if archive and archive.filename:
            files = files_from_zip(archive.stream)
            name = archive.filename.rsplit('/', 1)[-1].split('.')[0]
            source = archive.filename
        elif uploads:
            files = files_from_uploads(uploads)
            name = request.form.get('name') or uploads[0].filename.replace('\\', '/').split('/')[0]
            source = name
        else:
            raise InvalidUploadError()

        if not files:
            raise EmptyProjectError("Upload contains no indexable text files.")

        project_id = repository.create_project(g.uid, {
            'name': name,
            'stack': detect_stack(files) or ["Local"],
            'progress': 10,
            'description': request.form.get('description') or f"Local project: {source}",
            'sourceType': 'local',
        })
        store.index(project_id, files)
        return jsonify({
            "project_id": project_id,
            "indexed_files": store.file_count(project_id),
            "message": "Local project created and synced to cloud.",
        }), 201

    @app.route('/projects/<project_id>', methods=['GET'])
    @login_required
    def get_project(project_id):
        return jsonify(project_status(owned_project(project_id)))

    @app.route('/projects/<project_id>/ask', methods=['POST'])
    @login_required
    def ask_question(project_id):
        data = request.get_json(silent=True) or {}
        question = (data.get('question') or '').strip()
        if not question:
            return jsonify({"error": "Question is required", "code": "invalid_request"}), 400
        project = owned_project(project_id)

        repository.save_chat_message(project_id, g.uid, 'user', question)
        answer = llm.ask(question, project_id, project.get('description', ''), store)
        repository.save_chat_message(project_id, g.uid, 'assistant', answer)

        return jsonify({
            "answer": answer,
            "indexed_files": store.file_count(project_id),
        })

    @app.route('/projects/<project_id>/messages', methods=['GET'])
    @login_required
    def chat_history(project_id):
        owned_project(project_id)
        messages = repository.get_chat_history(project_id)
        if not messages:
            messages = [{"id": "greeting", "role": "assistant", "content": GREETING,
                         "timestamp": datetime.now().isoformat(), "files": []}]
        return jsonify({"messages": messages})

    @app.route('/projects/<project_id>/diagram', methods=['GET'])
    @login_required
    def architecture_diagram(project_id):
        project = owned_project(project_id)
        return jsonify({"diagram": llm.architecture_diagram(project.get('description', ''))})

    return app
