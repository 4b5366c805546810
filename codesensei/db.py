"""Firestore persistence for user profiles, projects and chat messages.

Collections:
    users/{uid}          profile plus a `projectsAnalyzed` counter
    projects/{id}        project metadata, owned through `userId`
    chat_messages/{id}   one document per message, scoped by `projectId`

Indexed file contents are never written here; they live in the in-memory
ContextStore only.
"""
import logging

import firebase_admin
from firebase_admin import credentials, firestore

logger = logging.getLogger(__name__)


def init_firestore(credentials_path=None):
    """Initialize the default Firebase app once and return a Firestore client"""
    try:
        firebase_admin.get_app()
    except ValueError:
        cred = credentials.Certificate(credentials_path) if credentials_path else credentials.ApplicationDefault()
        firebase_admin.initialize_app(cred)
        logger.info("Firebase initialized")
    return firestore.client()


def _serialize(value):
    if hasattr(value, 'isoformat'):
        return value.isoformat()
    if isinstance(value, dict):
        return {key: _serialize(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_serialize(item) for item in value]
    return value


def _document(snapshot):
    data = _serialize(snapshot.to_dict() or {})
    data['id'] = snapshot.id
    return data


class ProjectRepository:
    def __init__(self, client):
        self.client = client

    def create_user_profile(self, uid, user_data):
        """Create the profile on first login, otherwise refresh lastLogin"""
        user_ref = self.client.collection('users').document(uid)
        if not user_ref.get().exists:
            user_ref.set({
                **user_data,
                'joinedDate': firestore.SERVER_TIMESTAMP,
                'projectsAnalyzed': 0,
                'lastLogin': firestore.SERVER_TIMESTAMP,
            })
            logger.info("Created profile for user %s", uid)
            return True
        user_ref.update({'lastLogin': firestore.SERVER_TIMESTAMP})
        return False

    def get_user_profile(self, uid):
        snapshot = self.client.collection('users').document(uid).get()
        return _document(snapshot) if snapshot.exists else None

    def create_project(self, uid, project_data):
        _, project_ref = self.client.collection('projects').add({
            **project_data,
            'userId': uid,
            'createdAt': firestore.SERVER_TIMESTAMP,
            'updatedAt': firestore.SERVER_TIMESTAMP,
            'progress': project_data.get('progress', 0),
        })
        self.client.collection('users').document(uid).set(
            {'projectsAnalyzed': firestore.Increment(1)}, merge=True
        )
        logger.info("Created project %s for user %s", project_ref.id, uid)
        return project_ref.id

    def list_user_projects(self, uid):
        query = (
            self.client.collection('projects')
            .where('userId', '==', uid)
            .order_by('createdAt', direction=firestore.Query.DESCENDING)
        )
        return [_document(snapshot) for snapshot in query.stream()]

    def get_project(self, project_id):
        snapshot = self.client.collection('projects').document(project_id).get()
        return _document(snapshot) if snapshot.exists else None

    def save_chat_message(self, project_id, uid, role, content, files=None):
        self.client.collection('chat_messages').add({
            'projectId': project_id,
            'userId': uid,
            'role': role,
            'content': content,
            'timestamp': firestore.SERVER_TIMESTAMP,
            'files': files or [],
        })

    def get_chat_history(self, project_id):
        query = (
            self.client.collection('chat_messages')
            .where('projectId', '==', project_id)
            .order_by('timestamp', direction=firestore.Query.ASCENDING)
        )
        return [
            {
                'id': message['id'],
                'role': message.get('role'),
                'content': message.get('content'),
                'timestamp': message.get('timestamp'),
                'files': message.get('files', []),
            }
            for message in (_document(snapshot) for snapshot in query.stream())
        ]
