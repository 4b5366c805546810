"""In-memory per-project file store rendered into a prompt context blob.

One ContextStore is created per application and passed explicitly to the
handlers that ingest projects and build prompts. Entries live only as long
as the process; after a restart a project must be re-ingested from its
original source.
"""
import logging

from .ingestion import filter_text_files

logger = logging.getLogger(__name__)

NOTHING_INDEXED = "No file content indexed."
CONTEXT_HEADER = "CODEBASE KNOWLEDGE BASE:"


class ContextStore:
    def __init__(self):
        self._projects = {}

    def index(self, project_id, files):
        """Replace the stored files for a project (last write wins)"""
        text_files = tuple(filter_text_files(files))
        self._projects[project_id] = text_files
        logger.info("Indexed %d files for project %s", len(text_files), project_id)

    def context_for(self, project_id):
        files = self._projects.get(project_id)
        if not files:
            return NOTHING_INDEXED

        blocks = [
            f"--- FILE: {record.path} ---\n{record.content}"
            for record in sorted(files, key=lambda record: record.path)
        ]
        return CONTEXT_HEADER + "\n\n" + "\n\n".join(blocks) + "\n"

    def file_count(self, project_id):
        return len(self._projects.get(project_id, ()))
