"""Turn a project source into an ordered, filtered, capped list of FileRecords.

Remote sources hand in TreeEntry candidates plus a per-entry fetch callable;
local uploads (ZIP archive or folder) already carry their bytes. Both paths
share the same extension allow-list and entry-count cap.
"""
import logging
import zipfile

from .errors import InvalidUploadError
from .models import FileRecord, IngestionResult

logger = logging.getLogger(__name__)

TEXT_EXTENSIONS = frozenset({
    'ts', 'tsx', 'js', 'jsx', 'json', 'py', 'md', 'html', 'css',
    'go', 'rs', 'java', 'c', 'cpp', 'h',
})

# Bounds entry count, not total content size
MAX_INDEXED_FILES = 50

# Uncompressed size limit for a single uploaded file
MAX_FILE_BYTES = 1024 * 1024


def normalize_path(path):
    """Slash-separated, relative, without empty or dot segments"""
    parts = path.replace('\\', '/').split('/')
    return '/'.join(part for part in parts if part not in ('', '.', '..'))


def extension_of(path):
    name = path.rsplit('/', 1)[-1]
    if '.' not in name:
        return ''
    return name.rsplit('.', 1)[-1].lower()


def is_text_path(path):
    return extension_of(path) in TEXT_EXTENSIONS


def filter_text_files(files):
    return [record for record in files if is_text_path(record.path)]


def select_entries(entries, limit=MAX_INDEXED_FILES):
    """Keep allowed non-directory entries in discovery order, at most `limit` of them"""
    selected = []
    for entry in entries:
        if len(selected) >= limit:
            break
        if getattr(entry, 'is_dir', False) or not is_text_path(entry.path):
            continue
        selected.append(entry)
    return selected


def collect_files(entries, fetch_content, limit=MAX_INDEXED_FILES):
    """Fetch each selected entry independently; a failing fetch is skipped, never fatal"""
    result = IngestionResult()
    for entry in select_entries(entries, limit):
        try:
            content = fetch_content(entry)
        except Exception as e:
            logger.warning("Failed to fetch file %s: %s", entry.path, e)
            result.failed.append(entry.path)
            continue
        result.files.append(FileRecord(path=entry.path, content=content, size=entry.size))
    if result.failed:
        logger.info("Ingested %d files, skipped %d", len(result.files), result.skipped)
    return result


def decode_text(raw):
    return raw.decode('utf-8', errors='replace')


def _strip_shared_root(paths):
    """Drop a single top-level folder shared by every path (e.g. `repo-main/`)"""
    roots = {path.split('/', 1)[0] for path in paths}
    if len(roots) != 1 or not all('/' in path for path in paths):
        return {path: path for path in paths}
    return {path: path.split('/', 1)[1] for path in paths}


def files_from_zip(stream, limit=MAX_INDEXED_FILES):
    """Ingest an uploaded ZIP archive"""
    try:
        archive = zipfile.ZipFile(stream)
    except zipfile.BadZipFile as e:
        raise InvalidUploadError(f"Uploaded file is not a valid ZIP archive: {e}") from e

    with archive:
        members = {}
        for info in archive.infolist():
            if info.is_dir():
                continue
            path = normalize_path(info.filename)
            if path:
                members[path] = info
        renamed = _strip_shared_root(list(members))

        files = []
        for original, info in members.items():
            if len(files) >= limit:
                break
            path = renamed[original]
            if not is_text_path(path):
                continue
            if info.file_size > MAX_FILE_BYTES:
                logger.warning("Skipping %s: %d bytes exceeds the per-file limit", path, info.file_size)
                continue
            raw = archive.read(info)
            files.append(FileRecord(path=path, content=decode_text(raw), size=len(raw)))
    return files


def files_from_uploads(uploads, limit=MAX_INDEXED_FILES):
    """Ingest a folder upload; each upload's filename carries its relative path"""
    uploads = [upload for upload in uploads if upload.filename]
    paths = {normalize_path(upload.filename): upload for upload in uploads}
    paths.pop('', None)
    renamed = _strip_shared_root(list(paths))

    files = []
    for original, upload in paths.items():
        if len(files) >= limit:
            break
        path = renamed[original]
        if not is_text_path(path):
            continue
        raw = upload.read()
        files.append(FileRecord(path=path, content=decode_text(raw), size=len(raw)))
    return files


STACK_NAMES = {
    'ts': 'TypeScript', 'tsx': 'TypeScript', 'js': 'JavaScript', 'jsx': 'JavaScript',
    'py': 'Python', 'go': 'Go', 'rs': 'Rust', 'java': 'Java',
    'c': 'C', 'h': 'C', 'cpp': 'C++', 'html': 'HTML', 'css': 'CSS',
}


def detect_stack(files, limit=4):
    """Most common languages among the files, by file count"""
    counts = {}
    for record in files:
        name = STACK_NAMES.get(extension_of(record.path))
        if name:
            counts[name] = counts.get(name, 0) + 1
    ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    return [name for name, _ in ranked[:limit]]
