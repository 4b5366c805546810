import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def _env_list(name, default):
    raw = os.getenv(name)
    if not raw:
        return default
    return [item.strip() for item in raw.split(',') if item.strip()]


@dataclass
class Settings:
    firebase_credentials: str = ''
    github_api_base: str = 'https://api.github.com'
    github_raw_base: str = 'https://raw.githubusercontent.com'
    github_token: str = ''
    llm_api_url: str = 'https://openrouter.ai/api/v1/chat/completions'
    llm_api_key: str = ''
    llm_model: str = 'google/gemini-2.5-pro'
    llm_temperature: float = 0.1
    request_timeout: float = 30.0
    max_upload_mb: int = 25
    cors_origins: list = field(default_factory=lambda: ['*'])
    log_level: str = 'INFO'
    host: str = '0.0.0.0'
    port: int = 8080

    @classmethod
    def from_env(cls, env_file=None):
        """Build settings from the process environment, loading .env first"""
        load_dotenv(env_file)
        defaults = cls()
        return cls(
            firebase_credentials=os.getenv('FIREBASE_CREDENTIALS', defaults.firebase_credentials),
            github_api_base=os.getenv('GITHUB_API_BASE', defaults.github_api_base).rstrip('/'),
            github_raw_base=os.getenv('GITHUB_RAW_BASE', defaults.github_raw_base).rstrip('/'),
            github_token=os.getenv('GITHUB_TOKEN', defaults.github_token),
            llm_api_url=os.getenv('LLM_API_URL', defaults.llm_api_url),
            llm_api_key=os.getenv('LLM_API_KEY', defaults.llm_api_key),
            llm_model=os.getenv('LLM_MODEL', defaults.llm_model),
            llm_temperature=float(os.getenv('LLM_TEMPERATURE', defaults.llm_temperature)),
            request_timeout=float(os.getenv('REQUEST_TIMEOUT', defaults.request_timeout)),
            max_upload_mb=int(os.getenv('MAX_UPLOAD_MB', defaults.max_upload_mb)),
            cors_origins=_env_list('CORS_ORIGINS', defaults.cors_origins),
            log_level=os.getenv('LOG_LEVEL', defaults.log_level).upper(),
            host=os.getenv('HOST', defaults.host),
            port=int(os.getenv('PORT', defaults.port)),
        )


def configure_logging(level='INFO'):
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT)
