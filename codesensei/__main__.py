import logging

from .app import create_app
from .config import Settings, configure_logging

logger = logging.getLogger("codesensei")


def main():
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    app = create_app(settings)
    logger.info("CodeSensei backend starting on http://%s:%s", settings.host, settings.port)
    app.run(host=settings.host, port=settings.port)


if __name__ == '__main__':
    main()
