"""
Configuration du logging.

Chaque module utilise `logging.getLogger(__name__)` ; ce module ne fait
que configurer le logger racine au démarrage de l'application.
"""

import json
import logging
import sys

from marketplace.config import get_settings

FORMAT_LOCAL = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class JsonFormatter(logging.Formatter):
    """Une ligne JSON par enregistrement, pour les environnements déployés."""

    def format(self, record: logging.LogRecord) -> str:
        enregistrement = {
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
            "timestamp": self.formatTime(record, self.datefmt),
        }
        if record.exc_info:
            enregistrement["exception"] = self.formatException(record.exc_info)
        return json.dumps(enregistrement, ensure_ascii=False)


def configure_logging() -> None:
    settings = get_settings()
    niveau = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    racine = logging.getLogger()
    racine.setLevel(niveau)

    # Un seul handler stdout, même si l'app est importée plusieurs fois.
    if any(getattr(h, "_marketplace", False) for h in racine.handlers):
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(niveau)
    if settings.ENVIRONMENT == "local":
        handler.setFormatter(logging.Formatter(FORMAT_LOCAL))
    else:
        handler.setFormatter(JsonFormatter())
    handler._marketplace = True  # type: ignore[attr-defined]
    racine.addHandler(handler)

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("werkzeug").setLevel(logging.WARNING)
