"""
Configuration partagée pour les tests.

Le mapping ORM est démarré une seule fois pour toute la session de tests.
Les fixtures de base de données fournissent une SQLite en mémoire
(tests d'intégration et e2e) ou sur fichier (tests multi-threads).
"""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from marketplace.adapters import orm


@pytest.fixture(scope="session", autouse=True)
def mappers():
    """Démarre le mapping ORM une fois pour toute la session."""
    orm.start_mappers()


@pytest.fixture
def in_memory_db():
    engine = create_engine("sqlite:///:memory:")
    orm.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(in_memory_db):
    return sessionmaker(bind=in_memory_db)


@pytest.fixture
def file_session_factory(tmp_path):
    """
    SQLite sur fichier : chaque thread a sa propre connexion, ce qui
    reproduit des transactions réellement concurrentes.
    """
    engine = create_engine(
        f"sqlite:///{tmp_path / 'marketplace.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    orm.metadata.create_all(engine)
    yield sessionmaker(bind=engine)
    engine.dispose()
