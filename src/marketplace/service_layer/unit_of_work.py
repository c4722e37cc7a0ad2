"""
Pattern Unit of Work.

Le Unit of Work (UoW) gère la notion de transaction atomique.
Une opération du cycle de vie (décrément de stock + insertion de la
commande + insertion des notifications, ou changement de statut +
notification) est entièrement validée par un seul commit, ou
entièrement annulée.

Le UoW agit comme un context manager :
    with uow:
        # ... opérations sur les repositories ...
        uow.commit()
"""

from __future__ import annotations

import abc
from functools import lru_cache
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from marketplace.adapters import repository
from marketplace.config import get_settings
from marketplace.domain import events, model


@lru_cache
def default_session_factory() -> sessionmaker:
    return sessionmaker(bind=create_engine(get_settings().DATABASE_URL))


class AbstractUnitOfWork(abc.ABC):
    """
    Interface abstraite du Unit of Work.

    Fournit un repository par type d'objet et gère commit/rollback.
    Le rollback est automatique si commit() n'est pas appelé
    (grâce au __exit__ du context manager).
    """

    produits: repository.AbstractProduitRepository
    commandes: repository.AbstractCommandeRepository
    boutiques: repository.AbstractBoutiqueRepository
    notifications: repository.AbstractRepository
    utilisateurs: repository.AbstractRepository

    def __enter__(self) -> AbstractUnitOfWork:
        return self

    def __exit__(self, *args: object) -> None:
        self.rollback()

    def commit(self) -> None:
        self._commit()

    def collect_new_events(self) -> Iterator[events.Event]:
        """
        Collecte les événements émis par les agrégats vus pendant
        cette transaction, et vide leur liste.
        """
        for dépôt in (self.produits, self.commandes, self.utilisateurs):
            for agrégat in dépôt.seen:
                while agrégat.événements:
                    yield agrégat.événements.pop(0)

    @abc.abstractmethod
    def _commit(self) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def rollback(self) -> None:
        raise NotImplementedError


class SqlAlchemyUnitOfWork(AbstractUnitOfWork):
    """
    Implémentation concrète du UoW avec SQLAlchemy.

    Crée une session à l'entrée du context manager, la ferme à la sortie.
    Une instance n'est pas partagée entre threads : chaque requête
    construit la sienne.
    """

    def __init__(self, session_factory: sessionmaker | None = None):
        self.session_factory = session_factory or default_session_factory()

    def __enter__(self) -> SqlAlchemyUnitOfWork:
        self.session: Session = self.session_factory()
        self.produits = repository.SqlAlchemyProduitRepository(self.session)
        self.commandes = repository.SqlAlchemyCommandeRepository(self.session)
        self.boutiques = repository.SqlAlchemyBoutiqueRepository(self.session)
        self.notifications = repository.SqlAlchemyRepository(
            self.session, model.Notification
        )
        self.utilisateurs = repository.SqlAlchemyRepository(
            self.session, model.Utilisateur
        )
        return super().__enter__()

    def __exit__(self, *args: object) -> None:
        super().__exit__(*args)
        self.session.close()

    def _commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()
