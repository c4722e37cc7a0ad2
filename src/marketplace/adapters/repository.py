"""
Pattern Repository.

Le repository fournit une abstraction sur la couche de persistance.
Il expose une interface de type collection (add, get) qui masque
les détails de l'accès aux données.

Un repository par type d'objet persistant (produits, commandes,
boutiques, notifications, utilisateurs). Tous partagent le même
suivi `seen`, qui permet au Unit of Work de collecter les events.
"""

from __future__ import annotations

import abc
from typing import Any, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import set_committed_value

from marketplace.domain import model


class AbstractRepository(abc.ABC):
    """
    Interface abstraite du repository.

    Le pattern Template Method est utilisé : les méthodes publiques
    (add, get) gèrent le tracking via `seen`, puis délèguent
    aux méthodes abstraites préfixées _ que les sous-classes implémentent.
    """

    seen: set[Any]

    def __init__(self) -> None:
        # `seen` trace tous les objets consultés pendant la transaction,
        # ce qui permet au Unit of Work de collecter leurs événements.
        self.seen: set[Any] = set()

    def add(self, objet: Any) -> None:
        self._add(objet)
        self.seen.add(objet)

    def get(self, identifiant: Any) -> Optional[Any]:
        objet = self._get(identifiant)
        if objet is not None:
            self.seen.add(objet)
        return objet

    @abc.abstractmethod
    def _add(self, objet: Any) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def _get(self, identifiant: Any) -> Optional[Any]:
        raise NotImplementedError


class AbstractBoutiqueRepository(AbstractRepository):
    def get_par_prestataire(self, id_prestataire: str) -> Optional[model.Boutique]:
        """Récupère la boutique d'un prestataire (au plus une)."""
        boutique = self._get_par_prestataire(id_prestataire)
        if boutique is not None:
            self.seen.add(boutique)
        return boutique

    @abc.abstractmethod
    def _get_par_prestataire(self, id_prestataire: str) -> Optional[model.Boutique]:
        raise NotImplementedError


class AbstractProduitRepository(AbstractRepository):
    def appliquer_variation_stock(self, produit: model.Produit, variation: int) -> None:
        """
        Répercute en base une variation de stock déjà décidée par l'agrégat.

        La variation est relative : elle s'applique au stock réel de la
        ligne, pas à la valeur lue en début de transaction. Lève
        StockInsuffisant si le stock réel ne la couvre pas.
        """
        if variation:
            self._appliquer_variation_stock(produit, variation)

    def supprimer(self, produit: model.Produit) -> None:
        self._supprimer(produit)
        self.seen.discard(produit)

    @abc.abstractmethod
    def _appliquer_variation_stock(self, produit: model.Produit, variation: int) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def _supprimer(self, produit: model.Produit) -> None:
        raise NotImplementedError


class AbstractCommandeRepository(AbstractRepository):
    def existe_pour_produit(self, id_produit: int) -> bool:
        return self._existe_pour_produit(id_produit)

    @abc.abstractmethod
    def _existe_pour_produit(self, id_produit: int) -> bool:
        raise NotImplementedError


class SqlAlchemyRepository(AbstractRepository):
    """Implémentation SQLAlchemy générique, par clé primaire."""

    def __init__(self, session: Session, classe: type):
        super().__init__()
        self.session = session
        self.classe = classe

    def _add(self, objet: Any) -> None:
        self.session.add(objet)

    def _get(self, identifiant: Any) -> Optional[Any]:
        return self.session.get(self.classe, identifiant)


class SqlAlchemyBoutiqueRepository(SqlAlchemyRepository, AbstractBoutiqueRepository):
    def __init__(self, session: Session):
        super().__init__(session, model.Boutique)

    def _get_par_prestataire(self, id_prestataire: str) -> Optional[model.Boutique]:
        return (
            self.session.query(model.Boutique)
            .filter_by(id_prestataire=id_prestataire)
            .first()
        )


class SqlAlchemyProduitRepository(SqlAlchemyRepository, AbstractProduitRepository):
    def __init__(self, session: Session):
        super().__init__(session, model.Produit)

    def _appliquer_variation_stock(self, produit: model.Produit, variation: int) -> None:
        # UPDATE ... SET stock = stock + v WHERE stock + v >= 0 : la condition
        # est évaluée sur la ligne verrouillée, après toute écriture concurrente.
        requête = (
            update(model.Produit)
            .where(model.Produit.id == produit.id)
            .where(model.Produit.stock + variation >= 0)
            .values(stock=model.Produit.stock + variation)
            .returning(model.Produit.stock)
            .execution_options(synchronize_session=False)
        )
        # L'agrégat porte déjà la variation en mémoire : elle ne doit pas
        # partir en base comme une valeur absolue.
        with self.session.no_autoflush:
            stock = self.session.execute(requête).scalar_one_or_none()
            if stock is None:
                stock_réel = self.session.execute(
                    select(model.Produit.stock).where(model.Produit.id == produit.id)
                ).scalar_one()
                raise model.StockInsuffisant(stock_réel)
        set_committed_value(produit, "stock", stock)

    def _supprimer(self, produit: model.Produit) -> None:
        self.session.delete(produit)


class SqlAlchemyCommandeRepository(SqlAlchemyRepository, AbstractCommandeRepository):
    def __init__(self, session: Session):
        super().__init__(session, model.Commande)

    def _existe_pour_produit(self, id_produit: int) -> bool:
        return (
            self.session.query(model.Commande.id)
            .filter_by(id_produit=id_produit)
            .first()
        ) is not None
