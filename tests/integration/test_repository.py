"""
Tests d'intégration des Repositories avec SQLite en mémoire.

Ces tests vérifient que le mapping ORM fonctionne correctement :
- Sauvegarder et recharger un Produit avec sa Boutique
- Les statuts et rôles sont stockés sous leur forme canonique
- Le stock est modifié relativement, sur la valeur réelle de la ligne
"""

from decimal import Decimal

import pytest
from sqlalchemy import text

from marketplace.adapters import repository
from marketplace.domain.model import (
    Boutique,
    Commande,
    Notification,
    Produit,
    Rôle,
    StatutCommande,
    StockInsuffisant,
    TypeNotification,
    Utilisateur,
)


def ajouter_produit(session, stock: int = 5) -> int:
    boutique = Boutique("presta-1", "Les Roses de Fès")
    produit = Produit(boutique, "Bouquet de roses", prix=100.0, stock=stock)
    session.add(produit)
    session.commit()
    return produit.id


class TestSqlAlchemyRepository:
    def test_sauvegarder_et_recharger_un_produit(self, session_factory):
        id_produit = ajouter_produit(session_factory())

        session = session_factory()
        rechargé = repository.SqlAlchemyProduitRepository(session).get(id_produit)

        assert rechargé.nom == "Bouquet de roses"
        assert rechargé.stock == 5
        assert rechargé.boutique.id_prestataire == "presta-1"
        assert rechargé.prix == Decimal("100.00")
        assert rechargé.événements == []

    def test_commande_stockée_sous_forme_canonique(self, session_factory):
        id_produit = ajouter_produit(session_factory())
        session = session_factory()
        produit = session.get(Produit, id_produit)
        commande = produit.passer_commande("client-1", 2)
        session.add(commande)
        session.commit()

        [[statut, quantité, prix_total]] = session.execute(
            text("SELECT statut, quantite, prix_total FROM commandes")
        )
        assert (statut, quantité, prix_total) == ("validated", 2, 200.0)

        rechargée = repository.SqlAlchemyRepository(session_factory(), Commande).get(
            commande.id
        )
        assert rechargée.statut is StatutCommande.VALIDÉE
        assert rechargée.quantité == 2
        assert rechargée.événements == []

    def test_boutique_par_prestataire(self, session_factory):
        ajouter_produit(session_factory())

        repo = repository.SqlAlchemyBoutiqueRepository(session_factory())

        assert repo.get_par_prestataire("presta-1").nom == "Les Roses de Fès"
        assert repo.get_par_prestataire("presta-2") is None

    def test_notification_diffusée(self, session_factory):
        session = session_factory()
        notification = Notification("Nouvelle Transaction", "...", TypeNotification.ADMIN)
        repository.SqlAlchemyRepository(session, Notification).add(notification)
        session.commit()

        rechargée = repository.SqlAlchemyRepository(session_factory(), Notification).get(
            notification.id
        )
        assert rechargée.type is TypeNotification.ADMIN
        assert rechargée.id_utilisateur is None
        assert rechargée.lue is False

    def test_utilisateur(self, session_factory):
        session = session_factory()
        session.add(Utilisateur("presta-1", Rôle.PRESTATAIRE, "Salma", "s@example.com",
                                approuvé=False))
        session.commit()

        [rôle] = session.execute(text("SELECT role FROM utilisateurs")).one()
        assert rôle == "Prestataire"
        rechargé = session_factory().get(Utilisateur, "presta-1")
        assert rechargé.rôle is Rôle.PRESTATAIRE
        assert rechargé.approuvé is False


class TestVariationDeStock:
    """
    Deux sessions sur une base fichier : la seconde lit le produit avant
    que la première ne vende, puis écrit avec une valeur lue périmée.
    """

    def _vendre(self, session, id_produit: int, quantité: int, client: str) -> Produit:
        produits = repository.SqlAlchemyProduitRepository(session)
        produit = produits.get(id_produit)
        commande = produit.passer_commande(client, quantité)
        produits.appliquer_variation_stock(produit, -quantité)
        session.add(commande)
        return produit

    def test_décrément_appliqué_au_stock_réel(self, file_session_factory):
        id_produit = ajouter_produit(file_session_factory(), stock=5)
        session_lente = file_session_factory()
        produit_lu = session_lente.get(Produit, id_produit)
        assert produit_lu.stock == 5

        session_rapide = file_session_factory()
        self._vendre(session_rapide, id_produit, 2, "client-1")
        session_rapide.commit()

        self._vendre(session_lente, id_produit, 2, "client-2")
        assert produit_lu.stock == 1
        session_lente.commit()

        assert file_session_factory().get(Produit, id_produit).stock == 1

    def test_variation_non_couverte_par_le_stock_réel(self, file_session_factory):
        id_produit = ajouter_produit(file_session_factory(), stock=5)
        session_lente = file_session_factory()
        session_lente.get(Produit, id_produit)

        session_rapide = file_session_factory()
        self._vendre(session_rapide, id_produit, 4, "client-1")
        session_rapide.commit()

        with pytest.raises(StockInsuffisant) as exc:
            self._vendre(session_lente, id_produit, 2, "client-2")
        session_lente.rollback()

        assert exc.value.stock_restant == 1
        vérification = file_session_factory()
        assert vérification.get(Produit, id_produit).stock == 1
        assert vérification.query(Commande).count() == 1

    def test_réintégration(self, session_factory):
        id_produit = ajouter_produit(session_factory(), stock=5)
        session = session_factory()
        produits = repository.SqlAlchemyProduitRepository(session)
        produit = produits.get(id_produit)

        produit.réintégrer_stock(3)
        produits.appliquer_variation_stock(produit, 3)
        session.commit()

        assert session_factory().get(Produit, id_produit).stock == 8

    def test_modification_de_la_fiche_sans_écraser_le_stock(self, session_factory):
        id_produit = ajouter_produit(session_factory(), stock=5)
        session = session_factory()
        produits = repository.SqlAlchemyProduitRepository(session)
        produit = produits.get(id_produit)

        variation = produit.modifier("Roses rouges", prix=Decimal("80"), stock=9)
        produits.appliquer_variation_stock(produit, variation)
        session.commit()

        rechargé = session_factory().get(Produit, id_produit)
        assert (rechargé.nom, rechargé.prix, rechargé.stock) == (
            "Roses rouges", Decimal("80.00"), 9
        )


class TestSuppression:
    def test_existe_pour_produit(self, session_factory):
        id_produit = ajouter_produit(session_factory())
        session = session_factory()
        commandes = repository.SqlAlchemyCommandeRepository(session)
        assert commandes.existe_pour_produit(id_produit) is False

        session.add(session.get(Produit, id_produit).passer_commande("client-1", 1))
        session.commit()

        assert commandes.existe_pour_produit(id_produit) is True

    def test_supprimer(self, session_factory):
        id_produit = ajouter_produit(session_factory())
        session = session_factory()
        produits = repository.SqlAlchemyProduitRepository(session)

        produits.supprimer(produits.get(id_produit))
        session.commit()

        assert session_factory().get(Produit, id_produit) is None
