"""
Views (lecture) pour le pattern CQRS.

Les views sont des fonctions de lecture pure qui interrogent
directement la base de données, sans passer par le modèle de domaine.

Les alias de colonnes suivent les clés JSON attendues par
l'application mobile (camelCase).
"""

from __future__ import annotations

from sqlalchemy import text

from marketplace.domain import model
from marketplace.service_layer import unit_of_work

# Même règle de visibilité que Notification.est_visible_par().
_NOTIFICATIONS_VISIBLES = """
    FROM notifications
    WHERE lue = :faux
      AND (utilisateur_id = :id_utilisateur
           OR (:est_admin AND type = 'Admin' AND utilisateur_id IS NULL))
"""


def _ligne(r, montants: tuple[str, ...] = (), booléens: tuple[str, ...] = ()) -> dict:
    # Les Numeric reviennent en Decimal (PostgreSQL), que le JSON sérialiserait
    # en chaîne ; SQLite renvoie les booléens sous forme d'entiers.
    ligne = dict(r._mapping)
    for clé in montants:
        if ligne[clé] is not None:
            ligne[clé] = float(ligne[clé])
    for clé in booléens:
        ligne[clé] = bool(ligne[clé])
    return ligne


def _paramètres_destinataire(identité: model.Identité) -> dict:
    return dict(
        id_utilisateur=identité.id_utilisateur,
        est_admin=identité.est_admin,
        faux=False,
    )


def notifications_non_lues(
    identité: model.Identité, uow: unit_of_work.AbstractUnitOfWork
) -> list[dict]:
    """Notifications non lues visibles par l'appelant, les plus récentes d'abord."""
    with uow:
        results = uow.session.execute(
            text(
                'SELECT id, titre AS title, message, type, lue AS "isRead",'
                ' cree_le AS "createdAt"'
                + _NOTIFICATIONS_VISIBLES
                + " ORDER BY cree_le DESC"
            ),
            _paramètres_destinataire(identité),
        )
        return [_ligne(r, booléens=("isRead",)) for r in results]


def nombre_notifications_non_lues(
    identité: model.Identité, uow: unit_of_work.AbstractUnitOfWork
) -> int:
    with uow:
        return uow.session.execute(
            text("SELECT COUNT(*)" + _NOTIFICATIONS_VISIBLES),
            _paramètres_destinataire(identité),
        ).scalar_one()


def mes_commandes(
    id_utilisateur: str, uow: unit_of_work.AbstractUnitOfWork
) -> list[dict]:
    """Commandes du client, les plus récentes d'abord."""
    with uow:
        results = uow.session.execute(
            text(
                'SELECT c.id, p.nom AS "productName", b.nom AS "storeName",'
                ' c.quantite AS quantity, c.prix_total AS "totalPrice",'
                ' c.statut AS status, c.cree_le AS "createdAt",'
                ' c.adresse_livraison AS "shippingAddress",'
                ' c.telephone_client AS "customerPhone",'
                ' c.mode_paiement AS "paymentMethod"'
                " FROM commandes c"
                " JOIN produits p ON p.id = c.produit_id"
                " JOIN boutiques b ON b.id = c.boutique_id"
                " WHERE c.utilisateur_id = :id_utilisateur"
                " ORDER BY c.cree_le DESC, c.id DESC"
            ),
            dict(id_utilisateur=id_utilisateur),
        )
        return [_ligne(r, montants=("totalPrice",)) for r in results]


def commandes_boutique(
    id_prestataire: str, uow: unit_of_work.AbstractUnitOfWork
) -> list[dict]:
    """
    Commandes reçues par la boutique du prestataire.

    Liste vide si le prestataire n'a pas encore de boutique.
    """
    with uow:
        results = uow.session.execute(
            text(
                'SELECT c.id, c.cree_le AS "createdAt", c.statut AS status,'
                ' c.prix_total AS "totalAmount",'
                ' u.nom_complet AS "customerName", u.email AS "customerEmail",'
                ' c.adresse_livraison AS "customerAddress",'
                ' p.nom AS "productName", c.quantite AS quantity'
                " FROM commandes c"
                " JOIN boutiques b ON b.id = c.boutique_id"
                " JOIN produits p ON p.id = c.produit_id"
                " LEFT JOIN utilisateurs u ON u.id = c.utilisateur_id"
                " WHERE b.prestataire_id = :id_prestataire"
                " ORDER BY c.cree_le DESC, c.id DESC"
            ),
            dict(id_prestataire=id_prestataire),
        )
        return [_ligne(r, montants=("totalAmount",)) for r in results]


def produits_actifs(uow: unit_of_work.AbstractUnitOfWork) -> list[dict]:
    with uow:
        results = uow.session.execute(
            text(
                "SELECT p.id, p.nom AS name, p.prix AS price, p.stock,"
                ' p.description, b.nom AS "storeName"'
                " FROM produits p"
                " JOIN boutiques b ON b.id = p.boutique_id"
                " WHERE p.actif = :vrai"
                " ORDER BY p.cree_le DESC, p.id DESC"
            ),
            dict(vrai=True),
        )
        return [_ligne(r, montants=("price",)) for r in results]


def produit(id_produit: int, uow: unit_of_work.AbstractUnitOfWork) -> dict | None:
    """Fiche d'un produit, actif ou archivé ; None s'il n'existe pas."""
    with uow:
        r = uow.session.execute(
            text(
                "SELECT p.id, p.nom AS name, p.prix AS price, p.stock,"
                ' p.description, p.actif AS "isActive", p.cree_le AS "createdAt",'
                ' b.nom AS "storeName", u.nom_complet AS "prestataireName"'
                " FROM produits p"
                " JOIN boutiques b ON b.id = p.boutique_id"
                " LEFT JOIN utilisateurs u ON u.id = b.prestataire_id"
                " WHERE p.id = :id_produit"
            ),
            dict(id_produit=id_produit),
        ).first()
        if r is None:
            return None
        return _ligne(r, montants=("price",), booléens=("isActive",))


def produits_prestataire(
    id_prestataire: str, uow: unit_of_work.AbstractUnitOfWork
) -> list[dict]:
    with uow:
        results = uow.session.execute(
            text(
                "SELECT p.id, p.nom AS name, p.prix AS price, p.stock,"
                ' p.description, p.actif AS "isActive", p.cree_le AS "createdAt"'
                " FROM produits p"
                " JOIN boutiques b ON b.id = p.boutique_id"
                " WHERE b.prestataire_id = :id_prestataire"
                " ORDER BY p.cree_le DESC, p.id DESC"
            ),
            dict(id_prestataire=id_prestataire),
        )
        return [_ligne(r, montants=("price",), booléens=("isActive",)) for r in results]


def rôle_utilisateur(
    id_utilisateur: str, uow: unit_of_work.AbstractUnitOfWork
) -> str | None:
    """Rôle enregistré pour un utilisateur, ou None s'il n'a pas de profil."""
    with uow:
        return uow.session.execute(
            text("SELECT role FROM utilisateurs WHERE id = :id_utilisateur"),
            dict(id_utilisateur=id_utilisateur),
        ).scalar_one_or_none()
