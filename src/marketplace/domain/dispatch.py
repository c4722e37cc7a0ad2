"""
Règles de diffusion des notifications.

Chaque event du domaine est traduit en zéro, une ou plusieurs
Notification, adressées selon le couple (type, id_utilisateur).
Ce sont des fonctions pures : elles ne persistent rien. Le command
handler ajoute leur résultat au Unit of Work de la transaction qui a
produit l'event, et le handler de push les réutilise après commit.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Callable

from marketplace.domain import events
from marketplace.domain.model import (
    LIBELLÉS_STATUT,
    Notification,
    StatutCommande,
    TypeNotification,
)

DEVISE = "MAD"


def _montant(valeur: Decimal) -> str:
    return f"{valeur:.2f} {DEVISE}"


def commande_passée(event: events.CommandePassée) -> list[Notification]:
    return [
        Notification(
            titre="Votre commande est validée",
            message=(
                f"Votre commande pour {event.nom_produit} "
                "a été enregistrée et validée."
            ),
            type=TypeNotification.CLIENT,
            id_utilisateur=event.id_client,
        ),
        Notification(
            titre="Nouvelle Commande",
            message=(
                f"Commande reçue pour {event.nom_boutique}. "
                f"Montant : {_montant(event.prix_total)}."
            ),
            type=TypeNotification.PRESTATAIRE,
            id_utilisateur=event.id_prestataire,
        ),
        Notification(
            titre="Nouvelle Transaction",
            message=(
                f"Nouvelle commande de {event.quantité}x {event.nom_produit}. "
                f"Total : {_montant(event.prix_total)}."
            ),
            type=TypeNotification.ADMIN,
        ),
    ]


def statut_commande_modifié(
    event: events.StatutCommandeModifié,
) -> list[Notification]:
    if event.ancien_statut == event.nouveau_statut:
        return []
    libellé = LIBELLÉS_STATUT[StatutCommande(event.nouveau_statut)]
    return [
        Notification(
            titre="Mise à jour de votre commande",
            message=f"Votre commande #{event.id_commande} est désormais {libellé}.",
            type=TypeNotification.CLIENT,
            id_utilisateur=event.id_client,
        )
    ]


def utilisateur_inscrit(event: events.UtilisateurInscrit) -> list[Notification]:
    if event.rôle == "Prestataire":
        return [
            Notification(
                titre="Nouveau Prestataire",
                message=(
                    f"Le prestataire {event.nom_complet} ({event.email}) "
                    "est en attente de validation."
                ),
                type=TypeNotification.ADMIN,
            ),
            Notification(
                titre="Bienvenue !",
                message=(
                    "Bienvenue sur FlowerMarket ! Vous recevrez ici vos alertes "
                    "de commande et notifications système."
                ),
                type=TypeNotification.PRESTATAIRE,
                id_utilisateur=event.id_utilisateur,
            ),
        ]
    return [
        Notification(
            titre="Nouveau Client",
            message=(
                f"Le client {event.nom_complet} ({event.email}) "
                "vient de s'inscrire."
            ),
            type=TypeNotification.ADMIN,
        )
    ]


def prestataire_approuvé(event: events.PrestataireApprouvé) -> list[Notification]:
    return [
        Notification(
            titre="Compte approuvé",
            message=(
                "Votre compte prestataire a été validé par l'administrateur. "
                "Vous pouvez maintenant publier vos produits."
            ),
            type=TypeNotification.PRESTATAIRE,
            id_utilisateur=event.id_prestataire,
        )
    ]


def visite_enregistrée(event: events.VisiteEnregistrée) -> list[Notification]:
    titre = (
        "Visite prestataire"
        if event.type_visiteur.lower() == "prestataire"
        else "Visite client"
    )
    return [
        Notification(
            titre=titre,
            message="Un utilisateur a consulté la plateforme",
            type=TypeNotification.ADMIN,
        )
    ]


RÈGLES: dict[type[events.Event], Callable[..., list[Notification]]] = {
    events.CommandePassée: commande_passée,
    events.StatutCommandeModifié: statut_commande_modifié,
    events.UtilisateurInscrit: utilisateur_inscrit,
    events.PrestataireApprouvé: prestataire_approuvé,
    events.VisiteEnregistrée: visite_enregistrée,
}


def notifications_pour(event: events.Event) -> list[Notification]:
    """Applique la règle associée au type de l'event (aucune si non référencé)."""
    règle = RÈGLES.get(type(event))
    if règle is None:
        return []
    return règle(event)
