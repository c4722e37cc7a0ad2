"""
Handlers pour les commands et events.

Les handlers sont les fonctions qui traitent les commands et events
transitant par le message bus.

- Command handlers : exécutent une opération dans un Unit of Work.
  Les notifications produites par les règles de diffusion sont ajoutées
  dans la même transaction que le changement d'état qui les déclenche.
- Event handlers : réagissent après commit (journalisation, push).
  Ils ne doivent pas faire échouer l'opération.
"""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING, Iterable

from marketplace.domain import commands, dispatch, events, model

if TYPE_CHECKING:
    from marketplace.adapters.notifications import AbstractNotifications
    from marketplace.service_layer.unit_of_work import AbstractUnitOfWork

logger = logging.getLogger(__name__)


# --- Exceptions ---


class ProduitIntrouvable(model.Introuvable):
    code = "product_not_found"


class CommandeIntrouvable(model.Introuvable):
    code = "order_not_found"


class NotificationIntrouvable(model.Introuvable):
    code = "notification_not_found"


class UtilisateurIntrouvable(model.Introuvable):
    code = "user_not_found"


class DéjàInscrit(model.Conflit):
    code = "already_registered"


# --- Outils ---


def _enregistrer_notifications(
    uow: AbstractUnitOfWork, événements: Iterable[events.Event]
) -> None:
    """Ajoute au UoW courant les notifications dues pour ces événements."""
    for événement in événements:
        for notification in dispatch.notifications_pour(événement):
            uow.notifications.add(notification)


# --- Command Handlers ---


def passer_commande(
    cmd: commands.PasserCommande,
    uow: AbstractUnitOfWork,
) -> int:
    """
    Crée une commande et décrémente le stock du produit.

    Le décrément, l'insertion de la commande et les trois notifications
    (client, prestataire, admin) sont validés par un seul commit.
    Le stock est vérifié deux fois : par l'agrégat sur la valeur lue,
    puis en base sur la valeur réelle au moment de l'écriture.
    Retourne l'identifiant de la commande.
    """
    if isinstance(cmd.quantité, bool) or not isinstance(cmd.quantité, int) or cmd.quantité <= 0:
        raise model.ErreurValidation("La quantité doit être supérieure à 0")

    with uow:
        produit = uow.produits.get(cmd.id_produit)
        if produit is None:
            raise ProduitIntrouvable("Produit introuvable")
        commande = produit.passer_commande(
            id_client=cmd.id_utilisateur,
            quantité=cmd.quantité,
            adresse_livraison=cmd.adresse_livraison,
            téléphone_client=cmd.téléphone,
            mode_paiement=cmd.mode_paiement,
        )
        uow.produits.appliquer_variation_stock(produit, -cmd.quantité)
        uow.commandes.add(commande)
        _enregistrer_notifications(uow, produit.événements)
        uow.commit()
        return commande.id


def modifier_statut_commande(
    cmd: commands.ModifierStatutCommande,
    uow: AbstractUnitOfWork,
) -> str:
    """
    Fait avancer une commande dans son cycle de vie.

    Réservé à l'admin et au prestataire propriétaire de la boutique.
    Une annulation recrédite le stock du produit dans la même transaction.
    Retourne le statut courant (forme canonique).
    """
    identité = cmd.identité
    if identité.rôle not in (model.Rôle.PRESTATAIRE, model.Rôle.ADMIN):
        raise model.Interdit(
            "Seul le prestataire ou un administrateur peut modifier une commande"
        )
    nouveau = model.normaliser_statut(cmd.statut)

    with uow:
        commande = uow.commandes.get(cmd.id_commande)
        if commande is None:
            raise CommandeIntrouvable("Commande introuvable")
        if identité.rôle is model.Rôle.PRESTATAIRE:
            boutique = uow.boutiques.get(commande.id_boutique)
            if boutique is None or not boutique.appartient_à(identité.id_utilisateur):
                raise model.Interdit(
                    "Cette commande n'appartient pas à votre boutique"
                )

        if commande.changer_statut(nouveau) and nouveau is model.StatutCommande.ANNULÉE:
            produit = uow.produits.get(commande.id_produit)
            if produit is not None:
                produit.réintégrer_stock(commande.quantité)
                uow.produits.appliquer_variation_stock(produit, commande.quantité)

        _enregistrer_notifications(uow, commande.événements)
        uow.commit()
        return commande.statut.value


def marquer_notification_lue(
    cmd: commands.MarquerNotificationLue,
    uow: AbstractUnitOfWork,
) -> None:
    """
    Marque une notification comme lue (idempotent).

    Une notification invisible pour l'appelant est rapportée comme
    introuvable, pour ne pas confirmer son existence.
    """
    try:
        id_notification = str(uuid.UUID(cmd.id_notification))
    except (ValueError, AttributeError, TypeError):
        raise model.ErreurValidation("Format d'identifiant invalide") from None

    with uow:
        notification = uow.notifications.get(id_notification)
        if notification is None or not notification.est_visible_par(cmd.identité):
            raise NotificationIntrouvable("Notification introuvable")
        notification.marquer_lue()
        uow.commit()


def inscrire_utilisateur(
    cmd: commands.InscrireUtilisateur,
    uow: AbstractUnitOfWork,
) -> None:
    identité = cmd.identité
    with uow:
        if uow.utilisateurs.get(identité.id_utilisateur) is not None:
            raise DéjàInscrit("Utilisateur déjà inscrit")
        utilisateur = model.Utilisateur.inscrire(
            id=identité.id_utilisateur,
            rôle=identité.rôle,
            nom_complet=cmd.nom_complet,
            email=cmd.email,
            jeton_push=cmd.jeton_push,
        )
        uow.utilisateurs.add(utilisateur)
        _enregistrer_notifications(uow, utilisateur.événements)
        uow.commit()


def approuver_prestataire(
    cmd: commands.ApprouverPrestataire,
    uow: AbstractUnitOfWork,
) -> None:
    """Valide le compte d'un prestataire (admin uniquement, idempotent)."""
    if not cmd.identité.est_admin:
        raise model.Interdit("Action réservée aux administrateurs")
    with uow:
        utilisateur = uow.utilisateurs.get(cmd.id_prestataire)
        if utilisateur is None or utilisateur.rôle is not model.Rôle.PRESTATAIRE:
            raise UtilisateurIntrouvable("Prestataire introuvable")
        utilisateur.approuver()
        _enregistrer_notifications(uow, utilisateur.événements)
        uow.commit()


def créer_produit(
    cmd: commands.CréerProduit,
    uow: AbstractUnitOfWork,
) -> int:
    """
    Met un produit en vente.

    La boutique du prestataire est créée au premier produit,
    à son nom. Seul un prestataire approuvé peut vendre.
    """
    identité = cmd.identité
    if identité.rôle is not model.Rôle.PRESTATAIRE:
        raise model.Interdit("Action réservée aux prestataires")
    with uow:
        prestataire = uow.utilisateurs.get(identité.id_utilisateur)
        if prestataire is None or not prestataire.approuvé:
            raise model.Interdit("Compte prestataire en attente de validation")
        boutique = uow.boutiques.get_par_prestataire(identité.id_utilisateur)
        if boutique is None:
            boutique = model.Boutique(
                id_prestataire=identité.id_utilisateur,
                nom=prestataire.nom_complet or "Ma Boutique",
            )
            uow.boutiques.add(boutique)
        produit = boutique.créer_produit(
            nom=cmd.nom,
            prix=cmd.prix,
            stock=cmd.stock,
            description=cmd.description,
        )
        uow.produits.add(produit)
        uow.commit()
        return produit.id


def _produit_du_vendeur(
    uow: AbstractUnitOfWork, identité: model.Identité, id_produit: int
) -> model.Produit:
    if identité.rôle not in (model.Rôle.PRESTATAIRE, model.Rôle.ADMIN):
        raise model.Interdit("Action réservée aux prestataires")
    produit = uow.produits.get(id_produit)
    if produit is None:
        raise ProduitIntrouvable("Produit introuvable")
    if identité.rôle is model.Rôle.PRESTATAIRE and not produit.boutique.appartient_à(
        identité.id_utilisateur
    ):
        raise model.Interdit("Ce produit n'appartient pas à votre boutique")
    return produit


def modifier_produit(
    cmd: commands.ModifierProduit,
    uow: AbstractUnitOfWork,
) -> int:
    """
    Met à jour un produit de la boutique (prestataire propriétaire ou admin).

    Le nouveau stock est appliqué comme une variation par rapport au stock
    lu : une vente conclue entre-temps reste décomptée.
    """
    with uow:
        produit = _produit_du_vendeur(uow, cmd.identité, cmd.id_produit)
        variation = produit.modifier(
            nom=cmd.nom,
            prix=cmd.prix,
            stock=cmd.stock,
            description=cmd.description,
            actif=cmd.actif,
        )
        uow.produits.appliquer_variation_stock(produit, variation)
        uow.commit()
        return produit.id


def supprimer_produit(
    cmd: commands.SupprimerProduit,
    uow: AbstractUnitOfWork,
) -> str:
    """
    Retire un produit de la boutique.

    Un produit déjà commandé est seulement archivé (inactif) pour garder
    l'historique des commandes. Retourne "archived" ou "deleted".
    """
    with uow:
        produit = _produit_du_vendeur(uow, cmd.identité, cmd.id_produit)
        if uow.commandes.existe_pour_produit(produit.id):
            produit.archiver()
            résultat = "archived"
        else:
            uow.produits.supprimer(produit)
            résultat = "deleted"
        uow.commit()
    logger.info("Produit %s : %s", cmd.id_produit, résultat)
    return résultat


def enregistrer_jeton_push(
    cmd: commands.EnregistrerJetonPush,
    uow: AbstractUnitOfWork,
) -> None:
    with uow:
        utilisateur = uow.utilisateurs.get(cmd.identité.id_utilisateur)
        if utilisateur is None:
            raise UtilisateurIntrouvable("Profil introuvable, inscrivez-vous d'abord")
        utilisateur.enregistrer_jeton_push(cmd.jeton_push)
        uow.commit()


def enregistrer_visite(
    cmd: commands.EnregistrerVisite,
    uow: AbstractUnitOfWork,
) -> None:
    with uow:
        _enregistrer_notifications(
            uow, [events.VisiteEnregistrée(type_visiteur=cmd.type_visiteur)]
        )
        uow.commit()


# --- Event Handlers ---


def journaliser_commande(event: events.CommandePassée) -> None:
    logger.info(
        "Commande passée : %dx %s chez %s (total %.2f)",
        event.quantité, event.nom_produit, event.nom_boutique, event.prix_total,
    )


def pousser_notifications(
    event: events.Event,
    uow: AbstractUnitOfWork,
    notifications: AbstractNotifications,
) -> None:
    """
    Relaie en push les notifications nominatives d'un événement.

    Best effort : seuls les destinataires ayant un jeton push sont
    concernés, et une erreur d'envoi est journalisée par le bus.
    Les diffusions admin ne sont pas poussées.
    """
    for notification in dispatch.notifications_pour(event):
        if notification.est_diffusion:
            continue
        with uow:
            destinataire = uow.utilisateurs.get(notification.id_utilisateur)
            jeton = destinataire.jeton_push if destinataire is not None else None
        if not jeton:
            continue
        notifications.send(
            destination=jeton,
            titre=notification.titre,
            message=notification.message,
        )
