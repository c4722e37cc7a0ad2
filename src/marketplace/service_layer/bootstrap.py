"""
Bootstrap : assemblage de l'application (Composition Root).

Ce module construit le message bus avec toutes ses dépendances.
C'est ici que l'injection de dépendances est réalisée :
on assemble les composants concrets (ou les fakes pour les tests).

C'est le seul endroit de l'application qui connaît les
implémentations concrètes de chaque abstraction.
"""

from __future__ import annotations

import functools
import inspect
from typing import Any, Callable

from marketplace.adapters import notifications, orm
from marketplace.config import get_settings
from marketplace.domain import commands, events
from marketplace.service_layer import handlers, messagebus, unit_of_work


def bootstrap(
    start_orm: bool = True,
    uow: unit_of_work.AbstractUnitOfWork | None = None,
    notifications_adapter: notifications.AbstractNotifications | None = None,
    **extra_dependencies: Any,
) -> messagebus.MessageBus:
    """
    Construit et retourne un MessageBus configuré.

    En production, utilise les implémentations concrètes.
    En test, on injecte des fakes via les paramètres.
    """
    settings = get_settings()

    if start_orm:
        orm.start_mappers()

    if uow is None:
        uow = unit_of_work.SqlAlchemyUnitOfWork()

    if notifications_adapter is None:
        notifications_adapter = notifications.ExpoPushNotifications(
            url=settings.EXPO_PUSH_URL, timeout=settings.PUSH_TIMEOUT
        )

    dependencies: dict[str, Any] = {
        "uow": uow,
        "notifications": notifications_adapter,
        **extra_dependencies,
    }

    injected_event_handlers = {
        event_type: [injecter_dépendances(h, dependencies) for h in event_handlers]
        for event_type, event_handlers in EVENT_HANDLERS.items()
    }
    injected_command_handlers = {
        command_type: injecter_dépendances(h, dependencies)
        for command_type, h in COMMAND_HANDLERS.items()
    }

    return messagebus.MessageBus(
        uow=uow,
        event_handlers=injected_event_handlers,
        command_handlers=injected_command_handlers,
    )


def injecter_dépendances(handler: Callable, dependencies: dict[str, Any]) -> Callable:
    """
    Lit la signature du handler et lie par nom les dépendances qu'il attend.

    Le premier paramètre (le message) reste libre ; un paramètre sans
    dépendance correspondante garde sa valeur par défaut.
    """
    params = list(inspect.signature(handler).parameters)[1:]
    kwargs = {name: dependencies[name] for name in params if name in dependencies}
    return functools.partial(handler, **kwargs)


# --- Routage des messages vers les handlers ---

EVENT_HANDLERS: dict[type[events.Event], list[Callable]] = {
    events.CommandePassée: [
        handlers.journaliser_commande,
        handlers.pousser_notifications,
    ],
    events.StatutCommandeModifié: [handlers.pousser_notifications],
    events.UtilisateurInscrit: [handlers.pousser_notifications],
    events.PrestataireApprouvé: [handlers.pousser_notifications],
}

COMMAND_HANDLERS: dict[type[commands.Command], Callable] = {
    commands.PasserCommande: handlers.passer_commande,
    commands.ModifierStatutCommande: handlers.modifier_statut_commande,
    commands.MarquerNotificationLue: handlers.marquer_notification_lue,
    commands.InscrireUtilisateur: handlers.inscrire_utilisateur,
    commands.ApprouverPrestataire: handlers.approuver_prestataire,
    commands.CréerProduit: handlers.créer_produit,
    commands.ModifierProduit: handlers.modifier_produit,
    commands.SupprimerProduit: handlers.supprimer_produit,
    commands.EnregistrerJetonPush: handlers.enregistrer_jeton_push,
    commands.EnregistrerVisite: handlers.enregistrer_visite,
}
