"""
Message Bus.

Reçoit une command venant de l'API (passer une commande, changer un
statut, marquer une notification lue...), l'exécute, puis traite en
cascade les events émis par les agrégats touchés : journalisation de la
vente, envoi des notifications push.

- Une command a un seul handler. Son résultat (id de commande, statut
  courant...) est renvoyé à l'appelant, ses erreurs aussi.
- Un event a zéro, un ou plusieurs handlers. Ils tournent après le commit :
  leur échec est journalisé et n'annule rien.

Les handlers reçus ont déjà leurs dépendances liées par bootstrap.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Any, Callable, Union

from marketplace.domain import commands, events
from marketplace.service_layer import unit_of_work

logger = logging.getLogger(__name__)

Message = Union[commands.Command, events.Event]


class MessageBus:
    """
    Bus d'une requête, avec son propre Unit of Work.

    Non partagé entre threads : l'entrypoint en construit un par requête.
    """

    def __init__(
        self,
        uow: unit_of_work.AbstractUnitOfWork,
        event_handlers: dict[type[events.Event], list[Callable]],
        command_handlers: dict[type[commands.Command], Callable],
    ):
        self.uow = uow
        self.event_handlers = event_handlers
        self.command_handlers = command_handlers
        self.queue: deque[Message] = deque()

    def handle(self, message: Message) -> list[Any]:
        """Traite le message puis les events qui en découlent ; renvoie les résultats des commands."""
        self.queue = deque([message])
        résultats: list[Any] = []
        while self.queue:
            courant = self.queue.popleft()
            if isinstance(courant, commands.Command):
                résultats.append(self._exécuter_command(courant))
            elif isinstance(courant, events.Event):
                self._diffuser_event(courant)
            else:
                raise ValueError(f"Message de type inconnu : {type(courant)}")
        return résultats

    def _exécuter_command(self, command: commands.Command) -> Any:
        handler = self.command_handlers.get(type(command))
        if handler is None:
            raise ValueError(f"Aucun handler pour la command {type(command).__name__}")
        logger.debug("Command %s", command)
        try:
            résultat = handler(command)
        except Exception:
            logger.debug("Command %s refusée", type(command).__name__, exc_info=True)
            raise
        self._collecter_events()
        return résultat

    def _diffuser_event(self, event: events.Event) -> None:
        for handler in self.event_handlers.get(type(event), []):
            try:
                logger.debug("Event %s -> %s", type(event).__name__, handler)
                handler(event)
                self._collecter_events()
            except Exception:
                logger.exception("Échec d'un handler pour l'event %s", event)

    def _collecter_events(self) -> None:
        self.queue.extend(self.uow.collect_new_events())
