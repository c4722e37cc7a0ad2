"""
Adapter pour les notifications push.

Les notifications stockées en base sont la source de vérité ; le push
n'est qu'un canal de livraison en best effort, appelé après commit.
Cette abstraction découple le domaine du fournisseur de push concret.
"""

from __future__ import annotations

import abc
import logging

import httpx

logger = logging.getLogger(__name__)


class AbstractNotifications(abc.ABC):
    """Interface abstraite pour l'envoi de notifications push."""

    @abc.abstractmethod
    def send(self, destination: str, titre: str, message: str) -> None:
        raise NotImplementedError


class ExpoPushNotifications(AbstractNotifications):
    """
    Implémentation concrète via l'API push d'Expo.

    `destination` est le jeton push (ExponentPushToken[...]) de l'appareil.
    Une erreur HTTP est levée à l'appelant ; le message bus la journalise
    sans interrompre le traitement.
    """

    def __init__(self, url: str, timeout: float = 10.0):
        self.url = url
        self.timeout = timeout

    def send(self, destination: str, titre: str, message: str) -> None:
        # L'API Expo accepte un tableau de messages.
        payload = [
            {
                "to": destination,
                "title": titre,
                "body": message,
                "sound": "default",
                "priority": "high",
                "channelId": "default",
            }
        ]
        réponse = httpx.post(self.url, json=payload, timeout=self.timeout)
        réponse.raise_for_status()
        logger.info("Notification push envoyée à %s", destination)
