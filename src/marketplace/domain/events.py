"""
Events du domaine.

Les events représentent des faits qui se sont produits dans le système.
Ils sont immuables et nommés au passé. Chacun est traduit en
notifications par les règles de diffusion (domain/dispatch.py).
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional


class Event:
    """Classe de base pour tous les events du domaine."""
    pass


@dataclass(frozen=True)
class UtilisateurInscrit(Event):
    id_utilisateur: str
    rôle: str
    nom_complet: str
    email: str


@dataclass(frozen=True)
class PrestataireApprouvé(Event):
    """Un administrateur a validé le compte d'un prestataire."""

    id_prestataire: str
    nom_complet: str


@dataclass(frozen=True)
class CommandePassée(Event):
    """Un client a passé une commande ; le stock a été décrémenté."""

    id_client: str
    id_prestataire: str
    nom_boutique: str
    nom_produit: str
    quantité: int
    prix_total: Decimal


@dataclass(frozen=True)
class StatutCommandeModifié(Event):
    id_commande: Optional[int]
    id_client: str
    ancien_statut: str
    nouveau_statut: str


@dataclass(frozen=True)
class VisiteEnregistrée(Event):
    type_visiteur: str
