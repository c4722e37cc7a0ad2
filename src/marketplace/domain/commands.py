"""
Commands du domaine.

Les commands représentent des intentions : quelque chose que
le système doit faire. Contrairement aux events (faits passés),
les commands sont des demandes qui peuvent échouer.

Les commands soumises à autorisation portent l'identité de l'appelant.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from marketplace.domain.model import Identité


class Command:
    """Classe de base pour toutes les commands."""
    pass


@dataclass(frozen=True)
class PasserCommande(Command):
    """Demande d'achat d'un produit par un client connecté."""

    id_produit: int
    quantité: int
    id_utilisateur: str
    adresse_livraison: Optional[str] = None
    téléphone: Optional[str] = None
    mode_paiement: Optional[str] = None


@dataclass(frozen=True)
class ModifierStatutCommande(Command):
    """Demande de changement de statut (prestataire propriétaire ou admin)."""

    id_commande: int
    statut: str
    identité: Identité


@dataclass(frozen=True)
class MarquerNotificationLue(Command):
    id_notification: str
    identité: Identité


@dataclass(frozen=True)
class InscrireUtilisateur(Command):
    identité: Identité
    nom_complet: str
    email: str
    jeton_push: Optional[str] = None


@dataclass(frozen=True)
class EnregistrerJetonPush(Command):
    """Associe (ou dissocie, avec None) l'appareil de l'utilisateur au push."""

    identité: Identité
    jeton_push: Optional[str]


@dataclass(frozen=True)
class ApprouverPrestataire(Command):
    id_prestataire: str
    identité: Identité


@dataclass(frozen=True)
class CréerProduit(Command):
    """Mise en vente d'un produit dans la boutique du prestataire."""

    identité: Identité
    nom: str
    prix: Decimal
    stock: int
    description: Optional[str] = None


@dataclass(frozen=True)
class ModifierProduit(Command):
    """Mise à jour de la fiche, y compris la remise en vente ou le retrait (actif)."""

    identité: Identité
    id_produit: int
    nom: str
    prix: Decimal
    stock: int
    description: Optional[str] = None
    actif: bool = True


@dataclass(frozen=True)
class SupprimerProduit(Command):
    """Suppression, ou archivage si le produit a déjà été commandé."""

    identité: Identité
    id_produit: int


@dataclass(frozen=True)
class EnregistrerVisite(Command):
    type_visiteur: str = "Client"
