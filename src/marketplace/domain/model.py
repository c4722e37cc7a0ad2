"""
Modèle de domaine de la marketplace.

Ce module contient les entités, agrégats et value objects du domaine :
- Produit : agrégat racine pour le stock, c'est lui qui crée les commandes
- Commande : agrégat porteur de la machine à états du cycle de vie
- Boutique, Utilisateur, Notification : entités simples

Les erreurs métier sont aussi définies ici. Chaque erreur porte un `code`
stable, vérifiable par machine, en plus du message lisible.
"""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional, Union

from marketplace.domain import events

CENTIME = Decimal("0.01")


def maintenant() -> datetime:
    return datetime.now(timezone.utc)


def montant(valeur: Union[Decimal, float, int, str]) -> Decimal:
    """Montant en dirhams arrondi au centime (les flottants passent par str)."""
    try:
        return Decimal(str(valeur)).quantize(CENTIME, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError):
        raise ErreurValidation(f"Montant invalide : {valeur!r}") from None


# --- Erreurs métier ---


class ErreurMétier(Exception):
    """
    Racine de toutes les erreurs métier.

    `code` identifie le type d'erreur de façon stable ; `détails` contient
    des données complémentaires destinées à l'affichage (ex. stock restant).
    """

    code = "erreur"

    def __init__(self, message: str, **détails: Any):
        super().__init__(message)
        self.message = message
        self.détails = détails


class ErreurValidation(ErreurMétier):
    code = "validation"


class Introuvable(ErreurMétier):
    code = "not_found"


class Interdit(ErreurMétier):
    code = "forbidden"


class Conflit(ErreurMétier):
    code = "conflict"


class StatutInconnu(ErreurValidation):
    code = "unknown_status"


class ProduitInactif(ErreurValidation):
    """Levée quand on commande un produit qui n'est plus en vente."""

    code = "product_inactive"


class StockInsuffisant(Conflit):
    """Levée quand le stock ne couvre pas la quantité demandée."""

    code = "insufficient_stock"

    def __init__(self, stock_restant: int):
        super().__init__(
            f"Stock insuffisant. Reste : {stock_restant}", stock=stock_restant
        )
        self.stock_restant = stock_restant


class TransitionInvalide(Conflit):
    code = "invalid_transition"


# --- Statuts, rôles et types ---


class StatutCommande(str, enum.Enum):
    EN_ATTENTE = "pending"
    VALIDÉE = "validated"
    EXPÉDIÉE = "shipped"
    LIVRÉE = "delivered"
    ANNULÉE = "cancelled"


# Table des transitions : statut courant -> statuts atteignables.
TRANSITIONS_AUTORISÉES: dict[StatutCommande, frozenset[StatutCommande]] = {
    StatutCommande.EN_ATTENTE: frozenset(
        {StatutCommande.VALIDÉE, StatutCommande.ANNULÉE}
    ),
    StatutCommande.VALIDÉE: frozenset(
        {StatutCommande.EXPÉDIÉE, StatutCommande.ANNULÉE}
    ),
    StatutCommande.EXPÉDIÉE: frozenset({StatutCommande.LIVRÉE}),
    StatutCommande.LIVRÉE: frozenset(),
    StatutCommande.ANNULÉE: frozenset(),
}

LIBELLÉS_STATUT: dict[StatutCommande, str] = {
    StatutCommande.EN_ATTENTE: "en attente",
    StatutCommande.VALIDÉE: "validée",
    StatutCommande.EXPÉDIÉE: "expédiée et en cours de livraison",
    StatutCommande.LIVRÉE: "livrée",
    StatutCommande.ANNULÉE: "annulée",
}

# Orthographes historiques rencontrées côté application mobile.
_ALIAS_STATUT: dict[str, StatutCommande] = {
    "enattente": StatutCommande.EN_ATTENTE,
    "en_attente": StatutCommande.EN_ATTENTE,
    "en attente": StatutCommande.EN_ATTENTE,
    "validee": StatutCommande.VALIDÉE,
    "validée": StatutCommande.VALIDÉE,
    "expediee": StatutCommande.EXPÉDIÉE,
    "expédiée": StatutCommande.EXPÉDIÉE,
    "livree": StatutCommande.LIVRÉE,
    "livrée": StatutCommande.LIVRÉE,
    "annulee": StatutCommande.ANNULÉE,
    "annulée": StatutCommande.ANNULÉE,
}


def normaliser_statut(valeur: str) -> StatutCommande:
    """
    Convertit un statut saisi (casse libre) vers sa forme canonique.

    C'est l'unique point de conversion entre les chaînes venant de
    l'extérieur et l'énumération fermée du domaine.
    """
    if isinstance(valeur, StatutCommande):
        return valeur
    brut = str(valeur or "").strip().lower()
    try:
        return StatutCommande(brut)
    except ValueError:
        pass
    try:
        return _ALIAS_STATUT[brut]
    except KeyError:
        raise StatutInconnu(f"Statut inconnu : {valeur!r}") from None


class Rôle(str, enum.Enum):
    CLIENT = "Client"
    PRESTATAIRE = "Prestataire"
    ADMIN = "Admin"


def normaliser_rôle(valeur: str) -> Rôle:
    if isinstance(valeur, Rôle):
        return valeur
    brut = str(valeur or "").strip().lower()
    for rôle in Rôle:
        if rôle.value.lower() == brut:
            return rôle
    raise ErreurValidation(f"Rôle inconnu : {valeur!r}")


class TypeNotification(str, enum.Enum):
    CLIENT = "Client"
    PRESTATAIRE = "Prestataire"
    ADMIN = "Admin"


@dataclass(frozen=True)
class Identité:
    """
    Identité de l'appelant, propre à une requête.

    Elle est transmise explicitement aux commands qui vérifient des droits,
    au lieu d'être lue dans un état global.
    """

    id_utilisateur: str
    rôle: Rôle

    @property
    def est_admin(self) -> bool:
        return self.rôle is Rôle.ADMIN


# --- Entités ---


class Notification:
    """
    Message adressé soit à un utilisateur précis, soit à tous les admins.

    Une notification sans destinataire (id_utilisateur=None) est forcément
    de type Admin : c'est une diffusion visible par tout administrateur.
    """

    def __init__(
        self,
        titre: str,
        message: str,
        type: TypeNotification,
        id_utilisateur: Optional[str] = None,
        id: Optional[str] = None,
        lue: bool = False,
        créée_le: Optional[datetime] = None,
    ):
        if id_utilisateur is None and type is not TypeNotification.ADMIN:
            raise ValueError(
                "Seules les notifications Admin peuvent être sans destinataire"
            )
        self.id = id or str(uuid.uuid4())
        self.titre = titre
        self.message = message
        self.type = type
        self.id_utilisateur = id_utilisateur
        self.lue = lue
        self.créée_le = créée_le or maintenant()

    def __repr__(self) -> str:
        return f"<Notification {self.type.value} -> {self.id_utilisateur}: {self.titre}>"

    @property
    def est_diffusion(self) -> bool:
        return self.id_utilisateur is None

    def est_visible_par(self, identité: Identité) -> bool:
        if self.id_utilisateur is not None:
            return self.id_utilisateur == identité.id_utilisateur
        return identité.est_admin and self.type is TypeNotification.ADMIN

    def marquer_lue(self) -> None:
        # Idempotent : relire une notification déjà lue ne change rien.
        self.lue = True


class Utilisateur:
    """Profil applicatif d'un utilisateur authentifié par le fournisseur d'identité."""

    def __init__(
        self,
        id: str,
        rôle: Rôle,
        nom_complet: str,
        email: str,
        approuvé: bool = True,
        jeton_push: Optional[str] = None,
        créé_le: Optional[datetime] = None,
    ):
        self.id = id
        self.rôle = rôle
        self.nom_complet = nom_complet
        self.email = email
        self.approuvé = approuvé
        self.jeton_push = jeton_push
        self.créé_le = créé_le or maintenant()
        self.événements: list[events.Event] = []

    def __repr__(self) -> str:
        return f"<Utilisateur {self.id} ({self.rôle.value})>"

    @classmethod
    def inscrire(
        cls,
        id: str,
        rôle: Rôle,
        nom_complet: str,
        email: str,
        jeton_push: Optional[str] = None,
    ) -> Utilisateur:
        """
        Crée un profil. Un prestataire doit ensuite être approuvé par un
        administrateur avant de pouvoir vendre.

        Le jeton push de l'appareil est facultatif ; sans lui, les
        notifications restent consultables dans l'application.
        """
        if rôle is Rôle.ADMIN:
            raise Interdit("Un compte administrateur ne peut pas s'auto-inscrire")
        utilisateur = cls(
            id=id,
            rôle=rôle,
            nom_complet=nom_complet,
            email=email,
            approuvé=rôle is not Rôle.PRESTATAIRE,
        )
        utilisateur.enregistrer_jeton_push(jeton_push)
        utilisateur.événements.append(
            events.UtilisateurInscrit(
                id_utilisateur=id,
                rôle=rôle.value,
                nom_complet=nom_complet,
                email=email,
            )
        )
        return utilisateur

    def enregistrer_jeton_push(self, jeton: Optional[str]) -> None:
        """Associe l'appareil courant ; None (ou vide) désactive le push."""
        if jeton is not None and not isinstance(jeton, str):
            raise ErreurValidation("Le jeton push doit être une chaîne")
        self.jeton_push = (jeton or "").strip() or None

    def approuver(self) -> None:
        if self.approuvé:
            return
        self.approuvé = True
        self.événements.append(
            events.PrestataireApprouvé(
                id_prestataire=self.id, nom_complet=self.nom_complet
            )
        )


class Boutique:
    """Boutique d'un prestataire (une seule par prestataire)."""

    def __init__(self, id_prestataire: str, nom: str, id: Optional[int] = None):
        self.id = id
        self.id_prestataire = id_prestataire
        self.nom = nom

    def __repr__(self) -> str:
        return f"<Boutique {self.nom}>"

    def appartient_à(self, id_utilisateur: str) -> bool:
        return self.id_prestataire == id_utilisateur

    def créer_produit(
        self,
        nom: str,
        prix: Union[Decimal, float],
        stock: int,
        description: Optional[str] = None,
    ) -> Produit:
        nom, prix = _valider_fiche_produit(nom, prix, stock)
        return Produit(
            boutique=self,
            nom=nom,
            prix=prix,
            stock=stock,
            description=description,
        )


def _valider_fiche_produit(
    nom: str, prix: Union[Decimal, float], stock: int
) -> tuple[str, Decimal]:
    if not nom or not nom.strip():
        raise ErreurValidation("Le nom du produit est obligatoire")
    prix = montant(prix)
    if prix < 0:
        raise ErreurValidation("Le prix ne peut pas être négatif")
    if stock < 0:
        raise ErreurValidation("Le stock ne peut pas être négatif")
    return nom.strip(), prix


# --- Agrégats ---


class Commande:
    """
    Agrégat représentant une commande client.

    La quantité et le prix total sont figés à la création (prix
    photographié, jamais recalculé). Seul le statut évolue, et uniquement
    en suivant TRANSITIONS_AUTORISÉES.
    """

    def __init__(
        self,
        id_produit: int,
        id_boutique: int,
        id_utilisateur: str,
        quantité: int,
        prix_total: Decimal,
        statut: StatutCommande = StatutCommande.EN_ATTENTE,
        adresse_livraison: Optional[str] = None,
        téléphone_client: Optional[str] = None,
        mode_paiement: Optional[str] = None,
        créée_le: Optional[datetime] = None,
        id: Optional[int] = None,
    ):
        self.id = id
        self.id_produit = id_produit
        self.id_boutique = id_boutique
        self.id_utilisateur = id_utilisateur
        self._quantité = quantité
        self._prix_total = prix_total
        self.statut = statut
        self.adresse_livraison = adresse_livraison
        self.téléphone_client = téléphone_client
        self.mode_paiement = mode_paiement
        self.créée_le = créée_le or maintenant()
        self.événements: list[events.Event] = []

    def __repr__(self) -> str:
        return f"<Commande {self.id} {self.statut.value}>"

    @property
    def quantité(self) -> int:
        return self._quantité

    @property
    def prix_total(self) -> Decimal:
        return self._prix_total

    def peut_passer_à(self, nouveau: StatutCommande) -> bool:
        return nouveau in TRANSITIONS_AUTORISÉES[self.statut]

    def changer_statut(self, nouveau: StatutCommande) -> bool:
        """
        Applique une transition de statut.

        Retourne False (sans émettre d'événement) si le statut demandé est
        déjà le statut courant : la ré-application est idempotente.
        Lève TransitionInvalide pour toute transition hors table.
        """
        if nouveau == self.statut:
            return False
        if not self.peut_passer_à(nouveau):
            raise TransitionInvalide(
                f"Transition impossible : {self.statut.value} -> {nouveau.value}",
                statut=self.statut.value,
            )
        ancien = self.statut
        self.statut = nouveau
        self.événements.append(
            events.StatutCommandeModifié(
                id_commande=self.id,
                id_client=self.id_utilisateur,
                ancien_statut=ancien.value,
                nouveau_statut=nouveau.value,
            )
        )
        return True


class Produit:
    """
    Agrégat racine pour le stock d'un produit.

    Les règles de stock sont décidées ici sur la valeur lue. Le repository
    répercute ensuite chaque variation en base par une mise à jour relative
    et conditionnelle (stock + variation >= 0), évaluée sur la valeur
    réelle de la ligne : deux commandes concurrentes ne peuvent pas
    consommer le même stock.
    """

    def __init__(
        self,
        boutique: Boutique,
        nom: str,
        prix: Union[Decimal, float],
        stock: int,
        actif: bool = True,
        description: Optional[str] = None,
        id: Optional[int] = None,
        créé_le: Optional[datetime] = None,
    ):
        self.id = id
        self.boutique = boutique
        self.nom = nom
        self.prix = prix
        self.stock = stock
        self.actif = actif
        self.description = description
        self.créé_le = créé_le or maintenant()
        self.événements: list[events.Event] = []

    def __repr__(self) -> str:
        return f"<Produit {self.id} {self.nom}>"

    def passer_commande(
        self,
        id_client: str,
        quantité: int,
        adresse_livraison: Optional[str] = None,
        téléphone_client: Optional[str] = None,
        mode_paiement: Optional[str] = None,
    ) -> Commande:
        """
        Réserve le stock et crée la commande correspondante.

        La commande est directement validée : le paiement simulé vaut
        engagement ferme, il n'y a pas d'étape d'approbation.
        Émet CommandePassée en cas de succès.
        """
        if isinstance(quantité, bool) or not isinstance(quantité, int) or quantité <= 0:
            raise ErreurValidation("La quantité doit être supérieure à 0")
        if not self.actif:
            raise ProduitInactif("Ce produit n'est plus disponible")
        if self.stock < quantité:
            raise StockInsuffisant(self.stock)

        self.stock -= quantité
        commande = Commande(
            id_produit=self.id,
            id_boutique=self.boutique.id,
            id_utilisateur=id_client,
            quantité=quantité,
            prix_total=montant(self.prix) * quantité,
            statut=StatutCommande.VALIDÉE,
            adresse_livraison=adresse_livraison,
            téléphone_client=téléphone_client,
            mode_paiement=mode_paiement,
        )
        self.événements.append(
            events.CommandePassée(
                id_client=id_client,
                id_prestataire=self.boutique.id_prestataire,
                nom_boutique=self.boutique.nom,
                nom_produit=self.nom,
                quantité=quantité,
                prix_total=commande.prix_total,
            )
        )
        return commande

    def réintégrer_stock(self, quantité: int) -> None:
        """Recrédite le stock d'une commande annulée."""
        self.stock += quantité

    def modifier(
        self,
        nom: str,
        prix: Union[Decimal, float],
        stock: int,
        description: Optional[str] = None,
        actif: bool = True,
    ) -> int:
        """
        Met à jour la fiche du produit.

        Retourne la variation de stock (stock demandé - stock lu) : elle est
        appliquée relativement en base, ce qui préserve les ventes conclues
        entre la lecture et l'écriture.
        """
        self.nom, self.prix = _valider_fiche_produit(nom, prix, stock)
        self.description = description
        self.actif = actif
        variation = stock - self.stock
        self.stock = stock
        return variation

    def archiver(self) -> None:
        """Retire le produit de la vente sans effacer son historique."""
        self.actif = False
