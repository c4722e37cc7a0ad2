"""
Mapping ORM avec SQLAlchemy (classical mapping).

On définit les tables séparément, puis on mappe les classes
du domaine sur ces tables. Le modèle de domaine reste ignorant
de la persistance (persistence ignorance).

Les noms de colonnes SQL restent en ASCII, le mapping traduit
vers les attributs français du domaine.
"""

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
    event,
)
from sqlalchemy.orm import registry, relationship

from marketplace.domain import model

metadata = MetaData()
mapper_registry = registry(metadata=metadata)


def _enum(classe: type) -> Enum:
    # On stocke la valeur ("validated", "Admin"...) et non le nom du membre.
    return Enum(
        classe,
        native_enum=False,
        length=20,
        values_callable=lambda membres: [m.value for m in membres],
        validate_strings=True,
    )


# --- Définition des tables ---

utilisateurs = Table(
    "utilisateurs",
    metadata,
    Column("id", String(128), primary_key=True),
    Column("role", _enum(model.Rôle), nullable=False),
    Column("nom_complet", String(255), nullable=False, server_default=""),
    Column("email", String(255), nullable=False, server_default=""),
    Column("approuve", Boolean, nullable=False, default=False),
    Column("jeton_push", String(255), nullable=True),
    Column("cree_le", DateTime, nullable=False),
)

boutiques = Table(
    "boutiques",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("prestataire_id", String(128), nullable=False, unique=True),
    Column("nom", String(255), nullable=False),
)

produits = Table(
    "produits",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("boutique_id", Integer, ForeignKey("boutiques.id"), nullable=False),
    Column("nom", String(255), nullable=False),
    Column("prix", Numeric(12, 2), nullable=False),
    Column("stock", Integer, nullable=False),
    Column("actif", Boolean, nullable=False, default=True),
    Column("description", Text, nullable=True),
    Column("cree_le", DateTime, nullable=False),
)

commandes = Table(
    "commandes",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("produit_id", Integer, ForeignKey("produits.id"), nullable=False),
    Column("boutique_id", Integer, ForeignKey("boutiques.id"), nullable=False),
    Column("utilisateur_id", String(128), nullable=False, index=True),
    Column("quantite", Integer, nullable=False),
    Column("prix_total", Numeric(12, 2), nullable=False),
    Column("statut", _enum(model.StatutCommande), nullable=False),
    Column("adresse_livraison", Text, nullable=True),
    Column("telephone_client", String(64), nullable=True),
    Column("mode_paiement", String(64), nullable=True),
    Column("cree_le", DateTime, nullable=False),
)

notifications = Table(
    "notifications",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("titre", String(255), nullable=False),
    Column("message", Text, nullable=False),
    Column("type", _enum(model.TypeNotification), nullable=False),
    Column("utilisateur_id", String(128), nullable=True),
    Column("lue", Boolean, nullable=False, default=False),
    Column("cree_le", DateTime, nullable=False),
    Index("ix_notifications_destinataire", "utilisateur_id", "lue"),
)


def start_mappers() -> None:
    """
    Configure le mapping entre les classes du domaine et les tables SQL.

    Les montants sont des Numeric(12, 2) relus en Decimal. Le stock n'est
    modifié en base que par le repository des produits (mise à jour
    relative et conditionnelle).

    Sans effet si le mapping est déjà en place.
    """
    if mapper_registry.mappers:
        return

    mapper_registry.map_imperatively(
        model.Utilisateur,
        utilisateurs,
        properties={
            "rôle": utilisateurs.c.role,
            "approuvé": utilisateurs.c.approuve,
            "créé_le": utilisateurs.c.cree_le,
        },
    )
    boutiques_mapper = mapper_registry.map_imperatively(
        model.Boutique,
        boutiques,
        properties={
            "id_prestataire": boutiques.c.prestataire_id,
        },
    )
    mapper_registry.map_imperatively(
        model.Produit,
        produits,
        properties={
            "boutique": relationship(boutiques_mapper, lazy="joined"),
            "créé_le": produits.c.cree_le,
        },
    )
    mapper_registry.map_imperatively(
        model.Commande,
        commandes,
        properties={
            "id_produit": commandes.c.produit_id,
            "id_boutique": commandes.c.boutique_id,
            "id_utilisateur": commandes.c.utilisateur_id,
            "_quantité": commandes.c.quantite,
            "_prix_total": commandes.c.prix_total,
            "téléphone_client": commandes.c.telephone_client,
            "créée_le": commandes.c.cree_le,
        },
    )
    mapper_registry.map_imperatively(
        model.Notification,
        notifications,
        properties={
            "id_utilisateur": notifications.c.utilisateur_id,
            "créée_le": notifications.c.cree_le,
        },
    )


@event.listens_for(model.Produit, "load")
@event.listens_for(model.Commande, "load")
@event.listens_for(model.Utilisateur, "load")
def receive_load(agrégat: object, _: object) -> None:
    """Initialise la liste d'événements quand un agrégat est chargé depuis la BDD."""
    agrégat.événements = []  # type: ignore[attr-defined]
