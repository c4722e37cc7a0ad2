"""
Point d'entrée Flask.

L'API Flask est un thin adapter : elle extrait l'identité de l'appelant,
convertit les requêtes HTTP en commands, les envoie au message bus,
et convertit les résultats (ou les erreurs métier) en réponses JSON.

L'API ne contient aucune logique métier.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any

import click
from flask import Flask, g, jsonify, request
from jose import JWTError, jwt
from sqlalchemy import create_engine
from werkzeug.exceptions import InternalServerError

from marketplace.adapters import orm
from marketplace.config import get_settings
from marketplace.domain import commands, model
from marketplace.logging_config import configure_logging
from marketplace.service_layer import bootstrap, handlers, messagebus
from marketplace.views import views

logger = logging.getLogger(__name__)

configure_logging()
app = Flask(__name__)


class NonAuthentifié(Exception):
    pass


def fabrique_bus() -> messagebus.MessageBus:
    return bootstrap.bootstrap()


def bus() -> messagebus.MessageBus:
    """Message bus de la requête courante (un par requête)."""
    if "bus" not in g:
        g.bus = fabrique_bus()
    return g.bus


# --- Identité ---


def identité_courante() -> model.Identité:
    """
    Identité de l'appelant, depuis un jeton Bearer (claims sub/uid/id et
    role) ou, à défaut, depuis l'en-tête X-Firebase-UID de l'appareil.
    Dans ce second cas le rôle est celui du profil enregistré.
    """
    entête = request.headers.get("Authorization", "")
    if entête.startswith("Bearer "):
        settings = get_settings()
        try:
            claims = jwt.decode(
                entête[len("Bearer "):],
                settings.JWT_SECRET,
                algorithms=[settings.JWT_ALGORITHM],
                options={"verify_aud": False},
            )
        except JWTError:
            raise NonAuthentifié("Jeton invalide") from None
        id_utilisateur = claims.get("sub") or claims.get("uid") or claims.get("id")
        if not id_utilisateur:
            raise NonAuthentifié("Jeton sans identifiant utilisateur")
        return model.Identité(
            id_utilisateur=str(id_utilisateur),
            rôle=model.normaliser_rôle(claims.get("role") or "Client"),
        )

    uid = request.headers.get("X-Firebase-UID")
    if uid:
        rôle = views.rôle_utilisateur(uid, bus().uow)
        return model.Identité(
            id_utilisateur=uid, rôle=model.normaliser_rôle(rôle or "Client")
        )

    raise NonAuthentifié("Authentification requise")


# --- Lecture du corps JSON ---


def _corps() -> dict[str, Any]:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise model.ErreurValidation("Corps JSON attendu")
    return data


def _entier(data: dict[str, Any], clé: str) -> int:
    valeur = data.get(clé)
    if isinstance(valeur, bool) or not isinstance(valeur, int):
        raise model.ErreurValidation(f"Le champ '{clé}' doit être un entier")
    return valeur


def _montant(data: dict[str, Any], clé: str) -> Decimal:
    valeur = data.get(clé)
    if isinstance(valeur, bool) or not isinstance(valeur, (int, float)):
        raise model.ErreurValidation(f"Le champ '{clé}' doit être un nombre")
    return model.montant(valeur)


def _booléen(data: dict[str, Any], clé: str, défaut: bool) -> bool:
    valeur = data.get(clé, défaut)
    if not isinstance(valeur, bool):
        raise model.ErreurValidation(f"Le champ '{clé}' doit être un booléen")
    return valeur


def _texte(data: dict[str, Any], clé: str, obligatoire: bool = False) -> str | None:
    valeur = data.get(clé)
    if valeur is None:
        if obligatoire:
            raise model.ErreurValidation(f"Le champ '{clé}' est obligatoire")
        return None
    if not isinstance(valeur, str):
        raise model.ErreurValidation(f"Le champ '{clé}' doit être une chaîne")
    return valeur


# --- Marketplace (client) ---


@app.route("/api/market/products", methods=["GET"])
def products_endpoint():
    return jsonify({"data": views.produits_actifs(bus().uow)}), 200


@app.route("/api/market/products/<int:id_produit>", methods=["GET"])
def product_endpoint(id_produit: int):
    produit = views.produit(id_produit, bus().uow)
    if produit is None:
        raise handlers.ProduitIntrouvable("Produit introuvable")
    return jsonify({"data": produit}), 200


@app.route("/api/market/orders", methods=["POST"])
def create_order_endpoint():
    """
    POST /api/market/orders
    Body JSON : { productId, quantity, shippingAddress?, phone?, paymentMethod? }

    Passe une commande pour le client connecté.
    """
    identité = identité_courante()
    data = _corps()
    cmd = commands.PasserCommande(
        id_produit=_entier(data, "productId"),
        quantité=_entier(data, "quantity"),
        id_utilisateur=identité.id_utilisateur,
        adresse_livraison=_texte(data, "shippingAddress"),
        téléphone=_texte(data, "phone"),
        mode_paiement=_texte(data, "paymentMethod"),
    )
    id_commande = bus().handle(cmd).pop(0)
    return jsonify({"message": "Commande créée avec succès", "orderId": id_commande}), 201


@app.route("/api/market/my-orders", methods=["GET"])
def my_orders_endpoint():
    identité = identité_courante()
    return jsonify({"data": views.mes_commandes(identité.id_utilisateur, bus().uow)}), 200


@app.route("/api/market/orders/<int:id_commande>/status", methods=["PUT"])
def update_order_status_endpoint(id_commande: int):
    """
    PUT /api/market/orders/<id>/status
    Body JSON : { status }
    """
    identité = identité_courante()
    cmd = commands.ModifierStatutCommande(
        id_commande=id_commande,
        statut=_texte(_corps(), "status", obligatoire=True),
        identité=identité,
    )
    statut = bus().handle(cmd).pop(0)
    return jsonify({"message": "Statut mis à jour", "status": statut}), 200


@app.route("/api/market/track-visit", methods=["POST"])
def track_visit_endpoint():
    bus().handle(commands.EnregistrerVisite(request.args.get("type", "Client")))
    return jsonify({"success": True}), 200


# --- Espace prestataire ---


@app.route("/api/prestataire/orders", methods=["GET"])
def prestataire_orders_endpoint():
    identité = identité_courante()
    if identité.rôle is not model.Rôle.PRESTATAIRE:
        raise model.Interdit("Action réservée aux prestataires")
    data = views.commandes_boutique(identité.id_utilisateur, bus().uow)
    return jsonify({"success": True, "data": data}), 200


@app.route("/api/prestataire/orders/<int:id_commande>", methods=["PUT"])
def prestataire_update_order_endpoint(id_commande: int):
    identité = identité_courante()
    cmd = commands.ModifierStatutCommande(
        id_commande=id_commande,
        statut=_texte(_corps(), "status", obligatoire=True),
        identité=identité,
    )
    statut = bus().handle(cmd).pop(0)
    return jsonify({"success": True, "data": {"id": id_commande, "status": statut}}), 200


@app.route("/api/prestataire/products", methods=["POST"])
def create_product_endpoint():
    """
    POST /api/prestataire/products
    Body JSON : { name, price, stock, description? }
    """
    identité = identité_courante()
    data = _corps()
    cmd = commands.CréerProduit(
        identité=identité,
        nom=_texte(data, "name", obligatoire=True),
        prix=_montant(data, "price"),
        stock=_entier(data, "stock"),
        description=_texte(data, "description"),
    )
    id_produit = bus().handle(cmd).pop(0)
    return jsonify({"success": True, "data": {"id": id_produit}}), 201


@app.route("/api/prestataire/products", methods=["GET"])
def prestataire_products_endpoint():
    """Tous les produits de la boutique, archivés compris."""
    identité = identité_courante()
    if identité.rôle is not model.Rôle.PRESTATAIRE:
        raise model.Interdit("Action réservée aux prestataires")
    data = views.produits_prestataire(identité.id_utilisateur, bus().uow)
    return jsonify({"success": True, "data": data}), 200


@app.route("/api/prestataire/products/<int:id_produit>", methods=["PUT"])
def update_product_endpoint(id_produit: int):
    """
    PUT /api/prestataire/products/<id>
    Body JSON : { name, price, stock, description?, isActive? }
    """
    identité = identité_courante()
    data = _corps()
    bus().handle(
        commands.ModifierProduit(
            identité=identité,
            id_produit=id_produit,
            nom=_texte(data, "name", obligatoire=True),
            prix=_montant(data, "price"),
            stock=_entier(data, "stock"),
            description=_texte(data, "description"),
            actif=_booléen(data, "isActive", True),
        )
    )
    return jsonify({"success": True, "data": views.produit(id_produit, bus().uow)}), 200


@app.route("/api/prestataire/products/<int:id_produit>", methods=["DELETE"])
def delete_product_endpoint(id_produit: int):
    résultat = bus().handle(
        commands.SupprimerProduit(identité=identité_courante(), id_produit=id_produit)
    ).pop(0)
    if résultat == "archived":
        message = "Le produit a été archivé car il possède des commandes passées."
    else:
        message = "Produit supprimé avec succès"
    return jsonify({"success": True, "message": message, "result": résultat}), 200


# --- Comptes ---


@app.route("/api/auth/register", methods=["POST"])
def register_endpoint():
    """
    POST /api/auth/register
    Body JSON : { fullName, email, pushToken? }

    Crée le profil de l'utilisateur authentifié (rôle pris dans le jeton).
    """
    identité = identité_courante()
    data = _corps()
    bus().handle(
        commands.InscrireUtilisateur(
            identité=identité,
            nom_complet=_texte(data, "fullName", obligatoire=True),
            email=_texte(data, "email", obligatoire=True),
            jeton_push=_texte(data, "pushToken"),
        )
    )
    if identité.rôle is model.Rôle.PRESTATAIRE:
        message = "Demande envoyée. En attente de validation par l'administrateur."
    else:
        message = "Inscription réussie"
    return jsonify({"message": message}), 201


@app.route("/api/users/me/push-token", methods=["PUT"])
def push_token_endpoint():
    """
    PUT /api/users/me/push-token
    Body JSON : { token } (null pour désactiver le push)
    """
    identité = identité_courante()
    bus().handle(
        commands.EnregistrerJetonPush(
            identité=identité, jeton_push=_texte(_corps(), "token")
        )
    )
    return jsonify({"success": True}), 200


@app.route("/api/admin/prestataires/<id_prestataire>/approve", methods=["PUT"])
def approve_prestataire_endpoint(id_prestataire: str):
    bus().handle(
        commands.ApprouverPrestataire(
            id_prestataire=id_prestataire, identité=identité_courante()
        )
    )
    return jsonify({"success": True}), 200


# --- Notifications ---


@app.route("/api/notifications", methods=["GET"])
def notifications_endpoint():
    identité = identité_courante()
    return jsonify({"data": views.notifications_non_lues(identité, bus().uow)}), 200


@app.route("/api/notifications/unread-count", methods=["GET"])
def unread_count_endpoint():
    identité = identité_courante()
    count = views.nombre_notifications_non_lues(identité, bus().uow)
    return jsonify({"count": count}), 200


@app.route("/api/notifications/<id_notification>/read", methods=["PUT"])
def mark_read_endpoint(id_notification: str):
    bus().handle(
        commands.MarquerNotificationLue(
            id_notification=id_notification, identité=identité_courante()
        )
    )
    return jsonify({"success": True}), 200


# --- Erreurs ---

CODES_HTTP: tuple[tuple[type[model.ErreurMétier], int], ...] = (
    (model.Introuvable, 404),
    (model.Interdit, 403),
    (model.ErreurValidation, 400),
    (model.Conflit, 400),
)


@app.errorhandler(model.ErreurMétier)
def erreur_métier(e: model.ErreurMétier):
    statut = next((code for classe, code in CODES_HTTP if isinstance(e, classe)), 400)
    logger.info("Requête refusée (%s) : %s", e.code, e.message)
    return jsonify({"error": e.message, "kind": e.code, **e.détails}), statut


@app.errorhandler(NonAuthentifié)
def non_authentifié(e: NonAuthentifié):
    return jsonify({"error": str(e), "kind": "unauthorized"}), 401


@app.errorhandler(InternalServerError)
def erreur_interne(e: InternalServerError):
    # Flask a déjà journalisé la trace de l'exception d'origine.
    return jsonify({"error": "Erreur interne du serveur"}), 500


# --- CLI ---


@app.cli.command("init-db")
def init_db_command() -> None:
    """Crée les tables dans la base configurée."""
    engine = create_engine(get_settings().DATABASE_URL)
    orm.metadata.create_all(engine)
    click.echo("Tables créées.")
