"""
Point d'entrée Flask.

L'API Flask est un thin adapter : elle se contente de
convertir les requêtes HTTP en commands, les envoie au
message bus, et convertit les résultats en réponses HTTP.

L'API ne contient aucune logique métier. Le bus (et donc la
connexion à la base) est injecté dans l'application par
create_app() plutôt que créé à l'import du module.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Optional

import click
from flask import Flask, current_app, jsonify, request, send_from_directory
from flask.cli import with_appcontext
from werkzeug.exceptions import NotFound as HTTPNotFound

from booking.adapters import orm
from booking.config import Settings, get_settings
from booking.domain import commands, model
from booking.domain.errors import BookingError, ErrorKind, InvalidRequest
from booking.service_layer import bootstrap, messagebus, unit_of_work
from booking.views import views

logger = logging.getLogger(__name__)

STATUS_BY_KIND = {
    ErrorKind.INVALID_REQUEST: 400,
    ErrorKind.NOT_FOUND: 404,
}


def create_app(
    bus: Optional[messagebus.MessageBus] = None,
    settings: Optional[Settings] = None,
) -> Flask:
    """Construit l'application Flask autour d'un message bus."""
    settings = settings or get_settings()
    app = Flask(__name__)
    if bus is None:
        engine = unit_of_work.make_engine(settings.database_uri)
        app.extensions["booking.engine"] = engine
        bus = bootstrap.bootstrap(engine=engine)
    app.extensions["booking.bus"] = bus
    app.extensions["booking.settings"] = settings

    app.before_request(log_request)
    app.after_request(add_cors_headers)
    app.register_error_handler(BookingError, handle_booking_error)

    app.add_url_rule("/test", view_func=health_endpoint, methods=["GET"])
    app.add_url_rule("/api/lessons", view_func=lessons_endpoint, methods=["GET"])
    app.add_url_rule("/api/search", view_func=search_endpoint, methods=["GET"])
    app.add_url_rule("/api/orders", view_func=orders_endpoint, methods=["POST"])
    app.add_url_rule(
        "/api/lessons/<lesson_id>", view_func=update_lesson_endpoint, methods=["PUT"]
    )
    app.add_url_rule("/images/<path:name>", view_func=image_endpoint, methods=["GET"])
    if settings.frontend_dir:
        app.add_url_rule("/", view_func=frontend_endpoint, methods=["GET"])
        app.add_url_rule("/<path:filename>", view_func=frontend_endpoint, methods=["GET"])

    app.cli.add_command(init_db_command)
    app.cli.add_command(import_lessons_command)
    return app


def _bus() -> messagebus.MessageBus:
    return current_app.extensions["booking.bus"]


def _settings() -> Settings:
    return current_app.extensions["booking.settings"]


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidRequest("Le corps de la requête doit être un objet JSON")
    return data


# --- Hooks ---


def log_request() -> None:
    logger.info(
        "%s %s - body: %s",
        request.method,
        request.full_path.rstrip("?"),
        json.dumps(request.get_json(silent=True) or {}, ensure_ascii=False),
    )


def add_cors_headers(response):
    response.headers["Access-Control-Allow-Origin"] = "*"
    response.headers["Access-Control-Allow-Methods"] = "GET, POST, PUT, OPTIONS"
    response.headers["Access-Control-Allow-Headers"] = "Content-Type"
    return response


def handle_booking_error(error: BookingError):
    status = STATUS_BY_KIND.get(error.kind, 500)
    if status == 500:
        logger.error("Échec de la requête (%s) : %s", error.kind.value, error)
    return jsonify({"error": error.message, "kind": error.kind.value}), status


# --- Routes ---


def health_endpoint():
    return jsonify({"message": "Server is working!"})


def lessons_endpoint():
    """
    GET /api/lessons

    Retourne tout le catalogue (lecture CQRS).
    """
    return jsonify(views.lessons(_bus().uow_factory()))


def search_endpoint():
    """
    GET /api/search?q=terme

    Recherche par sous-chaîne sur le sujet et le lieu, ou par
    égalité sur le prix et les places si le terme est un nombre.
    """
    return jsonify(views.search_lessons(request.args.get("q", ""), _bus().uow_factory()))


def orders_endpoint():
    """
    POST /api/orders
    Body JSON : { name, phone, lessons: [{ id, qty }], createdAt? }

    Réserve les places puis enregistre la commande.
    """
    data = _json_body()
    cmd = commands.PlaceOrder(
        name=data.get("name"),
        phone=data.get("phone"),
        lessons=data.get("lessons"),
        created_at=data.get("createdAt"),
    )
    order_id = _bus().handle(cmd).pop(0)
    return jsonify({"insertedId": order_id}), 201


def update_lesson_endpoint(lesson_id: str):
    """
    PUT /api/lessons/<id>
    Body JSON : champs à remplacer et/ou { "$incSpaces": n }

    Retourne le cours à jour.
    """
    data = _json_body()
    fields = {
        attribute: data[public_name]
        for public_name, attribute in views.LESSON_FIELDS.items()
        if public_name in data
    }
    cmd = commands.UpdateLesson(
        lesson_id=lesson_id,
        fields=fields,
        capacity_delta=data.get("$incSpaces"),
    )
    lesson = _bus().handle(cmd).pop(0)
    return jsonify({"updated": True, "lesson": views.lesson_to_dict(lesson)})


def image_endpoint(name: str):
    directory = os.path.abspath(_settings().images_dir)
    try:
        return send_from_directory(directory, name)
    except HTTPNotFound:
        return jsonify({"error": "Image not found"}), 404


def frontend_endpoint(filename: str = "index.html"):
    return send_from_directory(os.path.abspath(_settings().frontend_dir), filename)


# --- Commandes CLI ---


def _engine():
    engine = current_app.extensions.get("booking.engine")
    if engine is None:
        engine = unit_of_work.make_engine(_settings().database_uri)
    return engine


@click.command("init-db")
@with_appcontext
def init_db_command() -> None:
    """Crée les tables et l'index de recherche."""
    orm.metadata.create_all(_engine())
    click.echo("Base initialisée.")


@click.command("import-lessons")
@click.argument("path", type=click.File("r", encoding="utf-8"))
@with_appcontext
def import_lessons_command(path) -> None:
    """Importe des cours depuis un tableau JSON (tout ou rien)."""
    try:
        records = json.load(path)
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"JSON invalide : {e}", param_hint="PATH") from e
    if not isinstance(records, list):
        raise click.BadParameter("un tableau de cours est attendu", param_hint="PATH")
    # tout est validé avant la première écriture
    lessons = [_lesson_from_record(index, record) for index, record in enumerate(records)]
    uow = _bus().uow_factory()
    with uow:
        for lesson in lessons:
            uow.lessons.add(lesson)
        uow.commit()
    click.echo(f"{len(lessons)} cours importé(s).")


def _lesson_from_record(index: int, record) -> model.Lesson:
    if not isinstance(record, dict):
        raise click.BadParameter(f"cours n°{index} : un objet est attendu", param_hint="PATH")
    try:
        return model.Lesson.create(
            subject=record["subject"],
            location=record["location"],
            price=record["price"],
            available_space=record["availableSpace"],
            icon=record.get("icon"),
        )
    except KeyError as e:
        raise click.BadParameter(
            f"cours n°{index} : champ manquant {e}", param_hint="PATH"
        ) from e
    except InvalidRequest as e:
        raise click.BadParameter(f"cours n°{index} : {e.message}", param_hint="PATH") from e


def main() -> None:
    """Démarre le serveur : connexion à l'ouverture, libération à l'arrêt."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )
    engine = unit_of_work.make_engine(settings.database_uri)
    try:
        orm.metadata.create_all(engine)
        app = create_app(bootstrap.bootstrap(engine=engine), settings)
        logger.info("Serveur à l'écoute sur le port %d", settings.port)
        app.run(host="0.0.0.0", port=settings.port, threaded=True)
    finally:
        engine.dispose()


if __name__ == "__main__":
    main()
