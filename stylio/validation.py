"""Parse request input into schema objects or raise a 400 listing every bad field."""
from __future__ import annotations

from flask import current_app, request
from pydantic import ValidationError

from .errors import ValidationFailed, pydantic_errors


def _cross_field_errors(model, data: dict, errors: list[dict[str, str]], settings) -> list[dict[str, str]]:
    """Run ``check()`` on the fields that survived type validation.

    Rejected fields are left out so they fall back to their defaults. If the
    remainder still fails (a required field is missing) there is nothing
    further to check.
    """
    rejected = {error["field"].split(".")[0] for error in errors}
    remaining = {key: value for key, value in data.items() if key not in rejected}
    try:
        partial = model.model_validate(remaining)
    except ValidationError:
        return []
    reported = {error["field"] for error in errors}
    return [error for error in partial.check(settings) if error["field"] not in reported]


def _parse(model, data):
    settings = current_app.config["SEARCH"]
    try:
        parsed = model.model_validate(data)
    except ValidationError as exc:
        errors = pydantic_errors(exc)
        errors.extend(_cross_field_errors(model, data, errors, settings))
        current_app.logger.warning("Invalid input on %s: %s", request.path, errors)
        raise ValidationFailed(errors=errors) from exc

    errors = parsed.check(settings)
    if errors:
        current_app.logger.warning("Invalid input on %s: %s", request.path, errors)
        raise ValidationFailed(errors=errors)
    return parsed


def parse_query(model):
    return _parse(model, request.args.to_dict())


def parse_body(model):
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        payload = {}
    return _parse(model, payload)
