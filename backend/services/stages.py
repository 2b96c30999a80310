"""
stages.py — Fixed six-step case checklist per client.
"""

import logging
from collections import namedtuple

from database import db, atomic
from errors import InvalidArgument, NotFound
from models import Stage, StageStatus

logger = logging.getLogger(__name__)

StageDefinition = namedtuple("StageDefinition", ["number", "name", "required_documents"])

STAGE_CATALOG = (
    StageDefinition(1, "Registration & account creation", ()),
    StageDefinition(2, "Confirmation of information & professional profile creation",
                    ("CV", "Cover letter")),
    StageDefinition(3, "Upload of professional profile", ("Portfolio", "Certificates")),
    StageDefinition(4, "Certificate/diploma equivalence", ("Diplomas", "Transcripts")),
    StageDefinition(5, "Smart matching against company requirements", ()),
    StageDefinition(6, "Submission to companies", ()),
)

STAGE_NUMBERS = tuple(d.number for d in STAGE_CATALOG)
REMINDER_STAGE = 2


def ensure_stages(client_id: str) -> list:
    """
    Create the full catalog for a client that has no stage rows yet.
    Clients that already have rows are left untouched.
    """
    stages = list_stages(client_id)
    if stages:
        return stages

    with atomic():
        for definition in STAGE_CATALOG:
            db.session.add(Stage(
                client_id=client_id,
                stage_number=definition.number,
                stage_name=definition.name,
                status=StageStatus.not_started,
                required_documents=list(definition.required_documents),
            ))

    logger.info(f"[Stages] Initialised {len(STAGE_CATALOG)} stages for client {client_id}")
    return list_stages(client_id)


def list_stages(client_id: str) -> list:
    return (
        Stage.query
        .filter_by(client_id=client_id)
        .order_by(Stage.stage_number)
        .all()
    )


def update_stage(client_id: str, stage_number, patch: dict) -> Stage:
    """
    Apply {status, notes, required_documents} to one stage row.

    Keys absent from the patch are left as they are. Stage ordering is not
    enforced: any stage may be moved to any status.
    """
    stage_number = _as_stage_number(stage_number)
    if stage_number not in STAGE_NUMBERS:
        raise InvalidArgument(f"stage_number must be between 1 and {len(STAGE_CATALOG)}.")

    status = None
    if patch.get("status") is not None:
        try:
            status = StageStatus(patch["status"])
        except ValueError:
            valid = ", ".join(s.value for s in StageStatus)
            raise InvalidArgument(f"Invalid stage status. Must be one of: {valid}")

    if patch.get("notes") is not None and not isinstance(patch["notes"], str):
        raise InvalidArgument("notes must be a string.")

    required = patch.get("required_documents")
    if required is not None:
        if not isinstance(required, list) or not all(isinstance(d, str) for d in required):
            raise InvalidArgument("required_documents must be a list of strings.")

    stage = Stage.query.filter_by(client_id=client_id, stage_number=stage_number).first()
    if stage is None:
        # Updating before the first read initialises the checklist
        ensure_stages(client_id)
        stage = Stage.query.filter_by(client_id=client_id, stage_number=stage_number).first()
    if stage is None:
        raise NotFound.for_resource("Stage")

    with atomic():
        if status is not None:
            stage.status = status
        if "notes" in patch:
            stage.notes = patch["notes"]
        if required is not None:
            stage.required_documents = list(required)

    logger.info(f"[Stages] Client {client_id} stage {stage_number} updated: {stage.status.value}")
    return stage


def _as_stage_number(value) -> int:
    # bool is an int subclass; floats and "2.9" must not truncate
    if isinstance(value, bool):
        raise InvalidArgument("stage_number must be an integer.")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value)
    raise InvalidArgument("stage_number must be an integer.")


def second_payment_reminder(payment_status: str, stages) -> bool:
    """True when half the fee is still owed and the profile stage is done."""
    if payment_status != "partially_paid":
        return False
    return any(
        s.stage_number == REMINDER_STAGE and s.status == StageStatus.completed
        for s in stages
    )


def serialize_stage(stage: Stage) -> dict:
    return {
        "stage_id":           stage.stage_id,
        "client_id":          stage.client_id,
        "stage_number":       stage.stage_number,
        "stage_name":         stage.stage_name,
        "status":             stage.status.value,
        "required_documents": stage.required_documents or [],
        "notes":              stage.notes,
        "created_at":         stage.created_at.isoformat() if stage.created_at else None,
        "updated_at":         stage.updated_at.isoformat() if stage.updated_at else None,
    }
