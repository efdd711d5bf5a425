from datetime import datetime

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tutorhub.auth.dependencies import get_verified_identity
from tutorhub.auth.guards import authorize, self_access
from tutorhub.auth.jwt_handler import VerifiedIdentity
from tutorhub.database import get_db
from tutorhub.models.note import Note
from tutorhub.routes.common import apply_partial_update, ensure_owner, get_or_404, internal_error, normalize_email

router = APIRouter(tags=['notes'])


class CreateNoteRequest(BaseModel):
    title: str
    description: str | None = None

    @field_validator('title')
    @classmethod
    def validate_title(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Title is required.')
        return normalized


class UpdateNoteRequest(BaseModel):
    title: str = Field(default=None, min_length=1)
    description: str | None = None


class NoteResponse(BaseModel):
    id: int
    email: str
    title: str
    description: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


@router.post('/notes', response_model=NoteResponse, status_code=status.HTTP_201_CREATED)
def create_note(
    data: CreateNoteRequest,
    identity: VerifiedIdentity = Depends(get_verified_identity),
    db: Session = Depends(get_db),
):
    try:
        note = Note(email=identity.email, title=data.title, description=data.description)
        db.add(note)
        db.commit()
        db.refresh(note)
    except SQLAlchemyError as exc:
        db.rollback()
        raise internal_error(exc, 'Creating note failed') from exc

    return note


@router.get(
    '/notes/user/{email}',
    response_model=list[NoteResponse],
    dependencies=[Depends(authorize(self_access('email')))],
)
def list_my_notes(email: str, db: Session = Depends(get_db)):
    try:
        return db.query(Note).filter(
            Note.email == normalize_email(email),
        ).order_by(Note.created_at.desc()).all()
    except SQLAlchemyError as exc:
        raise internal_error(exc, 'Listing notes failed') from exc


@router.patch('/notes/{note_id}', response_model=NoteResponse)
def update_note(
    note_id: int,
    data: UpdateNoteRequest,
    identity: VerifiedIdentity = Depends(get_verified_identity),
    db: Session = Depends(get_db),
):
    try:
        note = get_or_404(db, Note, note_id, 'Note not found.')
        ensure_owner(note.email, identity.email, 'You can only edit your own notes.')
        apply_partial_update(note, data)
        db.commit()
        db.refresh(note)
    except SQLAlchemyError as exc:
        db.rollback()
        raise internal_error(exc, 'Updating note failed') from exc

    return note


@router.delete('/notes/{note_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_note(
    note_id: int,
    identity: VerifiedIdentity = Depends(get_verified_identity),
    db: Session = Depends(get_db),
):
    try:
        note = get_or_404(db, Note, note_id, 'Note not found.')
        ensure_owner(note.email, identity.email, 'You can only delete your own notes.')
        db.delete(note)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise internal_error(exc, 'Deleting note failed') from exc
