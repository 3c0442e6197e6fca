from __future__ import annotations
from typing import Protocol, List, Optional
from sqlalchemy.orm import Session

from ..db import models


class RoomRepository(Protocol):
    def get(self, db: Session, room_id: str) -> Optional[models.Room]:
        ...

    def list(self, db: Session, active_only: bool = False) -> List[models.Room]:
        ...

    def add(self, db: Session, room: models.Room) -> models.Room:
        ...


class SqlAlchemyRoomRepository:
    def get(self, db: Session, room_id: str) -> Optional[models.Room]:
        return db.query(models.Room).filter(models.Room.id == room_id).first()

    def list(self, db: Session, active_only: bool = False) -> List[models.Room]:
        q = db.query(models.Room)
        if active_only:
            q = q.filter(models.Room.is_active.is_(True))
        return q.order_by(models.Room.name).all()

    def add(self, db: Session, room: models.Room) -> models.Room:
        db.add(room)
        db.flush()
        return room
