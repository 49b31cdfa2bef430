# app/repositories/curso_repo.py
import uuid

from sqlmodel import Session, col, select

from app.models.curso import Curso
from app.models.profile import Profile


class CursoRepository:
    """
    Data access layer for Curso.

    Pure DB operations; storage objects referenced by the URL columns
    are handled by CourseService.
    """

    def get_by_id(self, session: Session, curso_id: uuid.UUID) -> Curso | None:
        return session.get(Curso, curso_id)

    def list_with_barbero(
        self,
        session: Session,
        published_only: bool = True,
        skip: int = 0,
        limit: int = 50,
    ) -> list[tuple[Curso, Profile | None]]:
        """
        Courses joined with their instructor's profile, newest first.

        Outer join: a course whose instructor row is gone is still listed.
        """
        stmt = select(Curso, Profile).join(Profile, col(Curso.barbero_id) == col(Profile.id), isouter=True)
        if published_only:
            stmt = stmt.where(col(Curso.publicado).is_(True))
        stmt = stmt.order_by(col(Curso.creado_en).desc()).offset(skip).limit(limit)
        return [(curso, profile) for curso, profile in session.exec(stmt).all()]

    def list_by_barbero(self, session: Session, barbero_id: uuid.UUID) -> list[Curso]:
        stmt = (
            select(Curso)
            .where(Curso.barbero_id == barbero_id)
            .order_by(col(Curso.creado_en).desc())
        )
        return list(session.exec(stmt).all())

    def create(self, session: Session, curso: Curso) -> Curso:
        session.add(curso)
        session.commit()
        session.refresh(curso)
        return curso

    def update(self, session: Session, curso: Curso) -> Curso:
        session.add(curso)
        session.commit()
        session.refresh(curso)
        return curso

    def delete(self, session: Session, curso: Curso) -> None:
        session.delete(curso)
        session.commit()
