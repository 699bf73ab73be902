from typing import List, Optional

from sqlalchemy import func, select

from draperads.db.models import Template
from draperads.db.repositories.base import Repository


class TemplatesRepository(Repository):
    def list(self) -> List[Template]:
        stmt = select(Template).order_by(Template.id.asc())
        return list(self.session.scalars(stmt).all())

    def get(self, template_id: int) -> Optional[Template]:
        return self.session.get(Template, template_id)

    def count(self) -> int:
        return int(self.session.scalar(select(func.count()).select_from(Template)) or 0)

    def create(self, *, name: str, image_url: str) -> Template:
        return self.save(Template(name=name, image_url=image_url))
